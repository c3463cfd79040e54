"""
Company Lifecycle

Creates a company together with its founding Owner membership. Both rows are
written in the caller's open transaction, so they commit or roll back
together and no company is ever left without an Owner.

Only MembershipService.create_company calls into this module.
"""
from company_roster.core.exceptions import CompanyNameTakenError
from company_roster.models.company import Company
from company_roster.models.member import CompanyMember, CompanyRole
from company_roster.repositories.company_store import CompanyStore
from company_roster.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PLAN = "free"


def found_company(store: CompanyStore, founder_user_id: str, name: str, plan: str = DEFAULT_PLAN) -> Company:
    """
    Insert the company and the founder's Owner membership.

    The name pre-check gives the common case a clean error; the unique index
    behind insert_company catches the concurrent case.
    """
    if store.find_company_by_name(name) is not None:
        raise CompanyNameTakenError(name)

    company = store.insert_company(Company(name=name, plan=plan or DEFAULT_PLAN))
    store.insert_membership(CompanyMember(
        company_id=company.id,
        user_id=founder_user_id,
        role=CompanyRole.OWNER
    ))

    logger.debug(
        f"Founding membership staged for company {company.id}",
        extra={"user_id": founder_user_id, "company_id": company.id}
    )
    return company
