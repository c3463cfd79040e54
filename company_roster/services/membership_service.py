"""
Membership Service

Applies the role policy to the company store. Each public method is one
transaction (CompanyStore.run_atomic): lookups, policy checks and writes
commit together or not at all.

Check ordering matters:
- Membership is checked before company existence, so non-members get
  CompanyAccessDenied whether or not the company exists.
- Role changes and removals take the per-company lock before reading the
  caller, the target and the owner count, so two requests cannot both pass
  the last-Owner guard for different Owners.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from company_roster.core.exceptions import CompanyAccessDenied, CompanyNotFoundError, LastOwnerError, MemberAlreadyExistsError, MemberNotFoundError
from company_roster.core.permissions import enforce_last_owner_guard, require_member_manager, require_membership
from company_roster.models.company import Company
from company_roster.models.member import CompanyMember, CompanyRole
from company_roster.repositories.company_store import CompanyStore
from company_roster.services.company_lifecycle import DEFAULT_PLAN, found_company
from company_roster.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


class MembershipService:
    def __init__(self, db: Session, store: Optional[CompanyStore] = None):
        self.store = store or CompanyStore(db)

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    def create_company(self, caller_user_id: str, name: str, plan: str = DEFAULT_PLAN) -> Company:
        company = self.store.run_atomic(
            lambda: found_company(self.store, caller_user_id, name, plan)
        )
        logger.info(
            f"Company created: {company.id} by {caller_user_id}",
            extra={"user_id": caller_user_id, "company_id": company.id}
        )
        return company

    def list_my_companies(self, caller_user_id: str) -> List[Company]:
        return self.store.run_atomic(
            lambda: self.store.list_companies_for_user(caller_user_id)
        )

    def get_company(self, caller_user_id: str, company_id: int) -> Company:
        def work():
            self._require_membership(caller_user_id, company_id)
            company = self.store.find_company_by_id(company_id)
            if company is None:
                raise CompanyNotFoundError(company_id)
            return company

        return self.store.run_atomic(work)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def list_members(self, caller_user_id: str, company_id: int) -> List[CompanyMember]:
        def work():
            self._require_membership(caller_user_id, company_id)
            return self.store.list_memberships_by_company(company_id)

        return self.store.run_atomic(work)

    def add_member(
        self,
        caller_user_id: str,
        company_id: int,
        target_user_id: str,
        role: CompanyRole,
    ) -> CompanyMember:
        def work():
            self._require_manager(caller_user_id, company_id, "add_member")

            if self.store.find_membership(company_id, target_user_id) is not None:
                raise MemberAlreadyExistsError(target_user_id)

            return self.store.insert_membership(CompanyMember(
                company_id=company_id,
                user_id=target_user_id,
                role=role
            ))

        membership = self.store.run_atomic(work)
        logger.info(
            f"Member added: {target_user_id} as {role.value} by {caller_user_id}",
            extra={"user_id": caller_user_id, "company_id": company_id, "target_user_id": target_user_id}
        )
        return membership

    def update_member_role(
        self,
        caller_user_id: str,
        company_id: int,
        target_user_id: str,
        new_role: CompanyRole,
    ) -> None:
        def work():
            self.store.lock_company(company_id)
            self._require_manager(caller_user_id, company_id, "update_member_role")
            target = self._require_target(company_id, target_user_id)

            if new_role != CompanyRole.OWNER:
                self._guard_last_owner(target, caller_user_id, "demote")

            previous = target.role
            self.store.update_membership_role(target, new_role)
            return previous

        previous = self.store.run_atomic(work)
        logger.info(
            f"Member role changed: {target_user_id} {previous.value} -> {new_role.value} by {caller_user_id}",
            extra={"user_id": caller_user_id, "company_id": company_id, "target_user_id": target_user_id}
        )

    def remove_member(self, caller_user_id: str, company_id: int, target_user_id: str) -> None:
        def work():
            self.store.lock_company(company_id)
            self._require_manager(caller_user_id, company_id, "remove_member")
            target = self._require_target(company_id, target_user_id)
            self._guard_last_owner(target, caller_user_id, "remove")
            self.store.delete_membership(target)

        self.store.run_atomic(work)
        logger.info(
            f"Member removed: {target_user_id} by {caller_user_id}",
            extra={"user_id": caller_user_id, "company_id": company_id, "target_user_id": target_user_id}
        )

    def get_my_membership(self, caller_user_id: str, company_id: int) -> Optional[CompanyMember]:
        """The caller's own membership, or None. Never raises CompanyAccessDenied."""
        return self.store.run_atomic(
            lambda: self.store.find_membership(company_id, caller_user_id)
        )

    # ------------------------------------------------------------------
    # Helpers (run inside an open transaction)
    # ------------------------------------------------------------------

    def _require_membership(self, caller_user_id: str, company_id: int) -> CompanyMember:
        return require_membership(self.store.find_membership(company_id, caller_user_id))

    def _require_manager(self, caller_user_id: str, company_id: int, action: str) -> CompanyMember:
        me = self.store.find_membership(company_id, caller_user_id)
        try:
            return require_member_manager(me)
        except CompanyAccessDenied:
            # Non-members are logged without the company id they asked for
            log_security_event(
                "membership_denied",
                {
                    "user_id": caller_user_id,
                    "action": action,
                    "company_id": company_id if me is not None else None,
                },
                logger
            )
            raise

    def _require_target(self, company_id: int, target_user_id: str) -> CompanyMember:
        target = self.store.find_membership(company_id, target_user_id)
        if target is None:
            raise MemberNotFoundError(target_user_id)
        return target

    def _guard_last_owner(self, target: CompanyMember, caller_user_id: str, action: str) -> None:
        if not target.is_owner:
            return
        owner_count = self.store.count_owners(target.company_id)
        try:
            enforce_last_owner_guard(target, owner_count, action)
        except LastOwnerError:
            log_security_event(
                "last_owner_guard",
                {
                    "user_id": caller_user_id,
                    "company_id": target.company_id,
                    "target_user_id": target.user_id,
                    "action": action,
                },
                logger
            )
            raise
