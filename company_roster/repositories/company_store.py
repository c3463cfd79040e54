"""
Company Store

Narrow repository over the SQLAlchemy session. The membership service only
talks to the database through this class.

Store methods flush but never commit. A service operation wraps its reads
and writes in run_atomic(), which commits once at the end and rolls back on
any error, so each operation is all-or-nothing.
"""
import time
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from company_roster.config import get_settings
from company_roster.core.exceptions import (
    CompanyNameTakenError,
    MemberAlreadyExistsError,
    StoreUnavailableError,
)
from company_roster.models.company import Company
from company_roster.models.member import CompanyMember, CompanyRole
from company_roster.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")


class CompanyStore:
    def __init__(
        self,
        db: Session,
        retry_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        self.db = db
        self.retry_attempts = retry_attempts or settings.STORE_RETRY_ATTEMPTS
        self.retry_backoff = (
            settings.STORE_RETRY_BACKOFF_SECONDS if retry_backoff is None else retry_backoff
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def run_atomic(self, work: Callable[[], T]) -> T:
        """
        Run work() in one transaction and commit it.

        Transient failures (OperationalError: dropped connection, lock
        timeout, serialization failure) roll back and re-run the whole unit,
        reads included, up to retry_attempts times before surfacing
        StoreUnavailableError. Any other exception rolls back and propagates.
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                result = work()
                self.db.commit()
                return result
            except OperationalError as e:
                self.db.rollback()
                if attempt >= self.retry_attempts:
                    logger.error(f"Store unavailable after {attempt} attempts: {e}")
                    raise StoreUnavailableError() from e
                logger.warning(f"Transient store error (attempt {attempt}), retrying: {e}")
                time.sleep(self.retry_backoff * attempt)
            except Exception:
                self.db.rollback()
                raise

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    def find_company_by_name(self, name: str) -> Optional[Company]:
        return self.db.query(Company).filter(Company.name == name).first()

    def find_company_by_id(self, company_id: int) -> Optional[Company]:
        return self.db.query(Company).filter(Company.id == company_id).first()

    def insert_company(self, company: Company) -> Company:
        """Insert and flush; a name collision raises CompanyNameTakenError."""
        self.db.add(company)
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.info(f"Company name collision on insert: {company.name}")
            raise CompanyNameTakenError(company.name) from e
        return company

    def lock_company(self, company_id: int) -> Optional[Company]:
        """
        Take the per-company write lock for the rest of the transaction.

        On PostgreSQL this is SELECT ... FOR UPDATE on the company row, which
        serializes roster mutations of one company. SQLite drops FOR UPDATE;
        there the transaction already holds the database write lock (see
        database.build_engine).
        """
        return (
            self.db.query(Company)
            .filter(Company.id == company_id)
            .with_for_update()
            .first()
        )

    def list_companies_for_user(self, user_id: str) -> List[Company]:
        return (
            self.db.query(Company)
            .join(CompanyMember, CompanyMember.company_id == Company.id)
            .filter(CompanyMember.user_id == user_id)
            .order_by(Company.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def insert_membership(self, membership: CompanyMember) -> CompanyMember:
        """Insert and flush; a (company, user) collision raises MemberAlreadyExistsError."""
        self.db.add(membership)
        try:
            self.db.flush()
        except IntegrityError as e:
            logger.info(
                f"Membership collision on insert: {membership.user_id}",
                extra={"company_id": membership.company_id},
            )
            raise MemberAlreadyExistsError(membership.user_id) from e
        return membership

    def find_membership(self, company_id: int, user_id: str) -> Optional[CompanyMember]:
        return self.db.query(CompanyMember).filter(
            CompanyMember.company_id == company_id,
            CompanyMember.user_id == user_id
        ).first()

    def list_memberships_by_user(self, user_id: str) -> List[CompanyMember]:
        return (
            self.db.query(CompanyMember)
            .filter(CompanyMember.user_id == user_id)
            .order_by(CompanyMember.company_id)
            .all()
        )

    def list_memberships_by_company(self, company_id: int) -> List[CompanyMember]:
        return (
            self.db.query(CompanyMember)
            .filter(CompanyMember.company_id == company_id)
            .order_by(CompanyMember.id)
            .all()
        )

    def count_owners(self, company_id: int) -> int:
        return self.db.query(func.count(CompanyMember.id)).filter(
            CompanyMember.company_id == company_id,
            CompanyMember.role == CompanyRole.OWNER
        ).scalar()

    def update_membership_role(self, membership: CompanyMember, new_role: CompanyRole) -> None:
        """
        Set the role and flush.

        Callers must hold lock_company() and have checked the owner count
        inside the same transaction.
        """
        membership.role = new_role
        self.db.flush()

    def delete_membership(self, membership: CompanyMember) -> None:
        """Delete and flush. Same locking contract as update_membership_role."""
        self.db.delete(membership)
        self.db.flush()
