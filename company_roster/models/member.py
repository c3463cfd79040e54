"""
Company Member Model

A membership ties one opaque user identifier to one company with exactly one
role. The user identifier is issued by the upstream auth layer; nothing here
validates it beyond length.

IMPORTANT: (company_id, user_id) is unique at the database level. The service
pre-checks for duplicates, but only the constraint is safe under concurrency.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from company_roster.database import Base
from company_roster.models.company import IdentityType
import enum


class CompanyRole(str, enum.Enum):
    """
    Roles within a company.

    OWNER: Manages the roster; a company always keeps at least one
    ADMIN: Manages the roster
    MANAGER: Read access to the company and its roster
    MEMBER: Read access to the company and its roster
    """
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class CompanyMember(Base):
    __tablename__ = "company_members"

    id = Column(IdentityType, primary_key=True, autoincrement=True)

    company_id = Column(
        IdentityType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    user_id = Column(String(128), nullable=False, index=True)

    role = Column(
        SQLEnum(
            CompanyRole,
            name="company_role",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=CompanyRole.MEMBER,
        nullable=False
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    company = relationship("Company", back_populates="members")

    __table_args__ = (
        UniqueConstraint("company_id", "user_id", name="uq_company_member_user"),
        # Owner counting for the last-owner guard
        Index("idx_company_member_role", "company_id", "role"),
    )

    def __repr__(self):
        return f"<CompanyMember {self.user_id} role={self.role.value} (company={self.company_id})>"

    @property
    def is_owner(self) -> bool:
        return self.role == CompanyRole.OWNER
