"""
Company Model

The company is the tenant boundary: every membership belongs to exactly one
company and is removed with it.
"""
from sqlalchemy import Column, String, DateTime, BigInteger, Integer
from sqlalchemy.orm import relationship
from datetime import datetime
from company_roster.database import Base


# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdentityType = BigInteger().with_variant(Integer(), "sqlite")


class Company(Base):
    __tablename__ = "companies"

    id = Column(IdentityType, primary_key=True, autoincrement=True)

    # Unique across all companies, enforced by the store so that two
    # concurrent creations cannot both succeed
    name = Column(String(160), unique=True, nullable=False, index=True)

    # Plan is a tag only; no billing or feature gating hangs off it
    plan = Column(String(40), default="free", nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    members = relationship(
        "CompanyMember",
        back_populates="company",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Company {self.name} (id={self.id})>"
