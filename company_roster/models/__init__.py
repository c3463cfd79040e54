"""
Database Models

Companies own their memberships; deleting a company deletes its roster.
"""
from company_roster.models.company import Company
from company_roster.models.member import CompanyMember, CompanyRole

__all__ = ["Company", "CompanyMember", "CompanyRole"]
