"""
Company Schemas

Request/response models for company and membership operations.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from company_roster.models.member import CompanyRole


class CompanyCreate(BaseModel):
    """Schema for creating a company."""
    name: str = Field(..., min_length=1, max_length=160)
    plan: str = Field("free", min_length=1, max_length=40)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme",
                "plan": "free"
            }
        }


class CompanyResponse(BaseModel):
    """Company response schema."""
    id: int
    name: str
    plan: str
    created_at: datetime

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    """Schema for adding a member to a company."""
    user_id: str = Field(..., min_length=1, max_length=128)
    role: CompanyRole = CompanyRole.MEMBER


class MemberRoleUpdate(BaseModel):
    """Schema for changing a member's role."""
    role: CompanyRole


class MemberResponse(BaseModel):
    """Membership response schema."""
    id: int
    company_id: int
    user_id: str
    role: CompanyRole
    created_at: datetime

    class Config:
        from_attributes = True


class MyMembershipResponse(BaseModel):
    """The caller's own membership."""
    user_id: str
    role: CompanyRole
    company_id: int

    class Config:
        from_attributes = True
