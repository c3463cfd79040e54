"""
Company & Membership Endpoints

RBAC:
- Create company: any caller (becomes Owner)
- List own companies, own membership: any caller
- View company / list members: any member of the company
- Add, re-role, remove members: Owner or Admin
- Last Owner can never be demoted or removed

Non-members receive 403 for company-scoped routes whether or not the company
exists.

Handlers are plain functions: the service does blocking database I/O, so
FastAPI runs them in its threadpool instead of on the event loop.
"""
from fastapi import APIRouter, Depends, Response, status
from typing import List

from company_roster.api.deps import get_current_user_id, get_membership_service
from company_roster.core.exceptions import CompanyAccessDenied
from company_roster.schemas.company import (
    CompanyCreate,
    CompanyResponse,
    MemberCreate,
    MemberRoleUpdate,
    MemberResponse,
    MyMembershipResponse,
)
from company_roster.services.membership_service import MembershipService
from company_roster.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/companies", tags=["companies"])


# --- Companies ---

@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
def create_company(
    body: CompanyCreate,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Create a company; the caller becomes its first Owner."""
    company = service.create_company(user_id, body.name, body.plan)
    response.headers["Location"] = f"/companies/{company.id}"
    return company


@router.get("", response_model=List[CompanyResponse])
def list_my_companies(
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Companies in which the caller holds any membership."""
    return service.list_my_companies(user_id)


@router.get("/{company_id}", response_model=CompanyResponse)
def get_company(
    company_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    return service.get_company(user_id, company_id)


# --- Members ---

@router.get("/{company_id}/members", response_model=List[MemberResponse])
def list_members(
    company_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    return service.list_members(user_id, company_id)


@router.post(
    "/{company_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED
)
def add_member(
    company_id: int,
    body: MemberCreate,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Add a member. Requires Owner or Admin."""
    membership = service.add_member(user_id, company_id, body.user_id, body.role)
    response.headers["Location"] = f"/companies/{company_id}/members/{body.user_id}"
    return membership


@router.patch("/{company_id}/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_member_role(
    company_id: int,
    member_user_id: str,
    body: MemberRoleUpdate,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """
    Change a member's role. Requires Owner or Admin.

    Returns 400 when the change would demote the last Owner.
    """
    service.update_member_role(user_id, company_id, member_user_id, body.role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{company_id}/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    company_id: int,
    member_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """
    Remove a member. Requires Owner or Admin.

    Returns 400 when the member is the last Owner.
    """
    service.remove_member(user_id, company_id, member_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{company_id}/me", response_model=MyMembershipResponse)
def my_membership(
    company_id: int,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """
    The caller's own membership.

    "Not a member" is reported as 403, the same answer non-members get for
    every other company-scoped route.
    """
    membership = service.get_my_membership(user_id, company_id)
    if membership is None:
        raise CompanyAccessDenied()
    return membership
