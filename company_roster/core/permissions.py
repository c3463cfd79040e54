"""
Permission System (RBAC)

Role policy for company rosters. Everything here is pure: callers pass in
the roles and counts they have already read, and get a decision back.

Rules:
- Any membership grants read access to the company and its roster
- Owners and Admins manage the roster (add, re-role, remove)
- A company never loses its last Owner, whether by demotion or removal
"""
from typing import Optional
from company_roster.models.member import CompanyMember, CompanyRole
from company_roster.core.exceptions import CompanyAccessDenied, LastOwnerError


ROLE_PERMISSIONS = {
    CompanyRole.OWNER: {"view_company": True, "manage_members": True},
    CompanyRole.ADMIN: {"view_company": True, "manage_members": True},
    CompanyRole.MANAGER: {"view_company": True, "manage_members": False},
    CompanyRole.MEMBER: {"view_company": True, "manage_members": False},
}


def can_manage_members(role: Optional[CompanyRole]) -> bool:
    """True iff the role may add, re-role or remove memberships."""
    if role is None:
        return False
    return ROLE_PERMISSIONS[role]["manage_members"]


def can_view_company(membership_exists: bool) -> bool:
    """Read access depends only on holding some membership; role is irrelevant."""
    return bool(membership_exists)


def guard_last_owner_removal(target_role: CompanyRole, owner_count: int) -> bool:
    """
    Decide whether a membership may lose its Owner role.

    owner_count must be read before the mutation and includes the target.
    Returns False only when the target is the sole remaining Owner.
    Non-Owner targets are never restricted.
    """
    if target_role != CompanyRole.OWNER:
        return True
    return owner_count > 1


def require_membership(membership: Optional[CompanyMember]) -> CompanyMember:
    """Raise CompanyAccessDenied unless the caller is a member."""
    if not can_view_company(membership is not None):
        raise CompanyAccessDenied()
    return membership


def require_member_manager(membership: Optional[CompanyMember]) -> CompanyMember:
    """Raise CompanyAccessDenied unless the caller is an Owner or Admin."""
    if membership is None or not can_manage_members(membership.role):
        raise CompanyAccessDenied()
    return membership


def enforce_last_owner_guard(target: CompanyMember, owner_count: int, action: str) -> None:
    """Raise LastOwnerError if demoting/removing target would leave no Owner."""
    if not guard_last_owner_removal(target.role, owner_count):
        raise LastOwnerError(action)
