"""
API Dependencies

Reusable FastAPI dependencies for caller identity and service wiring.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from company_roster.database import get_db
from company_roster.core.exceptions import AuthenticationError
from company_roster.services.membership_service import MembershipService
import logging

logger = logging.getLogger(__name__)


def get_current_user_id(request: Request) -> str:
    """
    Get the caller's user id from request state.

    This is set by CallerMiddleware. The id is trusted as-is; verifying it
    is the job of the auth layer in front of this service.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        logger.error("No caller in request state - middleware may have failed")
        raise AuthenticationError()
    return user_id


def get_membership_service(db: Session = Depends(get_db)) -> MembershipService:
    """One service (and store) per request, sharing the request's session."""
    return MembershipService(db)
