"""
Custom Exceptions

Centralized exception definitions for better error handling.
FastAPI automatically converts these to appropriate HTTP responses, so the
service layer raises them directly and routes stay free of status mapping.
"""
from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Raised when no caller identity accompanies the request."""

    def __init__(self, detail: str = "Missing user id"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
        )


class CompanyAccessDenied(HTTPException):
    """
    Raised when the caller lacks the membership or role an operation needs.

    SECURITY: The detail is the same whether or not the company exists, so a
    non-member cannot discover which company ids exist.
    """

    def __init__(self, detail: str = "Access to this company is forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class CompanyNotFoundError(HTTPException):
    """Raised when company cannot be found."""

    def __init__(self, company_id=None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Company not found: {company_id}" if company_id is not None else "Company not found"
        )


class MemberNotFoundError(HTTPException):
    """Raised when a membership cannot be found."""

    def __init__(self, user_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Member not found: {user_id}" if user_id else "Member not found"
        )


class ConflictError(HTTPException):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class CompanyNameTakenError(ConflictError):
    def __init__(self, name: str = ""):
        super().__init__(detail="Company name already taken.")
        self.name = name


class MemberAlreadyExistsError(ConflictError):
    def __init__(self, user_id: str = ""):
        super().__init__(detail="User already a member.")
        self.user_id = user_id


class InvariantViolationError(HTTPException):
    """
    Raised when a mutation would break a roster invariant.

    Surfaced as a client error; nothing is written.
    """

    def __init__(self, detail: str = "Invariant violation"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class LastOwnerError(InvariantViolationError):
    """Raised when demoting or removing the only Owner of a company."""

    def __init__(self, action: str = "remove"):
        verb = "demote" if action == "demote" else "remove"
        super().__init__(detail=f"Cannot {verb} the last Owner.")
        self.action = action


class StoreUnavailableError(HTTPException):
    """Raised when the database keeps failing after bounded retries."""

    def __init__(self, detail: str = "Store temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": "1"},
        )


class RateLimitExceeded(HTTPException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )
