"""
Caller Middleware

Extracts the caller's user id from the request and makes it available
throughout the request lifecycle as request.state.user_id.

Authentication happens upstream (gateway or auth proxy). By the time a
request reaches this service, the identity header is trusted; this
middleware only insists that it is present and sane. Requests without one
are rejected with 401 before any route or database work runs.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional
import logging

from company_roster.config import get_settings
from company_roster.utils.logging import log_security_event

logger = logging.getLogger(__name__)

MAX_USER_ID_LENGTH = 128


class CallerMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract and validate the caller identity.

    This runs on EVERY request, so it does no I/O.
    """

    def __init__(self, app, header_name: Optional[str] = None):
        super().__init__(app)
        self.header_name = header_name or get_settings().USER_ID_HEADER
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next):
        """Process each request and inject caller context."""

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        user_id = self._extract_user_id(request)

        if not user_id:
            log_security_event(
                "missing_caller",
                {"path": request.url.path, "method": request.method},
                logger
            )
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing user id.", "type": "authentication_error"}
            )

        if len(user_id) > MAX_USER_ID_LENGTH:
            return JSONResponse(
                status_code=400,
                content={"detail": f"User id exceeds {MAX_USER_ID_LENGTH} characters"}
            )

        request.state.user_id = user_id
        logger.debug(f"Request from caller: {user_id}")

        return await call_next(request)

    def _extract_user_id(self, request: Request) -> Optional[str]:
        value = request.headers.get(self.header_name)
        if value is None:
            return None
        return value.strip() or None
