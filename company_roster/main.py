"""
Main FastAPI Application

Entry point for the company roster service.
Configures middleware, routes, error handlers, and startup/shutdown events.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import time
from contextlib import asynccontextmanager

from company_roster import __version__
from company_roster.config import get_settings
from company_roster.database import engine, init_db
from company_roster.middleware.caller import CallerMiddleware
from company_roster.middleware.rate_limit import RateLimitMiddleware
from company_roster.middleware.request_id import RequestIdMiddleware
from company_roster.utils.logging import setup_logging, get_logger
from company_roster.core.exceptions import (
    AuthenticationError,
    InvariantViolationError,
    StoreUnavailableError,
)

from company_roster.api.endpoints import companies

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Dev convenience only - production schemas come from migrations
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Company Roster Service",
    description="Companies, member rosters and role-based access control",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Middleware added last runs first: CallerMiddleware must wrap the rate
# limiter so request.state.user_id is set before buckets are looked up, and
# RequestIdMiddleware wraps both so rejections carry a request id too
app.add_middleware(RateLimitMiddleware)
app.add_middleware(CallerMiddleware)
app.add_middleware(RequestIdMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """Handle missing caller identity."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "authentication_error"},
        headers=exc.headers or {}
    )


@app.exception_handler(InvariantViolationError)
async def invariant_violation_handler(request: Request, exc: InvariantViolationError):
    """Roster invariant tripped; nothing was written."""
    logger.warning(
        f"Invariant violation: {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "user_id": getattr(request.state, "user_id", None)
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "invariant_violation"}
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(
        f"Store unavailable: {request.url.path}",
        extra={"user_id": getattr(request.state, "user_id", None)}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "store_unavailable"},
        headers=exc.headers or {}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Don't expose internal errors in production.
    Log full details but return generic error to client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "user_id": getattr(request.state, "user_id", None)
        }
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
            }
        )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": "internal_error"
        }
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


app.include_router(companies.router)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")

    uvicorn.run(
        "company_roster.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
