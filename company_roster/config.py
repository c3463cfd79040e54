"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: get_settings() is cached, so tests that need different values
    must set the environment before the first call or clear the cache.
    """

    # Database settings
    DATABASE_URL: str = "postgresql://localhost/company_roster"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Transient store failures (dropped connections, serialization failures,
    # sqlite lock timeouts) are retried this many times before giving up
    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_BACKOFF_SECONDS: float = 0.05

    # Caller identity is supplied by the upstream auth layer in this header
    USER_ID_HEADER: str = "X-User-Id"

    # Redis for rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Rate limiting (per caller)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_BURST: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    """
    return Settings()
