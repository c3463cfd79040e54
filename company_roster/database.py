"""
Database Configuration and Session Management

This module handles SQLAlchemy setup with connection pooling.

Membership mutations rely on a per-company write lock (see
CompanyStore.lock_company). PostgreSQL provides it with SELECT ... FOR UPDATE.
SQLite ignores FOR UPDATE, so every SQLite transaction is opened with
BEGIN IMMEDIATE, which takes the database write lock up front.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from company_roster.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with the connection hooks this service depends on.

    Pool sizing only applies to server databases; SQLite connections are
    opened with check_same_thread disabled so pooled connections can be
    handed between request threads.
    """
    is_sqlite = database_url.startswith("sqlite")

    if is_sqlite:
        new_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    else:
        new_engine = create_engine(
            database_url,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,  # Verify connections before using (handles stale connections)
            echo=echo,
        )

    @event.listens_for(new_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        """Set connection-level configuration on new connections."""
        if is_sqlite:
            # Let SQLAlchemy emit BEGIN itself (see on_begin)
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            # Needed for ON DELETE CASCADE from companies to members
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        elif database_url.startswith("postgresql"):
            cursor = dbapi_connection.cursor()
            cursor.execute("SET TIME ZONE 'UTC'")
            cursor.close()
        logger.debug("New database connection established")

    if is_sqlite:
        @event.listens_for(new_engine, "begin")
        def on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return new_engine


def make_session_factory(bind: Engine) -> sessionmaker:
    """
    Session factory bound to an engine.

    expire_on_commit=False keeps returned companies and memberships readable
    after the service has committed and the session is gone.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = make_session_factory(engine)

# Base class for all models
Base = declarative_base()


def get_db() -> Session:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes. Commits are issued
    by CompanyStore.run_atomic, never by the routes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """
    Create tables.

    In production, you'd use Alembic migrations instead.
    """
    # Import models so they register on Base.metadata
    import company_roster.models  # noqa: F401

    logger.warning("init_db() called - use Alembic migrations in production!")
    Base.metadata.create_all(bind=bind or engine)
