"""
Pytest configuration and fixtures

Every test gets its own file-backed SQLite database. A file (not :memory:)
is used so that threaded tests get separate connections to the same data.
"""
import os

# Must be set before company_roster reads its cached settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest_company_roster.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from company_roster.database import build_engine, get_db, init_db, make_session_factory
from company_roster.main import app
from company_roster.models.member import CompanyRole
from company_roster.services.membership_service import MembershipService


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'roster.db'}")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def service(db) -> MembershipService:
    return MembershipService(db)


@pytest.fixture
def acme(service):
    """Company "Acme" founded by u1."""
    return service.create_company("u1", "Acme")


@pytest.fixture
def two_owner_company(service, acme):
    """Acme with u1 and u2 as Owners and u3 as a plain Member."""
    service.add_member("u1", acme.id, "u2", CompanyRole.OWNER)
    service.add_member("u1", acme.id, "u3", CompanyRole.MEMBER)
    return acme


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
