"""
Tenant IAM - Test Configuration

Pytest fixtures: in-memory database, app/client, hasher, token service,
units of work and helpers to seed tenants and members.
"""

from datetime import datetime, timezone
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from tenant_iam.app import create_app
from tenant_iam.auth.database import UnitOfWork, get_engine, get_session_factory, init_db
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.auth.registration import register_tenant
from tenant_iam.auth.tokens import TokenService
from tenant_iam.config import Settings


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_SECRET = "test-secret-key"

# Lowest bcrypt cost keeps the suite fast
TEST_WORK_FACTOR = 4

DEFAULT_PASSWORD = "Secretpass1"


class FakeClock:
    """Settable clock for token expiry tests."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="function")
def settings() -> Settings:
    return Settings(
        ENV="test",
        SECRET_KEY=TEST_SECRET,
        BCRYPT_WORK_FACTOR=TEST_WORK_FACTOR,
        DATABASE_URL=TEST_DATABASE_URL,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return get_session_factory(test_engine)


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """File-backed SQLite engine with a real connection pool, for concurrency tests."""
    engine = get_engine(f"sqlite:///{tmp_path / 'tenant_iam.db'}")
    init_db(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def file_session_factory(file_engine):
    return get_session_factory(file_engine)


@pytest.fixture(scope="function")
def make_uow(session_factory):
    """Factory for fresh units of work on the test database."""
    def factory(timeout_seconds: Optional[float] = None) -> UnitOfWork:
        return UnitOfWork(session_factory, timeout_seconds=timeout_seconds)
    return factory


@pytest.fixture(scope="function")
def hasher() -> CredentialHasher:
    return CredentialHasher(work_factor=TEST_WORK_FACTOR)


@pytest.fixture(scope="function")
def token_service() -> TokenService:
    return TokenService(secret=TEST_SECRET)


@pytest.fixture(scope="function")
def app(settings, test_engine):
    return create_app(settings=settings, engine=test_engine)


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client with fresh database."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def tenant(make_uow, hasher):
    """A registered organization with its admin (a@x.com / Acme)."""
    return register_tenant(
        make_uow(),
        hasher,
        email="a@x.com",
        password=DEFAULT_PASSWORD,
        first_name="A",
        last_name="B",
        org_name="Acme",
    )


@pytest.fixture(scope="function")
def add_member(make_uow, hasher):
    """Create a user and, optionally, a staff membership in an organization."""
    def factory(
        email: str,
        org_id=None,
        role: str = "staff",
        permissions: Optional[dict] = None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
    ):
        with make_uow() as uow:
            user = uow.users.create(
                email=email,
                password_hash=hasher.hash(password),
                first_name="Member",
                last_name="User",
                is_active=is_active,
            )
            staff = None
            if org_id is not None:
                staff = uow.staff.create(
                    user_id=user.id,
                    organization_id=org_id,
                    role=role,
                    permissions=permissions or {},
                )
            uow.commit()
        return user, staff
    return factory


def login(client: TestClient, email: str, password: str = DEFAULT_PASSWORD):
    """Helper: POST /auth/login and return the response."""
    return client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )


def auth_headers(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}
