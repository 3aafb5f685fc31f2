"""
Tenant IAM - Database Configuration

SQLModel database setup with connection pooling, plus the unit of work
that lets several repositories share one atomic transaction.
Supports PostgreSQL (production) and SQLite (development).

Usage:
    from tenant_iam.auth.database import get_engine, init_db, UnitOfWork

    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)  # Creates tables

    with UnitOfWork(get_session_factory(engine)) as uow:
        user = uow.users.create(...)
        uow.commit()
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from tenant_iam.auth.repositories import (
    OrganizationRepository,
    RefreshTokenRepository,
    StaffRepository,
    UserRepository,
)
from tenant_iam.errors import TransactionFailure


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def is_memory_sqlite(database_url: str) -> bool:
    """True for sqlite:// and sqlite:///:memory: style URLs."""
    url = make_url(database_url)
    return (
        url.get_backend_name() == "sqlite"
        and (url.database in (None, "", ":memory:") or url.query.get("mode") == "memory")
    )


def get_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """
    Create SQLAlchemy engine with appropriate configuration.

    Args:
        database_url: Database URL
        echo: Log SQL statements
        pool_size: Persistent connections kept by the pool (PostgreSQL)
        max_overflow: Extra connections allowed under load (PostgreSQL)
    """
    if database_url.startswith("sqlite"):
        if is_memory_sqlite(database_url):
            # An in-memory database lives and dies with its one connection
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        # File-backed SQLite: every unit of work checks out its own connection
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )

    # PostgreSQL configuration with connection pooling
    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def init_db(engine: Engine) -> None:
    """
    Initialize database tables.

    Safe to call multiple times (uses CREATE IF NOT EXISTS).
    """
    # Import models to register them with SQLModel
    from tenant_iam.auth.models import User, Organization, Staff, RefreshToken  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine: Engine) -> SessionFactory:
    """
    Create a session factory bound to engine.

    Sessions keep attribute values after commit so results can be read
    once the transaction is closed.
    """
    def session_factory() -> Session:
        return Session(engine, expire_on_commit=False)

    return session_factory


def check_database(engine: Engine) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return False


class UnitOfWork:
    """
    One atomic transaction shared by the user, organization, staff and
    refresh-token repositories.

    Nothing is persisted unless commit() succeeds. Leaving the block
    without a successful commit, for any reason, rolls back. The session
    goes back to the pool unconditionally.

    Args:
        session_factory: Produces a new SQLModel session
        timeout_seconds: Deadline for the whole unit of work. Once it has
            passed, commit() rolls back and raises TransactionFailure.
    """

    def __init__(self, session_factory: SessionFactory, timeout_seconds: Optional[float] = None):
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._deadline: Optional[float] = None
        self._committed = False
        self.session: Optional[Session] = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self._committed = False
        if self._timeout_seconds is not None:
            self._deadline = time.monotonic() + self._timeout_seconds

        self.users = UserRepository(self.session)
        self.organizations = OrganizationRepository(self.session)
        self.staff = StaffRepository(self.session)
        self.refresh_tokens = RefreshTokenRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self.session.close()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() > self._deadline

    def commit(self) -> None:
        """
        Commit every pending write.

        Raises:
            TransactionFailure: Deadline exceeded or the commit failed.
                The transaction has been rolled back in both cases.
        """
        if self.expired:
            logger.warning("Unit of work exceeded its deadline, rolling back")
            self.rollback()
            raise TransactionFailure()

        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error("Commit failed: %s", e.__class__.__name__)
            self.rollback()
            raise TransactionFailure() from e
        self._committed = True

    def rollback(self) -> None:
        self.session.rollback()
