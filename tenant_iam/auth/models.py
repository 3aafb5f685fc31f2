"""
Tenant IAM - Database Models

SQLModel tables for users, organizations, staff memberships and refresh
tokens. Uses PostgreSQL for production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Refresh tokens stored as SHA-256 digests only, append-only
- All timestamps in UTC
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Boolean, Column, DateTime, String, UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """
    Staff roles.

    ADMIN and OWNER bypass the permission map; GUEST is the role given to
    authenticated users with no staff membership and is denied everything.
    """
    ADMIN = "admin"
    OWNER = "owner"
    STAFF = "staff"
    GUEST = "guest"


class User(SQLModel, table=True):
    """
    User account.

    Attributes:
        id: Unique identifier (UUIDv4)
        email: Login identifier (unique, case-sensitive as stored)
        password_hash: bcrypt hash (never store plaintext)
        is_active: Inactive users cannot login
    """
    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
    )
    password_hash: str = Field(sa_column=Column(String(255), nullable=False))
    first_name: str = Field(sa_column=Column(String(100), nullable=False))
    last_name: str = Field(sa_column=Column(String(100), nullable=False))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )
    auth_provider: str = Field(
        default="email",
        sa_column=Column(String(32), nullable=False, default="email"),
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow),
    )


class Organization(SQLModel, table=True):
    """Tenant. Owned by exactly one user at creation time."""
    __tablename__ = "organizations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    slug: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
    )
    owner_user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow),
    )


class Staff(SQLModel, table=True):
    """
    Membership of a user in an organization.

    permissions is a two-level document: {resource: {action: bool}}.
    It is validated by StaffRepository before every write.
    """
    __tablename__ = "staff"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_staff_user_org"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    organization_id: UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(sa_column=Column(String(32), nullable=False))
    permissions: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow),
    )


class RefreshToken(SQLModel, table=True):
    """
    Refresh token issued at login.

    Only the SHA-256 digest of the raw value is stored. Rows are never
    updated in place.
    """
    __tablename__ = "refresh_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    token_hash: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    issued_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
