"""
Tenant IAM - Repositories

Data access for users, organizations, staff and refresh tokens.

Every repository works on a session owned by a UnitOfWork. Writes are
flushed so generated identifiers are available to the next step, but
they are never committed here; the unit of work decides that.
"""

import logging
import re
import secrets
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tenant_iam.auth.models import Organization, RefreshToken, Staff, User, utcnow
from tenant_iam.auth.permissions import PermissionMap
from tenant_iam.errors import DuplicateEmail


logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50

# Slug insert attempts; the last one uses a random suffix
SLUG_INSERT_ATTEMPTS = 5


def slugify(name: str) -> str:
    """Generate a URL-safe slug from a name."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "org"


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        """
        Insert a user and flush so the id is assigned.

        Raises:
            DuplicateEmail: The email is already taken. The unique
                constraint decides this, so two concurrent registrations
                with the same email cannot both succeed.
        """
        user = User(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_active=is_active,
            auth_provider="email",
        )
        self.session.add(user)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise DuplicateEmail() from e
        return user

    def get(self, user_id: UUID) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email)
        return self.session.exec(statement).first()

    def update_password_hash(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        user.updated_at = utcnow()
        self.session.add(user)
        self.session.flush()


class OrganizationRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, name: str, owner_user_id: UUID) -> Organization:
        """
        Insert an organization with a unique slug derived from its name.

        The existence check and the insert are not atomic, so a concurrent
        registration can claim the slug in between. Each insert runs in a
        savepoint; on a slug collision only the savepoint is rolled back and
        the next free suffix is tried. The last attempt uses a random suffix.
        """
        base_slug = slugify(name)
        for attempt in range(SLUG_INSERT_ATTEMPTS):
            if attempt < SLUG_INSERT_ATTEMPTS - 1:
                slug = self._unique_slug(base_slug)
            else:
                slug = f"{base_slug}-{secrets.token_hex(4)}"

            org = Organization(name=name, slug=slug, owner_user_id=owner_user_id)
            try:
                with self.session.begin_nested():
                    self.session.add(org)
                    self.session.flush()
            except IntegrityError:
                if attempt == SLUG_INSERT_ATTEMPTS - 1:
                    raise
                logger.info("Slug %s claimed concurrently, retrying", slug)
                continue
            return org

    def get(self, org_id: UUID) -> Optional[Organization]:
        return self.session.get(Organization, org_id)

    def _unique_slug(self, base_slug: str) -> str:
        slug = base_slug
        counter = 1
        while self._slug_exists(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1
        return slug

    def _slug_exists(self, slug: str) -> bool:
        statement = select(Organization.id).where(Organization.slug == slug)
        return self.session.exec(statement).first() is not None


class StaffRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: UUID,
        organization_id: UUID,
        role: str,
        permissions=None,
    ) -> Staff:
        """
        Insert a staff membership.

        Raises:
            InvalidPermissionMap: permissions is not a resource.action document
        """
        perms = PermissionMap.parse(permissions)
        staff = Staff(
            user_id=user_id,
            organization_id=organization_id,
            role=role,
            permissions=perms.to_document(),
        )
        self.session.add(staff)
        self.session.flush()
        return staff

    def get_permissions(self, user_id: UUID, org_id: UUID) -> Optional[PermissionMap]:
        """Permission map of the (user, organization) membership, or None."""
        statement = select(Staff.permissions).where(
            Staff.user_id == user_id,
            Staff.organization_id == org_id,
        )
        row = self.session.exec(statement).first()
        if row is None:
            return None
        return PermissionMap.parse(row)

    def first_membership(self, user_id: UUID) -> Optional[Tuple[UUID, str]]:
        """(organization_id, role) of the oldest membership of a user."""
        statement = (
            select(Staff.organization_id, Staff.role)
            .where(Staff.user_id == user_id)
            .order_by(Staff.created_at)
            .limit(1)
        )
        row = self.session.exec(statement).first()
        if row is None:
            return None
        return row[0], row[1]

    def get_in_organization(self, staff_id: UUID, org_id: UUID) -> Optional[Staff]:
        statement = select(Staff).where(
            Staff.id == staff_id,
            Staff.organization_id == org_id,
        )
        return self.session.exec(statement).first()

    def list_for_organization(self, org_id: UUID) -> List[Staff]:
        statement = (
            select(Staff)
            .where(Staff.organization_id == org_id)
            .order_by(Staff.created_at)
        )
        return list(self.session.exec(statement).all())

    def set_permissions(self, staff: Staff, permissions) -> Staff:
        """
        Replace the permission map of a membership.

        Raises:
            InvalidPermissionMap: permissions is not a resource.action document
        """
        staff.permissions = PermissionMap.parse(permissions).to_document()
        staff.updated_at = utcnow()
        self.session.add(staff)
        self.session.flush()
        return staff


class RefreshTokenRepository:
    """Append-only store of refresh token digests."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, user_id: UUID, token_hash: str, expires_at: datetime) -> RefreshToken:
        token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            issued_at=utcnow(),
            expires_at=expires_at,
        )
        self.session.add(token)
        self.session.flush()
        return token
