"""
Tenant IAM - Login

Authenticates email + password and issues an access / refresh token pair.

Security:
- Unknown email and wrong password raise the same InvalidCredentials
- Unknown emails still pay for one bcrypt verification
- The raw refresh token is returned only after its digest is committed
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.models import Role, utcnow
from tenant_iam.auth.password import CredentialHasher, hash_refresh_token
from tenant_iam.auth.tokens import TokenService
from tenant_iam.errors import AccountInactive, InvalidCredentials, TransactionFailure


logger = logging.getLogger(__name__)

REFRESH_TOKEN_EXPIRE_DAYS = 7


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    user_id: UUID
    org_id: Optional[UUID]
    role: str


class _DummyHash:
    """Lazily built hash verified against when the email is unknown."""

    _digests = {}

    @classmethod
    def get(cls, hasher: CredentialHasher) -> str:
        digest = cls._digests.get(hasher.work_factor)
        if digest is None:
            digest = hasher.hash("unknown-user-placeholder")
            cls._digests[hasher.work_factor] = digest
        return digest


def authenticate(
    uow: UnitOfWork,
    hasher: CredentialHasher,
    tokens: TokenService,
    *,
    email: str,
    password: str,
    refresh_ttl: timedelta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
) -> LoginResult:
    """
    Log a user in.

    1. Look up the user by email (exact match)
    2. Verify the password
    3. Reject inactive accounts
    4. Resolve organization and role from the first staff membership,
       falling back to guest with no organization
    5. Issue tokens and persist the refresh token digest

    Raises:
        InvalidCredentials: Unknown email or wrong password
        AccountInactive: Correct credentials for a deactivated account
        TransactionFailure: The refresh token could not be stored
    """
    with uow:
        user = uow.users.get_by_email(email)

        if user is None:
            hasher.verify(password, _DummyHash.get(hasher))
            logger.info("Login failed: reason=user_not_found")
            raise InvalidCredentials()

        if not hasher.verify(password, user.password_hash):
            logger.info("Login failed: user=%s reason=invalid_password", user.id)
            raise InvalidCredentials()

        if not user.is_active:
            logger.info("Login failed: user=%s reason=account_inactive", user.id)
            raise AccountInactive()

        # Check if password needs rehash (work factor upgrade)
        if hasher.needs_rehash(user.password_hash):
            uow.users.update_password_hash(user, hasher.hash(password))

        membership = uow.staff.first_membership(user.id)
        if membership is None:
            org_id, role = None, Role.GUEST.value
        else:
            org_id, role = membership

        access_token = tokens.issue_access(user.id, org_id, role)
        refresh_token = tokens.issue_refresh()
        expires_at = utcnow() + refresh_ttl

        try:
            uow.refresh_tokens.add(
                user_id=user.id,
                token_hash=hash_refresh_token(refresh_token),
                expires_at=expires_at,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to store refresh token: user=%s", user.id)
            raise TransactionFailure() from e
        uow.commit()

    logger.info("Login succeeded: user=%s org=%s role=%s", user.id, org_id, role)

    return LoginResult(
        access_token=access_token,
        refresh_token=refresh_token,
        refresh_expires_at=expires_at,
        user_id=user.id,
        org_id=org_id,
        role=role,
    )
