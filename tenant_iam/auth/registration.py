"""
Tenant IAM - Tenant Registration

Creates a user, an organization owned by that user and an admin staff
membership linking them, inside one transaction.

Either all three rows exist and agree with each other, or none do.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.models import Role
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.errors import AppError, DuplicateEmail, TransactionFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    user_id: UUID
    org_id: UUID
    staff_id: UUID


def register_tenant(
    uow: UnitOfWork,
    hasher: CredentialHasher,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    org_name: str,
) -> RegistrationResult:
    """
    Register a new organization and its first administrator.

    Steps (user -> organization -> staff) are strictly ordered because
    each one needs the identifier produced by the previous one.

    Args:
        uow: Unit of work, not yet entered
        hasher: Password hasher

    Returns:
        RegistrationResult with the new identifiers

    Raises:
        HashingError: Password hashing failed; nothing was written
        DuplicateEmail: Email already registered
        TransactionFailure: Any other step, or the commit, failed
    """
    password_hash = hasher.hash(password)

    with uow:
        step = "user"
        try:
            user = uow.users.create(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
            )

            step = "organization"
            org = uow.organizations.create(name=org_name, owner_user_id=user.id)

            step = "staff"
            staff = uow.staff.create(
                user_id=user.id,
                organization_id=org.id,
                role=Role.ADMIN.value,
                permissions={},
            )

            step = "commit"
            uow.commit()
        except DuplicateEmail:
            logger.info("Registration rejected: email already registered")
            raise
        except AppError:
            logger.warning("Registration rolled back at step %s", step)
            raise
        except Exception as e:
            logger.error("Registration rolled back at step %s: %s", step, e.__class__.__name__)
            raise TransactionFailure() from e

    logger.info("Registered tenant org=%s owner=%s", org.id, user.id)
    return RegistrationResult(user_id=user.id, org_id=org.id, staff_id=staff.id)
