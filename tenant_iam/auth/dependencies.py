"""
Tenant IAM - Security Dependencies

FastAPI dependencies for authentication and authorization.

Usage:
    @router.get("/protected")
    def protected_route(principal: Principal = Depends(get_current_principal)):
        ...

    @router.get("/staff")
    def list_staff(principal: Principal = Depends(require_permission("staff.read"))):
        ...

The principal is passed explicitly down the dependency chain; it is
never stashed in request state.

Security:
- Missing, malformed, invalid and expired tokens all yield 401
- Permission checks are deny-by-default and yield 403
"""

import logging
from typing import Generator, Optional

from fastapi import Depends, Header, Request

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.auth.permissions import Decision, PermissionEvaluator
from tenant_iam.auth.repositories import StaffRepository
from tenant_iam.auth.tokens import Principal, TokenService
from tenant_iam.config import Settings
from tenant_iam.errors import (
    AuthenticationRequired,
    InsufficientPermission,
    StaffProfileNotFound,
)


logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_hasher(request: Request) -> CredentialHasher:
    return request.app.state.hasher


def get_unit_of_work(request: Request) -> UnitOfWork:
    """A fresh, not yet entered unit of work bound to the app's engine."""
    return UnitOfWork(
        request.app.state.db_session_factory,
        timeout_seconds=request.app.state.settings.TRANSACTION_TIMEOUT_SECONDS,
    )


def parse_bearer(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header value.

    Raises:
        AuthenticationRequired: Header missing, or not exactly "Bearer <token>"
    """
    if not authorization:
        raise AuthenticationRequired("Missing Authorization header")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise AuthenticationRequired("Invalid Authorization format")

    return parts[1]


def get_current_principal(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> Principal:
    """
    Validate request authentication and return the current principal.

    Raises:
        AuthenticationRequired 401: Missing or malformed header
        TokenInvalid 401: Token failed validation for any reason
    """
    token = parse_bearer(authorization)
    return tokens.parse_access(token)


def get_permission_evaluator(request: Request) -> Generator[PermissionEvaluator, None, None]:
    """Evaluator whose lookup reads staff permissions on a request-scoped session."""
    session = request.app.state.db_session_factory()
    try:
        yield PermissionEvaluator(StaffRepository(session).get_permissions)
    finally:
        session.close()


def enforce_permission(
    principal: Optional[Principal],
    required: str,
    evaluator: PermissionEvaluator,
) -> Principal:
    """
    Authorization gate.

    Args:
        principal: Output of the authentication gate
        required: Permission in "resource.action" form
        evaluator: Permission evaluator

    Returns:
        The principal, when the permission is granted

    Raises:
        AuthenticationRequired 401: No principal (gate wired without authentication)
        StaffProfileNotFound 403: No membership row for the principal
        InsufficientPermission 403: Permission denied
        PermissionConfigError 500: required is not "resource.action"
    """
    if principal is None:
        raise AuthenticationRequired("Missing authentication context")

    decision = evaluator.evaluate(principal, required)

    if decision is Decision.ALLOW:
        return principal

    logger.info(
        "Permission denied: user=%s org=%s permission=%s decision=%s",
        principal.user_id, principal.org_id, required, decision.value,
    )
    if decision is Decision.PROFILE_NOT_FOUND:
        raise StaffProfileNotFound()
    raise InsufficientPermission()


def require_permission(required: str):
    """
    Dependency factory enforcing a permission on a route.

    Usage:
        @router.get("/staff")
        def list_staff(principal: Principal = Depends(require_permission("staff.read"))):
            ...
    """
    def dependency(
        principal: Principal = Depends(get_current_principal),
        evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    ) -> Principal:
        return enforce_permission(principal, required, evaluator)

    return dependency
