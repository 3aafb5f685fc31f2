"""
Tenant IAM - Authentication Routes

API endpoints for authentication:
- POST /auth/register  - Create user, organization and admin membership
- POST /auth/login     - Authenticate and issue tokens
- GET  /auth/me        - Current principal
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Response, status

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.dependencies import (
    get_current_principal,
    get_hasher,
    get_settings,
    get_token_service,
    get_unit_of_work,
)
from tenant_iam.auth.login import authenticate
from tenant_iam.auth.password import CredentialHasher
from tenant_iam.auth.registration import register_tenant
from tenant_iam.auth.schemas import (
    Envelope,
    LoginRequest,
    LoginResponse,
    PrincipalResponse,
    RegisterRequest,
    RegisterResponse,
)
from tenant_iam.auth.tokens import Principal, TokenService
from tenant_iam.config import Settings


router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    response_model=Envelope[RegisterResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a new organization and its administrator",
)
def register(
    body: RegisterRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: CredentialHasher = Depends(get_hasher),
):
    """
    Create a User, an Organization owned by that user and an admin Staff
    membership, atomically.

    Raises:
        409: Email already registered
        500: Any other failure; nothing is persisted
    """
    result = register_tenant(
        uow,
        hasher,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        org_name=body.org_name,
    )
    return Envelope(data=RegisterResponse(user_id=result.user_id, org_id=result.org_id))


@router.post(
    "/login",
    response_model=Envelope[LoginResponse],
    summary="Authenticate user and issue tokens",
)
def login(
    body: LoginRequest,
    response: Response,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: CredentialHasher = Depends(get_hasher),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    """
    Authenticate with email and password.

    The access token is returned in the body. The refresh token is
    returned in the body and also set as an HttpOnly, SameSite=strict
    cookie scoped to the refresh endpoint.

    Raises:
        401: Invalid credentials or inactive account
    """
    refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    result = authenticate(
        uow,
        hasher,
        tokens,
        email=body.email,
        password=body.password,
        refresh_ttl=refresh_ttl,
    )

    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        value=result.refresh_token,
        max_age=int(refresh_ttl.total_seconds()),
        expires=result.refresh_expires_at,
        path=settings.REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="strict",
    )

    return Envelope(data=LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=tokens.access_expires_in,
    ))


@router.get(
    "/me",
    response_model=Envelope[PrincipalResponse],
    summary="Get the current principal",
)
def get_me(principal: Principal = Depends(get_current_principal)):
    return Envelope(data=PrincipalResponse(
        user_id=principal.user_id,
        org_id=principal.org_id,
        role=principal.role,
    ))
