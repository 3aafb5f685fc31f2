"""
Tenant IAM - Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.
"""

import re
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

T = TypeVar("T")


def _check_email(v: str) -> str:
    """Basic email format validation. Case is preserved as submitted."""
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


class Envelope(BaseModel, Generic[T]):
    """Standard wrapper for every response body."""
    success: bool = True
    data: Optional[T] = None
    error: Optional[Any] = None


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    email: str
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    org_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return _check_email(v)


class RegisterResponse(BaseModel):
    user_id: UUID
    org_id: UUID
    message: str = "Registration successful"


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return _check_email(v)


class LoginResponse(BaseModel):
    """Response body for successful login."""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="Opaque refresh token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Seconds until access token expires")


class PrincipalResponse(BaseModel):
    """Response body for GET /auth/me."""
    user_id: UUID
    org_id: Optional[UUID]
    role: str


class OrganizationResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    owner_user_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class StaffResponse(BaseModel):
    id: UUID
    user_id: UUID
    organization_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]

    class Config:
        from_attributes = True


class StaffListResponse(BaseModel):
    staff: List[StaffResponse]
    total: int
