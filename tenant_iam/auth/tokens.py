"""
Tenant IAM - Token Management

Issues and validates JWT access tokens carrying:
- User ID (sub)
- Organization ID (org_id, empty when the user has no membership)
- Role (for permission checks)
- Unique token ID (jti for audit correlation)

and generates opaque refresh tokens.

Security:
- Short-lived access tokens (15 minutes default)
- Only the configured HMAC algorithm is accepted; a token whose header
  names any other algorithm (including "none") is rejected
- Every validation failure surfaces as the same TokenInvalid error, so
  callers cannot tell an expired token from a tampered one
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

from jose import jwt, JWTError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tenant_iam.config import HMAC_ALGORITHMS
from tenant_iam.errors import EntropyError, TokenInvalid


# Token configuration
ACCESS_TOKEN_EXPIRE_MINUTES = 15

# 32 random bytes, hex encoded to 64 characters
REFRESH_TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenPayload(BaseModel):
    """
    JWT access token payload structure.

    Attributes:
        sub: Subject (user ID)
        org_id: Organization ID or empty string
        role: Staff role
        iss: Issuer
        jti: Unique token ID for audit
        exp: Expiration timestamp
        iat: Issued-at timestamp
    """
    sub: str = Field(..., description="User ID")
    org_id: str = Field(default="", description="Organization ID")
    role: str = Field(..., description="Staff role")
    iss: str = Field(..., description="Issuer")
    jti: str = Field(..., description="Token ID for audit")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at time")


class Principal(BaseModel):
    """
    The authenticated identity attached to one request.

    Built only from a validated access token and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    org_id: Optional[UUID] = None
    role: str
    token_id: str


class TokenService:
    """
    Stateless issuer and verifier of access tokens.

    Args:
        secret: Shared HMAC signing secret
        algorithm: One of HS256 / HS384 / HS512
        issuer: Value of the iss claim
        access_ttl: Access token lifetime
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "tenant-iam",
        access_ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.access_ttl = access_ttl
        self._clock = clock

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds, for login responses."""
        return int(self.access_ttl.total_seconds())

    def issue_access(
        self,
        user_id: UUID,
        org_id: Optional[UUID],
        role: str,
    ) -> str:
        """
        Create a signed access token.

        Deterministic apart from the random jti for a given clock reading.

        Example:
            >>> token = tokens.issue_access(user_id, org_id, "admin")
        """
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "org_id": str(org_id) if org_id else "",
            "role": role,
            "iss": self.issuer,
            "jti": secrets.token_hex(16),
            "iat": now,
            "exp": now + self.access_ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_refresh(self) -> str:
        """
        Generate an opaque refresh token (64 hex characters).

        Raises:
            EntropyError: If the operating system random source fails
        """
        try:
            return secrets.token_hex(REFRESH_TOKEN_BYTES)
        except (OSError, NotImplementedError) as e:
            raise EntropyError() from e

    def parse_access(self, token: str) -> Principal:
        """
        Verify and decode an access token.

        Raises:
            TokenInvalid: Malformed, wrong algorithm, bad signature,
                wrong issuer, missing claims or expired
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != self.algorithm:
                raise TokenInvalid()

            # Expiry is checked below against the injected clock
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={
                    "verify_exp": False,
                    "require_exp": True,
                    "require_iat": True,
                    "require_sub": True,
                },
            )
            payload = TokenPayload(**claims)

            if payload.exp <= self._clock():
                raise TokenInvalid()

            return Principal(
                user_id=UUID(payload.sub),
                org_id=UUID(payload.org_id) if payload.org_id else None,
                role=payload.role,
                token_id=payload.jti,
            )
        except (JWTError, ValidationError, ValueError, TypeError, AttributeError) as e:
            raise TokenInvalid() from e
