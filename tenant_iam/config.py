"""
Tenant IAM - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

The Settings object is immutable. It is built once by the application
factory and handed to the token service, hasher and database layer
explicitly; nothing reads it as ambient global state at request time.
"""

from typing import List

from pydantic import model_validator
from pydantic_settings import BaseSettings


DEV_SECRET_KEY = "dev-secret-key-change-me"

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        ENV: Deployment environment (development, test, production)
        SECRET_KEY: JWT signing key shared by issuer and verifier
        JWT_ALGORITHM: HMAC algorithm used to sign access tokens
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime
        REFRESH_TOKEN_EXPIRE_DAYS: Refresh token lifetime
        DATABASE_URL: PostgreSQL (production) or SQLite (development)
        TRANSACTION_TIMEOUT_SECONDS: Deadline for a single unit of work
        ALLOWED_ORIGINS: CORS allowed origins
    """

    ENV: str = "development"

    # Security
    SECRET_KEY: str = DEV_SECRET_KEY
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "tenant-iam"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15  # Short-lived tokens
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_COOKIE_NAME: str = "refresh_token"
    REFRESH_COOKIE_PATH: str = "/api/v1/auth/refresh"
    BCRYPT_WORK_FACTOR: int = 12

    # Database
    DATABASE_URL: str = "sqlite:///./tenant_iam.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    TRANSACTION_TIMEOUT_SECONDS: float = 10.0

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        frozen = True

    @model_validator(mode="after")
    def check_security(self) -> "Settings":
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY must not be empty")
        if self.ENV == "production" and self.SECRET_KEY == DEV_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set explicitly in production")
        if self.JWT_ALGORITHM not in HMAC_ALGORITHMS:
            raise ValueError(f"JWT_ALGORITHM must be one of {HMAC_ALGORITHMS}")
        return self

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure flag only when served over TLS in production."""
        return self.ENV == "production"
