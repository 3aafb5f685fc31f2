"""
Tenant IAM - Configuration Tests

Run with: pytest tests/test_config.py
"""

import pytest
from pydantic import ValidationError

from tenant_iam.config import DEV_SECRET_KEY, Settings


class TestSettings:
    """Unit tests for application settings."""

    def test_defaults(self):
        """Defaults match the documented values."""
        settings = Settings(SECRET_KEY="k")

        assert settings.JWT_ALGORITHM == "HS256"
        assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 15
        assert settings.REFRESH_TOKEN_EXPIRE_DAYS == 7
        assert settings.BCRYPT_WORK_FACTOR == 12

    def test_reads_environment(self, monkeypatch):
        """Settings are read from environment variables."""
        monkeypatch.setenv("SECRET_KEY", "from-env")
        monkeypatch.setenv("BCRYPT_WORK_FACTOR", "10")

        settings = Settings()

        assert settings.SECRET_KEY == "from-env"
        assert settings.BCRYPT_WORK_FACTOR == 10

    def test_dev_secret_rejected_in_production(self):
        """The development secret is refused in production."""
        with pytest.raises(ValidationError):
            Settings(ENV="production", SECRET_KEY=DEV_SECRET_KEY)

    def test_explicit_secret_accepted_in_production(self):
        """An explicit secret is accepted in production, with secure cookies."""
        settings = Settings(ENV="production", SECRET_KEY="a-real-secret")

        assert settings.secure_cookies is True

    def test_empty_secret_rejected(self):
        """An empty secret is refused."""
        with pytest.raises(ValidationError):
            Settings(SECRET_KEY="")

    def test_asymmetric_algorithm_rejected(self):
        """Non-HMAC algorithms are refused."""
        with pytest.raises(ValidationError):
            Settings(SECRET_KEY="k", JWT_ALGORITHM="RS256")

    def test_cookies_not_secure_outside_production(self):
        """Cookies are not marked Secure outside production."""
        assert Settings(ENV="development", SECRET_KEY="k").secure_cookies is False

    def test_settings_are_immutable(self):
        """Settings cannot be changed after construction."""
        settings = Settings(SECRET_KEY="k")

        with pytest.raises(ValidationError):
            settings.SECRET_KEY = "changed"
