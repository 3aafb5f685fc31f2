"""
Tenant IAM - Credential Hashing

Password hashing using bcrypt. Work factor is configurable but defaults
to 12 (industry standard).

Refresh tokens are already high-entropy random values, so they are
stored as a plain SHA-256 digest instead of a bcrypt hash.

Security:
- Never log or expose plaintext passwords
- bcrypt includes salt automatically
- Verification is constant-time inside bcrypt / hmac
- Supports hash upgrades on login
"""

import hashlib
import hmac

import bcrypt

from tenant_iam.errors import HashingError


# Work factor for bcrypt (2^12 = 4096 iterations)
# Increase for higher security, decrease for faster tests
BCRYPT_WORK_FACTOR = 12

# bcrypt only looks at the first 72 bytes of the secret
BCRYPT_MAX_BYTES = 72


class CredentialHasher:
    """
    One-way hashing and verification of user secrets.

    Example:
        >>> hasher = CredentialHasher(work_factor=12)
        >>> digest = hasher.hash("SecureP@ss123")
        >>> hasher.verify("SecureP@ss123", digest)
        True
    """

    def __init__(self, work_factor: int = BCRYPT_WORK_FACTOR):
        self.work_factor = work_factor

    def hash(self, secret: str) -> str:
        """
        Hash a secret using bcrypt.

        Args:
            secret: Plaintext secret

        Returns:
            bcrypt hash string (includes salt)

        Raises:
            HashingError: If salt generation or hashing fails internally
        """
        secret_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            salt = bcrypt.gensalt(rounds=self.work_factor)
            hashed = bcrypt.hashpw(secret_bytes, salt)
        except (ValueError, OSError) as e:
            raise HashingError() from e
        return hashed.decode("utf-8")

    def verify(self, secret: str, digest: str) -> bool:
        """
        Verify a secret against a bcrypt hash.

        Returns False on mismatch and on a malformed digest; never raises
        for a legitimate mismatch.
        """
        try:
            secret_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
            return bcrypt.checkpw(secret_bytes, digest.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            # Invalid hash format
            return False

    def needs_rehash(self, digest: str) -> bool:
        """
        Check if a stored hash was produced with a lower work factor.

        Example:
            # After increasing the work factor from 10 to 12:
            >>> CredentialHasher(12).needs_rehash(old_hash)  # factor 10
            True
        """
        try:
            # bcrypt hash format: $2b$XX$...
            _, work_factor_str, _ = digest.split("$")[1:4]
            return int(work_factor_str) < self.work_factor
        except (ValueError, AttributeError):
            # Not a valid bcrypt hash, definitely needs rehash
            return True


def hash_refresh_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw refresh token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def verify_refresh_token(raw_token: str, token_hash: str) -> bool:
    return hmac.compare_digest(hash_refresh_token(raw_token), token_hash)
