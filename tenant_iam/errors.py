"""
Tenant IAM - Error Taxonomy

Every failure that reaches the request boundary is an AppError carrying
its HTTP status, a stable machine code and a client-safe message.
Messages for 401/403/500 are deliberately generic.
"""

from fastapi import status


class AppError(Exception):
    """Base class for errors rendered by the API exception handlers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "An unexpected error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidCredentials(AppError):
    """Login failed; never says whether the email or the password was wrong."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    message = "Invalid credentials"


class AccountInactive(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "account_inactive"
    message = "Account is inactive"


class TokenInvalid(AppError):
    """Malformed, tampered, wrongly signed or expired access token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "token_invalid"
    message = "Invalid or expired token"


class AuthenticationRequired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_required"
    message = "Authentication required"


class InsufficientPermission(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "insufficient_permission"
    message = "You do not have permission to perform this action"


class StaffProfileNotFound(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "profile_not_found"
    message = "Could not load staff profile"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Resource not found"


class DuplicateEmail(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_email"
    message = "Email already registered"


class PermissionConfigError(AppError):
    """A route was wired with a permission string that is not resource.action."""
    code = "permission_config_error"
    message = "Invalid permission configuration"


class TransactionFailure(AppError):
    code = "transaction_failed"
    message = "Operation failed"


class InternalError(AppError):
    pass


class HashingError(InternalError):
    message = "Failed to process credential"


class EntropyError(InternalError):
    message = "Token generation failed"


class InvalidPermissionMap(ValueError):
    """Raised when a permission document does not have the resource.action shape."""
