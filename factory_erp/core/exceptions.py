"""Exception taxonomy for the ERP API.

Each error carries a message key from ``core.messages`` rather than free
text; the application handler localizes it for the caller.
"""

from fastapi import status


class ERPError(Exception):
    """Base exception for the Factory ERP."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "internal_error"

    def __init__(self, code: str = None, **params):
        self.code = code or self.default_code
        self.params = params
        super().__init__(self.code)


class ValidationError(ERPError):
    """Raised when input is missing or malformed."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_failed"


class AuthenticationError(ERPError):
    """Raised when the session credential is missing, invalid or expired."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "not_authenticated"


class AuthorizationError(ERPError):
    """Raised when an authenticated user lacks the required permission."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "permission_denied"


class NotFoundError(ERPError):
    """Raised when a referenced entity does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ERPError):
    """Raised when a unique key is already taken or a delete is blocked."""
    status_code = status.HTTP_409_CONFLICT


class InternalError(ERPError):
    """Raised for unexpected failures; the caller only sees a generic message."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "internal_error"
