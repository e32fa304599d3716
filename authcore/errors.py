"""Domain error taxonomy for the authentication core.

Every failure the core reports is one of the kinds in ``ErrorKind``. Each
kind has exactly one exception class and one HTTP status, so the API
boundary can render any ``AuthError`` without knowing where it came from.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds reported by the core."""

    VALIDATION_FAILED = "validation_failed"
    PASSWORD_MISMATCH = "password_mismatch"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    USER_ALREADY_EXISTS = "user_already_exists"
    TOKEN_REVOKED = "token_revoked"
    USER_NOT_FOUND = "user_not_found"
    RESET_TOKEN_NOT_FOUND = "reset_token_not_found"
    RESET_TOKEN_EXPIRED = "reset_token_expired"
    SERVICE_UNAVAILABLE = "service_unavailable"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.PASSWORD_MISMATCH: 400,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: 401,
    ErrorKind.USER_ALREADY_EXISTS: 409,
    ErrorKind.TOKEN_REVOKED: 409,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.RESET_TOKEN_NOT_FOUND: 404,
    ErrorKind.RESET_TOKEN_EXPIRED: 400,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
}


class AuthError(Exception):
    """Base class for all domain errors raised by the core.

    Attributes:
        kind: The taxonomy kind this error belongs to
        message: Human-readable message, safe to return to clients
        errors: Optional list of individual violations (validation only)
    """

    kind: ErrorKind = ErrorKind.VALIDATION_FAILED
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[str]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """HTTP status code for this error kind."""
        return STATUS_CODES[self.kind]


class ValidationFailed(AuthError):
    kind = ErrorKind.VALIDATION_FAILED
    default_message = "Validation failed"


class PasswordMismatch(AuthError):
    kind = ErrorKind.PASSWORD_MISMATCH
    default_message = "Password is not matches"


class InvalidCredentials(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class InvalidOrExpiredToken(AuthError):
    kind = ErrorKind.INVALID_OR_EXPIRED_TOKEN
    default_message = "Invalid or expired token"


class UserAlreadyExists(AuthError):
    kind = ErrorKind.USER_ALREADY_EXISTS
    default_message = "User already exists"


class TokenRevoked(AuthError):
    kind = ErrorKind.TOKEN_REVOKED
    default_message = "Token is revoked"


class UserNotFound(AuthError):
    kind = ErrorKind.USER_NOT_FOUND
    default_message = "User not found"


class ResetTokenNotFound(AuthError):
    kind = ErrorKind.RESET_TOKEN_NOT_FOUND
    default_message = "Password reset token not found"


class ResetTokenExpired(AuthError):
    kind = ErrorKind.RESET_TOKEN_EXPIRED
    default_message = "Password reset token has expired"


class ServiceUnavailable(AuthError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"
