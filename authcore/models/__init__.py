"""Models package exports."""

from authcore.models.auth import (
    ErrorResponse,
    LoginRequest,
    PasswordResetConfirmation,
    RefreshRequest,
    ResetPasswordRequest,
    SavePasswordRequest,
    SignupRequest,
    TokenPair,
)
from authcore.models.user import PasswordResetToken, User, UserInfo

__all__ = [
    "ErrorResponse",
    "LoginRequest",
    "PasswordResetConfirmation",
    "PasswordResetToken",
    "RefreshRequest",
    "ResetPasswordRequest",
    "SavePasswordRequest",
    "SignupRequest",
    "TokenPair",
    "User",
    "UserInfo",
]
