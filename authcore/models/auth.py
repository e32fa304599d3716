"""Auth request and response models with validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator

# bcrypt only looks at the first 72 bytes of a password
PASSWORD_MAX_LENGTH = 72


def _check_email(v: str) -> str:
    # Syntax only; the address is kept exactly as given
    try:
        validate_email(v, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"Email must be a valid email address: {e}") from e
    return v


def _check_password(v: str) -> str:
    if not v.strip():
        raise ValueError("Password cannot be empty or whitespace only")
    if len(v.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LENGTH} bytes")
    return v


class SignupRequest(BaseModel):
    """New user registration.

    Attributes:
        email: Email address, used as the login identifier
        password: Plain-text password
        confirm_password: Must equal ``password``
        display_name: Human-readable name (max 255 chars)
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1, alias="confirmPassword")
    display_name: str = Field(..., min_length=1, max_length=255, alias="displayName")

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        """Ensure email looks like an address."""
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        """Ensure password is not blank and fits bcrypt's input limit."""
        return _check_password(v)


class LoginRequest(BaseModel):
    """Login credentials for authentication."""

    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        """Ensure email looks like an address."""
        return _check_email(v)


class RefreshRequest(BaseModel):
    """Request carrying a refresh token, for refresh and logout."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


class ResetPasswordRequest(BaseModel):
    """Request to start a password reset for an email address."""

    email: str = Field(..., max_length=254)

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        """Ensure email looks like an address."""
        return _check_email(v)


class SavePasswordRequest(BaseModel):
    """Request to complete a password reset with a new password."""

    model_config = ConfigDict(populate_by_name=True)

    reset_token: str = Field(..., min_length=1, alias="resetToken")
    new_password: str = Field(..., min_length=1, alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def password_valid(cls, v: str) -> str:
        """Ensure password is not blank and fits bcrypt's input limit."""
        return _check_password(v)


class TokenPair(BaseModel):
    """Access and refresh token pair.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT for obtaining a new pair
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    expires_in: int = Field(
        ge=1,
        alias="expiresIn",
        description="Access token lifetime in seconds",
    )


class PasswordResetConfirmation(BaseModel):
    """Outcome of a password reset request.

    ``email_sent`` reports delivery separately from issuance: the token is
    persisted and valid even when delivery failed.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    user_id: UUID = Field(alias="userId")
    token: str
    email_sent: bool = Field(alias="emailSent")


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    status: int
    message: str
    errors: Optional[list[str]] = None
