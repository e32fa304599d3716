"""User and credential models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ROLES = ["ROLE_USER"]


class User(BaseModel):
    """A registered user.

    The password hash is excluded from serialization and repr so it never
    leaves the service through a response body or a log line.
    """

    id: UUID
    email: str
    display_name: str
    password_hash: str = Field(exclude=True, repr=False)
    roles: list[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    created_at: datetime
    updated_at: datetime


class UserInfo(BaseModel):
    """Public projection of a user for API responses."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    email: str
    display_name: str = Field(alias="displayName")
    roles: list[str]
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            roles=list(user.roles),
            created_at=user.created_at,
        )


class PasswordResetToken(BaseModel):
    """A single-use password reset token bound to one user."""

    token: str = Field(repr=False)
    user_id: UUID
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` has reached the expiry instant."""
        return now >= self.expires_at
