"""Single-use password reset tokens.

Per user a token moves NoActiveToken -> ActiveToken -> NoActiveToken:
``issue`` replaces whatever token the user had, ``consume`` deletes it after
a successful reset, and an expired token is treated as absent.
"""

import secrets
from datetime import datetime, timedelta, timezone

import structlog

from authcore.config import get_settings
from authcore.errors import ResetTokenExpired, ResetTokenNotFound
from authcore.models.user import PasswordResetToken, User
from authcore.services.credential_store import CredentialStore

logger = structlog.get_logger(__name__)


class ResetTokenService:
    """Issues, validates and consumes password reset tokens."""

    def __init__(self, store: CredentialStore):
        self.store = store
        self.settings = get_settings()

    @property
    def validity_window(self) -> timedelta:
        return timedelta(minutes=self.settings.reset_token_expire_minutes)

    def generate_token(self) -> str:
        """Generate an opaque, URL-safe random token."""
        return secrets.token_urlsafe(self.settings.reset_token_bytes)

    async def issue(self, user: User) -> PasswordResetToken:
        """Create a new reset token for a user, invalidating any prior one.

        Args:
            user: User the token is bound to

        Returns:
            The stored PasswordResetToken
        """
        now = datetime.now(timezone.utc)
        reset_token = PasswordResetToken(
            token=self.generate_token(),
            user_id=user.id,
            created_at=now,
            expires_at=now + self.validity_window,
        )

        replaced = await self.store.delete_reset_token_by_user(user.id)
        await self.store.save_reset_token(reset_token)

        logger.info(
            "password_reset_token_issued",
            user_id=str(user.id),
            replaced_previous=replaced,
            expires_at=reset_token.expires_at.isoformat(),
        )
        return reset_token

    async def validate(self, token: str) -> PasswordResetToken:
        """Look up a reset token and check that it is still fresh.

        An expired token is deleted on the way out so it cannot be retried.

        Raises:
            ResetTokenNotFound: If no such token exists
            ResetTokenExpired: If the token's window has passed
        """
        reset_token = await self.store.find_reset_token_by_token(token)
        if reset_token is None:
            logger.warning("password_reset_token_not_found")
            raise ResetTokenNotFound()

        if reset_token.is_expired(datetime.now(timezone.utc)):
            await self.store.delete_reset_token(token)
            logger.warning(
                "password_reset_token_expired",
                user_id=str(reset_token.user_id),
            )
            raise ResetTokenExpired()

        return reset_token

    async def consume(self, reset_token: PasswordResetToken) -> None:
        """Delete a token after use.

        Raises:
            ResetTokenNotFound: If a concurrent caller consumed it first
        """
        deleted = await self.store.delete_reset_token(reset_token.token)
        if not deleted:
            logger.warning(
                "password_reset_token_already_consumed",
                user_id=str(reset_token.user_id),
            )
            raise ResetTokenNotFound()

        logger.info("password_reset_token_consumed", user_id=str(reset_token.user_id))

    async def purge_expired(self) -> int:
        """Delete every expired token.

        Returns:
            Number of tokens removed
        """
        count = await self.store.delete_expired_reset_tokens(datetime.now(timezone.utc))
        if count:
            logger.info("password_reset_tokens_purged", count=count)
        return count
