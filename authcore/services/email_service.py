"""Email service for out-of-band password reset delivery."""

from urllib.parse import urlencode

import aiosmtplib
import structlog

from authcore.config import get_settings
from authcore.models.user import User

logger = structlog.get_logger(__name__)


class EmailService:
    """Delivers password reset tokens by SMTP."""

    def __init__(self):
        self.settings = get_settings()

    def build_reset_link(self, token: str) -> str:
        """Build the frontend link that carries the reset token."""
        return f"{self.settings.reset_password_url}?{urlencode({'token': token})}"

    def build_reset_message(self, token: str, user: User) -> str:
        """Render the raw RFC 5322 message for a reset email."""
        body = (
            f"Hello {user.display_name},\n\n"
            f"A password reset was requested for your account.\n"
            f"Follow this link to choose a new password:\n\n"
            f"{self.build_reset_link(token)}\n\n"
            f"The link expires in {self.settings.reset_token_expire_minutes} minutes. "
            f"If you did not request a reset, you can ignore this email.\n"
        )
        return (
            f"From: {self.settings.email_from}\r\n"
            f"To: {user.email}\r\n"
            f"Subject: Reset your password\r\n"
            f"Content-Type: text/plain; charset=utf-8\r\n"
            f"\r\n"
            f"{body}"
        )

    async def send_password_reset_email(self, token: str, user: User) -> bool:
        """Send a password reset email.

        Delivery problems never raise: the token is already stored and stays
        valid, so failure is reported to the caller as False.

        Returns:
            True on success, False if disabled, timed out or failed
        """
        if not self.settings.email_enabled:
            logger.info("password_reset_email_skipped", user_id=str(user.id), reason="disabled")
            return False

        try:
            await aiosmtplib.send(
                self.build_reset_message(token, user),
                sender=self.settings.email_from,
                recipients=[user.email],
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.smtp_username or None,
                password=self.settings.smtp_password or None,
                use_tls=self.settings.smtp_use_tls,
                timeout=self.settings.email_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                "password_reset_email_failed",
                user_id=str(user.id),
                error=str(e),
            )
            return False

        logger.info("password_reset_email_sent", user_id=str(user.id))
        return True
