"""Authentication core: signup, login, token refresh and password reset."""

import asyncio
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from authcore.errors import (
    InvalidCredentials,
    InvalidOrExpiredToken,
    PasswordMismatch,
    TokenRevoked,
    UserAlreadyExists,
    UserNotFound,
)
from authcore.models.auth import PasswordResetConfirmation, SignupRequest, TokenPair
from authcore.models.user import User, UserInfo
from authcore.services.credential_store import CredentialStore, PostgresCredentialStore
from authcore.services.email_service import EmailService
from authcore.services.password_hasher import PasswordHasher
from authcore.services.reset_token_service import ResetTokenService
from authcore.services.token_codec import TokenCodec

logger = structlog.get_logger(__name__)


def _subject_id(claims: dict) -> UUID:
    try:
        return UUID(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidOrExpiredToken("Invalid token subject")


class AuthenticationService:
    """Orchestrates the credential lifecycle.

    Every operation either returns its result or raises one of the
    ``authcore.errors`` kinds; nothing is retried here. The service keeps no
    state between calls: the credential store and the revocation ledger are
    the only shared state.
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        hasher: Optional[PasswordHasher] = None,
        codec: Optional[TokenCodec] = None,
        reset_tokens: Optional[ResetTokenService] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.store = store if store is not None else PostgresCredentialStore()
        self.hasher = hasher or PasswordHasher()
        self.codec = codec or TokenCodec()
        self.reset_tokens = reset_tokens or ResetTokenService(self.store)
        self.email_service = email_service or EmailService()

    async def _hash_password(self, password: str) -> str:
        # bcrypt blocks; run it in a worker thread
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify_password(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, password_hash)

    async def signup(self, registration: SignupRequest) -> TokenPair:
        """Register a new user and issue their first token pair.

        Args:
            registration: Email, password, confirmation and display name

        Returns:
            TokenPair bound to the new user

        Raises:
            PasswordMismatch: If password and confirmation differ
            UserAlreadyExists: If the email is already registered
        """
        if registration.password != registration.confirm_password:
            raise PasswordMismatch()

        if await self.store.exists_by_email(registration.email):
            logger.warning("signup_email_taken")
            raise UserAlreadyExists(
                f"User with email <{registration.email}> already exists"
            )

        now = datetime.now(timezone.utc)
        user = User(
            id=uuid4(),
            email=registration.email,
            display_name=registration.display_name,
            password_hash=await self._hash_password(registration.password),
            created_at=now,
            updated_at=now,
        )
        user = await self.store.save(user)

        logger.info("user_signed_up", user_id=str(user.id))
        return self.codec.create_token_pair(user)

    async def login(self, email: str, password: str) -> TokenPair:
        """Verify credentials and issue a token pair.

        Unknown email and wrong password raise the same error with the same
        message, so the response does not reveal which accounts exist.

        Raises:
            InvalidCredentials: If the email is unknown or the password is wrong
        """
        user = await self.store.find_by_email(email)

        if user is None:
            logger.warning("login_failed", reason="unknown_email")
            raise InvalidCredentials()

        if not await self._verify_password(password, user.password_hash):
            logger.warning("login_failed", user_id=str(user.id), reason="bad_password")
            raise InvalidCredentials()

        logger.info("user_logged_in", user_id=str(user.id))
        return self.codec.create_token_pair(user)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, rotating both tokens.

        Signature and expiry are checked before revocation, so a token that
        is both expired and revoked reports expiry. The old token is revoked
        with a claim-once write; of two concurrent refreshes with the same
        token only one gets a new pair.

        Raises:
            InvalidOrExpiredToken: If the token is malformed, expired, badly
                signed, or its user no longer exists
            TokenRevoked: If the token was revoked or already rotated
        """
        claims = self.codec.decode_refresh_token(refresh_token)

        if await self.codec.is_revoked(claims):
            logger.warning("refresh_token_reuse", jti=claims["jti"])
            raise TokenRevoked(f"Token <{claims['jti']}> is revoked")

        user = await self.store.find_by_id(_subject_id(claims))
        if user is None:
            raise InvalidOrExpiredToken("Token subject no longer exists")

        if not await self.codec.revoke(claims):
            raise TokenRevoked(f"Token <{claims['jti']}> is revoked")

        logger.info("token_pair_refreshed", user_id=str(user.id))
        return self.codec.create_token_pair(user)

    async def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token so it can no longer be exchanged.

        Raises:
            InvalidOrExpiredToken: If the token does not verify
            TokenRevoked: If the token was already revoked
        """
        claims = self.codec.decode_refresh_token(refresh_token)

        if not await self.codec.revoke(claims):
            raise TokenRevoked(f"Token <{claims['jti']}> is revoked")

        logger.info("user_logged_out", user_id=claims["sub"])

    async def request_password_reset(self, email: str) -> PasswordResetConfirmation:
        """Issue a reset token for an email address and deliver it.

        Any earlier token for the user is invalidated. A delivery failure is
        reported through ``email_sent`` and leaves the new token in place.

        Raises:
            UserNotFound: If no user has this email
        """
        user = await self.store.find_by_email(email)
        if user is None:
            logger.warning("password_reset_unknown_email")
            raise UserNotFound(f"User with email <{email}> not found.")

        reset_token = await self.reset_tokens.issue(user)
        email_sent = await self.email_service.send_password_reset_email(
            reset_token.token, user
        )

        logger.info(
            "password_reset_requested",
            user_id=str(user.id),
            email_sent=email_sent,
        )
        return PasswordResetConfirmation(
            timestamp=reset_token.created_at,
            user_id=user.id,
            token=reset_token.token,
            email_sent=email_sent,
        )

    async def confirm_password_reset(self, reset_token: str, new_password: str) -> TokenPair:
        """Set a new password using a reset token, then log the user in.

        Raises:
            ResetTokenNotFound: If the token does not exist or was already used
            ResetTokenExpired: If the token's window has passed
            UserNotFound: If the token's user no longer exists
        """
        token = await self.reset_tokens.validate(reset_token)

        user = await self.store.find_by_id(token.user_id)
        if user is None:
            raise UserNotFound(f"User with id <{token.user_id}> not found.")

        await self.reset_tokens.consume(token)

        updated = user.model_copy(
            update={
                "password_hash": await self._hash_password(new_password),
                "updated_at": datetime.now(timezone.utc),
            }
        )
        await self.store.save(updated)
        logger.info("password_reset_completed", user_id=str(user.id))

        return await self.login(user.email, new_password)

    async def get_user(self, user_id: UUID) -> UserInfo:
        """Return the public view of a user.

        Raises:
            UserNotFound: If no user has this id
        """
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFound(f"User with id <{user_id}> not found.")
        return UserInfo.from_user(user)

    async def authenticate_access_token(self, access_token: str) -> User:
        """Resolve the user behind a bearer access token.

        Raises:
            InvalidOrExpiredToken: If the token does not verify or its user
                no longer exists
        """
        claims = self.codec.decode_access_token(access_token)
        user = await self.store.find_by_id(_subject_id(claims))
        if user is None:
            raise InvalidOrExpiredToken("Token subject no longer exists")
        return user
