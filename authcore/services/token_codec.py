"""JWT minting, verification and revocation checks."""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import jwt
import structlog

from authcore.config import get_settings
from authcore.errors import InvalidOrExpiredToken
from authcore.models.auth import TokenPair
from authcore.models.user import User
from authcore.services.revocation_ledger import RedisRevocationLedger, RevocationLedger

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenCodec:
    """Signs and verifies access/refresh tokens.

    Access tokens carry the user's id, email and roles. Refresh tokens carry
    the user's id and a unique ``jti`` that the revocation ledger is keyed on.
    """

    def __init__(self, ledger: Optional[RevocationLedger] = None):
        self.settings = get_settings()
        self.ledger = ledger if ledger is not None else RedisRevocationLedger()

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.access_token_expire_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.settings.refresh_token_expire_days)

    def _encode(self, payload: dict) -> str:
        return jwt.encode(
            payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm
        )

    def create_access_token(self, user: User) -> str:
        """Create a signed JWT access token.

        Args:
            user: User the token is issued to; roles are resolved here

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "roles": list(user.roles),
            "type": ACCESS_TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + self.access_token_ttl,
        }
        token = self._encode(payload)
        logger.debug(
            "access_token_created",
            user_id=str(user.id),
            expires_minutes=self.settings.access_token_expire_minutes,
        )
        return token

    def create_refresh_token(self, user: User) -> str:
        """Create a signed JWT refresh token with a fresh ``jti``."""
        now = datetime.now(timezone.utc)
        jti = uuid4().hex
        payload = {
            "sub": str(user.id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": jti,
            "iat": now,
            "exp": now + self.refresh_token_ttl,
        }
        token = self._encode(payload)
        logger.info(
            "refresh_token_created",
            user_id=str(user.id),
            jti=jti,
            expires_at=payload["exp"].isoformat(),
        )
        return token

    def create_token_pair(self, user: User) -> TokenPair:
        """Mint a new access/refresh pair for a user."""
        return TokenPair(
            access_token=self.create_access_token(user),
            refresh_token=self.create_refresh_token(user),
            token_type="bearer",
            expires_in=int(self.access_token_ttl.total_seconds()),
        )

    def _decode(self, token: str, expected_type: str) -> dict:
        """Verify signature, expiry and token type.

        Raises:
            InvalidOrExpiredToken: If the token is malformed, tampered with,
                expired, or of the wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["exp", "iat", "sub", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("token_expired", expected_type=expected_type)
            raise InvalidOrExpiredToken(f"{expected_type.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning("token_invalid", expected_type=expected_type, error=str(e))
            raise InvalidOrExpiredToken(f"Invalid {expected_type} token")

        if payload.get("type") != expected_type:
            logger.warning(
                "token_type_mismatch",
                expected_type=expected_type,
                actual_type=payload.get("type"),
            )
            raise InvalidOrExpiredToken(f"Invalid {expected_type} token")

        return payload

    def decode_access_token(self, token: str) -> dict:
        """Decode and validate an access token.

        Returns:
            Decoded claims with sub, email, roles, jti, iat, exp
        """
        return self._decode(token, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> dict:
        """Decode and validate a refresh token.

        Revocation is not checked here; see ``is_revoked``.

        Returns:
            Decoded claims with sub, jti, iat, exp
        """
        return self._decode(token, REFRESH_TOKEN_TYPE)

    async def is_revoked(self, claims: dict) -> bool:
        """Check the ledger for a decoded refresh token's ``jti``."""
        return await self.ledger.is_revoked(claims["jti"])

    async def revoke(self, claims: dict) -> bool:
        """Revoke a decoded refresh token for the rest of its lifetime.

        Returns:
            True if this call revoked it, False if it was already revoked
        """
        ttl_seconds = int(claims["exp"] - time.time())
        return await self.ledger.revoke(claims["jti"], ttl_seconds)
