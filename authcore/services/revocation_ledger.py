"""Revocation ledger for refresh token ids.

A JWT signature cannot express revocation, so revoked refresh tokens are
recorded by ``jti`` in Redis. Each entry expires together with the token it
revokes; after that the signature check rejects the token on its own.
"""

from typing import Protocol

import structlog
from redis.exceptions import RedisError

from authcore.errors import ServiceUnavailable
from authcore.services.redis_service import get_redis

logger = structlog.get_logger(__name__)

KEY_PREFIX = "revoked_refresh:"


class RevocationLedger(Protocol):
    """Set of revoked token ids with per-entry expiry."""

    async def is_revoked(self, jti: str) -> bool: ...

    async def revoke(self, jti: str, ttl_seconds: int) -> bool: ...


class RedisRevocationLedger:
    """RevocationLedger stored as Redis keys with TTL.

    Fails closed: if Redis cannot be reached, both operations raise
    ``ServiceUnavailable`` instead of reporting a token as usable.
    """

    async def _client(self):
        client = await get_redis()
        if client is None:
            logger.error("revocation_ledger_unavailable")
            raise ServiceUnavailable("Token revocation service unavailable")
        return client

    async def is_revoked(self, jti: str) -> bool:
        """Check whether a token id has been revoked.

        Args:
            jti: Unique token id from the refresh token

        Returns:
            True if the id is in the ledger
        """
        client = await self._client()
        try:
            return bool(await client.exists(f"{KEY_PREFIX}{jti}"))
        except RedisError as e:
            logger.error("revocation_check_failed", jti=jti, error=str(e))
            raise ServiceUnavailable("Token revocation service unavailable") from e

    async def revoke(self, jti: str, ttl_seconds: int) -> bool:
        """Record a token id as revoked.

        The write is a single ``SET NX``, so when several callers race to
        revoke the same id exactly one of them gets True.

        Args:
            jti: Unique token id to revoke
            ttl_seconds: How long to keep the entry; at least one second

        Returns:
            True if this call revoked the id, False if it was already revoked
        """
        client = await self._client()
        try:
            created = await client.set(
                f"{KEY_PREFIX}{jti}", "1", nx=True, ex=max(1, int(ttl_seconds))
            )
        except RedisError as e:
            logger.error("revocation_write_failed", jti=jti, error=str(e))
            raise ServiceUnavailable("Token revocation service unavailable") from e

        if created:
            logger.info("refresh_token_revoked", jti=jti, ttl_seconds=ttl_seconds)
        else:
            logger.warning("refresh_token_already_revoked", jti=jti)
        return bool(created)
