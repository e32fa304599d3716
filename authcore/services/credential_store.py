"""Credential store: persistence for users and password reset tokens."""

from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

import asyncpg
import structlog

from authcore.database import get_pool
from authcore.errors import UserAlreadyExists
from authcore.models.user import PasswordResetToken, User

logger = structlog.get_logger(__name__)

_USER_COLUMNS = "id, email, password_hash, display_name, roles, created_at, updated_at"
_RESET_TOKEN_COLUMNS = "token, user_id, created_at, expires_at"


class CredentialStore(Protocol):
    """Operations the authentication core needs from persistence.

    Each call is atomic on its own; the core never spans a transaction
    across calls.
    """

    async def find_by_email(self, email: str) -> Optional[User]: ...

    async def exists_by_email(self, email: str) -> bool: ...

    async def find_by_id(self, user_id: UUID) -> Optional[User]: ...

    async def save(self, user: User) -> User: ...

    async def find_reset_token_by_token(self, token: str) -> Optional[PasswordResetToken]: ...

    async def find_reset_token_by_user(self, user_id: UUID) -> Optional[PasswordResetToken]: ...

    async def save_reset_token(self, reset_token: PasswordResetToken) -> PasswordResetToken: ...

    async def delete_reset_token_by_user(self, user_id: UUID) -> bool: ...

    async def delete_reset_token(self, token: str) -> bool: ...

    async def delete_expired_reset_tokens(self, now: datetime) -> int: ...


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        display_name=row["display_name"],
        roles=list(row["roles"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_reset_token(row) -> PasswordResetToken:
    return PasswordResetToken(
        token=row["token"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status like 'DELETE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresCredentialStore:
    """CredentialStore backed by the asyncpg pool."""

    async def find_by_email(self, email: str) -> Optional[User]:
        """Get a user by exact email.

        Args:
            email: Email as stored (case-sensitive)

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = $1",
                email,
            )

        return _row_to_user(row) if row is not None else None

    async def exists_by_email(self, email: str) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            exists = await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM users WHERE email = $1)",
                email,
            )

        return bool(exists)

    async def find_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        return _row_to_user(row) if row is not None else None

    async def save(self, user: User) -> User:
        """Insert a new user or update an existing one by id.

        Args:
            user: User to persist

        Returns:
            The persisted User

        Raises:
            UserAlreadyExists: If another user already holds the email
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users ({_USER_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (id) DO UPDATE
                    SET email = EXCLUDED.email,
                        password_hash = EXCLUDED.password_hash,
                        display_name = EXCLUDED.display_name,
                        roles = EXCLUDED.roles,
                        updated_at = EXCLUDED.updated_at
                    RETURNING {_USER_COLUMNS}
                    """,
                    user.id,
                    user.email,
                    user.password_hash,
                    user.display_name,
                    list(user.roles),
                    user.created_at,
                    user.updated_at,
                )
        except asyncpg.UniqueViolationError:
            logger.warning("user_email_conflict", user_id=str(user.id))
            raise UserAlreadyExists(f"User with email <{user.email}> already exists")

        logger.debug("user_saved", user_id=str(user.id))
        return _row_to_user(row)

    async def find_reset_token_by_token(self, token: str) -> Optional[PasswordResetToken]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_RESET_TOKEN_COLUMNS} FROM password_reset_tokens WHERE token = $1",
                token,
            )

        return _row_to_reset_token(row) if row is not None else None

    async def find_reset_token_by_user(self, user_id: UUID) -> Optional[PasswordResetToken]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_RESET_TOKEN_COLUMNS} FROM password_reset_tokens WHERE user_id = $1",
                user_id,
            )

        return _row_to_reset_token(row) if row is not None else None

    async def save_reset_token(self, reset_token: PasswordResetToken) -> PasswordResetToken:
        """Store a reset token, replacing any token already held by the user.

        The upsert on the unique ``user_id`` index means two concurrent
        issues for one user end with a single row.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                f"""
                INSERT INTO password_reset_tokens ({_RESET_TOKEN_COLUMNS})
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id) DO UPDATE
                SET token = EXCLUDED.token,
                    created_at = EXCLUDED.created_at,
                    expires_at = EXCLUDED.expires_at
                """,
                reset_token.token,
                reset_token.user_id,
                reset_token.created_at,
                reset_token.expires_at,
            )

        return reset_token

    async def delete_reset_token_by_user(self, user_id: UUID) -> bool:
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM password_reset_tokens WHERE user_id = $1",
                user_id,
            )

        return _affected_rows(result) > 0

    async def delete_reset_token(self, token: str) -> bool:
        """Delete a reset token by value.

        Returns:
            True if this call removed the row, False if it was already gone
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM password_reset_tokens WHERE token = $1",
                token,
            )

        return _affected_rows(result) > 0

    async def delete_expired_reset_tokens(self, now: datetime) -> int:
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM password_reset_tokens WHERE expires_at <= $1",
                now,
            )

        return _affected_rows(result)
