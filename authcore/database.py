"""asyncpg pool for the credential store, plus schema migrations.

The pool is process-global: ``init_database`` opens it once (at app startup
or from the CLI) and every ``PostgresCredentialStore`` query borrows a
connection through ``get_pool``. Pool bounds and the per-statement timeout
come from ``Settings``.
"""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from authcore.config import get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Return the open pool.

    Raises:
        RuntimeError: If ``init_database`` has not been awaited
    """
    if _pool is None:
        raise RuntimeError("Credential store pool is not open; call init_database() first")
    return _pool


async def init_database() -> asyncpg.Pool:
    """Open the pool if needed and return it."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()
    pool_options = {
        "min_size": settings.db_pool_min_size,
        "max_size": settings.db_pool_max_size,
        "command_timeout": settings.db_command_timeout_seconds,
    }

    try:
        _pool = await asyncpg.create_pool(settings.postgres_url, **pool_options)
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("credential_store_unreachable", error=str(e))
        raise

    logger.info("credential_store_pool_opened", **pool_options)
    return _pool


async def close_database() -> None:
    """Close the pool; a no-op when it is not open."""
    global _pool

    if _pool is None:
        return

    await _pool.close()
    _pool = None
    logger.info("credential_store_pool_closed")


def migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    """List ``*.sql`` files in apply order (lexical, so keep the numeric prefix)."""
    if not directory.is_dir():
        logger.warning("migrations_directory_missing", path=str(directory))
        return []
    return sorted(directory.glob("*.sql"))


async def run_migrations(directory: Path = MIGRATIONS_DIR) -> int:
    """Apply every migration in one transaction.

    Each script uses ``IF NOT EXISTS``, so re-running is harmless. A failing
    script rolls back the whole batch.

    Returns:
        Number of scripts applied
    """
    files = migration_files(directory)
    if not files:
        return 0

    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            for path in files:
                try:
                    await conn.execute(path.read_text())
                except asyncpg.PostgresError as e:
                    logger.error("migration_failed", file=path.name, error=str(e))
                    raise
                logger.info("migration_applied", file=path.name)

    return len(files)


async def health_check() -> bool:
    """True when a pooled connection answers ``SELECT 1``."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        logger.warning("credential_store_health_check_failed", error=str(e))
        return False
