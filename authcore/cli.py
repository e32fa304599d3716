"""Click CLI for operating the auth service.

Usage:
    python -m authcore <command> [OPTIONS]

Commands:
    migrate              Apply SQL migrations
    purge-reset-tokens   Delete expired password reset tokens
    serve                Run the API with uvicorn
"""

import asyncio

import click

from authcore.config import get_settings
from authcore.services.logging_service import configure_logging


@click.group()
def cli() -> None:
    """Auth Core: credential lifecycle service."""
    configure_logging(get_settings().log_level)


async def _migrate() -> int:
    from authcore.database import close_database, init_database, run_migrations

    await init_database()
    try:
        return await run_migrations()
    finally:
        await close_database()


async def _purge_reset_tokens() -> int:
    from authcore.database import close_database, init_database
    from authcore.services.credential_store import PostgresCredentialStore
    from authcore.services.reset_token_service import ResetTokenService

    await init_database()
    try:
        return await ResetTokenService(PostgresCredentialStore()).purge_expired()
    finally:
        await close_database()


@cli.command()
def migrate() -> None:
    """Apply SQL migrations (idempotent)."""
    count = asyncio.run(_migrate())
    click.echo(f"Applied {count} migration(s).")


@cli.command("purge-reset-tokens")
def purge_reset_tokens() -> None:
    """Delete expired password reset tokens.

    Expired tokens are already rejected on lookup; this only reclaims rows.
    """
    count = asyncio.run(_purge_reset_tokens())
    click.echo(f"Purged {count} expired reset token(s).")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", default=8000, type=int, help="Bind port.")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run("authcore.main:app", host=host, port=port, reload=reload)
