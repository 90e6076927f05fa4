"""CLI entry point for OTPGATE."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _mask(value: str) -> str:
    return "(set)" if value else "(not set)"


@click.group()
def main() -> None:
    """OTPGATE — TOTP two-factor authentication service."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@main.command()
def status() -> None:
    """Show effective configuration."""
    from otpgate.config import settings

    console.print("[bold]OTPGATE Status[/bold]")
    console.print(f"  Database: {settings.database_url.split('@')[-1]}")
    console.print(f"  Auth provider: {settings.auth_url}")
    console.print(f"  Anon key: {_mask(settings.auth_anon_key)}")
    console.print(f"  Master key: {_mask(settings.master_key)}")
    console.print(f"  Issuer: {settings.issuer}")
    console.print(f"  Secret length: {settings.secret_bytes} bytes")
    console.print(f"  Verify window: ±{settings.verify_window} steps")
    console.print(f"  Dependency timeout: {settings.dependency_timeout_s:.1f}s")


@main.command()
def db_check() -> None:
    """Verify database connectivity."""
    from otpgate.db import close_pool, execute_one, init_pool

    async def _check() -> None:
        await init_pool(min_size=1, max_size=1)
        try:
            row = await execute_one("SELECT 1 AS ok")
        finally:
            await close_pool()
        if row and row["ok"] == 1:
            console.print("[green]Database connection OK[/green]")
        else:
            console.print("[red]Database check failed[/red]")

    asyncio.run(_check())


@main.command()
def init_db() -> None:
    """Create the profiles TOTP columns and the security_events table."""
    from otpgate.db import close_pool, init_pool, init_schema

    async def _init() -> None:
        await init_pool(min_size=1, max_size=1)
        try:
            await init_schema()
        finally:
            await close_pool()

    asyncio.run(_init())
    console.print("[green]Schema ready[/green]")


@main.command()
@click.option("--label", default="user", show_default=True, help="Account name shown in the app.")
@click.option("--issuer", default=None, help="Issuer name (defaults to OTPGATE_ISSUER).")
def new_secret(label: str, issuer: str | None) -> None:
    """Generate a secret and provisioning URI without storing them."""
    from otpgate.provisioning import provision

    provisioned = provision(label, issuer=issuer)
    console.print(f"Secret: [bold]{provisioned.secret}[/bold]")
    console.print(f"URI:    {provisioned.provisioning_uri}")


@main.command()
@click.argument("secret")
@click.option("--at", "at", type=float, default=None, help="Unix time to compute the code for (default: now).")
def code(secret: str, at: float | None) -> None:
    """Print the current code for SECRET."""
    from otpgate.errors import InvalidSecretError
    from otpgate.totp import current_code

    try:
        console.print(current_code(secret, at))
    except InvalidSecretError as e:
        raise click.BadParameter(str(e), param_hint="SECRET") from e


@main.command()
@click.argument("account_id")
@click.option("--limit", default=20, show_default=True)
def events(account_id: str, limit: int) -> None:
    """Show recent 2FA events for ACCOUNT_ID."""
    from otpgate.db import close_pool, init_pool
    from otpgate.events import async_get_events

    async def _fetch() -> list[dict]:
        await init_pool(min_size=1, max_size=1)
        try:
            return await async_get_events(account_id=account_id, limit=limit)
        finally:
            await close_pool()

    rows = asyncio.run(_fetch())
    table = Table("ID", "Time", "Type", "Message")
    for row in rows:
        table.add_row(str(row["id"]), row["timestamp"].isoformat(), row["event_type"], row["message"])
    console.print(table)


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to OTPGATE_HOST).")
@click.option("--port", default=None, type=int, help="Port (defaults to OTPGATE_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Start the HTTP API."""
    import uvicorn

    from otpgate.api.app import app
    from otpgate.config import settings

    host = host or settings.host
    port = port or settings.port
    console.print(f"Starting OTPGATE on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
