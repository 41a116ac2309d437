"""Verification code maintenance commands."""

import asyncio
from datetime import timedelta

import typer
from rich.console import Console

from authcore.clock import utcnow
from authcore.config import get_settings
from authcore.services.factory import get_repositories

console = Console()
app = typer.Typer(help="Verification code maintenance")


@app.command("purge")
def purge(
    days: int | None = typer.Option(
        None, "--days", "-d", help="Delete codes expired more than this many days ago"
    ),
):
    """Delete expired verification codes past the retention period."""
    settings = get_settings()
    retention = days if days is not None else settings.code_retention_days
    cutoff = utcnow() - timedelta(days=retention)

    async def _purge() -> int:
        return await get_repositories(settings).codes.purge_expired(before=cutoff)

    removed = asyncio.run(_purge())
    console.print(f"[green]Removed {removed} code(s)[/green] expired before {cutoff:%Y-%m-%d %H:%M} UTC")
