"""Database management CLI commands."""

import asyncio
import subprocess
import sys

import typer
from rich.console import Console
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authcore.config import get_settings
from authcore.database import close_db, get_session_context

console = Console()
app = typer.Typer(help="Database management commands")


def run_alembic(*args: str) -> int:
    """Run an alembic command in a subprocess, returning its exit code."""
    return subprocess.run([sys.executable, "-m", "alembic", *args], check=False).returncode


def _require_sql_backend() -> None:
    if get_settings().datastore_backend != "sql":
        console.print("[yellow]Datastore backend is 'memory'; there is no schema to manage[/yellow]")
        raise typer.Exit(1)


@app.command("migrate")
def migrate(
    revision: str = typer.Argument("head", help="Target revision (default: head)"),
):
    """Create or upgrade the users, verification_codes and login_logs tables."""
    _require_sql_backend()
    console.print(f"[dim]Running migrations to {revision}...[/dim]")
    if run_alembic("upgrade", revision) != 0:
        console.print("[red]Migration failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Migrations complete![/green]")


@app.command("rollback")
def rollback(
    revision: str = typer.Argument("-1", help="Target revision (default: -1 for one step back)"),
):
    """Rollback database migrations."""
    _require_sql_backend()
    console.print(f"[dim]Rolling back to {revision}...[/dim]")
    if run_alembic("downgrade", revision) != 0:
        console.print("[red]Rollback failed![/red]")
        raise typer.Exit(1)
    console.print("[green]Rollback complete![/green]")


@app.command("status")
def status():
    """Check connectivity and show the current revision."""
    _require_sql_backend()

    async def _ping() -> None:
        try:
            async with get_session_context() as session:
                await session.execute(text("SELECT 1"))
        finally:
            await close_db()

    try:
        asyncio.run(_ping())
    except (OSError, SQLAlchemyError) as e:
        console.print(f"[red]Database unreachable:[/red] {e}")
        raise typer.Exit(1) from None

    console.print("[green]Database reachable[/green]")
    run_alembic("current")
