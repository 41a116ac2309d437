"""Login audit inspection commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from authcore.config import get_settings
from authcore.models import LoginStatus
from authcore.services.factory import get_repositories

console = Console()
app = typer.Typer(help="Login audit commands")

STATUS_STYLES = {
    LoginStatus.SUCCESS.value: "green",
    LoginStatus.FAILED.value: "red",
    LoginStatus.BLOCKED.value: "yellow",
}


@app.command("history")
def history(
    email: str = typer.Argument(..., help="User email"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of entries to show"),
):
    """Show recent sign-in attempts for a user."""

    async def _history():
        repos = get_repositories(get_settings())
        user = await repos.users.find_by_email(email.lower())
        if not user:
            console.print(f"[red]Error:[/red] User {email} not found")
            raise typer.Exit(1)

        entries = await repos.logins.history(user.id, limit=limit)
        table = Table(title=f"Logins for {user.email}")
        table.add_column("When", style="dim")
        table.add_column("Method")
        table.add_column("Status")
        table.add_column("Reason")
        table.add_column("IP", style="cyan")

        for entry in entries:
            style = STATUS_STYLES.get(entry.status, "white")
            table.add_row(
                entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                entry.login_method,
                f"[{style}]{entry.status}[/{style}]",
                entry.failure_reason or "-",
                entry.ip_address or "-",
            )

        console.print(table)

    asyncio.run(_history())
