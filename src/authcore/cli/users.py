"""User management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from authcore.config import get_settings
from authcore.models import User, UserStatus
from authcore.repositories import DuplicateKeyError
from authcore.services.factory import get_repositories
from authcore.services.passwords import PasswordHasher

console = Console()
app = typer.Typer(help="User management commands")

STATUS_STYLES = {
    UserStatus.ACTIVE.value: "green",
    UserStatus.INACTIVE.value: "yellow",
    UserStatus.SUSPENDED.value: "red",
    UserStatus.DELETED.value: "dim",
}


@app.command("list")
def list_users(limit: int = typer.Option(100, "--limit", "-l", help="Maximum users to show")):
    """List users."""

    async def _list():
        users = await get_repositories(get_settings()).users.list_users(limit=limit)

        table = Table(title="Users")
        table.add_column("ID", style="cyan")
        table.add_column("Email", style="green")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Last login", style="dim")

        for user in users:
            style = STATUS_STYLES.get(user.status, "white")
            last_login = user.last_login_at.strftime("%Y-%m-%d %H:%M") if user.last_login_at else "-"
            table.add_row(user.id, user.email, user.name, f"[{style}]{user.status}[/{style}]", last_login)

        console.print(table)

    asyncio.run(_list())


@app.command("create")
def create_user(
    email: str = typer.Argument(..., help="User email"),
    name: str | None = typer.Option(None, "--name", "-n", help="Display name"),
    password: str | None = typer.Option(
        None, "--password", "-p", help="Initial password (omit for code-only sign-in)"
    ),
):
    """Create a new user with a verified email."""

    async def _create():
        settings = get_settings()
        users = get_repositories(settings).users
        password_hash = None
        if password:
            password_hash = await PasswordHasher(rounds=settings.bcrypt_rounds).hash(password)

        try:
            user = await users.create(
                User(
                    email=email.lower(),
                    name=name or email.split("@")[0],
                    password_hash=password_hash,
                    email_verified=True,
                )
            )
        except DuplicateKeyError:
            console.print(f"[red]Error:[/red] User {email} already exists")
            raise typer.Exit(1) from None

        console.print(f"[green]Created user:[/green] {user.email} ({user.id})")

    asyncio.run(_create())


def _set_status(email: str, status: UserStatus) -> None:
    async def _update():
        users = get_repositories(get_settings()).users
        user = await users.find_by_email(email.lower())
        if not user:
            console.print(f"[red]Error:[/red] User {email} not found")
            raise typer.Exit(1)

        if user.status == status.value:
            console.print(f"[yellow]Warning:[/yellow] User {email} is already {status.value}")
            return

        await users.update(user.id, status=status.value)
        console.print(f"[green]User {email} is now {status.value}[/green]")

    asyncio.run(_update())


@app.command("suspend")
def suspend(email: str = typer.Argument(..., help="User email")):
    """Block a user from signing in."""
    _set_status(email, UserStatus.SUSPENDED)


@app.command("activate")
def activate(email: str = typer.Argument(..., help="User email")):
    """Allow a suspended or inactive user to sign in again."""
    _set_status(email, UserStatus.ACTIVE)
