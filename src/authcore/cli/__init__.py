"""CLI commands using Typer."""

import typer

from authcore.cli.codes import app as codes_app
from authcore.cli.db import app as db_app
from authcore.cli.logins import app as logins_app
from authcore.cli.users import app as users_app

app = typer.Typer(name="authcore", help="Authcore CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")
app.add_typer(codes_app, name="codes")
app.add_typer(logins_app, name="logins")


@app.command()
def version():
    """Show version information."""
    from authcore import __version__

    typer.echo(f"Authcore v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from authcore.config import get_settings
    from authcore.logging import get_uvicorn_log_config

    uvicorn.run(
        "authcore.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(get_settings()),
    )


if __name__ == "__main__":
    app()
