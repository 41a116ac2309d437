"""Tests for the Typer CLI."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from authcore import __version__
from authcore.cli import app
from authcore.models import LoginLog, LoginStatus, User, VerificationCode
from authcore.repositories import Repositories, build_memory_repositories

runner = CliRunner()


@pytest.fixture
def cli_repos():
    """Share one in-memory repository set across CLI invocations."""
    repos = build_memory_repositories()
    targets = [
        "authcore.cli.users.get_repositories",
        "authcore.cli.codes.get_repositories",
        "authcore.cli.logins.get_repositories",
    ]
    patchers = [patch(target, return_value=repos) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield repos
    for patcher in patchers:
        patcher.stop()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_migrate_runs_alembic_upgrade():
    with (
        patch("authcore.cli.db.get_settings") as mock_settings,
        patch("authcore.cli.db.run_alembic", return_value=0) as mock_alembic,
    ):
        mock_settings.return_value.datastore_backend = "sql"
        result = runner.invoke(app, ["db", "migrate"])

    assert result.exit_code == 0
    mock_alembic.assert_called_once_with("upgrade", "head")


def test_migrate_failure_exits_nonzero():
    with (
        patch("authcore.cli.db.get_settings") as mock_settings,
        patch("authcore.cli.db.run_alembic", return_value=1),
    ):
        mock_settings.return_value.datastore_backend = "sql"
        result = runner.invoke(app, ["db", "migrate"])

    assert result.exit_code == 1
    assert "Migration failed" in result.output


def test_migrate_refuses_memory_backend():
    with patch("authcore.cli.db.run_alembic") as mock_alembic:
        result = runner.invoke(app, ["db", "migrate"])

    assert result.exit_code == 1
    mock_alembic.assert_not_called()


def test_create_and_list_users(cli_repos: Repositories):
    result = runner.invoke(app, ["users", "create", "Admin@Example.com", "--name", "Admin"])
    assert result.exit_code == 0
    assert "admin@example.com" in result.output

    user = asyncio.run(cli_repos.users.find_by_email("admin@example.com"))
    assert user is not None
    assert user.email_verified is True
    assert user.password_hash is None

    result = runner.invoke(app, ["users", "list"])
    assert result.exit_code == 0
    assert "Admin" in result.output


def test_create_duplicate_user(cli_repos: Repositories):
    runner.invoke(app, ["users", "create", "dup@example.com"])

    result = runner.invoke(app, ["users", "create", "dup@example.com"])

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_suspend_and_activate(cli_repos: Repositories):
    runner.invoke(app, ["users", "create", "toggle@example.com"])

    result = runner.invoke(app, ["users", "suspend", "toggle@example.com"])
    assert result.exit_code == 0
    user = asyncio.run(cli_repos.users.find_by_email("toggle@example.com"))
    assert user.status == "suspended"

    result = runner.invoke(app, ["users", "activate", "toggle@example.com"])
    assert result.exit_code == 0
    user = asyncio.run(cli_repos.users.find_by_email("toggle@example.com"))
    assert user.status == "active"


def test_suspend_unknown_user(cli_repos: Repositories):
    result = runner.invoke(app, ["users", "suspend", "ghost@example.com"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_purge_codes(cli_repos: Repositories):
    now = datetime.now(UTC)
    asyncio.run(
        cli_repos.codes.create(
            VerificationCode(
                email="old@example.com",
                code="111111",
                purpose="login",
                expires_at=now - timedelta(days=30),
            )
        )
    )
    asyncio.run(
        cli_repos.codes.create(
            VerificationCode(
                email="new@example.com",
                code="222222",
                purpose="login",
                expires_at=now + timedelta(minutes=10),
            )
        )
    )

    result = runner.invoke(app, ["codes", "purge", "--days", "7"])

    assert result.exit_code == 0
    assert "Removed 1 code(s)" in result.output
    assert asyncio.run(cli_repos.codes.find_latest("new@example.com", "login")) is not None


def test_login_history(cli_repos: Repositories):
    user = asyncio.run(cli_repos.users.create(User(email="seen@example.com", name="Seen")))
    asyncio.run(
        cli_repos.logins.append(
            LoginLog(
                user_id=user.id,
                email=user.email,
                login_method="password",
                status=LoginStatus.FAILED.value,
                failure_reason="invalid_password",
            )
        )
    )

    result = runner.invoke(app, ["logins", "history", "seen@example.com"])

    assert result.exit_code == 0
    assert "failed" in result.output
