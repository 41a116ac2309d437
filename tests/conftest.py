"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATASTORE_BACKEND"] = "memory"

import pytest
from httpx import ASGITransport, AsyncClient

from authcore.api.deps import get_auth_service
from authcore.config import Settings
from authcore.main import create_app
from authcore.models import User
from authcore.repositories import Repositories, build_memory_repositories
from authcore.services.factory import build_auth_service
from authcore.services.orchestrator import AuthOrchestrator
from authcore.services.passwords import PasswordHasher

TEST_SECRET = "test-secret-key-that-is-at-least-32-bytes-long"
TEST_PASSWORD = "Correct-Horse-9"


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingDispatcher:
    """Dispatcher that keeps sent codes in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.succeed = True

    async def send(self, to: str, purpose: str, code: str) -> bool:
        self.sent.append((to, purpose, code))
        return self.succeed

    def last_code(self, to: str | None = None) -> str:
        for recipient, _purpose, code in reversed(self.sent):
            if to is None or recipient == to:
                return code
        raise AssertionError(f"no code sent to {to}")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def repos(clock: FrozenClock) -> Repositories:
    return build_memory_repositories(clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        datastore_backend="memory",
        session_secret=TEST_SECRET,
        bcrypt_rounds=4,
        email_backend="console",
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def service(
    settings: Settings,
    repos: Repositories,
    clock: FrozenClock,
    dispatcher: RecordingDispatcher,
) -> AuthOrchestrator:
    """Fully wired orchestrator over in-memory repositories."""
    return build_auth_service(settings, repositories=repos, clock=clock, dispatcher=dispatcher)


@pytest.fixture
async def user(repos: Repositories, hasher: PasswordHasher) -> User:
    """Create an active user with a password."""
    return await repos.users.create(
        User(
            email="test@example.com",
            name="Test User",
            password_hash=await hasher.hash(TEST_PASSWORD),
            email_verified=True,
        )
    )


@pytest.fixture
def user_token(service: AuthOrchestrator, user: User) -> str:
    """Create a session token for the test user."""
    return service.sessions.issue(user).token


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
async def client(
    settings: Settings, service: AuthOrchestrator
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client bound to the in-memory service."""
    app = create_app(settings)
    app.dependency_overrides[get_auth_service] = lambda: service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.patch(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.put(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)
