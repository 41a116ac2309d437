"""Rate limiter tests."""

from datetime import timedelta

import pytest

from authcore.models import LoginLog, LoginMethod, LoginStatus, VerificationCode
from authcore.repositories import Repositories
from authcore.services.rate_limit import (
    TOO_MANY_FAILED_LOGINS,
    RateLimitDecision,
    RateLimiter,
    rate_limit_headers,
)


@pytest.fixture
def limiter(repos: Repositories, clock) -> RateLimiter:
    return RateLimiter(repos.codes, repos.logins, clock=clock)


async def add_code(repos: Repositories, clock, email: str = "a@x.com", purpose: str = "login"):
    await repos.codes.create(
        VerificationCode(
            email=email,
            code="123456",
            purpose=purpose,
            created_at=clock(),
            expires_at=clock() + timedelta(minutes=10),
        )
    )


async def add_login(repos: Repositories, clock, status: LoginStatus, email: str = "bob@x.com"):
    await repos.logins.append(
        LoginLog(
            email=email,
            login_method=LoginMethod.PASSWORD.value,
            status=status.value,
            created_at=clock(),
        )
    )


class TestSendRate:
    @pytest.mark.asyncio
    async def test_first_send_allowed(self, limiter):
        decision = await limiter.check_send_rate("a@x.com", "login")
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_second_send_within_interval_denied(self, limiter, repos, clock):
        await add_code(repos, clock)
        clock.advance(seconds=15.5)

        decision = await limiter.check_send_rate("a@x.com", "login")

        assert not decision.allowed
        # Ceiling of the 44.5 seconds left
        assert decision.retry_after_seconds == 45

    @pytest.mark.asyncio
    async def test_send_allowed_after_interval(self, limiter, repos, clock):
        await add_code(repos, clock)
        clock.advance(seconds=60)

        assert (await limiter.check_send_rate("a@x.com", "login")).allowed

    @pytest.mark.asyncio
    async def test_interval_is_per_purpose_and_email(self, limiter, repos, clock):
        await add_code(repos, clock, purpose="login")

        assert (await limiter.check_send_rate("a@x.com", "register")).allowed
        assert (await limiter.check_send_rate("b@x.com", "login")).allowed


class TestLoginAttempts:
    @pytest.mark.asyncio
    async def test_allows_below_limit(self, limiter, repos, clock):
        for _ in range(4):
            await add_login(repos, clock, LoginStatus.FAILED)

        decision = await limiter.check_login_attempts("bob@x.com")

        assert decision.allowed
        assert decision.remaining == 1

    @pytest.mark.asyncio
    async def test_locks_at_limit(self, limiter, repos, clock):
        start = clock()
        for _ in range(5):
            await add_login(repos, clock, LoginStatus.FAILED)
            clock.advance(minutes=1)

        decision = await limiter.check_login_attempts("bob@x.com")

        assert not decision.allowed
        assert decision.reason == TOO_MANY_FAILED_LOGINS
        # Oldest failure leaves the window 60 minutes after it happened
        expected = (start + timedelta(minutes=60) - clock()).total_seconds()
        assert decision.retry_after_seconds == int(expected)

    @pytest.mark.asyncio
    async def test_lock_clears_when_window_passes(self, limiter, repos, clock):
        for _ in range(5):
            await add_login(repos, clock, LoginStatus.FAILED)

        clock.advance(minutes=61)

        assert (await limiter.check_login_attempts("bob@x.com")).allowed

    @pytest.mark.asyncio
    async def test_successes_and_blocks_are_not_counted(self, limiter, repos, clock):
        for _ in range(3):
            await add_login(repos, clock, LoginStatus.FAILED)
        for _ in range(5):
            await add_login(repos, clock, LoginStatus.SUCCESS)
            await add_login(repos, clock, LoginStatus.BLOCKED)

        assert (await limiter.check_login_attempts("bob@x.com")).allowed

    @pytest.mark.asyncio
    async def test_other_emails_are_not_counted(self, limiter, repos, clock):
        for _ in range(5):
            await add_login(repos, clock, LoginStatus.FAILED, email="eve@x.com")

        assert (await limiter.check_login_attempts("bob@x.com")).allowed


def test_rate_limit_headers_for_denial():
    decision = RateLimitDecision.deny("x", timedelta(seconds=12.2), limit=5)

    headers = rate_limit_headers(decision, now_ts=1000)

    assert headers == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "0",
        "Retry-After": "13",
        "X-RateLimit-Reset": "1013",
    }


def test_rate_limit_headers_for_allowance():
    headers = rate_limit_headers(RateLimitDecision.allow(limit=5, remaining=3))

    assert headers == {"X-RateLimit-Limit": "5", "X-RateLimit-Remaining": "3"}
