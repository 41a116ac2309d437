"""Send-frequency and failed-login rate limits.

Limits are derived from stored history (verification codes and login logs)
instead of a separate counter, so they hold across every worker process.
The checks are not atomic with the writes they count: two concurrent
requests can both pass before either lands. That is accepted; an extra code
or login attempt is cheap compared with distributed locking.
"""

import logging
import math
from dataclasses import dataclass
from datetime import timedelta

from authcore.clock import Clock, utcnow
from authcore.repositories import LoginLogRepository, VerificationCodeRepository

TOO_FREQUENT = "send_too_frequent"
TOO_MANY_FAILED_LOGINS = "too_many_failed_logins"


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check."""

    allowed: bool
    retry_after_seconds: int = 0
    reason: str | None = None
    limit: int | None = None
    remaining: int | None = None

    @classmethod
    def allow(cls, limit: int | None = None, remaining: int | None = None) -> "RateLimitDecision":
        return cls(allowed=True, limit=limit, remaining=remaining)

    @classmethod
    def deny(cls, reason: str, retry_after: timedelta, limit: int | None = None) -> "RateLimitDecision":
        seconds = max(1, math.ceil(retry_after.total_seconds()))
        return cls(
            allowed=False,
            retry_after_seconds=seconds,
            reason=reason,
            limit=limit,
            remaining=0,
        )


class RateLimiter:
    """Computes send and login windows from persisted history."""

    def __init__(
        self,
        codes: VerificationCodeRepository,
        logins: LoginLogRepository,
        clock: Clock = utcnow,
        send_interval: timedelta = timedelta(seconds=60),
        login_failure_limit: int = 5,
        login_failure_window: timedelta = timedelta(minutes=60),
        logger: logging.Logger | None = None,
    ):
        self.codes = codes
        self.logins = logins
        self.clock = clock
        self.send_interval = send_interval
        self.login_failure_limit = login_failure_limit
        self.login_failure_window = login_failure_window
        self.logger = logger or logging.getLogger(__name__)

    async def check_send_rate(self, email: str, purpose: str) -> RateLimitDecision:
        """Deny if a code for (email, purpose) was created within the send interval."""
        latest = await self.codes.find_latest(email, purpose)
        if latest is None:
            return RateLimitDecision.allow()

        now = self.clock()
        next_allowed = latest.created_at + self.send_interval
        if now < next_allowed:
            decision = RateLimitDecision.deny(TOO_FREQUENT, next_allowed - now, limit=1)
            self.logger.info(
                f"Send rate limited for {email} ({purpose}), retry in {decision.retry_after_seconds}s"
            )
            return decision
        return RateLimitDecision.allow()

    async def check_login_attempts(self, email: str) -> RateLimitDecision:
        """Deny while the trailing window holds too many failed logins.

        This is a transient lockout: nothing is persisted, it clears itself
        as old failures slide out of the window. The in-flight attempt is not
        part of the count because it is logged only after it completes.
        """
        now = self.clock()
        window = await self.logins.failure_window(email, since=now - self.login_failure_window)
        remaining = max(0, self.login_failure_limit - window.count)
        if window.count < self.login_failure_limit:
            return RateLimitDecision.allow(limit=self.login_failure_limit, remaining=remaining)

        oldest = window.oldest or now
        retry_after = oldest + self.login_failure_window - now
        self.logger.warning(
            f"Login locked for {email}: {window.count} failures in the last "
            f"{int(self.login_failure_window.total_seconds() // 60)} minutes"
        )
        return RateLimitDecision.deny(
            TOO_MANY_FAILED_LOGINS, retry_after, limit=self.login_failure_limit
        )


def rate_limit_headers(decision: RateLimitDecision, now_ts: int | None = None) -> dict[str, str]:
    """Generate rate limit headers for a response.

    Args:
        decision: Rate limit check result
        now_ts: Current unix time, used to compute the reset timestamp

    Returns:
        Dictionary of headers to add to response
    """
    headers: dict[str, str] = {}
    if decision.limit is not None:
        headers["X-RateLimit-Limit"] = str(decision.limit)
    if decision.remaining is not None:
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after_seconds)
        if now_ts is not None:
            headers["X-RateLimit-Reset"] = str(now_ts + decision.retry_after_seconds)
    return headers
