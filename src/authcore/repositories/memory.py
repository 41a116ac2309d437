"""In-process repositories.

Suitable for local development and tests. Each call yields to the event
loop once before touching state, so concurrent flows interleave at the same
points they would against a networked datastore. Between those points every
method runs without suspending, which makes the conditional updates atomic.
"""

import asyncio
from datetime import datetime
from typing import Any

from authcore.clock import Clock, utcnow
from authcore.models import LoginLog, LoginStatus, User, UserStatus, VerificationCode
from authcore.repositories.base import (
    AttemptClaim,
    DuplicateKeyError,
    FailureWindow,
    LoginLogRepository,
    RedeemResult,
    Repositories,
    UserRepository,
    VerificationCodeRepository,
)


async def _io() -> None:
    await asyncio.sleep(0)


class InMemoryVerificationCodeRepository(VerificationCodeRepository):
    def __init__(self) -> None:
        self.rows: list[VerificationCode] = []

    def _by_id(self, code_id: str) -> VerificationCode | None:
        return next((row for row in self.rows if row.id == code_id), None)

    async def create(self, code: VerificationCode) -> VerificationCode:
        await _io()
        self.rows.append(code)
        return code

    async def find_active(
        self, email: str, purpose: str, now: datetime
    ) -> VerificationCode | None:
        await _io()
        candidates = [
            row
            for row in self.rows
            if row.email == email
            and row.purpose == purpose
            and not row.is_used
            and row.expires_at > now
        ]
        # Stable sort: equal timestamps keep insertion order, so the last row is newest
        candidates.sort(key=lambda row: row.created_at)
        return candidates[-1] if candidates else None

    async def find_latest(self, email: str, purpose: str) -> VerificationCode | None:
        await _io()
        candidates = [row for row in self.rows if row.email == email and row.purpose == purpose]
        candidates.sort(key=lambda row: row.created_at)
        return candidates[-1] if candidates else None

    async def claim_attempt(self, code_id: str, max_attempts: int) -> AttemptClaim:
        await _io()
        row = self._by_id(code_id)
        if row is None or row.attempts >= max_attempts:
            return AttemptClaim.EXHAUSTED
        row.attempts += 1
        return AttemptClaim.CLAIMED

    async def mark_used_if_unused(self, code_id: str, used_at: datetime) -> RedeemResult:
        await _io()
        row = self._by_id(code_id)
        if row is None or row.is_used:
            return RedeemResult.ALREADY_REDEEMED
        row.is_used = True
        row.used_at = used_at
        return RedeemResult.REDEEMED

    async def purge_expired(self, before: datetime) -> int:
        await _io()
        kept = [row for row in self.rows if row.expires_at >= before]
        removed = len(self.rows) - len(kept)
        self.rows = kept
        return removed


class InMemoryUserRepository(UserRepository):
    def __init__(self, clock: Clock = utcnow) -> None:
        self.rows: dict[str, User] = {}
        self.clock = clock

    def _email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        return any(
            user.email == email
            and user.status != UserStatus.DELETED.value
            and user.id != exclude_id
            for user in self.rows.values()
        )

    async def find_by_id(self, user_id: str) -> User | None:
        await _io()
        return self.rows.get(user_id)

    async def find_by_email(self, email: str) -> User | None:
        await _io()
        return next(
            (
                user
                for user in self.rows.values()
                if user.email == email and user.status != UserStatus.DELETED.value
            ),
            None,
        )

    async def create(self, user: User) -> User:
        await _io()
        if user.id in self.rows:
            raise DuplicateKeyError(f"duplicate key users.id={user.id}")
        if user.status != UserStatus.DELETED.value and self._email_taken(user.email):
            raise DuplicateKeyError(f"duplicate key users.email={user.email}")
        self.rows[user.id] = user
        return user

    async def update(self, user_id: str, **changes: Any) -> User | None:
        await _io()
        user = self.rows.get(user_id)
        if user is None:
            return None
        email = changes.get("email", user.email)
        status = changes.get("status", user.status)
        if status != UserStatus.DELETED.value and self._email_taken(email, exclude_id=user_id):
            raise DuplicateKeyError(f"duplicate key users.email={email}")
        for key, value in changes.items():
            setattr(user, key, value)
        user.updated_at = self.clock()
        return user

    async def list_users(self, limit: int = 100) -> list[User]:
        await _io()
        return sorted(self.rows.values(), key=lambda user: user.email)[:limit]


class InMemoryLoginLogRepository(LoginLogRepository):
    def __init__(self) -> None:
        self.rows: list[LoginLog] = []

    async def append(self, entry: LoginLog) -> LoginLog:
        await _io()
        self.rows.append(entry)
        return entry

    async def failure_window(self, email: str, since: datetime) -> FailureWindow:
        await _io()
        times = [
            row.created_at
            for row in self.rows
            if row.email == email
            and row.status == LoginStatus.FAILED.value
            and row.created_at >= since
        ]
        return FailureWindow(count=len(times), oldest=min(times) if times else None)

    async def history(self, user_id: str, limit: int = 10) -> list[LoginLog]:
        await _io()
        rows = [row for row in self.rows if row.user_id == user_id]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return rows[:limit]


def build_memory_repositories(clock: Clock = utcnow) -> Repositories:
    """Build a fresh, empty in-memory repository set."""
    return Repositories(
        codes=InMemoryVerificationCodeRepository(),
        users=InMemoryUserRepository(clock=clock),
        logins=InMemoryLoginLogRepository(),
    )
