"""SQLModel-backed repositories.

Every method opens its own short-lived session and commits before
returning, so a failure in one step of a flow never rolls back a step that
already happened (for example a redeemed code).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

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


class SQLVerificationCodeRepository(VerificationCodeRepository):
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def create(self, code: VerificationCode) -> VerificationCode:
        async with self._sessions() as session:
            session.add(code)
            await session.commit()
            return code

    async def find_active(
        self, email: str, purpose: str, now: datetime
    ) -> VerificationCode | None:
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.email == email,
                VerificationCode.purpose == purpose,
                VerificationCode.is_used == False,  # noqa: E712
                VerificationCode.expires_at > now,
            )
            .order_by(VerificationCode.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def find_latest(self, email: str, purpose: str) -> VerificationCode | None:
        stmt = (
            select(VerificationCode)
            .where(VerificationCode.email == email, VerificationCode.purpose == purpose)
            .order_by(VerificationCode.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def claim_attempt(self, code_id: str, max_attempts: int) -> AttemptClaim:
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,  # type: ignore[arg-type]
                VerificationCode.attempts < max_attempts,  # type: ignore[operator]
            )
            .values(attempts=VerificationCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
        return AttemptClaim.CLAIMED if result.rowcount == 1 else AttemptClaim.EXHAUSTED  # type: ignore[attr-defined]

    async def mark_used_if_unused(self, code_id: str, used_at: datetime) -> RedeemResult:
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,  # type: ignore[arg-type]
                VerificationCode.is_used == False,  # noqa: E712
            )
            .values(is_used=True, used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
        return RedeemResult.REDEEMED if result.rowcount == 1 else RedeemResult.ALREADY_REDEEMED  # type: ignore[attr-defined]

    async def purge_expired(self, before: datetime) -> int:
        stmt = delete(VerificationCode).where(VerificationCode.expires_at < before)  # type: ignore[arg-type]
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount or 0  # type: ignore[attr-defined]


class SQLUserRepository(UserRepository):
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def find_by_id(self, user_id: str) -> User | None:
        async with self._sessions() as session:
            return await session.get(User, user_id)

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email, User.status != UserStatus.DELETED.value)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create(self, user: User) -> User:
        async with self._sessions() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(str(e.orig)) from e
            return user

    async def update(self, user_id: str, **changes: Any) -> User | None:
        async with self._sessions() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            for key, value in changes.items():
                setattr(user, key, value)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateKeyError(str(e.orig)) from e
            await session.refresh(user)
            return user

    async def list_users(self, limit: int = 100) -> list[User]:
        stmt = select(User).order_by(User.email).limit(limit)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


class SQLLoginLogRepository(LoginLogRepository):
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def append(self, entry: LoginLog) -> LoginLog:
        async with self._sessions() as session:
            session.add(entry)
            await session.commit()
            return entry

    async def failure_window(self, email: str, since: datetime) -> FailureWindow:
        stmt = select(func.count(), func.min(LoginLog.created_at)).where(
            LoginLog.email == email,
            LoginLog.status == LoginStatus.FAILED.value,
            LoginLog.created_at >= since,
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            count, oldest = result.one()
        return FailureWindow(count=count or 0, oldest=oldest)

    async def history(self, user_id: str, limit: int = 10) -> list[LoginLog]:
        stmt = (
            select(LoginLog)
            .where(LoginLog.user_id == user_id)
            .order_by(LoginLog.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


def build_sql_repositories(sessions: async_sessionmaker[AsyncSession]) -> Repositories:
    """Build the SQL repository set sharing one session factory."""
    return Repositories(
        codes=SQLVerificationCodeRepository(sessions),
        users=SQLUserRepository(sessions),
        logins=SQLLoginLogRepository(sessions),
    )
