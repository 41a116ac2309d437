"""Repository interfaces for the three tables the auth core owns.

Each method is a single datastore round-trip. Implementations must make
``mark_used_if_unused`` and ``claim_attempt`` single conditional
updates, never a read followed by a write.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from authcore.models import LoginLog, User, VerificationCode


class RepositoryError(Exception):
    """Datastore operation failed."""

    pass


class DuplicateKeyError(RepositoryError):
    """Insert or update violated a uniqueness constraint."""

    pass


class RedeemResult(str, Enum):
    """Outcome of the conditional mark-used update."""

    REDEEMED = "redeemed"
    ALREADY_REDEEMED = "already_redeemed"


class AttemptClaim(str, Enum):
    """Outcome of the conditional attempts update."""

    CLAIMED = "claimed"
    EXHAUSTED = "exhausted"


@dataclass
class FailureWindow:
    """Failed logins for an email inside a trailing window."""

    count: int
    oldest: datetime | None


class VerificationCodeRepository(ABC):
    """Persistence for verification-code rows."""

    @abstractmethod
    async def create(self, code: VerificationCode) -> VerificationCode:
        pass

    @abstractmethod
    async def find_active(
        self, email: str, purpose: str, now: datetime
    ) -> VerificationCode | None:
        """Newest unused, unexpired code for (email, purpose)."""
        pass

    @abstractmethod
    async def find_latest(self, email: str, purpose: str) -> VerificationCode | None:
        """Newest code for (email, purpose) regardless of state."""
        pass

    @abstractmethod
    async def claim_attempt(self, code_id: str, max_attempts: int) -> AttemptClaim:
        """Take one guess slot: ``attempts += 1`` only while ``attempts < max_attempts``."""
        pass

    @abstractmethod
    async def mark_used_if_unused(self, code_id: str, used_at: datetime) -> RedeemResult:
        pass

    @abstractmethod
    async def purge_expired(self, before: datetime) -> int:
        """Delete codes that expired before ``before``. Returns rows removed."""
        pass


class UserRepository(ABC):
    """Persistence for local user records."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None:
        """Find the non-deleted user owning ``email``."""
        pass

    @abstractmethod
    async def create(self, user: User) -> User:
        """Insert a user. Raises DuplicateKeyError on id or email conflict."""
        pass

    @abstractmethod
    async def update(self, user_id: str, **changes: Any) -> User | None:
        """Apply column changes. Raises DuplicateKeyError on email conflict."""
        pass

    @abstractmethod
    async def list_users(self, limit: int = 100) -> list[User]:
        pass


class LoginLogRepository(ABC):
    """Append-only persistence for login attempts."""

    @abstractmethod
    async def append(self, entry: LoginLog) -> LoginLog:
        pass

    @abstractmethod
    async def failure_window(self, email: str, since: datetime) -> FailureWindow:
        pass

    @abstractmethod
    async def history(self, user_id: str, limit: int = 10) -> list[LoginLog]:
        """Most recent entries for a user, newest first."""
        pass


@dataclass
class Repositories:
    """The repository set a service graph is built from."""

    codes: VerificationCodeRepository
    users: UserRepository
    logins: LoginLogRepository
