"""Typed repositories for users, verification codes and login logs."""

from authcore.repositories.base import (
    AttemptClaim,
    DuplicateKeyError,
    FailureWindow,
    LoginLogRepository,
    RedeemResult,
    Repositories,
    RepositoryError,
    UserRepository,
    VerificationCodeRepository,
)
from authcore.repositories.memory import build_memory_repositories
from authcore.repositories.sql import build_sql_repositories

__all__ = [
    "AttemptClaim",
    "DuplicateKeyError",
    "FailureWindow",
    "LoginLogRepository",
    "RedeemResult",
    "Repositories",
    "RepositoryError",
    "UserRepository",
    "VerificationCodeRepository",
    "build_memory_repositories",
    "build_sql_repositories",
]
