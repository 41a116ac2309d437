"""SQLModel database models."""

from authcore.models.base import CreatedAtMixin, TimestampMixin, generate_nanoid
from authcore.models.login_log import LoginLog, LoginLogRead, LoginMethod, LoginStatus
from authcore.models.user import User, UserPublic, UserRead, UserStatus
from authcore.models.verification_code import CODE_LENGTH, VerificationCode, VerificationPurpose

__all__ = [
    "CODE_LENGTH",
    "CreatedAtMixin",
    "LoginLog",
    "LoginLogRead",
    "LoginMethod",
    "LoginStatus",
    "TimestampMixin",
    "User",
    "UserPublic",
    "UserRead",
    "UserStatus",
    "VerificationCode",
    "VerificationPurpose",
    "generate_nanoid",
]
