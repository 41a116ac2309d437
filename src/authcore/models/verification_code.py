"""Verification code model for one-time codes."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from authcore.models.base import CreatedAtMixin, generate_nanoid

CODE_LENGTH = 6


class VerificationPurpose(str, Enum):
    """What an issued code may be redeemed for."""

    LOGIN = "login"
    REGISTER = "register"
    RESET_PASSWORD = "reset_password"
    CHANGE_EMAIL = "change_email"
    VERIFY_EMAIL = "verify_email"


class VerificationCode(CreatedAtMixin, SQLModel, table=True):
    """One issued one-time code, scoped to an email and a purpose."""

    __tablename__ = "verification_codes"
    __table_args__ = (
        Index("ix_verification_codes_lookup", "email", "purpose", "created_at"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(max_length=255)
    code: str = Field(max_length=CODE_LENGTH)
    purpose: str = Field(max_length=32)
    user_id: str | None = Field(default=None, foreign_key="users.id", index=True, max_length=64)
    is_used: bool = Field(default=False)
    attempts: int = Field(default=0)
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Code expiration time",
    )
    used_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=512)
