"""Login audit log model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from authcore.models.base import CreatedAtMixin, generate_nanoid


class LoginMethod(str, Enum):
    """How a login was attempted."""

    PASSWORD = "password"
    VERIFICATION_CODE = "verification_code"
    OAUTH = "oauth"
    SSO = "sso"


class LoginStatus(str, Enum):
    """Outcome of a login attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"


class LoginLog(CreatedAtMixin, SQLModel, table=True):
    """Append-only record of a login attempt."""

    __tablename__ = "login_logs"
    __table_args__ = (
        Index("ix_login_logs_email_status_created", "email", "status", "created_at"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    user_id: str | None = Field(
        default=None,
        foreign_key="users.id",
        ondelete="SET NULL",
        index=True,
        max_length=64,
    )
    email: str = Field(max_length=255)
    login_method: str = Field(max_length=20)
    status: str = Field(max_length=20)
    failure_reason: str | None = Field(default=None, max_length=255)
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=512)


class LoginLogRead(SQLModel):
    """Schema for reading a login log entry."""

    id: str
    login_method: str
    status: str
    failure_reason: str | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
