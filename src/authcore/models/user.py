"""User model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel

from authcore.models.base import TimestampMixin, generate_nanoid


class UserStatus(str, Enum):
    """Lifecycle status of a local user."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class User(TimestampMixin, SQLModel, table=True):
    """Local identity record mirroring an externally-authenticated identity."""

    __tablename__ = "users"
    __table_args__ = (
        # Email is unique among rows that have not been soft-deleted
        Index(
            "uq_users_email_not_deleted",
            "email",
            unique=True,
            postgresql_where=text("status <> 'deleted'"),
        ),
    )

    # Shared with the identity provider's user id when provisioned from it
    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=64)
    email: str = Field(index=True, max_length=255)
    name: str = Field(max_length=255)
    avatar_url: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=20)
    password_hash: str | None = Field(default=None, max_length=255)
    status: str = Field(default=UserStatus.ACTIVE.value, max_length=20, index=True)
    email_verified: bool = Field(default=False)
    last_login_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value


class UserRead(SQLModel):
    """Schema for reading a user."""

    id: str
    email: str
    name: str
    avatar_url: str | None
    bio: str | None
    phone: str | None
    status: str
    email_verified: bool
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime


class UserPublic(SQLModel):
    """Fields of a user that any signed-in caller may see."""

    id: str
    name: str
    avatar_url: str | None
    bio: str | None
    created_at: datetime
