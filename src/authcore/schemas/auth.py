"""Request and response bodies for the auth and profile endpoints."""

import re
from datetime import datetime
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    EmailStr,
    Field,
    HttpUrl,
    StringConstraints,
    TypeAdapter,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from authcore.models import UserRead, VerificationPurpose

# Emails are compared case-insensitively everywhere
Email = Annotated[EmailStr, AfterValidator(lambda value: value.lower())]
Code = Annotated[str, StringConstraints(pattern=r"^\d{6}$")]
Password = Annotated[str, Field(min_length=8, max_length=100)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
Bio = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
# Mainland China mobile number, or "" to clear it
Phone = Annotated[str, StringConstraints(pattern=r"^(1[3-9]\d{9})?$")]

_http_url = TypeAdapter(HttpUrl)


def check_http_url(value: str) -> str:
    try:
        _http_url.validate_python(value)
    except PydanticValidationError as e:
        raise ValueError("Must be an http or https URL") from e
    return value


AvatarUrl = Annotated[
    str,
    StringConstraints(strip_whitespace=True, max_length=500),
    AfterValidator(check_http_url),
]


def check_password_strength(value: str) -> str:
    """Require at least one lowercase letter, one uppercase letter and one digit."""
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a digit")
    return value


class SendCodeRequest(BaseModel):
    email: Email
    purpose: VerificationPurpose


class SendCodeResponse(BaseModel):
    message: str
    expires_at: datetime


class CodeLoginRequest(BaseModel):
    email: Email
    code: Code


class PasswordLoginRequest(BaseModel):
    email: Email
    password: Annotated[str, Field(min_length=1, max_length=100)]


class RegisterRequest(BaseModel):
    email: Email
    password: Password
    name: Name
    code: Code

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class ResetPasswordRequest(BaseModel):
    email: Email
    code: Code
    new_password: Password

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class AuthResponse(BaseModel):
    """A session token and the user it belongs to."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserRead


class UpdateProfileRequest(BaseModel):
    """Omitted fields are left unchanged. An empty ``bio`` or ``phone`` clears it."""

    name: Name | None = None
    bio: Bio | None = None
    phone: Phone | None = None

    def changes(self) -> dict[str, Any]:
        changes = self.model_dump(exclude_none=True)
        for key in ("bio", "phone"):
            if changes.get(key) == "":
                changes[key] = None
        return changes


class UpdateAvatarRequest(BaseModel):
    avatar_url: AvatarUrl


class AvatarResponse(BaseModel):
    avatar_url: str


class ChangePasswordRequest(BaseModel):
    old_password: Annotated[str, Field(min_length=1, max_length=100)]
    new_password: Password

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class ChangeEmailRequest(BaseModel):
    new_email: Email
    code: Code
