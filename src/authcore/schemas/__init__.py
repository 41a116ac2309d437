"""Pydantic schemas for API requests/responses."""

from authcore.schemas.auth import (
    AuthResponse,
    AvatarResponse,
    ChangeEmailRequest,
    ChangePasswordRequest,
    CodeLoginRequest,
    PasswordLoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SendCodeRequest,
    SendCodeResponse,
    UpdateAvatarRequest,
    UpdateProfileRequest,
)
from authcore.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "AuthResponse",
    "AvatarResponse",
    "ChangeEmailRequest",
    "ChangePasswordRequest",
    "CodeLoginRequest",
    "ErrorResponse",
    "PasswordLoginRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SendCodeRequest",
    "SendCodeResponse",
    "SuccessResponse",
    "UpdateAvatarRequest",
    "UpdateProfileRequest",
]
