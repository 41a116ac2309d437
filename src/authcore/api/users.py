"""Profile endpoints for the signed-in user, plus public profiles of other users."""

from typing import Annotated

from fastapi import APIRouter, Query

from authcore.api.deps import AuthServiceDep, CurrentUser
from authcore.models import LoginLogRead, UserPublic, UserRead
from authcore.schemas import (
    AvatarResponse,
    ChangeEmailRequest,
    ChangePasswordRequest,
    SuccessResponse,
    UpdateAvatarRequest,
    UpdateProfileRequest,
)

router = APIRouter()


@router.get("/me", response_model=UserRead)
async def get_profile(user: CurrentUser, service: AuthServiceDep):
    profile = await service.get_profile(user.id)
    return UserRead.model_validate(profile)


@router.patch("/me", response_model=UserRead)
async def update_profile(request: UpdateProfileRequest, user: CurrentUser, service: AuthServiceDep):
    """Update profile fields. Omitted fields are left unchanged."""
    profile = await service.update_profile(user.id, **request.changes())
    return UserRead.model_validate(profile)


@router.put("/me/avatar", response_model=AvatarResponse)
async def update_avatar(request: UpdateAvatarRequest, user: CurrentUser, service: AuthServiceDep):
    await service.update_avatar(user.id, request.avatar_url)
    return AvatarResponse(avatar_url=request.avatar_url)


@router.post("/me/password", response_model=SuccessResponse)
async def change_password(
    request: ChangePasswordRequest, user: CurrentUser, service: AuthServiceDep
):
    await service.change_password(user.id, request.old_password, request.new_password)
    return SuccessResponse(message="Password changed")


@router.post("/me/email", response_model=UserRead)
async def change_email(request: ChangeEmailRequest, user: CurrentUser, service: AuthServiceDep):
    """Move the account to a new email. Requires a change_email code sent to the new address."""
    profile = await service.change_email(user.id, request.new_email, request.code)
    return UserRead.model_validate(profile)


@router.get("/me/logins", response_model=list[LoginLogRead])
async def login_history(
    user: CurrentUser,
    service: AuthServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
):
    """Most recent sign-in attempts, newest first."""
    entries = await service.login_history(user.id, limit=limit)
    return [LoginLogRead.model_validate(entry) for entry in entries]


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, user: CurrentUser, service: AuthServiceDep):
    """Public profile of any active user."""
    return await service.get_public_profile(user_id)
