"""Authentication endpoints."""

from fastapi import APIRouter, status

from authcore.api.deps import AuthServiceDep, BearerToken, ClientInfoDep, CurrentUser
from authcore.models import UserRead
from authcore.schemas import (
    AuthResponse,
    CodeLoginRequest,
    PasswordLoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SendCodeRequest,
    SendCodeResponse,
    SuccessResponse,
)
from authcore.services.orchestrator import LoginResult

router = APIRouter()


def _auth_response(result: LoginResult) -> AuthResponse:
    return AuthResponse(
        token=result.token,
        expires_at=result.session.expires_at,
        user=UserRead.model_validate(result.user),
    )


@router.post("/send-code", response_model=SendCodeResponse)
async def send_code(request: SendCodeRequest, service: AuthServiceDep, client: ClientInfoDep):
    """
    Send a one-time verification code.

    Limited to one code per email and purpose every 60 seconds.
    """
    sent = await service.send_code(request.email, request.purpose.value, client=client)
    return SendCodeResponse(message="Verification code sent", expires_at=sent.expires_at)


@router.post("/login/code", response_model=AuthResponse)
async def login_with_code(request: CodeLoginRequest, service: AuthServiceDep, client: ClientInfoDep):
    """Sign in with an emailed code, creating the account on first use."""
    result = await service.login_with_code(request.email, request.code, client=client)
    return _auth_response(result)


@router.post("/login/password", response_model=AuthResponse)
async def login_with_password(
    request: PasswordLoginRequest, service: AuthServiceDep, client: ClientInfoDep
):
    result = await service.login_with_password(request.email, request.password, client=client)
    return _auth_response(result)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, service: AuthServiceDep, client: ClientInfoDep):
    """Create a password account. Requires a code sent with purpose=register."""
    result = await service.register(
        request.email, request.password, request.name, request.code, client=client
    )
    return _auth_response(result)


@router.post("/logout", response_model=SuccessResponse)
async def logout(service: AuthServiceDep, token: BearerToken):
    """
    Logout endpoint.

    Since we use stateless JWT, this is mostly for client-side token clearing.
    """
    await service.logout(token)
    return SuccessResponse(message="Logged out successfully")


@router.post("/refresh", response_model=AuthResponse)
async def refresh(service: AuthServiceDep, token: BearerToken):
    """Exchange a valid token for a fresh one."""
    result = await service.refresh(token)
    return _auth_response(result)


@router.post("/reset-password", response_model=SuccessResponse)
async def reset_password(request: ResetPasswordRequest, service: AuthServiceDep):
    await service.reset_password(request.email, request.code, request.new_password)
    return SuccessResponse(message="Password has been reset")


@router.get("/me", response_model=UserRead)
async def get_current_user_info(user: CurrentUser):
    """Get current authenticated user info."""
    return UserRead.model_validate(user)
