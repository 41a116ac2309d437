"""FastAPI dependencies for dependency injection."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.config import Settings, get_settings
from authcore.errors import AuthError, ErrorCode
from authcore.models import User
from authcore.services.factory import build_auth_service
from authcore.services.orchestrator import AuthOrchestrator
from authcore.services.verification import ClientInfo


SettingsDep = Annotated[Settings, Depends(get_settings)]

# Security scheme
security = HTTPBearer(auto_error=False)


@lru_cache
def get_auth_service() -> AuthOrchestrator:
    """One orchestrator per process, built from settings."""
    return build_auth_service(get_settings())


AuthServiceDep = Annotated[AuthOrchestrator, Depends(get_auth_service)]


def get_client_ip(request: Request) -> str | None:
    """Extract client IP, preferring headers set by proxies and load balancers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # x-forwarded-for can be a comma-separated list, take the first IP
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host
    return None


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


ClientInfoDep = Annotated[ClientInfo, Depends(get_client_info)]


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract the bearer token or raise 401."""
    if not credentials:
        raise AuthError(ErrorCode.AUTH_UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})
    return credentials.credentials


BearerToken = Annotated[str, Depends(get_bearer_token)]


async def get_current_user(service: AuthServiceDep, token: BearerToken) -> User:
    """Get current authenticated user or raise 401/403."""
    return await service.authenticate(token)


# Type aliases for common dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
