"""Authentication flows.

Every flow walks a small state machine::

    START -> RATE_CHECKED -> CODE_VALIDATED | PASSWORD_VERIFIED
          -> USER_RESOLVED -> SESSION_ISSUED -> LOGGED

A failure at any state jumps straight to LOGGED with a failure reason, after
a best-effort audit record, and no later step runs. Component outcomes come
back as values and are turned into ``AppError`` subclasses here.
"""

import functools
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ParamSpec, TypeVar

from authcore.clock import Clock, utcnow
from authcore.errors import (
    AppError,
    AuthError,
    ConflictError,
    ErrorCode,
    InternalError,
    InvalidCodeError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from authcore.models import (
    LoginLog,
    LoginMethod,
    LoginStatus,
    User,
    UserPublic,
    UserStatus,
    VerificationPurpose,
)
from authcore.repositories import DuplicateKeyError, UserRepository
from authcore.services.audit import LoginAuditLog
from authcore.services.identity import IdentityProvider
from authcore.services.passwords import PasswordHasher
from authcore.services.provisioning import UserProvisioner
from authcore.services.rate_limit import RateLimitDecision, RateLimiter, rate_limit_headers
from authcore.services.sessions import SessionIssuer, SessionToken
from authcore.services.verification import (
    ClientInfo,
    ValidationOutcome,
    ValidationStatus,
    VerificationCodeService,
)

P = ParamSpec("P")
R = TypeVar("R")

# Purposes whose code goes to an address that must already have an account
REQUIRES_EXISTING_USER = {
    VerificationPurpose.RESET_PASSWORD.value,
    VerificationPurpose.VERIFY_EMAIL.value,
}
# Purposes whose code goes to an address that must not have an account yet
REQUIRES_UNUSED_EMAIL = {
    VerificationPurpose.REGISTER.value,
    VerificationPurpose.CHANGE_EMAIL.value,
}


class AuthState(str, Enum):
    START = "start"
    RATE_CHECKED = "rate_checked"
    CODE_VALIDATED = "code_validated"
    PASSWORD_VERIFIED = "password_verified"
    USER_RESOLVED = "user_resolved"
    SESSION_ISSUED = "session_issued"
    LOGGED = "logged"


TRANSITIONS: dict[AuthState, set[AuthState]] = {
    AuthState.START: {AuthState.RATE_CHECKED, AuthState.CODE_VALIDATED, AuthState.LOGGED},
    AuthState.RATE_CHECKED: {
        AuthState.CODE_VALIDATED,
        AuthState.PASSWORD_VERIFIED,
        AuthState.LOGGED,
    },
    AuthState.CODE_VALIDATED: {AuthState.USER_RESOLVED, AuthState.LOGGED},
    AuthState.PASSWORD_VERIFIED: {
        AuthState.USER_RESOLVED,
        AuthState.SESSION_ISSUED,
        AuthState.LOGGED,
    },
    AuthState.USER_RESOLVED: {AuthState.SESSION_ISSUED, AuthState.LOGGED},
    AuthState.SESSION_ISSUED: {AuthState.LOGGED},
    AuthState.LOGGED: set(),
}


@dataclass
class FlowTrace:
    """States visited by one flow invocation."""

    flow: str
    states: list[AuthState] = field(default_factory=lambda: [AuthState.START])
    failure_reason: str | None = None

    @property
    def current(self) -> AuthState:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.current == AuthState.LOGGED and self.failure_reason is None

    def advance(self, state: AuthState) -> None:
        if state not in TRANSITIONS[self.current]:
            raise RuntimeError(f"{self.flow}: illegal transition {self.current.value} -> {state.value}")
        self.states.append(state)

    def fail(self, reason: str) -> None:
        self.failure_reason = reason
        self.advance(AuthState.LOGGED)


@dataclass(frozen=True)
class LoginResult:
    """A signed-in user and their session."""

    user: User
    session: SessionToken
    trace: FlowTrace | None = None

    @property
    def token(self) -> str:
        return self.session.token


@dataclass(frozen=True)
class CodeSent:
    """Acknowledgement of a dispatched code. The code itself is never returned."""

    email: str
    purpose: str
    expires_at: datetime
    trace: FlowTrace


def wrap_unexpected(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Let AppError through, log anything else and re-raise it as InternalError."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except AppError:
            raise
        except Exception as e:
            owner = args[0]
            owner_logger = getattr(owner, "logger", logging.getLogger(__name__))
            owner_logger.exception(f"Unexpected error in {func.__name__}")
            raise InternalError() from e

    return wrapper


def audit_unexpected(
    method: LoginMethod,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Record a failed login row when a sign-in flow dies on an unexpected error.

    The wrapped flow must take ``email`` and ``client`` arguments. AppError
    outcomes are audited by the flow itself and pass through untouched.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except AppError:
                raise
            except Exception:
                bound = signature.bind(*args, **kwargs)
                owner = bound.arguments["self"]
                client = bound.arguments.get("client") or ClientInfo()
                await owner.audit.record(
                    user_id=None,
                    email=bound.arguments["email"],
                    method=method.value,
                    status=LoginStatus.FAILED.value,
                    reason="internal_error",
                    ip_address=client.ip_address,
                    user_agent=client.user_agent,
                )
                raise

        return wrapper

    return decorator


class AuthOrchestrator:
    """Composes the auth components into the public flows."""

    def __init__(
        self,
        users: UserRepository,
        codes: VerificationCodeService,
        rate_limiter: RateLimiter,
        provisioner: UserProvisioner,
        sessions: SessionIssuer,
        audit: LoginAuditLog,
        identity: IdentityProvider,
        hasher: PasswordHasher,
        clock: Clock = utcnow,
        logger: logging.Logger | None = None,
    ):
        self.users = users
        self.codes = codes
        self.rate_limiter = rate_limiter
        self.provisioner = provisioner
        self.sessions = sessions
        self.audit = audit
        self.identity = identity
        self.hasher = hasher
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail(
        self,
        trace: FlowTrace,
        reason: str,
        email: str,
        method: LoginMethod,
        client: ClientInfo,
        user_id: str | None = None,
        status: LoginStatus = LoginStatus.FAILED,
    ) -> None:
        trace.fail(reason)
        await self.audit.record(
            user_id=user_id,
            email=email,
            method=method.value,
            status=status.value,
            reason=reason,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        self.logger.info(f"{trace.flow} failed for {email}: {reason}")

    def _rate_limit_headers(self, decision: RateLimitDecision) -> dict[str, str]:
        return rate_limit_headers(decision, now_ts=int(self.clock().timestamp()))

    @staticmethod
    def _code_error(outcome: ValidationOutcome) -> InvalidCodeError:
        if outcome.status == ValidationStatus.TOO_MANY_ATTEMPTS:
            return InvalidCodeError(ErrorCode.VERIFICATION_CODE_MAX_ATTEMPTS)
        return InvalidCodeError(details={"reason": outcome.reason})

    @staticmethod
    def _code_failure_reason(outcome: ValidationOutcome) -> str:
        if outcome.status == ValidationStatus.TOO_MANY_ATTEMPTS:
            return "code_max_attempts"
        return f"invalid_code:{outcome.reason}"

    async def _touch_login(self, user: User) -> User:
        updated = await self.users.update(user.id, last_login_at=self.clock())
        return updated or user

    async def _succeed(
        self,
        trace: FlowTrace,
        user: User,
        method: LoginMethod,
        client: ClientInfo,
    ) -> LoginResult:
        session = self.sessions.issue(user)
        trace.advance(AuthState.SESSION_ISSUED)
        await self.audit.record(
            user_id=user.id,
            email=user.email,
            method=method.value,
            status=LoginStatus.SUCCESS.value,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        trace.advance(AuthState.LOGGED)
        self.logger.info(f"{trace.flow} succeeded for user {user.id}")
        return LoginResult(user=user, session=session, trace=trace)

    async def _require_user(self, user_id: str) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None or user.status == UserStatus.DELETED.value:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        return user

    async def _ensure_email_unused(self, email: str) -> None:
        if await self.users.find_by_email(email) is not None:
            raise ConflictError(details={"email": email})

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    @wrap_unexpected
    async def send_code(
        self, email: str, purpose: str, client: ClientInfo | None = None
    ) -> CodeSent:
        """Rate-check, apply purpose rules, then issue and dispatch a code."""
        client = client or ClientInfo()
        trace = FlowTrace("send_code")

        decision = await self.rate_limiter.check_send_rate(email, purpose)
        if not decision.allowed:
            trace.fail(decision.reason or "rate_limited")
            raise RateLimitError(
                ErrorCode.VERIFICATION_CODE_TOO_FREQUENT,
                details={"retry_after": decision.retry_after_seconds},
                headers=self._rate_limit_headers(decision),
            )
        trace.advance(AuthState.RATE_CHECKED)

        user = await self.users.find_by_email(email)
        if purpose in REQUIRES_EXISTING_USER and user is None:
            trace.fail("user_not_found")
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        if purpose in REQUIRES_UNUSED_EMAIL and user is not None:
            trace.fail("email_taken")
            raise ConflictError(details={"email": email})

        try:
            issued = await self.codes.issue(
                email, purpose, user_id=user.id if user else None, client=client
            )
        except AppError:
            trace.fail("dispatch_failed")
            raise
        trace.advance(AuthState.LOGGED)
        return CodeSent(email=email, purpose=purpose, expires_at=issued.expires_at, trace=trace)

    @wrap_unexpected
    @audit_unexpected(LoginMethod.VERIFICATION_CODE)
    async def login_with_code(
        self, email: str, code: str, client: ClientInfo | None = None
    ) -> LoginResult:
        client = client or ClientInfo()
        trace = FlowTrace("login_code")
        method = LoginMethod.VERIFICATION_CODE

        decision = await self.rate_limiter.check_login_attempts(email)
        if not decision.allowed:
            await self._fail(
                trace, decision.reason or "locked", email, method, client, status=LoginStatus.BLOCKED
            )
            raise RateLimitError(
                ErrorCode.LOGIN_TOO_MANY_FAILURES,
                details={"retry_after": decision.retry_after_seconds},
                headers=self._rate_limit_headers(decision),
            )
        trace.advance(AuthState.RATE_CHECKED)

        outcome = await self.codes.validate(email, code, VerificationPurpose.LOGIN.value)
        if not outcome.is_valid:
            await self._fail(trace, self._code_failure_reason(outcome), email, method, client)
            raise self._code_error(outcome)
        trace.advance(AuthState.CODE_VALIDATED)

        identity = await self.identity.identify(email)
        provisioned = await self.provisioner.ensure(identity.id, identity.email, email_verified=True)
        if not provisioned.ok:
            await self._fail(trace, f"provisioning_{provisioned.status.value}", email, method, client)
        user = provisioned.require()

        if not user.is_active:
            await self._fail(trace, "account_disabled", email, method, client, user_id=user.id)
            raise AuthError(ErrorCode.AUTH_ACCOUNT_DISABLED)
        trace.advance(AuthState.USER_RESOLVED)

        user = await self._touch_login(user)
        return await self._succeed(trace, user, method, client)

    @wrap_unexpected
    @audit_unexpected(LoginMethod.PASSWORD)
    async def login_with_password(
        self, email: str, password: str, client: ClientInfo | None = None
    ) -> LoginResult:
        client = client or ClientInfo()
        trace = FlowTrace("login_password")
        method = LoginMethod.PASSWORD

        decision = await self.rate_limiter.check_login_attempts(email)
        if not decision.allowed:
            await self._fail(
                trace, decision.reason or "locked", email, method, client, status=LoginStatus.BLOCKED
            )
            raise AuthError(
                ErrorCode.AUTH_ACCOUNT_LOCKED,
                details={"retry_after": decision.retry_after_seconds},
                headers=self._rate_limit_headers(decision),
            )
        trace.advance(AuthState.RATE_CHECKED)

        user = await self.users.find_by_email(email)
        if user is None:
            await self._fail(trace, "user_not_found", email, method, client)
            raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS)
        if not user.password_hash:
            await self._fail(trace, "password_not_set", email, method, client, user_id=user.id)
            raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS)
        if not await self.hasher.verify(password, user.password_hash):
            await self._fail(trace, "invalid_password", email, method, client, user_id=user.id)
            raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS)
        if not user.is_active:
            await self._fail(trace, "account_disabled", email, method, client, user_id=user.id)
            raise AuthError(ErrorCode.AUTH_ACCOUNT_DISABLED)
        trace.advance(AuthState.PASSWORD_VERIFIED)

        user = await self._touch_login(user)
        return await self._succeed(trace, user, method, client)

    @wrap_unexpected
    @audit_unexpected(LoginMethod.VERIFICATION_CODE)
    async def register(
        self,
        email: str,
        password: str,
        name: str,
        code: str,
        client: ClientInfo | None = None,
    ) -> LoginResult:
        """Create a password account for an email proven by a register code."""
        client = client or ClientInfo()
        trace = FlowTrace("register")
        method = LoginMethod.VERIFICATION_CODE

        if await self.users.find_by_email(email) is not None:
            await self._fail(trace, "email_taken", email, method, client)
            raise ConflictError(details={"email": email})

        outcome = await self.codes.validate(email, code, VerificationPurpose.REGISTER.value)
        if not outcome.is_valid:
            await self._fail(trace, self._code_failure_reason(outcome), email, method, client)
            raise self._code_error(outcome)
        trace.advance(AuthState.CODE_VALIDATED)

        identity = await self.identity.identify(email)
        try:
            user = await self.users.create(
                User(
                    id=identity.id,
                    email=email,
                    name=name,
                    password_hash=await self.hasher.hash(password),
                    status=UserStatus.ACTIVE.value,
                    email_verified=True,
                    last_login_at=self.clock(),
                )
            )
        except DuplicateKeyError as e:
            await self._fail(trace, "email_taken", email, method, client)
            raise ConflictError(details={"email": email}) from e
        trace.advance(AuthState.USER_RESOLVED)

        self.logger.info(f"Registered user {user.id} ({email})")
        return await self._succeed(trace, user, method, client)

    @wrap_unexpected
    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        outcome = await self.codes.validate(email, code, VerificationPurpose.RESET_PASSWORD.value)
        if not outcome.is_valid:
            raise self._code_error(outcome)

        user = await self.users.find_by_email(email)
        if user is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        await self.users.update(user.id, password_hash=await self.hasher.hash(new_password))
        self.logger.info(f"Password reset for user {user.id}")

    @wrap_unexpected
    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        user = await self._require_user(user_id)
        if not user.password_hash:
            raise AuthError(ErrorCode.AUTH_PASSWORD_NOT_SET)
        if not await self.hasher.verify(old_password, user.password_hash):
            raise AuthError(ErrorCode.AUTH_INVALID_OLD_PASSWORD)
        if old_password == new_password:
            raise ValidationError(message="New password must be different from the current one")
        await self.users.update(user.id, password_hash=await self.hasher.hash(new_password))
        self.logger.info(f"Password changed for user {user.id}")

    @wrap_unexpected
    async def change_email(self, user_id: str, new_email: str, code: str) -> User:
        user = await self._require_user(user_id)
        if new_email == user.email:
            raise ValidationError(message="New email is the same as the current one")
        await self._ensure_email_unused(new_email)

        outcome = await self.codes.validate(new_email, code, VerificationPurpose.CHANGE_EMAIL.value)
        if not outcome.is_valid:
            raise self._code_error(outcome)

        try:
            updated = await self.users.update(user.id, email=new_email, email_verified=True)
        except DuplicateKeyError as e:
            raise ConflictError(details={"email": new_email}) from e
        if updated is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        self.logger.info(f"Email changed for user {user.id}")
        return updated

    @wrap_unexpected
    async def get_profile(self, user_id: str) -> User:
        return await self._require_user(user_id)

    @wrap_unexpected
    async def update_profile(self, user_id: str, **changes: Any) -> User:
        user = await self._require_user(user_id)
        if not changes:
            return user
        updated = await self.users.update(user.id, **changes)
        if updated is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        return updated

    @wrap_unexpected
    async def update_avatar(self, user_id: str, avatar_url: str) -> User:
        user = await self._require_user(user_id)
        updated = await self.users.update(user.id, avatar_url=avatar_url)
        if updated is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        self.logger.info(f"Avatar updated for user {user.id}")
        return updated

    @wrap_unexpected
    async def get_public_profile(self, user_id: str) -> UserPublic:
        """Another user's public fields. Users that are not active are hidden."""
        user = await self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND)
        return UserPublic.model_validate(user)

    @wrap_unexpected
    async def login_history(self, user_id: str, limit: int = 10) -> list[LoginLog]:
        await self._require_user(user_id)
        return await self.audit.history(user_id, limit=limit)

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    @wrap_unexpected
    async def authenticate(self, token: str) -> User:
        """Resolve a bearer token to an active user."""
        claims = self.sessions.verify(token)
        user = await self.users.find_by_id(claims.user_id)
        if user is None or user.status == UserStatus.DELETED.value:
            raise AuthError(ErrorCode.AUTH_TOKEN_INVALID)
        if not user.is_active:
            raise AuthError(ErrorCode.AUTH_ACCOUNT_DISABLED)
        return user

    @wrap_unexpected
    async def refresh(self, token: str) -> LoginResult:
        user = await self.authenticate(token)
        return LoginResult(user=user, session=self.sessions.refresh(token, user))

    @wrap_unexpected
    async def logout(self, token: str) -> None:
        # Tokens are stateless; logging out only confirms the token was ours
        user = await self.authenticate(token)
        self.logger.info(f"User {user.id} logged out")
