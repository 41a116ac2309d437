"""Application error taxonomy.

Each error carries a stable machine-readable code, an HTTP status and a
user-facing message. The API layer renders these without stack traces.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ErrorInfo:
    """Stable (code, status, message) triple for an error kind."""

    code: str
    status: int
    message: str


class ErrorCode(str, Enum):
    """Known error kinds."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_UNAUTHORIZED = "AUTH_UNAUTHORIZED"
    AUTH_ACCOUNT_DISABLED = "AUTH_ACCOUNT_DISABLED"
    AUTH_ACCOUNT_LOCKED = "AUTH_ACCOUNT_LOCKED"
    AUTH_PASSWORD_NOT_SET = "AUTH_PASSWORD_NOT_SET"
    AUTH_INVALID_OLD_PASSWORD = "AUTH_INVALID_OLD_PASSWORD"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EMAIL_ALREADY_EXISTS = "USER_EMAIL_ALREADY_EXISTS"
    USER_PROVISIONING_FAILED = "USER_PROVISIONING_FAILED"
    USER_IDENTITY_MISMATCH = "USER_IDENTITY_MISMATCH"
    VERIFICATION_CODE_INVALID = "VERIFICATION_CODE_INVALID"
    VERIFICATION_CODE_TOO_FREQUENT = "VERIFICATION_CODE_TOO_FREQUENT"
    VERIFICATION_CODE_MAX_ATTEMPTS = "VERIFICATION_CODE_MAX_ATTEMPTS"
    LOGIN_TOO_MANY_FAILURES = "LOGIN_TOO_MANY_FAILURES"
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"


ERROR_INFOS: dict[ErrorCode, ErrorInfo] = {
    ErrorCode.INTERNAL_ERROR: ErrorInfo("00-0001", 500, "Internal error"),
    ErrorCode.VALIDATION_ERROR: ErrorInfo("00-0002", 400, "Request validation failed"),
    ErrorCode.NOT_FOUND: ErrorInfo("00-0003", 404, "Resource not found"),
    ErrorCode.AUTH_INVALID_CREDENTIALS: ErrorInfo("10-0001", 401, "Invalid email or password"),
    ErrorCode.AUTH_TOKEN_EXPIRED: ErrorInfo("10-0002", 401, "Session expired, please sign in again"),
    ErrorCode.AUTH_TOKEN_INVALID: ErrorInfo("10-0003", 401, "Invalid token"),
    ErrorCode.AUTH_UNAUTHORIZED: ErrorInfo("10-0004", 401, "Not authenticated"),
    ErrorCode.AUTH_ACCOUNT_DISABLED: ErrorInfo("10-0005", 403, "Account is disabled"),
    ErrorCode.AUTH_ACCOUNT_LOCKED: ErrorInfo(
        "10-0006", 423, "Account is temporarily locked after too many failed logins"
    ),
    ErrorCode.AUTH_PASSWORD_NOT_SET: ErrorInfo("10-0007", 400, "Password is not set"),
    ErrorCode.AUTH_INVALID_OLD_PASSWORD: ErrorInfo("10-0008", 400, "Current password is incorrect"),
    ErrorCode.USER_NOT_FOUND: ErrorInfo("20-0001", 404, "User not found"),
    ErrorCode.USER_EMAIL_ALREADY_EXISTS: ErrorInfo("20-0003", 409, "Email is already registered"),
    ErrorCode.USER_PROVISIONING_FAILED: ErrorInfo(
        "20-0004", 500, "Could not set up your account, please try again"
    ),
    ErrorCode.USER_IDENTITY_MISMATCH: ErrorInfo(
        "20-0005", 500, "Could not set up your account, please contact support"
    ),
    ErrorCode.VERIFICATION_CODE_INVALID: ErrorInfo(
        "30-0001", 400, "Verification code is invalid or has expired"
    ),
    ErrorCode.VERIFICATION_CODE_TOO_FREQUENT: ErrorInfo(
        "30-0003", 429, "Codes are being requested too often, please try again later"
    ),
    ErrorCode.VERIFICATION_CODE_MAX_ATTEMPTS: ErrorInfo(
        "30-0004", 429, "Too many attempts for this code, please request a new one"
    ),
    ErrorCode.LOGIN_TOO_MANY_FAILURES: ErrorInfo(
        "30-0005", 429, "Too many failed sign-in attempts, please try again later"
    ),
    ErrorCode.EMAIL_SEND_FAILED: ErrorInfo("40-0001", 500, "Failed to send verification code"),
}


class AppError(Exception):
    """Base class for errors that map onto an API response."""

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        code: ErrorCode | None = None,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.error_code = code or self.default_code
        self.info = ERROR_INFOS[self.error_code]
        self.message = message or self.info.message
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.info.code

    @property
    def status_code(self) -> int:
        return self.info.status


class ValidationError(AppError):
    """Malformed input."""

    default_code = ErrorCode.VALIDATION_ERROR


class NotFoundError(AppError):
    """User or code absent."""

    default_code = ErrorCode.NOT_FOUND


class RateLimitError(AppError):
    """Send too frequent, or too many failed logins."""

    default_code = ErrorCode.VERIFICATION_CODE_TOO_FREQUENT


class InvalidCodeError(AppError):
    """Wrong, expired or over-attempted verification code."""

    default_code = ErrorCode.VERIFICATION_CODE_INVALID


class AuthError(AppError):
    """Bad credentials, disabled or locked account, invalid session token."""

    default_code = ErrorCode.AUTH_UNAUTHORIZED


class ConflictError(AppError):
    """Duplicate email."""

    default_code = ErrorCode.USER_EMAIL_ALREADY_EXISTS


class ProvisioningError(AppError):
    """Identity reconciliation failed."""

    default_code = ErrorCode.USER_PROVISIONING_FAILED


class DispatchError(AppError):
    """Email/SMS send failed."""

    default_code = ErrorCode.EMAIL_SEND_FAILED


class InternalError(AppError):
    """Unexpected failure, typically the datastore."""

    default_code = ErrorCode.INTERNAL_ERROR
