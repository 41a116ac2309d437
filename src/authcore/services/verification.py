"""One-time verification code issuing and validation."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from authcore.clock import Clock, utcnow
from authcore.errors import DispatchError
from authcore.models import VerificationCode
from authcore.repositories import AttemptClaim, RedeemResult, VerificationCodeRepository
from authcore.services.email import CodeDispatcher

CODE_MIN = 100_000
CODE_MAX = 999_999


def generate_code() -> str:
    """Uniformly random 6-digit code in 100000-999999."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class CodeIssued:
    """A code that was stored and handed to the dispatcher."""

    id: str
    email: str
    purpose: str
    code: str
    expires_at: datetime
    created_at: datetime


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of checking a submitted code.

    ``reason`` explains an INVALID result: ``no_active_code``, ``mismatch``
    or ``already_used``.
    """

    status: ValidationStatus
    code_id: str | None = None
    user_id: str | None = None
    reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == ValidationStatus.VALID


class VerificationCodeService:
    """Generates, stores, dispatches and redeems one-time codes.

    Codes are scoped by purpose so a login code can never authorize a
    password reset or email change. Each code tolerates ``max_attempts``
    wrong guesses before it stops being checked at all.
    """

    def __init__(
        self,
        codes: VerificationCodeRepository,
        dispatcher: CodeDispatcher,
        clock: Clock = utcnow,
        ttl: timedelta = timedelta(minutes=10),
        max_attempts: int = 5,
        logger: logging.Logger | None = None,
    ):
        self.codes = codes
        self.dispatcher = dispatcher
        self.clock = clock
        self.ttl = ttl
        self.max_attempts = max_attempts
        self.logger = logger or logging.getLogger(__name__)

    async def issue(
        self,
        email: str,
        purpose: str,
        user_id: str | None = None,
        client: ClientInfo | None = None,
    ) -> CodeIssued:
        """Store a fresh code and send it.

        Raises:
            DispatchError: the dispatcher reported failure. The stored row is
                left in place and simply expires unused.
        """
        client = client or ClientInfo()
        now = self.clock()
        row = await self.codes.create(
            VerificationCode(
                email=email,
                code=generate_code(),
                purpose=purpose,
                user_id=user_id,
                expires_at=now + self.ttl,
                created_at=now,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        )
        self.logger.info(
            "Created verification code",
            extra={"email": email, "purpose": purpose, "code_id": row.id},
        )

        try:
            sent = await self.dispatcher.send(email, purpose, row.code)
        except Exception as e:
            self.logger.exception(f"Dispatcher raised while sending {purpose} code to {email}")
            raise DispatchError(details={"email": email}) from e
        if not sent:
            self.logger.error(f"Dispatcher failed to send {purpose} code to {email}")
            raise DispatchError(details={"email": email})

        return CodeIssued(
            id=row.id,
            email=email,
            purpose=purpose,
            code=row.code,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )

    async def validate(self, email: str, code: str, purpose: str) -> ValidationOutcome:
        """Check a submitted code against the active code for (email, purpose)."""
        active = await self.codes.find_active(email, purpose, self.clock())
        if active is None:
            return ValidationOutcome(ValidationStatus.INVALID, reason="no_active_code")

        if active.attempts >= self.max_attempts:
            return self._exhausted(email, purpose, active.id)

        # The slot is taken before comparing, so concurrent guesses share one budget
        claim = await self.codes.claim_attempt(active.id, self.max_attempts)
        if claim == AttemptClaim.EXHAUSTED:
            return self._exhausted(email, purpose, active.id)

        if not secrets.compare_digest(active.code.encode(), code.encode()):
            return ValidationOutcome(ValidationStatus.INVALID, code_id=active.id, reason="mismatch")

        redeemed = await self.codes.mark_used_if_unused(active.id, used_at=self.clock())
        if redeemed == RedeemResult.ALREADY_REDEEMED:
            # Lost the race against a concurrent redemption of the same code
            return ValidationOutcome(
                ValidationStatus.INVALID, code_id=active.id, reason="already_used"
            )

        self.logger.info(
            "Verification code redeemed",
            extra={"email": email, "purpose": purpose, "code_id": active.id},
        )
        return ValidationOutcome(ValidationStatus.VALID, code_id=active.id, user_id=active.user_id)

    def _exhausted(self, email: str, purpose: str, code_id: str) -> ValidationOutcome:
        self.logger.warning(
            "Verification code exhausted its attempts",
            extra={"email": email, "purpose": purpose, "code_id": code_id},
        )
        return ValidationOutcome(ValidationStatus.TOO_MANY_ATTEMPTS, code_id=code_id)
