"""Append-only login audit trail."""

import logging

from authcore.clock import Clock, utcnow
from authcore.models import LoginLog
from authcore.repositories import LoginLogRepository


class LoginAuditLog:
    """Records login attempts.

    Writes are best-effort: a failed insert is reported on the operational
    log and never interrupts the flow that asked for it.
    """

    def __init__(
        self,
        logins: LoginLogRepository,
        clock: Clock = utcnow,
        logger: logging.Logger | None = None,
    ):
        self.logins = logins
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    async def record(
        self,
        user_id: str | None,
        email: str,
        method: str,
        status: str,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginLog | None:
        entry = LoginLog(
            user_id=user_id,
            email=email,
            login_method=method,
            status=status,
            failure_reason=reason,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=self.clock(),
        )
        try:
            return await self.logins.append(entry)
        except Exception:
            self.logger.exception(f"Failed to record {status} {method} login for {email}")
            return None

    async def history(self, user_id: str, limit: int = 10) -> list[LoginLog]:
        return await self.logins.history(user_id, limit=limit)
