"""Reconcile externally-authenticated identities with local user rows."""

import logging
from dataclasses import dataclass
from enum import Enum

from authcore.errors import ErrorCode, ProvisioningError
from authcore.models import User, UserStatus
from authcore.repositories import DuplicateKeyError, UserRepository

DEFAULT_NAME = "user"


class ProvisionStatus(str, Enum):
    CREATED = "created"
    FOUND = "found"
    RECONCILED = "reconciled"
    MISMATCH = "mismatch"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisionOutcome:
    """Tagged result of ``UserProvisioner.ensure``."""

    status: ProvisionStatus
    user: User | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.user is not None and self.status in (
            ProvisionStatus.CREATED,
            ProvisionStatus.FOUND,
            ProvisionStatus.RECONCILED,
        )

    def require(self) -> User:
        """Return the user, or raise ProvisioningError for MISMATCH / FAILED."""
        if self.ok:
            assert self.user is not None
            return self.user
        if self.status == ProvisionStatus.MISMATCH:
            raise ProvisioningError(ErrorCode.USER_IDENTITY_MISMATCH, details={"reason": self.detail})
        raise ProvisioningError(ErrorCode.USER_PROVISIONING_FAILED, details={"reason": self.detail})


def name_from_email(email: str) -> str:
    """Default display name: the email local-part."""
    local, _, _ = email.partition("@")
    return local or DEFAULT_NAME


class UserProvisioner:
    """Guarantees a local user row exists for an external identity.

    Concurrent calls for the same identity race on the users primary key and
    the email unique index; the loser re-reads and reports RECONCILED. An
    email owned by a different id is never merged.
    """

    def __init__(self, users: UserRepository, logger: logging.Logger | None = None):
        self.users = users
        self.logger = logger or logging.getLogger(__name__)

    async def ensure(
        self, external_id: str, email: str, email_verified: bool = True
    ) -> ProvisionOutcome:
        existing = await self.users.find_by_id(external_id)
        if existing is not None:
            return ProvisionOutcome(ProvisionStatus.FOUND, existing)

        try:
            created = await self.users.create(
                User(
                    id=external_id,
                    email=email,
                    name=name_from_email(email),
                    status=UserStatus.ACTIVE.value,
                    email_verified=email_verified,
                )
            )
        except DuplicateKeyError as e:
            return await self._reconcile(external_id, email, str(e))

        self.logger.info(f"Provisioned local user {created.id} for {email}")
        return ProvisionOutcome(ProvisionStatus.CREATED, created)

    async def _reconcile(self, external_id: str, email: str, conflict: str) -> ProvisionOutcome:
        by_id = await self.users.find_by_id(external_id)
        if by_id is not None:
            self.logger.info(f"User {external_id} was created concurrently, reusing it")
            return ProvisionOutcome(ProvisionStatus.RECONCILED, by_id)

        by_email = await self.users.find_by_email(email)
        if by_email is not None and by_email.id != external_id:
            self.logger.error(
                f"Identity mismatch: {email} belongs to user {by_email.id}, "
                f"identity provider returned {external_id}"
            )
            return ProvisionOutcome(
                ProvisionStatus.MISMATCH,
                detail=f"email owned by {by_email.id}",
            )

        self.logger.error(
            f"Provisioning {external_id} ({email}) failed after conflict "
            f"but no matching row exists: {conflict}"
        )
        return ProvisionOutcome(ProvisionStatus.FAILED, detail=conflict)
