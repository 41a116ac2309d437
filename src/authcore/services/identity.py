"""External identity provider interface."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from authcore.models import UserStatus
from authcore.repositories import UserRepository

# Fixed namespace for ids derived from email addresses
LOCAL_IDENTITY_NAMESPACE = uuid.UUID("6f0c7a52-3d1e-5b8f-9a4c-2e7d1b0f5c38")


@dataclass(frozen=True)
class ExternalIdentity:
    """An identity asserted by the provider after a successful verification."""

    id: str
    email: str


class IdentityProvider(ABC):
    """Resolves a verified email to a stable external user id."""

    @abstractmethod
    async def identify(self, email: str) -> ExternalIdentity:
        pass


def derive_user_id(email: str, generation: int = 0) -> str:
    """Deterministic id for an email. ``generation`` skips ids already spent."""
    name = email if generation == 0 else f"{email}#{generation}"
    return str(uuid.uuid5(LOCAL_IDENTITY_NAMESPACE, name))


class LocalIdentityProvider(IdentityProvider):
    """Uses the local users table as the identity source.

    An email that already has a user keeps that user's id. Anything else gets
    an id derived from the email, so concurrent first logins for the same
    address agree on it and the provisioner reconciles them onto one row.
    Derived ids held by a deleted user, or by a user who has since moved to
    another email, are skipped in a fixed order.
    """

    def __init__(self, users: UserRepository):
        self.users = users

    async def identify(self, email: str) -> ExternalIdentity:
        existing = await self.users.find_by_email(email)
        if existing is not None:
            return ExternalIdentity(id=existing.id, email=existing.email)

        generation = 0
        while True:
            candidate = derive_user_id(email, generation)
            holder = await self.users.find_by_id(candidate)
            if holder is None or (
                holder.email == email and holder.status != UserStatus.DELETED.value
            ):
                return ExternalIdentity(id=candidate, email=email)
            generation += 1
