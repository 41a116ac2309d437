"""Password hashing primitive backed by bcrypt."""

import asyncio
import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; longer inputs are rejected by
# current releases instead of being truncated silently.
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Hash and verify passwords.

    The bcrypt work happens in a thread so request handlers stay responsive.
    """

    def __init__(self, rounds: int = 10):
        if rounds < 10 or rounds > 12:
            logger.warning("bcrypt rounds=%d is outside the recommended 10-12 range", rounds)
        self.rounds = rounds

    def _hash(self, plain: str) -> str:
        return bcrypt.hashpw(self._encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode()

    def _verify(self, plain: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode(plain), hashed.encode())
        except ValueError:
            # Malformed stored hash
            logger.warning("Stored password hash could not be parsed")
            return False

    @staticmethod
    def _encode(plain: str) -> bytes:
        return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]

    async def hash(self, plain: str) -> str:
        return await asyncio.to_thread(self._hash, plain)

    async def verify(self, plain: str, hashed: str) -> bool:
        return await asyncio.to_thread(self._verify, plain, hashed)
