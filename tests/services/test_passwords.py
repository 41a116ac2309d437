"""Password hashing tests."""

import pytest

from authcore.services.passwords import PasswordHasher


@pytest.mark.asyncio
async def test_hash_and_verify(hasher: PasswordHasher):
    hashed = await hasher.hash("Secret123")

    assert hashed != "Secret123"
    assert hashed.startswith("$2")
    assert await hasher.verify("Secret123", hashed)
    assert not await hasher.verify("secret123", hashed)


@pytest.mark.asyncio
async def test_malformed_hash_does_not_verify(hasher: PasswordHasher):
    assert not await hasher.verify("Secret123", "not-a-bcrypt-hash")


@pytest.mark.asyncio
async def test_long_passwords_are_truncated_consistently(hasher: PasswordHasher):
    base = "a" * 72
    hashed = await hasher.hash(base + "tail")

    assert await hasher.verify(base + "other", hashed)
