"""Login audit log tests."""

import logging
from unittest.mock import AsyncMock

import pytest

from authcore.models import LoginMethod, LoginStatus
from authcore.repositories import LoginLogRepository, Repositories
from authcore.services.audit import LoginAuditLog


@pytest.mark.asyncio
async def test_record_appends_entry(repos: Repositories, clock):
    audit = LoginAuditLog(repos.logins, clock=clock)

    entry = await audit.record(
        user_id=None,
        email="a@x.com",
        method=LoginMethod.PASSWORD.value,
        status=LoginStatus.FAILED.value,
        reason="invalid_password",
        ip_address="10.0.0.1",
        user_agent="pytest",
    )

    assert entry is not None
    assert repos.logins.rows == [entry]
    assert entry.created_at == clock()
    assert entry.failure_reason == "invalid_password"


@pytest.mark.asyncio
async def test_record_swallows_store_failure(caplog):
    logins = AsyncMock(spec=LoginLogRepository)
    logins.append.side_effect = RuntimeError("database is down")
    audit = LoginAuditLog(logins)

    with caplog.at_level(logging.ERROR):
        entry = await audit.record(
            user_id="u1",
            email="a@x.com",
            method=LoginMethod.VERIFICATION_CODE.value,
            status=LoginStatus.SUCCESS.value,
        )

    assert entry is None
    assert "Failed to record" in caplog.text


@pytest.mark.asyncio
async def test_history_is_newest_first(repos: Repositories, clock):
    audit = LoginAuditLog(repos.logins, clock=clock)
    for minute in range(3):
        await audit.record("u1", "a@x.com", "password", "success", reason=str(minute))
        clock.advance(minutes=1)
    await audit.record("u2", "b@x.com", "password", "success")

    history = await audit.history("u1", limit=2)

    assert [entry.failure_reason for entry in history] == ["2", "1"]
