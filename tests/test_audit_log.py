from uuid import uuid4

import pytest

from studio.models.audit import AuditAction, AuditEntry
from studio.services.audit_log import AuditLogBuffer
from tests.fakes import FakeAuditStorage


@pytest.fixture
def storage():
    return FakeAuditStorage()


class TestAuditLogBuffer:
    """Buffered, batched audit writes"""

    async def test_buffers_until_flush(self, storage):
        buffer = AuditLogBuffer(storage, flush_size=10)
        await buffer.log(AuditEntry(action=AuditAction.AUTH_LOGIN))
        assert buffer.pending == 1
        assert storage.entries == []

        assert await buffer.flush() == 1
        assert buffer.pending == 0
        assert len(storage.entries) == 1

    async def test_flushes_when_full(self, storage):
        buffer = AuditLogBuffer(storage, flush_size=3)
        for _ in range(3):
            await buffer.log(AuditEntry(action=AuditAction.DATA_VIEW))
        assert buffer.pending == 0
        assert len(storage.entries) == 3

    async def test_flush_empty(self, storage):
        assert await AuditLogBuffer(storage).flush() == 0

    async def test_failed_flush_keeps_entries_in_order(self, storage):
        buffer = AuditLogBuffer(storage, flush_size=100)
        first = AuditEntry(action=AuditAction.AUTH_LOGIN)
        second = AuditEntry(action=AuditAction.AUTH_LOGOUT)
        await buffer.log(first)
        await buffer.log(second)

        storage.fail_writes = True
        assert await buffer.flush() == 0
        assert buffer.pending == 2

        storage.fail_writes = False
        assert await buffer.flush() == 2
        assert storage.entries == [first, second]

    async def test_stop_flushes_remaining(self, storage):
        buffer = AuditLogBuffer(storage, flush_size=100, flush_interval=60)
        await buffer.start()
        await buffer.log(AuditEntry(action=AuditAction.FILE_UPLOAD))
        await buffer.stop()
        assert len(storage.entries) == 1

    async def test_query_filters_by_action(self, storage):
        buffer = AuditLogBuffer(storage)
        user_id = uuid4()
        await buffer.log_auth_event(AuditAction.AUTH_LOGIN, user_id=user_id, email="a@b.co")
        await buffer.log_security_incident(AuditAction.SECURITY_RATE_LIMIT, ip_address="1.2.3.4")
        await buffer.flush()

        logins = await buffer.query(action="auth.login")
        assert len(logins) == 1
        assert logins[0].details == {"email": "a@b.co"}

        incidents = await buffer.query(action="security.rate_limit")
        assert incidents[0].success is False
        assert incidents[0].resource == "security"


class TestHelpers:
    async def test_log_data_access(self, storage):
        buffer = AuditLogBuffer(storage)
        user_id = uuid4()
        await buffer.log_data_access(user_id, AuditAction.DATA_UPDATE, "profile", "p1", data_category="personal")
        await buffer.flush()
        entry = storage.entries[0]
        assert entry.user_id == user_id
        assert entry.resource == "profile"
        assert entry.data_category == "personal"

    async def test_log_ai_interaction(self, storage):
        buffer = AuditLogBuffer(storage)
        await buffer.log_ai_interaction(uuid4(), AuditAction.AI_CHAT, executive="cfo", details={"tokens": 12})
        await buffer.flush()
        assert storage.entries[0].resource_id == "cfo"
        assert storage.entries[0].details == {"tokens": 12}
