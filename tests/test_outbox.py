"""Post-commit outbox tests — ordering, sync and async deliveries, rollback."""

import pytest

from tto_protocol import outbox


class FakeSession:
    def __init__(self):
        self.info = {}


class TestOutbox:
    @pytest.mark.asyncio
    async def test_delivers_in_order_once(self):
        db = FakeSession()
        seen = []

        async def later():
            seen.append("async")

        outbox.defer(db, lambda: seen.append("sync"))
        outbox.defer(db, later)
        assert outbox.pending(db) == 2
        assert seen == []

        assert await outbox.deliver(db) == 2
        assert seen == ["sync", "async"]
        assert await outbox.deliver(db) == 0
        assert seen == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_discard_drops_everything(self):
        db = FakeSession()
        seen = []
        outbox.defer(db, lambda: seen.append(1))
        assert outbox.discard(db) == 1
        assert await outbox.deliver(db) == 0
        assert seen == []

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self):
        a, b = FakeSession(), FakeSession()
        seen = []
        outbox.defer(a, lambda: seen.append("a"))
        outbox.defer(b, lambda: seen.append("b"))
        outbox.discard(a)
        await outbox.deliver(b)
        assert seen == ["b"]
