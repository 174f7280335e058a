"""ChangeFeed tests — fan-out, table filter, bounded buffers."""

import asyncio
import uuid

import pytest

from tto_protocol.changefeed import ChangeFeed
from tto_protocol.models.events import ChangeEvent


def _event(table="session_notes", n=0):
    return ChangeEvent(table=table, record_id=uuid.uuid4(), op="insert", record={"n": n})


async def _started(feed, tables=None):
    """Subscribe and wait until the subscriber is registered."""
    agen = feed.subscribe(tables)
    first = asyncio.ensure_future(agen.__anext__())
    await asyncio.sleep(0)
    return agen, first


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_subscriber_receives_in_order(self):
        feed = ChangeFeed()
        agen, first = await _started(feed)
        assert feed.subscriber_count == 1

        events = [_event(n=i) for i in range(3)]
        for e in events:
            feed.publish(e)
        got = [await first, await agen.__anext__(), await agen.__anext__()]
        assert got == events

        await agen.aclose()
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_table_filter(self):
        feed = ChangeFeed()
        agen, first = await _started(feed, tables={"interview_sessions"})
        feed.publish(_event("session_notes"))
        wanted = _event("interview_sessions")
        feed.publish(wanted)
        assert await first == wanted
        await agen.aclose()

    @pytest.mark.asyncio
    async def test_every_subscriber_gets_a_copy(self):
        feed = ChangeFeed()
        a, first_a = await _started(feed)
        b, first_b = await _started(feed)
        event = _event()
        feed.publish(event)
        assert await first_a == event
        assert await first_b == event
        await a.aclose()
        await b.aclose()

    @pytest.mark.asyncio
    async def test_full_buffer_drops_oldest(self):
        feed = ChangeFeed(buffer_size=2)
        agen, first = await _started(feed)
        e0 = _event(n=0)
        feed.publish(e0)
        assert await first == e0

        e1, e2, e3 = (_event(n=i) for i in (1, 2, 3))
        for e in (e1, e2, e3):
            feed.publish(e)
        assert await agen.__anext__() == e2
        assert await agen.__anext__() == e3
        await agen.aclose()

    def test_publish_without_subscribers(self):
        ChangeFeed().publish(_event())
