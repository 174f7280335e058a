"""ChangeFeed — in-process fan-out of row-level change events.

Subscribers receive every ``ChangeEvent`` published after they subscribed,
in publish order.  Consumers merge events as an upsert keyed by
``(table, record_id)``, so a redelivered or reordered event for the same
record cannot create a duplicate.

Usage::

    feed = ChangeFeed()
    async for event in feed.subscribe(tables={"interview_sessions"}):
        state.merge(event)
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Iterable

from tto_protocol.models.events import ChangeEvent

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = 1000


class ChangeFeed:
    def __init__(self, buffer_size: int = DEFAULT_BUFFER) -> None:
        self._buffer_size = buffer_size
        self._subscribers: list[tuple[asyncio.Queue, frozenset[str] | None]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> None:
        """Hand ``event`` to every matching subscriber without blocking.

        A subscriber whose buffer is full loses its oldest event.
        """
        for queue, tables in self._subscribers:
            if tables is not None and event.table not in tables:
                continue
            if queue.full():
                queue.get_nowait()
                logger.warning("Change feed subscriber lagging; dropped oldest event")
            queue.put_nowait(event)

    async def subscribe(
        self, tables: Iterable[str] | None = None
    ) -> AsyncIterator[ChangeEvent]:
        """Yield events until the consumer stops iterating."""
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=self._buffer_size)
        entry = (queue, frozenset(tables) if tables is not None else None)
        self._subscribers.append(entry)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(entry)
