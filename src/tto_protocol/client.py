"""OfflineSessionClient — device-side glue for offline-first interviews.

Every write goes through three steps:

  1. persisted to the :class:`OfflineActionQueue`
  2. applied to the :class:`OptimisticState` overlay (UI updates at once)
  3. replayed to the server when :meth:`sync` runs

Replay outcomes reconcile the optimistic state: acknowledged writes are
committed, rejected ones are dropped, and a cancelled or failed send puts
the entry back to pending with the action still queued.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterator

from tto_protocol.interfaces import ActionTransport
from tto_protocol.models.events import ChangeEvent
from tto_protocol.models.sync import ActionType, PendingAction, ReplayReport
from tto_protocol.offline import OfflineActionQueue
from tto_protocol.optimistic import OptimisticState

logger = logging.getLogger(__name__)


class OfflineSessionClient:
    def __init__(
        self,
        queue: OfflineActionQueue,
        transport: ActionTransport,
        state: OptimisticState | None = None,
    ) -> None:
        self.queue = queue
        self.state = state or OptimisticState()
        self._transport = transport
        # Anything still queued from a previous run is pending again
        for action in queue.pending():
            self.state.apply_local(action)

    def record(
        self,
        type: ActionType,
        table: str,
        *,
        session_id: uuid.UUID | None = None,
        record_id: uuid.UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> PendingAction:
        """Capture one write: durable first, then visible in the UI."""
        action = PendingAction(
            type=type,
            table=table,
            session_id=session_id,
            record_id=record_id,
            payload=payload or {},
        )
        self.queue.enqueue(action)
        self.state.apply_local(action)
        return action

    async def sync(self) -> ReplayReport:
        """Replay the queue and reconcile the optimistic state."""
        report = await self.queue.replay(
            self._transport,
            on_sending=lambda a: self.state.mark_in_flight(a.id),
            on_applied=lambda a, r: self.state.acknowledge(a.id, r.result),
            on_rejected=lambda a, r: self.state.reject(a.id),
            on_cancelled=lambda a: self.state.cancel(a.id),
        )
        if report.rejected:
            logger.warning(
                "%d queued action(s) were rejected by the server and discarded",
                len(report.rejected),
            )
        return report

    async def follow(self, events: AsyncIterator[ChangeEvent]) -> None:
        """Merge a realtime change stream into the optimistic state."""
        async for event in events:
            self.state.merge(event)
