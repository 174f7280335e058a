"""OfflineActionQueue — durable FIFO of interviewer writes on the device.

Every write is appended here and persisted to disk *before* any network
attempt, so a crash or lost connection never loses captured work.  The
queue is drained by :meth:`OfflineActionQueue.replay`:

  - strictly in enqueue order, one action at a time
  - one drain at a time; a second concurrent call is skipped
  - a ``PersistenceError`` or ``ConcurrencyConflictError`` stops the drain,
    leaving the failed action and everything after it queued in order
    (``ReplayReport.stopped_by`` names which; after a conflict the device
    re-fetches the session before the next drain)
  - a definitive rejection (any other ``ProtocolError``) discards that
    action, reports it, and the drain continues
  - cancellation leaves the in-flight action queued under its id

The queue file is JSON written atomically (temp file + ``os.replace``).
An unparseable file is cleared and the reset is reported through
``load_report`` and the ``on_reset`` callback so the UI can warn that
unsynced work may have been lost.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Callable

import pydantic

from tto_protocol.errors import (
    ConcurrencyConflictError,
    PersistenceError,
    ProtocolError,
)
from tto_protocol.interfaces import ActionTransport
from tto_protocol.models.sync import (
    PendingAction,
    QueueLoadReport,
    ReplayReport,
    ReplayResult,
)

logger = logging.getLogger(__name__)

QUEUE_FORMAT_VERSION = 1


class OfflineActionQueue:
    """File-backed action queue for one device.

    Args:
        path: queue file location; created on first enqueue
        on_reset: called with the load report when a corrupt file is cleared
    """

    def __init__(
        self,
        path: str | Path,
        *,
        on_reset: Callable[[QueueLoadReport], None] | None = None,
    ) -> None:
        self._path = Path(path)
        self._on_reset = on_reset
        self._actions: list[PendingAction] = []
        self._lock = asyncio.Lock()
        self.load_report = self._load()

    # ------------------------------------------------------------------
    # Queue contents
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._actions)

    def pending(self) -> list[PendingAction]:
        """Queued actions in replay order (a copy)."""
        return list(self._actions)

    def contains(self, action_id: uuid.UUID) -> bool:
        return any(a.id == action_id for a in self._actions)

    @property
    def is_replaying(self) -> bool:
        return self._lock.locked()

    def enqueue(self, action: PendingAction) -> PendingAction:
        """Append ``action`` and persist the queue.

        Re-enqueueing an id that is already queued is a no-op.

        Raises:
            PersistenceError: the queue file could not be written; the
                action is not queued
        """
        if self.contains(action.id):
            return action
        self._actions.append(action)
        try:
            self._persist()
        except PersistenceError:
            self._actions.pop()
            raise
        logger.debug("Queued %s %s (%s)", action.type.value, action.table, action.id)
        return action

    def remove(self, action_id: uuid.UUID) -> bool:
        before = len(self._actions)
        self._actions = [a for a in self._actions if a.id != action_id]
        if len(self._actions) != before:
            self._persist()
            return True
        return False

    def clear(self) -> int:
        """Explicit reset: drop every queued action.  Returns how many."""
        dropped = len(self._actions)
        self._actions = []
        self._persist()
        logger.warning("Offline queue cleared; %d unsynced action(s) dropped", dropped)
        return dropped

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def replay(
        self,
        transport: ActionTransport,
        *,
        on_sending: Callable[[PendingAction], None] | None = None,
        on_applied: Callable[[PendingAction, ReplayResult], None] | None = None,
        on_rejected: Callable[[PendingAction, ReplayResult], None] | None = None,
        on_cancelled: Callable[[PendingAction], None] | None = None,
    ) -> ReplayReport:
        """Drain the queue through ``transport`` in enqueue order."""
        if self._lock.locked():
            logger.info("Replay already in progress; skipping")
            return ReplayReport(skipped=True, remaining=len(self._actions))

        async with self._lock:
            report = ReplayReport()
            while self._actions:
                action = self._actions[0]
                if on_sending is not None:
                    on_sending(action)
                try:
                    result = await transport.send(action)
                except asyncio.CancelledError:
                    logger.info("Replay cancelled; action %s stays queued", action.id)
                    if on_cancelled is not None:
                        on_cancelled(action)
                    raise
                except (PersistenceError, ConcurrencyConflictError) as exc:
                    logger.warning(
                        "Replay stopped at %s (%s); %d action(s) remain queued",
                        action.id, exc.message, len(self._actions),
                    )
                    report.stopped_by = exc.code
                    if on_cancelled is not None:
                        on_cancelled(action)
                    break
                except ProtocolError as exc:
                    rejected = ReplayResult(
                        action_id=action.id,
                        status="rejected",
                        error=exc.code,
                        detail=exc.message,
                    )
                    logger.error(
                        "Action %s (%s %s) rejected and discarded: %s",
                        action.id, action.type.value, action.table, exc.message,
                    )
                    self.remove(action.id)
                    report.rejected.append(rejected)
                    if on_rejected is not None:
                        on_rejected(action, rejected)
                    continue

                self.remove(action.id)
                report.applied.append(action.id)
                if on_applied is not None:
                    on_applied(action, result)

            report.remaining = len(self._actions)
            return report

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load(self) -> QueueLoadReport:
        if not self._path.exists():
            return QueueLoadReport()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            self._actions = [PendingAction.model_validate(a) for a in raw["actions"]]
        except (ValueError, KeyError, TypeError, pydantic.ValidationError) as exc:
            logger.error(
                "Offline queue file %s is corrupt and was cleared; "
                "unsynced work may be lost: %s",
                self._path, exc,
            )
            self._actions = []
            self._persist()
            report = QueueLoadReport(reset=True, error=str(exc))
            if self._on_reset is not None:
                self._on_reset(report)
            return report
        logger.info("Offline queue loaded: %d pending action(s)", len(self._actions))
        return QueueLoadReport(loaded=len(self._actions))

    def _persist(self) -> None:
        body = {
            "version": QUEUE_FORMAT_VERSION,
            "actions": [a.model_dump(mode="json") for a in self._actions],
        }
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(body, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write offline queue {self._path}: {exc}") from exc
