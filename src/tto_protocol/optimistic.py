"""OptimisticState — dual-state view of records on the device.

Each record is held twice: the last *committed* version (acknowledged by
the server or merged from the change feed) and an ordered overlay of
*pending* local writes not yet acknowledged.  ``view()`` shows committed
data with the pending overlay applied, which is what the UI renders.

Reconciliation:

    acknowledge(id)   pending write becomes committed
    reject(id)        pending write is dropped; committed value shows again
    cancel(id)        in-flight write goes back to pending (still queued)
    merge(event)      upsert a server change by (table, record_id)
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Any

from tto_protocol.models.events import ChangeEvent
from tto_protocol.models.sync import ActionType, PendingAction

RecordKey = tuple[str, str]


class EntryState(str, enum.Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"


@dataclass
class PendingEntry:
    action_id: uuid.UUID
    key: RecordKey
    # None marks a pending delete
    value: dict[str, Any] | None
    state: EntryState = EntryState.PENDING


def record_key(action: PendingAction) -> RecordKey:
    """Which record an action writes.

    Session writes key on the session id; other tables on ``record_id``,
    falling back to the action id for rows the server has not numbered yet.
    """
    if action.table == "interview_sessions" and action.session_id is not None:
        return (action.table, str(action.session_id))
    if action.record_id is not None:
        return (action.table, str(action.record_id))
    return (action.table, str(action.id))


class OptimisticState:
    def __init__(self) -> None:
        self._committed: dict[RecordKey, dict[str, Any]] = {}
        self._versions: dict[RecordKey, int] = {}
        self._pending: dict[uuid.UUID, PendingEntry] = {}

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    def apply_local(self, action: PendingAction) -> PendingEntry:
        key = record_key(action)
        if action.type == ActionType.DELETE:
            value = None
        else:
            value = {**self._current(key), **action.payload}
        entry = PendingEntry(action_id=action.id, key=key, value=value)
        self._pending[action.id] = entry
        return entry

    def mark_in_flight(self, action_id: uuid.UUID) -> None:
        entry = self._pending.get(action_id)
        if entry is not None:
            entry.state = EntryState.IN_FLIGHT

    def cancel(self, action_id: uuid.UUID) -> None:
        entry = self._pending.get(action_id)
        if entry is not None:
            entry.state = EntryState.PENDING

    def acknowledge(
        self, action_id: uuid.UUID, record: dict[str, Any] | None = None
    ) -> None:
        """Promote a pending write to committed.

        ``record`` is the server's copy when it returned one; it wins over
        the local overlay.
        """
        entry = self._pending.pop(action_id, None)
        if entry is None:
            return
        if entry.value is None:
            self._committed.pop(entry.key, None)
            return
        key = entry.key
        if record and record.get("id") is not None:
            # rows numbered by the server move from the provisional key
            key = (key[0], str(record["id"]))
        self._committed[key] = {**entry.value, **(record or {})}

    def reject(self, action_id: uuid.UUID) -> None:
        self._pending.pop(action_id, None)

    # ------------------------------------------------------------------
    # Server changes
    # ------------------------------------------------------------------

    def merge(self, event: ChangeEvent) -> None:
        """Upsert a change-feed event into committed state.

        Events older than the committed version of the same record are
        ignored.
        """
        key = (event.table, str(event.record_id))
        if event.version is not None:
            known = self._versions.get(key)
            if known is not None and event.version < known:
                return
            self._versions[key] = event.version
        if event.op == "delete":
            self._committed.pop(key, None)
        else:
            self._committed[key] = {**self._committed.get(key, {}), **(event.record or {})}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def status(self, action_id: uuid.UUID) -> EntryState | None:
        entry = self._pending.get(action_id)
        return entry.state if entry is not None else None

    def committed(self, table: str, record_id: uuid.UUID | str) -> dict[str, Any] | None:
        return self._committed.get((table, str(record_id)))

    def get(self, table: str, record_id: uuid.UUID | str) -> dict[str, Any] | None:
        """Rendered value of one record (pending overlay applied)."""
        return self.view(table).get(str(record_id))

    def view(self, table: str) -> dict[str, dict[str, Any]]:
        """All records of ``table`` as the UI should show them."""
        out = {rid: dict(v) for (t, rid), v in self._committed.items() if t == table}
        for entry in self._pending.values():
            t, rid = entry.key
            if t != table:
                continue
            if entry.value is None:
                out.pop(rid, None)
            else:
                out[rid] = {**out.get(rid, {}), **entry.value}
        return out

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def _current(self, key: RecordKey) -> dict[str, Any]:
        value = dict(self._committed.get(key, {}))
        for entry in self._pending.values():
            if entry.key == key:
                value = {} if entry.value is None else {**value, **entry.value}
        return value
