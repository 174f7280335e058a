"""OfflineActionQueue tests — durability, ordering, drain semantics."""

import asyncio
import json
import uuid

import httpx
import pytest

from tto_protocol.errors import ConcurrencyConflictError, PersistenceError, ValidationError
from tto_protocol.interfaces import ActionTransport
from tto_protocol.models.sync import ActionType, PendingAction, ReplayResult
from tto_protocol.offline import OfflineActionQueue
from tto_protocol.transport import HttpActionTransport


class RecordingTransport(ActionTransport):
    """Applies every action; ``failures`` maps an action id to the error to raise."""

    def __init__(self, failures=None):
        self.sent = []
        self.failures = dict(failures or {})

    async def send(self, action):
        self.sent.append(action.payload.get("n"))
        error = self.failures.get(action.id)
        if error is not None:
            raise error
        return ReplayResult(action_id=action.id, status="applied", result={"n": action.payload.get("n")})


class BlockingTransport(ActionTransport):
    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def send(self, action):
        self.started.set()
        await self.release.wait()
        return ReplayResult(action_id=action.id, status="applied")


def _note(n, session_id=None):
    return PendingAction(
        type=ActionType.CREATE,
        table="session_notes",
        session_id=session_id or uuid.uuid4(),
        payload={"content": f"note {n}", "n": n},
    )


@pytest.fixture
def queue_path(tmp_path):
    return tmp_path / "device" / "queue.json"


class TestDurability:
    def test_enqueue_persists_before_returning(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        action = queue.enqueue(_note(1))
        body = json.loads(queue_path.read_text())
        assert body["version"] == 1
        assert [a["id"] for a in body["actions"]] == [str(action.id)]

    def test_queue_survives_restart(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        ids = [queue.enqueue(_note(n)).id for n in (1, 2, 3)]

        reopened = OfflineActionQueue(queue_path)
        assert reopened.load_report.loaded == 3
        assert [a.id for a in reopened.pending()] == ids

    def test_reenqueue_same_id_is_noop(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        action = _note(1)
        queue.enqueue(action)
        queue.enqueue(action)
        assert len(queue) == 1

    def test_corrupt_file_is_reset_and_reported(self, queue_path):
        queue_path.parent.mkdir(parents=True)
        queue_path.write_text("{not json")
        seen = []
        queue = OfflineActionQueue(queue_path, on_reset=seen.append)
        assert len(queue) == 0
        assert queue.load_report.reset is True
        assert seen == [queue.load_report]
        # the cleared file is valid again
        assert json.loads(queue_path.read_text())["actions"] == []

    def test_write_failure_leaves_action_unqueued(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        queue = OfflineActionQueue(blocker / "queue.json")
        with pytest.raises(PersistenceError):
            queue.enqueue(_note(1))
        assert len(queue) == 0

    def test_clear(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        queue.enqueue(_note(1))
        queue.enqueue(_note(2))
        assert queue.clear() == 2
        assert OfflineActionQueue(queue_path).pending() == []


class TestReplay:
    @pytest.mark.asyncio
    async def test_replays_in_enqueue_order(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        sid = uuid.uuid4()
        for n in (1, 2, 3):
            queue.enqueue(_note(n, sid))
        transport = RecordingTransport()

        report = await queue.replay(transport)
        assert transport.sent == [1, 2, 3]
        assert len(report.applied) == 3
        assert report.remaining == 0
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_persistence_error_stops_drain(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        actions = [queue.enqueue(_note(n)) for n in (1, 2, 3)]
        transport = RecordingTransport({actions[1].id: PersistenceError("offline")})
        cancelled = []

        report = await queue.replay(transport, on_cancelled=cancelled.append)
        assert transport.sent == [1, 2]
        assert report.stopped_by == "persistence_error"
        assert report.remaining == 2
        assert [a.id for a in queue.pending()] == [actions[1].id, actions[2].id]
        assert cancelled == [actions[1]]

        # next drain picks up where it stopped, still in order
        transport.failures.clear()
        await queue.replay(transport)
        assert transport.sent == [1, 2, 2, 3]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_concurrency_conflict_keeps_action_for_retry(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        actions = [queue.enqueue(_note(n)) for n in (1, 2, 3)]
        transport = RecordingTransport(
            {actions[0].id: ConcurrencyConflictError("session changed")}
        )

        report = await queue.replay(transport)
        assert transport.sent == [1]
        assert report.stopped_by == "concurrency_conflict"
        assert report.rejected == []
        assert [a.id for a in queue.pending()] == [a.id for a in actions]

        # after the device re-fetches, the same action goes through
        transport.failures.clear()
        report = await queue.replay(transport)
        assert transport.sent == [1, 1, 2, 3]
        assert report.applied == [a.id for a in actions]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_rejection_is_discarded_and_drain_continues(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        actions = [queue.enqueue(_note(n)) for n in (1, 2, 3)]
        transport = RecordingTransport({actions[0].id: ValidationError("bad note")})
        rejected = []

        report = await queue.replay(
            transport, on_rejected=lambda a, r: rejected.append((a.id, r.error))
        )
        assert transport.sent == [1, 2, 3]
        assert rejected == [(actions[0].id, "validation_error")]
        assert report.rejected[0].detail == "bad note"
        assert report.applied == [actions[1].id, actions[2].id]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_callbacks_fire_in_order(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        action = queue.enqueue(_note(1))
        log = []
        await queue.replay(
            RecordingTransport(),
            on_sending=lambda a: log.append(("sending", a.id)),
            on_applied=lambda a, r: log.append(("applied", r.result["n"])),
        )
        assert log == [("sending", action.id), ("applied", 1)]

    @pytest.mark.asyncio
    async def test_cancellation_keeps_action_queued(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        action = queue.enqueue(_note(1))
        transport = BlockingTransport()
        cancelled = []

        task = asyncio.create_task(queue.replay(transport, on_cancelled=cancelled.append))
        await transport.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert cancelled == [action]
        assert [a.id for a in queue.pending()] == [action.id]
        assert [a.id for a in OfflineActionQueue(queue_path).pending()] == [action.id]

    @pytest.mark.asyncio
    async def test_concurrent_replay_is_skipped(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        queue.enqueue(_note(1))
        transport = BlockingTransport()

        first = asyncio.create_task(queue.replay(transport))
        await transport.started.wait()
        assert queue.is_replaying is True

        second = await queue.replay(transport)
        assert second.skipped is True
        assert second.remaining == 1

        transport.release.set()
        report = await first
        assert report.remaining == 0
        assert queue.is_replaying is False


class TestReplayOverHttp:
    @staticmethod
    def _transport(handler):
        return HttpActionTransport(
            "http://server", user_id="int-1", transport=httpx.MockTransport(handler)
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,detail",
        [
            (401, "X-User-ID header is required"),
            (403, "Invalid proxy secret"),
            (403, "Admin role not granted"),
        ],
    )
    async def test_identity_failure_keeps_queue(self, queue_path, status, detail):
        queue = OfflineActionQueue(queue_path)
        actions = [queue.enqueue(_note(n)) for n in (1, 2, 3)]
        requests = []

        def refuse(request):
            requests.append(request)
            return httpx.Response(status, json={"detail": detail})

        async with self._transport(refuse) as transport:
            report = await queue.replay(transport)

        assert len(requests) == 1
        assert report.rejected == []
        assert report.stopped_by == "persistence_error"
        assert [a.id for a in OfflineActionQueue(queue_path).pending()] == [
            a.id for a in actions
        ]

        def accept(request):
            body = json.loads(request.content)
            return httpx.Response(200, json={"action_id": body["id"], "status": "applied"})

        async with self._transport(accept) as transport:
            report = await queue.replay(transport)
        assert report.applied == [a.id for a in actions]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_coded_rejection_is_still_discarded(self, queue_path):
        queue = OfflineActionQueue(queue_path)
        queue.enqueue(_note(1))

        def reject(request):
            return httpx.Response(
                403, json={"detail": "Not permitted", "error": "permission_denied"}
            )

        async with self._transport(reject) as transport:
            report = await queue.replay(transport)
        assert [r.error for r in report.rejected] == ["permission_denied"]
        assert len(queue) == 0
