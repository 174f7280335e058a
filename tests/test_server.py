"""HTTP layer tests — routing, identity headers and error mapping.

The lifespan is not run; the mocked engine and replay service are placed
on ``app.state`` directly and ``get_db`` is overridden with an AsyncMock
that delivers the outbox on exit.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tto_protocol import outbox
from tto_protocol.replay import ActionReplayService
from tto_server.app import create_app
from tto_server.config import ServerSettings
from tto_server.dependencies import get_db

INTERVIEWER = {"X-User-ID": "int-1"}
ADMIN = {"X-User-ID": "admin-1", "X-User-Role": "admin"}


def _build(engine, catalogue, feed, **settings):
    app = create_app(ServerSettings(**settings))
    app.state.engine = engine
    app.state.replay = ActionReplayService(engine)
    app.state.catalogue = catalogue
    app.state.change_feed = feed

    async def fake_db():
        db = AsyncMock()
        db.info = {}
        yield db
        await outbox.deliver(db)

    app.dependency_overrides[get_db] = fake_db
    return app


@pytest.fixture
def client(engine, catalogue, feed):
    return TestClient(_build(engine, catalogue, feed))


def _create(client, code="R1", headers=INTERVIEWER):
    resp = client.post("/api/v1/sessions", json={"respondent_code": code}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


class TestIdentity:
    def test_missing_user_header(self, client):
        assert client.get("/api/v1/sessions").status_code == 401

    def test_identity_errors_carry_no_protocol_code(self, engine, catalogue, feed):
        client = TestClient(_build(engine, catalogue, feed, trusted_proxy_secret="s3cret"))
        for resp in (
            client.get("/api/v1/sessions"),
            client.get("/api/v1/sessions", headers={**INTERVIEWER, "X-Proxy-Secret": "nope"}),
        ):
            assert resp.status_code in (401, 403)
            assert "error" not in resp.json()

    def test_unknown_role(self, client):
        resp = client.get("/api/v1/sessions", headers={"X-User-ID": "u", "X-User-Role": "boss"})
        assert resp.status_code == 400

    def test_proxy_secret_enforced(self, engine, catalogue, feed):
        client = TestClient(_build(engine, catalogue, feed, trusted_proxy_secret="s3cret"))
        assert client.get("/api/v1/sessions", headers=INTERVIEWER).status_code == 403
        ok = client.get(
            "/api/v1/sessions", headers={**INTERVIEWER, "X-Proxy-Secret": "s3cret"}
        )
        assert ok.status_code == 200

    def test_admin_allow_list(self, engine, catalogue, feed):
        client = TestClient(
            _build(engine, catalogue, feed, admin_user_ids=frozenset({"admin-1"}))
        )
        assert client.get("/api/v1/sessions", headers=ADMIN).status_code == 200
        impostor = {"X-User-ID": "int-1", "X-User-Role": "admin"}
        assert client.get("/api/v1/sessions", headers=impostor).status_code == 403


class TestSessionRoutes:
    def test_create_and_resume(self, client):
        created = _create(client)
        resp = client.get(f"/api/v1/sessions/{created['id']}", headers=INTERVIEWER)
        assert resp.status_code == 200
        assert resp.json()["current_step"] == "consent"

    def test_change_event_published_after_request(self, engine, catalogue, feed):
        publisher = MagicMock()
        engine._feed = publisher
        client = TestClient(_build(engine, catalogue, feed))
        created = _create(client)
        publisher.publish.assert_called_once()
        event = publisher.publish.call_args.args[0]
        assert (event.table, event.op) == ("interview_sessions", "insert")
        assert str(event.record_id) == created["id"]

    def test_duplicate_code_is_400_with_message(self, client):
        _create(client)
        resp = client.post("/api/v1/sessions", json={"respondent_code": "R1"}, headers=INTERVIEWER)
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"
        assert "already exists" in resp.json()["detail"]

    def test_foreign_session_is_generic_404(self, client):
        created = _create(client)
        resp = client.get(f"/api/v1/sessions/{created['id']}", headers={"X-User-ID": "int-2"})
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Resource not found", "error": "not_found"}


class TestStepRoutes:
    def test_advance_and_stale_step(self, client):
        sid = _create(client)["id"]
        resp = client.post(
            f"/api/v1/sessions/{sid}/step/advance",
            json={"from_step": "consent", "expected_version": 1},
            headers=INTERVIEWER,
        )
        assert resp.status_code == 200
        assert resp.json()["step"] == "warmup"

        stale = client.post(
            f"/api/v1/sessions/{sid}/step/advance",
            json={"from_step": "consent"},
            headers=INTERVIEWER,
        )
        assert stale.status_code == 409
        assert stale.json()["error"] == "invalid_transition"

    def test_incomplete_step(self, client):
        sid = _create(client)["id"]
        client.post(
            f"/api/v1/sessions/{sid}/step/advance",
            json={"from_step": "consent"},
            headers=INTERVIEWER,
        )
        resp = client.post(
            f"/api/v1/sessions/{sid}/step/advance",
            json={"from_step": "warmup"},
            headers=INTERVIEWER,
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "step_incomplete"

    def test_version_conflict(self, client):
        sid = _create(client)["id"]
        resp = client.post(
            f"/api/v1/sessions/{sid}/step/advance",
            json={"from_step": "consent", "expected_version": 7},
            headers=INTERVIEWER,
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "concurrency_conflict"


class TestReviewRoutes:
    def test_interviewer_forbidden(self, client):
        sid = _create(client)["id"]
        resp = client.put(
            f"/api/v1/sessions/{sid}/review", json={"status": "approved"}, headers=INTERVIEWER
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"

    def test_admin_review(self, client):
        sid = _create(client)["id"]
        resp = client.put(
            f"/api/v1/sessions/{sid}/review",
            json={"status": "flagged", "notes": "check"},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["quality_status"] == "flagged"


class TestSyncRoutes:
    def test_replay_is_idempotent(self, client, mock_repo):
        action = {
            "id": str(uuid.uuid4()),
            "type": "create",
            "table": "interview_sessions",
            "session_id": str(uuid.uuid4()),
            "payload": {"respondent_code": "R5"},
        }
        first = client.post("/api/v1/sync/actions", json=action, headers=INTERVIEWER)
        second = client.post("/api/v1/sync/actions", json=action, headers=INTERVIEWER)
        assert first.status_code == 200
        assert first.json()["duplicate"] is False
        assert second.json()["duplicate"] is True
        assert len(mock_repo.sessions) == 1

    def test_replay_rejection_body(self, client):
        sid = _create(client)["id"]
        action = {
            "type": "update",
            "table": "interview_sessions",
            "session_id": sid,
            "payload": {"quality_status": "approved"},
        }
        resp = client.post("/api/v1/sync/actions", json=action, headers=INTERVIEWER)
        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"


class TestReferenceRoutes:
    def test_steps(self, client):
        steps = client.get("/api/v1/reference/steps").json()
        assert [s["id"] for s in steps][0] == "consent"
        assert steps[-1]["id"] == "complete"

    def test_health_states(self, client, catalogue):
        states = client.get("/api/v1/reference/health-states").json()
        assert len(states) == catalogue.tto_task_count
        assert states[0]["code"] == "21231"

    def test_dce_pairs(self, client, catalogue):
        pairs = client.get("/api/v1/reference/dce-pairs").json()
        assert len(pairs) == catalogue.dce_task_count
