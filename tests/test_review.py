"""QualityReviewWorkflow tests — admin authority, transitions, one event each."""

import pytest

from tto_db.models.enums import InterviewStep, QualityStatus
from tto_protocol.errors import PermissionDeniedError
from tto_protocol.models.answers import ReviewDecision
from tto_protocol.notifications import NotificationDispatcher
from tto_protocol.review import QualityReviewWorkflow

from helpers.flow import advance_to


async def _completed(engine, db, actor, code="R100"):
    info = await engine.create_session(db, actor, respondent_code=code)
    await advance_to(engine, db, actor, info.id, InterviewStep.COMPLETE)
    return info


class TestReviewQuality:
    @pytest.mark.asyncio
    async def test_approve(self, engine, mock_db, interviewer, admin, sink):
        info = await _completed(engine, mock_db, interviewer)
        out = await engine.review_quality(
            mock_db, admin, info.id, ReviewDecision(status=QualityStatus.APPROVED)
        )
        assert out.quality_status == "approved"
        assert out.quality_reviewed_by == "admin-1"
        assert out.quality_reviewed_at is not None
        await mock_db.commit()

        events = sink.of_type("quality_status_changed")
        assert len(events) == 1
        assert events[0].alert_type == "quality_update"
        assert events[0].message == "Great work! Session R100 has been approved."
        assert events[0].interviewer_id == "int-1"

    @pytest.mark.asyncio
    async def test_non_admin_cannot_review(self, engine, mock_db, interviewer, mock_repo, sink):
        info = await _completed(engine, mock_db, interviewer)
        with pytest.raises(PermissionDeniedError):
            await engine.review_quality(
                mock_db, interviewer, info.id, ReviewDecision(status=QualityStatus.APPROVED)
            )
        assert mock_repo.sessions[info.id].quality_status == "pending"
        await mock_db.commit()
        assert sink.of_type("quality_status_changed") == []

    @pytest.mark.asyncio
    async def test_decisions_can_be_corrected(
        self, engine, mock_db, interviewer, admin, second_admin, sink
    ):
        info = await _completed(engine, mock_db, interviewer)
        await engine.review_quality(
            mock_db, admin, info.id, ReviewDecision(status=QualityStatus.FLAGGED, notes="odd")
        )
        out = await engine.review_quality(
            mock_db,
            second_admin,
            info.id,
            ReviewDecision(status=QualityStatus.REJECTED, notes="all answers identical"),
        )
        assert out.quality_status == "rejected"
        assert out.quality_reviewed_by == "admin-2"
        await mock_db.commit()

        events = sink.of_type("quality_status_changed")
        assert [e.alert_type for e in events] == ["goal_at_risk", "goal_failed"]
        assert events[1].message == (
            "Session R100 was rejected. Reason: all answers identical"
        )

    @pytest.mark.asyncio
    async def test_same_status_only_updates_notes(
        self, engine, mock_db, interviewer, admin, sink
    ):
        info = await _completed(engine, mock_db, interviewer)
        first = await engine.review_quality(
            mock_db, admin, info.id, ReviewDecision(status=QualityStatus.FLAGGED, notes="a")
        )
        again = await engine.review_quality(
            mock_db, admin, info.id, ReviewDecision(status=QualityStatus.FLAGGED, notes="b")
        )
        assert again.quality_notes == "b"
        assert again.quality_reviewed_at == first.quality_reviewed_at
        await mock_db.commit()
        assert len(sink.of_type("quality_status_changed")) == 1


class TestWorkflowDirect:
    @pytest.mark.asyncio
    async def test_returns_whether_status_changed(self, mock_repo, mock_db, admin, sink):
        session = await mock_repo.create_session(
            mock_db, interviewer_id="int-1", respondent_code="R9"
        )
        workflow = QualityReviewWorkflow(mock_repo, NotificationDispatcher([sink]))
        assert await workflow.apply(mock_db, admin, session, QualityStatus.APPROVED) is True
        assert await workflow.apply(mock_db, admin, session, QualityStatus.APPROVED) is False
        await mock_db.commit()
        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_back_to_pending(self, mock_repo, mock_db, admin, sink):
        session = await mock_repo.create_session(
            mock_db, interviewer_id="int-1", respondent_code="R9"
        )
        workflow = QualityReviewWorkflow(mock_repo, NotificationDispatcher([sink]))
        await workflow.apply(mock_db, admin, session, QualityStatus.REJECTED)
        await workflow.apply(mock_db, admin, session, QualityStatus.PENDING, "re-check")
        await mock_db.commit()
        assert session.quality_status == "pending"
        assert sink.events[-1].message == (
            "Quality status updated for session R9: pending. Note: re-check"
        )

    @pytest.mark.asyncio
    async def test_event_waits_for_commit(self, mock_repo, mock_db, admin, sink):
        session = await mock_repo.create_session(
            mock_db, interviewer_id="int-1", respondent_code="R9"
        )
        workflow = QualityReviewWorkflow(mock_repo, NotificationDispatcher([sink]))
        await workflow.apply(mock_db, admin, session, QualityStatus.FLAGGED)
        assert sink.events == []

        await mock_db.rollback()
        await mock_db.commit()
        assert sink.events == []
