"""QualityReviewWorkflow — administrator review of completed sessions.

States: pending -> {approved, flagged, rejected}, and any state may move to
any other so a decision can be corrected.  Only an administrator may write
the ``quality_*`` columns.  Each real transition records reviewer and
timestamp and emits exactly one ``quality_status_changed`` event, sent
through the transaction's outbox once the caller commits.  Re-applying the
current state only updates the notes.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tto_db.models.enums import QualityStatus
from tto_db.models.session import InterviewSession
from tto_db.repository import SessionRepository

from tto_protocol import outbox
from tto_protocol.context import ActorContext
from tto_protocol.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class QualityReviewWorkflow:
    def __init__(
        self,
        repo: SessionRepository,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._repo = repo
        self._dispatcher = dispatcher or NotificationDispatcher()

    async def apply(
        self,
        db: AsyncSession,
        actor: ActorContext,
        session: InterviewSession,
        status: QualityStatus,
        notes: str | None = None,
    ) -> bool:
        """Apply a review decision to a loaded session row.

        Returns ``True`` when the status actually changed (and an event was
        queued), ``False`` for a same-state note update.

        Raises:
            PermissionDeniedError: the actor is not an administrator
        """
        actor.require_admin("review session quality")
        status = QualityStatus(status)
        previous = QualityStatus(session.quality_status)

        if status == previous:
            await self._repo.set_quality_notes(db, session, notes)
            logger.info(
                "Review notes updated on session %s by %s (status unchanged: %s)",
                session.id, actor.user_id, status.value,
            )
            return False

        await self._repo.set_quality_review(
            db, session, status=status, reviewed_by=actor.user_id, notes=notes,
        )
        logger.info(
            "Session %s quality %s -> %s by %s",
            session.id, previous.value, status.value, actor.user_id,
        )
        dispatcher = self._dispatcher
        event = dispatcher.quality_status_changed(session, status, notes)
        outbox.defer(db, lambda: dispatcher.dispatch(event))
        return True
