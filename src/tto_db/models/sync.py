"""AppliedAction ORM model — idempotency ledger for offline replay.

Every queued client action carries a client-generated id.  The first time
the server applies it, a row is written here (in the same transaction as the
mutation) holding the result that was returned.  A duplicate delivery finds
the row and gets the stored result back without re-applying anything.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from tto_db.models.base import Base


class AppliedAction(Base):
    """One row per client action id that has been applied."""

    __tablename__ = "applied_actions"

    # The client-generated PendingAction id
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)

    session_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    actor_id: Mapped[str] = mapped_column(Text, nullable=False)
    action_type: Mapped[str] = mapped_column(String(10), nullable=False)
    target_table: Mapped[str] = mapped_column(Text, nullable=False)
    # JSON-serialisable result returned to the first caller
    result: Mapped[dict] = mapped_column(JSONB, nullable=False)

    applied_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
