"""Create the interview session tables.

Initial migration: ``interview_sessions`` plus its child response tables
(``eq5d_responses``, ``tto_responses``, ``dce_responses``,
``demographics``, ``session_notes``) and the ``applied_actions`` replay
ledger.

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _session_fk() -> sa.Column:
    return sa.Column(
        "session_id",
        UUID(as_uuid=True),
        sa.ForeignKey("interview_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # --- Session row ---
    op.create_table(
        "interview_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        # Identity
        sa.Column("respondent_code", sa.Text, nullable=False),
        sa.Column("interviewer_id", sa.Text, nullable=False),
        sa.Column("language", sa.String(8), nullable=False, server_default=sa.text("'en'")),
        # Protocol position
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'in_progress'"),
        ),
        sa.Column(
            "current_step",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'consent'"),
        ),
        sa.Column(
            "auto_flags",
            ARRAY(sa.Text),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        # Administrator review
        sa.Column(
            "quality_status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("quality_reviewed_by", sa.Text, nullable=True),
        sa.Column("quality_reviewed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("quality_notes", sa.Text, nullable=True),
        # Optimistic concurrency
        sa.Column("version", sa.Integer, nullable=False, server_default=sa.text("1")),
        # Timestamps
        sa.Column(
            "started_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "interviewer_id", "respondent_code", name="uq_interviewer_respondent"
        ),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed', 'abandoned')",
            name="ck_session_status",
        ),
        sa.CheckConstraint(
            "quality_status IN ('pending', 'approved', 'flagged', 'rejected')",
            name="ck_quality_status",
        ),
        sa.CheckConstraint(
            "status != 'completed' OR "
            "(current_step = 'complete' AND completed_at IS NOT NULL)",
            name="ck_completed_is_terminal",
        ),
    )
    op.create_index("ix_interview_sessions_interviewer_id", "interview_sessions", ["interviewer_id"])
    op.create_index("ix_interview_sessions_status", "interview_sessions", ["status"])
    op.create_index(
        "ix_sessions_interviewer_started", "interview_sessions", ["interviewer_id", "started_at"]
    )
    op.create_index("ix_sessions_quality_status", "interview_sessions", ["quality_status"])

    # --- EQ-5D-5L warm-up ---
    op.create_table(
        "eq5d_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        _session_fk(),
        sa.Column("mobility", sa.SmallInteger, nullable=False),
        sa.Column("self_care", sa.SmallInteger, nullable=False),
        sa.Column("usual_activities", sa.SmallInteger, nullable=False),
        sa.Column("pain_discomfort", sa.SmallInteger, nullable=False),
        sa.Column("anxiety_depression", sa.SmallInteger, nullable=False),
        sa.Column("vas_score", sa.SmallInteger, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("session_id", name="uq_eq5d_session"),
        sa.CheckConstraint(
            "mobility BETWEEN 1 AND 5 AND self_care BETWEEN 1 AND 5 "
            "AND usual_activities BETWEEN 1 AND 5 "
            "AND pain_discomfort BETWEEN 1 AND 5 "
            "AND anxiety_depression BETWEEN 1 AND 5",
            name="ck_eq5d_levels",
        ),
        sa.CheckConstraint("vas_score BETWEEN 0 AND 100", name="ck_eq5d_vas"),
    )
    op.create_index("ix_eq5d_responses_session_id", "eq5d_responses", ["session_id"])

    # --- TTO tasks ---
    op.create_table(
        "tto_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        _session_fk(),
        sa.Column("task_number", sa.SmallInteger, nullable=False),
        sa.Column("health_state", sa.Text, nullable=False),
        sa.Column("final_value", sa.Float, nullable=False),
        sa.Column("is_worse_than_death", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("lead_time_value", sa.Float, nullable=True),
        sa.Column("flagged", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("flag_reason", sa.Text, nullable=True),
        sa.Column("moves_count", sa.SmallInteger, nullable=False, server_default=sa.text("0")),
        sa.Column("time_spent_seconds", sa.SmallInteger, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("session_id", "task_number", name="uq_tto_session_task"),
        sa.CheckConstraint("task_number >= 1", name="ck_tto_task_positive"),
        sa.CheckConstraint("final_value BETWEEN -1 AND 1", name="ck_tto_value_range"),
        sa.CheckConstraint("is_worse_than_death = (final_value < 0)", name="ck_tto_wtd_sign"),
    )
    op.create_index("ix_tto_responses_session_id", "tto_responses", ["session_id"])
    # Export queries filter on creation date across sessions
    op.create_index("ix_tto_responses_created_at", "tto_responses", ["created_at"])

    # --- DCE tasks ---
    op.create_table(
        "dce_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        _session_fk(),
        sa.Column("task_number", sa.SmallInteger, nullable=False),
        sa.Column("state_a", sa.Text, nullable=False),
        sa.Column("state_b", sa.Text, nullable=False),
        sa.Column("chosen_state", sa.Text, nullable=False),
        sa.Column("time_spent_seconds", sa.SmallInteger, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("session_id", "task_number", name="uq_dce_session_task"),
        sa.CheckConstraint(
            "chosen_state = state_a OR chosen_state = state_b",
            name="ck_dce_chosen_is_option",
        ),
    )
    op.create_index("ix_dce_responses_session_id", "dce_responses", ["session_id"])

    # --- Demographics ---
    op.create_table(
        "demographics",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        _session_fk(),
        sa.Column("age", sa.SmallInteger, nullable=True),
        sa.Column("gender", sa.Text, nullable=True),
        sa.Column("education", sa.Text, nullable=True),
        sa.Column("employment", sa.Text, nullable=True),
        sa.Column("ethnicity", sa.Text, nullable=True),
        sa.Column("marital_status", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("session_id", name="uq_demographics_session"),
        sa.CheckConstraint("age IS NULL OR age BETWEEN 0 AND 130", name="ck_demo_age"),
    )
    op.create_index("ix_demographics_session_id", "demographics", ["session_id"])

    # --- Notes ---
    op.create_table(
        "session_notes",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        _session_fk(),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_by", sa.Text, nullable=False),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_session_notes_session_id", "session_notes", ["session_id"])

    # --- Replay ledger ---
    op.create_table(
        "applied_actions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", sa.Text, nullable=False),
        sa.Column("action_type", sa.String(10), nullable=False),
        sa.Column("target_table", sa.Text, nullable=False),
        sa.Column("result", JSONB, nullable=False),
        sa.Column("applied_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_applied_actions_session_id", "applied_actions", ["session_id"])


def downgrade() -> None:
    op.drop_table("applied_actions")
    op.drop_table("session_notes")
    op.drop_table("demographics")
    op.drop_table("dce_responses")
    op.drop_table("tto_responses")
    op.drop_table("eq5d_responses")
    op.drop_table("interview_sessions")
