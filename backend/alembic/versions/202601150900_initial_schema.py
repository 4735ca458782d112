"""Initial Health Track schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202601150900"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "timed_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_timed_sessions_kind_start_time", "timed_sessions", ["kind", "start_time"], unique=False)
    op.create_index("ix_timed_sessions_kind_end_time", "timed_sessions", ["kind", "end_time"], unique=False)

    op.create_table(
        "recommendations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("session_kind", sa.String(length=20), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("session_data", JSON_TYPE, nullable=False),
        sa.Column("result", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_recommendations_status", "recommendations", ["status"], unique=False)
    op.create_index("ix_recommendations_session", "recommendations", ["session_kind", "session_id"], unique=False)

    op.create_table(
        "weight_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_weight_entries_date", "weight_entries", ["date"], unique=False)

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("target_weight", sa.Float(), nullable=False),
        sa.Column("start_weight", sa.Float(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "sleep_goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("target_hours", sa.Float(), nullable=False),
        sa.Column("target_bedtime", sa.Time(), nullable=True),
        sa.Column("target_wake_time", sa.Time(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("weight_unit", sa.String(length=10), nullable=False, server_default=sa.text("'lbs'")),
        sa.Column("height_unit", sa.String(length=10), nullable=False, server_default=sa.text("'inches'")),
        sa.Column("user_height", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("weight_unit IN ('lbs', 'kg')", name="ck_user_settings_weight_unit"),
        sa.CheckConstraint("height_unit IN ('inches', 'cm')", name="ck_user_settings_height_unit"),
    )


def downgrade() -> None:
    op.drop_table("user_settings")
    op.drop_table("sleep_goals")
    op.drop_table("goals")
    op.drop_index("ix_weight_entries_date", table_name="weight_entries")
    op.drop_table("weight_entries")
    op.drop_index("ix_recommendations_session", table_name="recommendations")
    op.drop_index("ix_recommendations_status", table_name="recommendations")
    op.drop_table("recommendations")
    op.drop_index("ix_timed_sessions_kind_end_time", table_name="timed_sessions")
    op.drop_index("ix_timed_sessions_kind_start_time", table_name="timed_sessions")
    op.drop_table("timed_sessions")
