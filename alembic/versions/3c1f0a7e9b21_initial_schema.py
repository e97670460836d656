"""Initial schema: members, events, attendance, point history, poll mappings

Revision ID: 3c1f0a7e9b21
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3c1f0a7e9b21"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("rank_change", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_rank", sa.Integer(), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_members_status_points", "members", ["status", "points"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("is_draft", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_reverted", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("custom_rules", postgresql.JSONB(), nullable=True),
        sa.Column("selected_members", postgresql.JSONB(), nullable=True),
        sa.Column("poll_event_id", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("poll_event_id", name="uq_events_poll_event_id"),
    )
    op.create_index("ix_events_created_at", "events", ["created_at"])

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "member_id", sa.Integer(),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("points_change", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "member_id", name="uq_attendance_event_member"),
    )

    op.create_table(
        "point_history",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "member_id", sa.Integer(),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("points_change", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("new_total", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_point_history_member_time", "point_history", ["member_id", "timestamp"])
    op.create_index("ix_point_history_timestamp", "point_history", ["timestamp"])

    op.create_table(
        "poll_member_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("person_name", sa.String(200), nullable=False),
        sa.Column(
            "member_id", sa.Integer(),
            sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("person_name", name="uq_poll_mappings_person"),
    )


def downgrade() -> None:
    op.drop_table("poll_member_mappings")
    op.drop_index("ix_point_history_timestamp", table_name="point_history")
    op.drop_index("ix_point_history_member_time", table_name="point_history")
    op.drop_table("point_history")
    op.drop_table("attendance_records")
    op.drop_index("ix_events_created_at", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_members_status_points", table_name="members")
    op.drop_table("members")
