"""Selection tables: meetings, participants, selection_records.

Revision ID: 001_selection_tables
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON

# revision identifiers, used by Alembic.
revision: str = "001_selection_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "meetings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("roster_data", JSON(), server_default=sa.text("'[]'::json")),
        sa.Column("settings_data", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("total_spins", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("total_spins >= 0", name="ck_meetings_total_spins"),
    )
    op.create_index("ix_meetings_org_department", "meetings", ["organization_id", "department"])

    op.create_table(
        "participants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(300), nullable=True),
        sa.Column("role", sa.String(100), nullable=True),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("selection_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_selected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("selection_count >= 0", name="ck_participants_selection_count"),
    )
    op.create_index("ix_participants_org_department", "participants", ["organization_id", "department"])
    op.create_index("ix_participants_org_team", "participants", ["organization_id", "team_id"])

    op.create_table(
        "selection_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("organization_id", UUID(as_uuid=True), nullable=False),
        sa.Column("meeting_id", UUID(as_uuid=True), nullable=False),
        sa.Column("participant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("participant_name", sa.String(100), nullable=False),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("team_id", UUID(as_uuid=True), nullable=True),
        sa.Column("selection_method", sa.String(20), server_default=sa.text("'random'")),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("session_id", sa.String(100), nullable=True),
        sa.Column("metadata_json", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "duration_ms IS NULL OR (duration_ms >= 0 AND duration_ms <= 60000)",
            name="ck_records_duration_ms",
        ),
    )
    op.create_index(
        "ix_records_org_meeting_time", "selection_records", ["organization_id", "meeting_id", "selected_at"]
    )
    op.create_index(
        "ix_records_org_participant_time", "selection_records", ["organization_id", "participant_id", "selected_at"]
    )
    op.create_index(
        "ix_records_org_department_time", "selection_records", ["organization_id", "department", "selected_at"]
    )
    op.create_index(
        "ix_records_org_team_time", "selection_records", ["organization_id", "team_id", "selected_at"]
    )
    op.create_index("ix_records_org_session", "selection_records", ["organization_id", "session_id"])


def downgrade() -> None:
    op.drop_table("selection_records")
    op.drop_table("participants")
    op.drop_table("meetings")
