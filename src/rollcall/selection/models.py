"""Selection persistence models.

Three SQLAlchemy models sharing the rollcall Base:
- MeetingModel: Meetings, their spin settings and spin counters
- ParticipantModel: People eligible for selection, with selection counters
- SelectionRecordModel: Append-only selection events with snapshot fields

Meetings and participants are written by the collaborator services that
own their CRUD; this package only reads them and updates the counter
columns (total_spins, last_activity, selection_count, last_selected_at).

No foreign key constraints between records and participants: records keep
name/department/team snapshots and survive participant deletion.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.rollcall.core.database import Base
from src.rollcall.selection.schemas import MAX_DURATION_MS


class MeetingModel(Base):
    """Meeting whose participants are picked by spins.

    roster_data holds explicit participant ids (JSON array); an empty array
    means the pool is derived from department/team. settings_data holds
    MeetingSettings as JSON for Pydantic round-tripping.
    """

    __tablename__ = "meetings"
    __table_args__ = (
        Index("ix_meetings_org_department", "organization_id", "department"),
        CheckConstraint("total_spins >= 0", name="ck_meetings_total_spins"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true")
    )
    roster_data: Mapped[list] = mapped_column(
        JSON, default=list, server_default=text("'[]'::json")
    )
    settings_data: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    total_spins: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    last_activity: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class ParticipantModel(Base):
    """Participant with selection counters kept in step with the event log."""

    __tablename__ = "participants"
    __table_args__ = (
        Index("ix_participants_org_department", "organization_id", "department"),
        Index("ix_participants_org_team", "organization_id", "team_id"),
        CheckConstraint("selection_count >= 0", name="ck_participants_selection_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(300), nullable=True)
    role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true")
    )
    selection_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    last_selected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class SelectionRecordModel(Base):
    """Immutable selection event. Rows are inserted and bulk-deleted, never updated."""

    __tablename__ = "selection_records"
    __table_args__ = (
        Index("ix_records_org_meeting_time", "organization_id", "meeting_id", "selected_at"),
        Index("ix_records_org_participant_time", "organization_id", "participant_id", "selected_at"),
        Index("ix_records_org_department_time", "organization_id", "department", "selected_at"),
        Index("ix_records_org_team_time", "organization_id", "team_id", "selected_at"),
        Index("ix_records_org_session", "organization_id", "session_id"),
        CheckConstraint(
            f"duration_ms IS NULL OR (duration_ms >= 0 AND duration_ms <= {MAX_DURATION_MS})",
            name="ck_records_duration_ms",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    meeting_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    participant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    participant_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    team_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    selection_method: Mapped[str] = mapped_column(
        String(20), default="random", server_default=text("'random'")
    )
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    metadata_json: Mapped[dict] = mapped_column(
        JSON, default=dict, server_default=text("'{}'::json")
    )
    selected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
