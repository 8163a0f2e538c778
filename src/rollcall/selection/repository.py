"""Selection repository -- async reads and transactional writes.

Provides SelectionRepository with the session_factory callable pattern.
Read methods open a short-lived session per call (snapshot reads, no
locks). Writes go through transaction(), which yields a
SelectionUnitOfWork bound to one database transaction; everything done
through the unit of work commits together or not at all.

All methods take organization_id (or a SelectionScope) for tenant-scoped
queries. Ids cross this boundary as strings and are converted to UUIDs
here; malformed ids raise ValidationError.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from sqlalchemy import delete, func, literal, select, update

from src.rollcall.core.database import SessionFactory, get_session, transaction_scope
from src.rollcall.errors import ValidationError
from src.rollcall.selection.models import (
    MeetingModel,
    ParticipantModel,
    SelectionRecordModel,
)
from src.rollcall.selection.schemas import (
    Meeting,
    MeetingSettings,
    MeetingStatistics,
    Participant,
    SelectionMetadata,
    SelectionMethod,
    SelectionRecord,
    SelectionScope,
)

logger = structlog.get_logger(__name__)


def _as_uuid(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id: {value!r}", field=field) from None


def _opt_str(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_participant(model: ParticipantModel) -> Participant:
    """Convert ParticipantModel to Participant schema."""
    return Participant(
        id=str(model.id),
        organization_id=str(model.organization_id),
        name=model.name,
        email=model.email,
        role=model.role,
        department=model.department,
        team_id=_opt_str(model.team_id),
        selection_count=model.selection_count or 0,
        last_selected_at=model.last_selected_at,
        is_active=model.is_active if model.is_active is not None else True,
        created_at=model.created_at,
    )


def _model_to_meeting(model: MeetingModel) -> Meeting:
    """Convert MeetingModel to Meeting schema."""
    return Meeting(
        id=str(model.id),
        organization_id=str(model.organization_id),
        name=model.name,
        department=model.department,
        team_id=_opt_str(model.team_id),
        roster=[str(pid) for pid in (model.roster_data or [])],
        is_active=model.is_active if model.is_active is not None else True,
        settings=MeetingSettings.model_validate(model.settings_data or {}),
        statistics=MeetingStatistics(
            total_spins=model.total_spins or 0,
            last_activity=model.last_activity,
        ),
        created_at=model.created_at,
    )


def _model_to_record(model: SelectionRecordModel) -> SelectionRecord:
    """Convert SelectionRecordModel to SelectionRecord schema."""
    return SelectionRecord(
        id=str(model.id),
        organization_id=str(model.organization_id),
        meeting_id=str(model.meeting_id),
        participant_id=str(model.participant_id),
        participant_name=model.participant_name,
        department=model.department,
        team_id=_opt_str(model.team_id),
        selection_method=SelectionMethod(model.selection_method),
        duration_ms=model.duration_ms,
        session_id=model.session_id,
        metadata=SelectionMetadata.model_validate(model.metadata_json or {}),
        selected_at=model.selected_at,
    )


def _record_to_model(record: SelectionRecord) -> SelectionRecordModel:
    """Convert SelectionRecord schema to a new SelectionRecordModel row."""
    return SelectionRecordModel(
        id=_as_uuid(record.id, "record_id"),
        organization_id=_as_uuid(record.organization_id, "organization_id"),
        meeting_id=_as_uuid(record.meeting_id, "meeting_id"),
        participant_id=_as_uuid(record.participant_id, "participant_id"),
        participant_name=record.participant_name,
        department=record.department,
        team_id=_as_uuid(record.team_id, "team_id") if record.team_id else None,
        selection_method=record.selection_method.value,
        duration_ms=record.duration_ms,
        session_id=record.session_id,
        metadata_json=record.metadata.model_dump(mode="json"),
        selected_at=record.selected_at,
    )


def _record_conditions(
    scope: SelectionScope,
    participant_id: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list:
    """Build WHERE clauses for selection records inside a scope."""
    conditions = [
        SelectionRecordModel.organization_id == _as_uuid(scope.organization_id, "organization_id"),
    ]
    if scope.meeting_id:
        conditions.append(SelectionRecordModel.meeting_id == _as_uuid(scope.meeting_id, "meeting_id"))
    if scope.department:
        conditions.append(SelectionRecordModel.department == scope.department)
    if scope.team_id:
        conditions.append(SelectionRecordModel.team_id == _as_uuid(scope.team_id, "team_id"))
    if participant_id:
        conditions.append(
            SelectionRecordModel.participant_id == _as_uuid(participant_id, "participant_id")
        )
    if since is not None:
        conditions.append(SelectionRecordModel.selected_at >= since)
    if until is not None:
        conditions.append(SelectionRecordModel.selected_at < until)
    return conditions


def _participant_conditions(
    organization_id: str,
    department: str | None = None,
    team_id: str | None = None,
    participant_ids: Iterable[str] | None = None,
    active_only: bool = False,
) -> list:
    conditions = [
        ParticipantModel.organization_id == _as_uuid(organization_id, "organization_id"),
    ]
    if department:
        conditions.append(ParticipantModel.department == department)
    if team_id:
        conditions.append(ParticipantModel.team_id == _as_uuid(team_id, "team_id"))
    if participant_ids is not None:
        conditions.append(
            ParticipantModel.id.in_([_as_uuid(pid, "participant_id") for pid in participant_ids])
        )
    if active_only:
        conditions.append(ParticipantModel.is_active.is_(True))
    return conditions


# ── Unit of Work ────────────────────────────────────────────────────────────


class SelectionUnitOfWork:
    """Write operations bound to one open transaction.

    Only obtainable through SelectionRepository.transaction(); the
    surrounding scope owns commit and rollback.
    """

    def __init__(self, session) -> None:
        self._session = session

    async def get_meeting(
        self, organization_id: str, meeting_id: str, lock: bool = True
    ) -> Meeting | None:
        """Load a meeting, taking a row lock by default."""
        stmt = select(MeetingModel).where(
            MeetingModel.organization_id == _as_uuid(organization_id, "organization_id"),
            MeetingModel.id == _as_uuid(meeting_id, "meeting_id"),
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _model_to_meeting(model) if model is not None else None

    async def get_participant(
        self, organization_id: str, participant_id: str, lock: bool = True
    ) -> Participant | None:
        """Load a participant, taking a row lock by default."""
        stmt = select(ParticipantModel).where(
            ParticipantModel.organization_id == _as_uuid(organization_id, "organization_id"),
            ParticipantModel.id == _as_uuid(participant_id, "participant_id"),
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _model_to_participant(model) if model is not None else None

    async def count_session_records(self, organization_id: str, session_id: str) -> int:
        """Number of records already written under a spin session id."""
        stmt = select(func.count(SelectionRecordModel.id)).where(
            SelectionRecordModel.organization_id == _as_uuid(organization_id, "organization_id"),
            SelectionRecordModel.session_id == session_id,
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add_record(self, record: SelectionRecord) -> None:
        """Insert a selection record."""
        self._session.add(_record_to_model(record))
        await self._session.flush()

    async def increment_participant(
        self, organization_id: str, participant_id: str, selected_at: datetime
    ) -> Participant:
        """Add one selection to a participant.

        last_selected_at only moves forward.
        """
        stamp = literal(selected_at, ParticipantModel.last_selected_at.type)
        stmt = (
            update(ParticipantModel)
            .where(
                ParticipantModel.organization_id == _as_uuid(organization_id, "organization_id"),
                ParticipantModel.id == _as_uuid(participant_id, "participant_id"),
            )
            .values(
                selection_count=ParticipantModel.selection_count + 1,
                last_selected_at=func.greatest(
                    func.coalesce(ParticipantModel.last_selected_at, stamp), stamp
                ),
            )
            .returning(ParticipantModel)
            .execution_options(populate_existing=True)
        )
        model = (await self._session.scalars(stmt)).one()
        return _model_to_participant(model)

    async def increment_meeting(
        self, organization_id: str, meeting_id: str, selected_at: datetime
    ) -> None:
        """Add one spin to a meeting; last_activity only moves forward."""
        stamp = literal(selected_at, MeetingModel.last_activity.type)
        stmt = (
            update(MeetingModel)
            .where(
                MeetingModel.organization_id == _as_uuid(organization_id, "organization_id"),
                MeetingModel.id == _as_uuid(meeting_id, "meeting_id"),
            )
            .values(
                total_spins=MeetingModel.total_spins + 1,
                last_activity=func.greatest(
                    func.coalesce(MeetingModel.last_activity, stamp), stamp
                ),
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise RuntimeError(f"Meeting counter update touched {result.rowcount} rows")

    async def delete_records(self, scope: SelectionScope) -> list[tuple[str, str]]:
        """Delete records in scope.

        Returns:
            (participant_id, meeting_id) pairs of the deleted rows.
        """
        stmt = (
            delete(SelectionRecordModel)
            .where(*_record_conditions(scope))
            .returning(SelectionRecordModel.participant_id, SelectionRecordModel.meeting_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return [(str(row.participant_id), str(row.meeting_id)) for row in result]

    async def list_participant_ids(
        self,
        organization_id: str,
        department: str | None = None,
        team_id: str | None = None,
    ) -> list[str]:
        """Ids of all participants (active or not) matching department/team."""
        stmt = select(ParticipantModel.id).where(
            *_participant_conditions(organization_id, department=department, team_id=team_id)
        )
        result = await self._session.execute(stmt)
        return [str(pid) for pid in result.scalars().all()]

    async def refresh_participant_counters(
        self, organization_id: str, participant_id: str
    ) -> None:
        """Re-derive selection_count and last_selected_at from remaining records."""
        org = _as_uuid(organization_id, "organization_id")
        pid = _as_uuid(participant_id, "participant_id")
        stmt = select(
            func.count(SelectionRecordModel.id),
            func.max(SelectionRecordModel.selected_at),
        ).where(
            SelectionRecordModel.organization_id == org,
            SelectionRecordModel.participant_id == pid,
        )
        count, last = (await self._session.execute(stmt)).one()
        await self._session.execute(
            update(ParticipantModel)
            .where(ParticipantModel.organization_id == org, ParticipantModel.id == pid)
            .values(selection_count=count, last_selected_at=last)
        )

    async def refresh_meeting_counters(self, organization_id: str, meeting_id: str) -> None:
        """Re-derive total_spins and last_activity from remaining records."""
        org = _as_uuid(organization_id, "organization_id")
        mid = _as_uuid(meeting_id, "meeting_id")
        stmt = select(
            func.count(SelectionRecordModel.id),
            func.max(SelectionRecordModel.selected_at),
        ).where(
            SelectionRecordModel.organization_id == org,
            SelectionRecordModel.meeting_id == mid,
        )
        count, last = (await self._session.execute(stmt)).one()
        await self._session.execute(
            update(MeetingModel)
            .where(MeetingModel.organization_id == org, MeetingModel.id == mid)
            .values(total_spins=count, last_activity=last)
        )


# ── Repository ──────────────────────────────────────────────────────────────


class SelectionRepository:
    """Async reads and transactional writes for the selection domain.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SelectionUnitOfWork]:
        """Open one transaction and yield a unit of work bound to it."""
        async with transaction_scope(self._session_factory) as session:
            yield SelectionUnitOfWork(session)

    # ── Meetings ─────────────────────────────────────────────────────────

    async def get_meeting(self, organization_id: str, meeting_id: str) -> Meeting | None:
        """Get a meeting by ID.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.

        Returns:
            Meeting if found, None otherwise.
        """
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(
                MeetingModel.organization_id == _as_uuid(organization_id, "organization_id"),
                MeetingModel.id == _as_uuid(meeting_id, "meeting_id"),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_meeting(model)
        return None  # pragma: no cover

    async def list_meetings(
        self, organization_id: str, active_only: bool = False
    ) -> list[Meeting]:
        """List an organization's meetings ordered by creation time."""
        async for session in self._session_factory():
            stmt = select(MeetingModel).where(
                MeetingModel.organization_id == _as_uuid(organization_id, "organization_id"),
            )
            if active_only:
                stmt = stmt.where(MeetingModel.is_active.is_(True))
            stmt = stmt.order_by(MeetingModel.created_at, MeetingModel.id)
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]
        return []  # pragma: no cover

    # ── Participants ─────────────────────────────────────────────────────

    async def list_participants(
        self,
        organization_id: str,
        department: str | None = None,
        team_id: str | None = None,
        participant_ids: Iterable[str] | None = None,
        active_only: bool = False,
    ) -> list[Participant]:
        """List participants matching the filters in a stable order.

        Order is name then id, so strategies walking the list see the same
        candidate order for the same data.
        """
        async for session in self._session_factory():
            stmt = (
                select(ParticipantModel)
                .where(
                    *_participant_conditions(
                        organization_id,
                        department=department,
                        team_id=team_id,
                        participant_ids=participant_ids,
                        active_only=active_only,
                    )
                )
                .order_by(ParticipantModel.name, ParticipantModel.id)
            )
            result = await session.execute(stmt)
            return [_model_to_participant(p) for p in result.scalars().all()]
        return []  # pragma: no cover

    # ── Selection Records ────────────────────────────────────────────────

    async def list_records(
        self,
        scope: SelectionScope,
        participant_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[SelectionRecord]:
        """List selection records in scope.

        Args:
            scope: Organization plus optional meeting/department/team bounds.
            participant_id: Optional participant filter.
            since: Inclusive lower bound on selected_at.
            until: Exclusive upper bound on selected_at.
            limit: Maximum number of rows.
            newest_first: Sort by selected_at descending instead of ascending.

        Returns:
            List of SelectionRecord objects.
        """
        async for session in self._session_factory():
            order = (
                SelectionRecordModel.selected_at.desc()
                if newest_first
                else SelectionRecordModel.selected_at.asc()
            )
            stmt = (
                select(SelectionRecordModel)
                .where(*_record_conditions(scope, participant_id, since, until))
                .order_by(order, SelectionRecordModel.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [_model_to_record(r) for r in result.scalars().all()]
        return []  # pragma: no cover
