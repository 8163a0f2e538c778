"""Unit tests for repository serialization helpers and transaction_scope.

No database: ORM models are instantiated in memory and transaction_scope
is driven with a fake session that records begin/commit/rollback/close.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from src.rollcall.core.database import transaction_scope
from src.rollcall.errors import ValidationError
from src.rollcall.selection.models import MeetingModel, ParticipantModel, SelectionRecordModel
from src.rollcall.selection.repository import (
    SelectionRepository,
    _as_uuid,
    _model_to_meeting,
    _model_to_participant,
    _model_to_record,
    _record_conditions,
    _record_to_model,
)
from src.rollcall.selection.schemas import SelectionMethod, SelectionScope

ORG = uuid.uuid4()
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeSession:
    def __init__(self) -> None:
        self.events: list[str] = []

    @asynccontextmanager
    async def begin(self):
        self.events.append("begin")
        try:
            yield
        except BaseException:
            self.events.append("rollback")
            raise
        self.events.append("commit")


def _make_factory(session: FakeSession):
    async def factory():
        try:
            yield session
        finally:
            session.events.append("close")

    return factory


class TestTransactionScope:
    async def test_commit_and_close_on_success(self):
        session = FakeSession()
        async with transaction_scope(_make_factory(session)) as s:
            assert s is session
        assert session.events == ["begin", "commit", "close"]

    async def test_rollback_and_close_on_error(self):
        session = FakeSession()
        with pytest.raises(RuntimeError):
            async with transaction_scope(_make_factory(session)):
                raise RuntimeError("boom")
        assert session.events == ["begin", "rollback", "close"]

    async def test_repository_transaction_wraps_session(self):
        session = FakeSession()
        repo = SelectionRepository(_make_factory(session))
        async with repo.transaction() as uow:
            assert uow._session is session
        assert session.events == ["begin", "commit", "close"]


class TestIdConversion:
    def test_valid_uuid(self):
        value = uuid.uuid4()
        assert _as_uuid(str(value), "meeting_id") == value

    def test_malformed_id(self):
        with pytest.raises(ValidationError) as exc_info:
            _as_uuid("not-a-uuid", "meeting_id")
        assert exc_info.value.context == {"field": "meeting_id"}


class TestSerialization:
    def test_participant_round_trip(self):
        team = uuid.uuid4()
        model = ParticipantModel(
            id=uuid.uuid4(),
            organization_id=ORG,
            name="Alice",
            department="Engineering",
            team_id=team,
            selection_count=None,
            is_active=None,
            last_selected_at=NOW,
            created_at=NOW,
        )
        participant = _model_to_participant(model)
        assert participant.organization_id == str(ORG)
        assert participant.team_id == str(team)
        assert participant.selection_count == 0
        assert participant.is_active is True

    def test_meeting_settings_and_roster(self):
        member = uuid.uuid4()
        model = MeetingModel(
            id=uuid.uuid4(),
            organization_id=ORG,
            name="Standup",
            department="Engineering",
            roster_data=[str(member)],
            settings_data={"selection_method": "weighted", "spin_duration_ms": 5000},
            total_spins=7,
            last_activity=NOW,
            is_active=True,
        )
        meeting = _model_to_meeting(model)
        assert meeting.roster == [str(member)]
        assert meeting.settings.selection_method is SelectionMethod.WEIGHTED
        assert meeting.settings.spin_duration_ms == 5000
        assert meeting.settings.exclude_recently_selected is True
        assert meeting.statistics.total_spins == 7
        assert meeting.team_id is None

    def test_record_round_trip(self):
        model = SelectionRecordModel(
            id=uuid.uuid4(),
            organization_id=ORG,
            meeting_id=uuid.uuid4(),
            participant_id=uuid.uuid4(),
            participant_name="Alice",
            department="Engineering",
            selection_method="weighted",
            duration_ms=1200,
            session_id="s-1",
            metadata_json={"total_eligible": 3, "selection_round": 2},
            selected_at=NOW,
        )
        record = _model_to_record(model)
        assert record.selection_method is SelectionMethod.WEIGHTED
        assert record.metadata.selection_round == 2

        back = _record_to_model(record)
        assert back.id == model.id
        assert back.participant_id == model.participant_id
        assert back.selection_method == "weighted"
        assert back.metadata_json["total_eligible"] == 3


class TestRecordConditions:
    def test_org_only(self):
        assert len(_record_conditions(SelectionScope(organization_id=str(ORG)))) == 1

    def test_all_filters(self):
        scope = SelectionScope(
            organization_id=str(ORG),
            department="Engineering",
            meeting_id=str(uuid.uuid4()),
            team_id=str(uuid.uuid4()),
        )
        conditions = _record_conditions(
            scope, participant_id=str(uuid.uuid4()), since=NOW, until=NOW
        )
        assert len(conditions) == 7

    def test_bad_scope_id(self):
        with pytest.raises(ValidationError):
            _record_conditions(SelectionScope(organization_id="org-1"))
