"""Unit tests for candidate pool resolution and the recency eligibility policy."""

from __future__ import annotations

import math
import uuid
from datetime import timedelta

import pytest

from src.rollcall.errors import NoEligibleParticipantsError, NotFoundError
from src.rollcall.selection.pool import ParticipantPool, apply_recency_policy, filter_eligible
from src.rollcall.selection.schemas import Participant
from tests.doubles import ORG_ID, OTHER_ORG_ID, START


def _make_participant(name: str, minutes_ago: int | None = None, **overrides) -> Participant:
    defaults = {
        "id": str(uuid.uuid4()),
        "organization_id": ORG_ID,
        "name": name,
        "department": "Engineering",
        "last_selected_at": (
            START - timedelta(minutes=minutes_ago) if minutes_ago is not None else None
        ),
        "selection_count": 0 if minutes_ago is None else 1,
    }
    defaults.update(overrides)
    return Participant(**defaults)


class TestRecencyPolicy:
    def test_never_selected_subset_wins(self):
        a = _make_participant("A")
        b = _make_participant("B", minutes_ago=5)
        c = _make_participant("C")
        assert apply_recency_policy([a, b, c]) == [a, c]

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 7, 10])
    def test_all_selected_keeps_oldest_half_rounded_up(self, n):
        people = [_make_participant(f"P{i}", minutes_ago=(i * 7) % 13 + i) for i in range(n)]
        eligible = apply_recency_policy(people)

        assert len(eligible) == math.ceil(n / 2)
        oldest = sorted(people, key=lambda p: p.last_selected_at)[: math.ceil(n / 2)]
        assert eligible == oldest

    def test_oldest_first_order(self):
        recent = _make_participant("Recent", minutes_ago=1)
        oldest = _make_participant("Oldest", minutes_ago=100)
        middle = _make_participant("Middle", minutes_ago=50)
        assert apply_recency_policy([recent, oldest, middle]) == [oldest, middle]

    def test_empty_input(self):
        assert apply_recency_policy([]) == []


class TestFilterEligible:
    def test_without_exclusion_everyone_stays(self):
        people = [_make_participant("A", minutes_ago=1), _make_participant("B", minutes_ago=2)]
        assert filter_eligible(people, exclude_recently_selected=False) == people

    def test_empty_pool_raises(self):
        with pytest.raises(NoEligibleParticipantsError):
            filter_eligible([], exclude_recently_selected=True)
        with pytest.raises(NoEligibleParticipantsError):
            filter_eligible([], exclude_recently_selected=False)


class TestParticipantPool:
    async def test_roster_takes_precedence(self, repo):
        alice = repo.add_participant("Alice")
        bob = repo.add_participant("Bob", department="Sales")
        repo.add_participant("Carol")
        meeting = repo.add_meeting(roster=[alice.id, bob.id])

        pool = await ParticipantPool(repo).resolve(ORG_ID, meeting.id, department="Engineering")

        assert pool.meeting.id == meeting.id
        assert [p.name for p in pool.candidates] == ["Alice", "Bob"]

    async def test_department_fallback_without_roster(self, repo):
        repo.add_participant("Alice")
        repo.add_participant("Bob", department="Sales")
        meeting = repo.add_meeting(department="Engineering")

        pool = await ParticipantPool(repo).resolve(ORG_ID, meeting.id)
        assert [p.name for p in pool.candidates] == ["Alice"]

    async def test_request_department_overrides_meeting(self, repo):
        repo.add_participant("Alice")
        repo.add_participant("Bob", department="Sales")
        meeting = repo.add_meeting(department="Engineering")

        pool = await ParticipantPool(repo).resolve(ORG_ID, meeting.id, department="Sales")
        assert [p.name for p in pool.candidates] == ["Bob"]

    async def test_meeting_team_narrows_pool(self, repo):
        team = str(uuid.uuid4())
        repo.add_participant("Alice", team_id=team)
        repo.add_participant("Bob")
        meeting = repo.add_meeting(team_id=team)

        pool = await ParticipantPool(repo).resolve(ORG_ID, meeting.id)
        assert [p.name for p in pool.candidates] == ["Alice"]

    async def test_inactive_and_other_org_excluded(self, repo):
        repo.add_participant("Alice")
        repo.add_participant("Dormant", is_active=False)
        repo.add_participant("Outsider", organization_id=OTHER_ORG_ID)
        meeting = repo.add_meeting()

        pool = await ParticipantPool(repo).resolve(ORG_ID, meeting.id)
        assert [p.name for p in pool.candidates] == ["Alice"]

    async def test_missing_meeting_raises(self, repo):
        with pytest.raises(NotFoundError):
            await ParticipantPool(repo).resolve(ORG_ID, str(uuid.uuid4()))

    async def test_meeting_from_other_org_is_not_found(self, repo):
        meeting = repo.add_meeting(organization_id=OTHER_ORG_ID)
        with pytest.raises(NotFoundError):
            await ParticipantPool(repo).resolve(ORG_ID, meeting.id)
