"""Unit tests for the pure analytics computations."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.rollcall.analytics.metrics import (
    NO_DATA,
    calculate_trend,
    compute_department_performance,
    compute_engagement,
    compute_fairness,
    compute_peak_hours,
    compute_recent_meetings,
    compute_top_participants,
    compute_weekly_activity,
    compute_weekly_trend,
    format_seconds,
    round_half_up,
    summarize_week,
)
from src.rollcall.analytics.schemas import WeekStats
from src.rollcall.selection.schemas import (
    Meeting,
    MeetingStatistics,
    Participant,
    SelectionMethod,
    SelectionRecord,
)

ORG = "org-1"
NOW = datetime(2026, 3, 4, 15, 30, tzinfo=timezone.utc)  # Wednesday


def _make_participant(name: str, **overrides) -> Participant:
    defaults = {
        "id": f"p-{name}",
        "organization_id": ORG,
        "name": name,
        "department": "Engineering",
    }
    defaults.update(overrides)
    return Participant(**defaults)


def _make_record(participant_id: str, selected_at: datetime, **overrides) -> SelectionRecord:
    defaults = {
        "id": str(uuid.uuid4()),
        "organization_id": ORG,
        "meeting_id": "m-1",
        "participant_id": participant_id,
        "participant_name": participant_id,
        "department": "Engineering",
        "selection_method": SelectionMethod.RANDOM,
        "selected_at": selected_at,
    }
    defaults.update(overrides)
    return SelectionRecord(**defaults)


def _make_meeting(name: str, **overrides) -> Meeting:
    defaults = {
        "id": f"m-{name}",
        "organization_id": ORG,
        "name": name,
        "department": "Engineering",
    }
    defaults.update(overrides)
    return Meeting(**defaults)


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected", [(2.5, 3), (3.5, 4), (-2.5, -2), (66.666, 67), (0.49, 0)]
    )
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_one_decimal(self):
        assert round_half_up(7.25, 1) == 7.3

    def test_format_seconds(self):
        assert format_seconds(0) == "0s"
        assert format_seconds(2500) == "3s"
        assert format_seconds(1499) == "1s"


class TestTrend:
    def test_doubling(self):
        assert calculate_trend(20, 10) == "+100%"

    def test_zero_to_zero(self):
        assert calculate_trend(0, 0) == "+0%"

    def test_growth_from_nothing(self):
        assert calculate_trend(3, 0) == "+100%"

    def test_decline(self):
        assert calculate_trend(5, 10) == "-50%"
        assert calculate_trend(0, 4) == "-100%"

    def test_no_change(self):
        assert calculate_trend(7, 7) == "+0%"

    def test_response_time_is_inverted(self):
        faster = WeekStats(spins=10, response_time_ms=1000)
        slower = WeekStats(spins=10, response_time_ms=2000)
        trend = compute_weekly_trend(this_week=faster, last_week=slower)
        assert trend.response_time == "+100%"
        assert trend.spins == "+0%"

    def test_week_summary_uses_half_open_window(self):
        start, end = NOW - timedelta(days=7), NOW
        records = [
            _make_record("p-A", start, duration_ms=1000),
            _make_record("p-A", end - timedelta(seconds=1), duration_ms=3000),
            _make_record("p-A", end),
            _make_record("p-A", start - timedelta(seconds=1)),
        ]
        meetings = [
            _make_meeting("new", created_at=NOW - timedelta(days=1)),
            _make_meeting("old", created_at=NOW - timedelta(days=30)),
        ]
        participants = [_make_participant("A", created_at=NOW - timedelta(days=2))]

        stats = summarize_week(meetings, participants, records, start, end)

        assert stats.spins == 2
        assert stats.meetings == 1
        assert stats.participants == 1
        assert stats.response_time_ms == 2000


class TestFairness:
    def test_empty_scope(self):
        report = compute_fairness([], [])
        assert report.fairness_score == 0
        assert report.total_participants == 0
        assert report.selection_distribution == []

    def test_half_selected(self):
        a, b = _make_participant("A"), _make_participant("B")
        records = [_make_record(b.id, NOW), _make_record(b.id, NOW - timedelta(hours=1))]

        report = compute_fairness([a, b], records)

        assert report.fairness_score == 50
        assert report.participants_selected_at_least_once == 1
        assert report.total_participants == 2
        assert [(d.participant_name, d.selection_count) for d in report.selection_distribution] == [
            ("B", 2),
            ("A", 0),
        ]

    def test_records_outside_scope_ignored(self):
        a = _make_participant("A")
        report = compute_fairness([a], [_make_record("p-ghost", NOW)])
        assert report.fairness_score == 0

    def test_rounds_to_whole_percent(self):
        people = [_make_participant(n) for n in "ABC"]
        report = compute_fairness(people, [_make_record("p-A", NOW), _make_record("p-B", NOW)])
        assert report.fairness_score == 67


class TestEngagement:
    def test_no_activity(self):
        score = compute_engagement([_make_participant("A")], [])
        assert score.overall_score == 0
        assert score.participation_rate == 0
        assert score.repeat_usage_rate == 0

    def test_no_participants(self):
        score = compute_engagement([], [])
        assert score.overall_score == 0

    def test_blended_score(self):
        people = [_make_participant(n) for n in "ABCD"]
        records = [
            _make_record("p-A", NOW, duration_ms=30_000),
            _make_record("p-A", NOW, duration_ms=30_000),
            _make_record("p-B", NOW, duration_ms=30_000),
        ]

        score = compute_engagement(people, records, window_days=30)

        # p = 0.5, r = 0.5, d = 0.5 -> 2 + 1.5 + 1.5
        assert score.overall_score == 5.0
        assert score.participation_rate == 50
        assert score.repeat_usage_rate == 50
        assert score.average_session_duration == 30

    def test_caps_at_ten(self):
        people = [_make_participant("A")]
        records = [_make_record("p-A", NOW, duration_ms=60_000) for _ in range(3)]
        assert compute_engagement(people, records).overall_score == 10.0

    def test_participation_capped_when_records_exceed_roster(self):
        people = [_make_participant("A")]
        records = [_make_record("p-A", NOW), _make_record("p-gone", NOW)]
        assert compute_engagement(people, records).participation_rate == 100


class TestPeakHours:
    def test_empty_history(self):
        peak = compute_peak_hours([])
        assert peak.peak_hour == NO_DATA
        assert peak.activity_percentage == 0

    def test_busiest_hour(self):
        day = NOW.replace(hour=0, minute=0)
        records = [
            _make_record("p-A", day.replace(hour=9, minute=5)),
            _make_record("p-A", day.replace(hour=9, minute=45)),
            _make_record("p-A", day.replace(hour=14)),
            _make_record("p-A", day.replace(hour=23)),
        ]
        peak = compute_peak_hours(records)
        assert peak.peak_hour == "9:00-10:00"
        assert peak.activity_percentage == 50
        assert peak.hourly_distribution[0].hour == 9

    def test_tie_goes_to_earliest_hour(self):
        day = NOW.replace(hour=0, minute=0)
        records = [
            _make_record("p-A", day.replace(hour=16)),
            _make_record("p-A", day.replace(hour=8)),
        ]
        assert compute_peak_hours(records).peak_hour == "8:00-9:00"

    def test_buckets_in_utc(self):
        plus_two = timezone(timedelta(hours=2))
        record = _make_record("p-A", datetime(2026, 3, 4, 11, 0, tzinfo=plus_two))
        assert compute_peak_hours([record]).peak_hour == "9:00-10:00"


class TestDepartmentPerformance:
    def test_groups_by_record_snapshot(self):
        records = [
            _make_record("p-A", NOW - timedelta(days=1), department="Sales", duration_ms=2000),
            _make_record("p-A", NOW - timedelta(days=2), department="Sales", meeting_id="m-2", duration_ms=4000),
            _make_record("p-B", NOW - timedelta(days=9), department="Sales"),
            _make_record("p-C", NOW - timedelta(days=1), department="Design"),
        ]

        departments = compute_department_performance(records, NOW, window_days=7)

        assert [d.name for d in departments] == ["Sales", "Design"]
        sales = departments[0]
        assert sales.selections == 3
        assert sales.participants == 2
        assert sales.meetings == 2
        assert sales.average_response_time == 3.0
        assert sales.growth == "+100%"
        assert departments[1].growth == "+100%"

    def test_empty(self):
        assert compute_department_performance([], NOW) == []


class TestWeeklyActivity:
    def test_zero_filled_seven_days(self):
        records = [
            _make_record("p-A", NOW),
            _make_record("p-A", NOW - timedelta(hours=1)),
            _make_record("p-A", NOW - timedelta(days=3)),
        ]

        activity = compute_weekly_activity(records, NOW)

        assert len(activity) == 7
        assert activity[-1].date == "2026-03-04"
        assert activity[-1].day == "Wed"
        assert activity[-1].selections == 2
        assert activity[0].date == "2026-02-26"
        assert [a.selections for a in activity] == [0, 0, 0, 1, 0, 0, 2]


class TestRankings:
    def test_top_participants(self):
        a, b, c = (_make_participant(n) for n in "ABC")
        records = [
            _make_record(b.id, NOW - timedelta(days=1)),
            _make_record(b.id, NOW, meeting_id="m-2"),
            _make_record(a.id, NOW - timedelta(days=4)),
        ]

        top = compute_top_participants([a, b, c], records, limit=2)

        assert [t.name for t in top] == ["B", "A"]
        assert top[0].selections == 2
        assert top[0].meetings == 2
        assert top[0].last_active == NOW.isoformat()

    def test_never_selected_participant(self):
        top = compute_top_participants([_make_participant("A")], [])
        assert top[0].last_active == "Never"
        assert top[0].selections == 0

    def test_recent_meetings_order(self):
        meetings = [
            _make_meeting(
                "spun",
                statistics=MeetingStatistics(total_spins=4, last_activity=NOW - timedelta(hours=1)),
                roster=["p-A", "p-B"],
            ),
            _make_meeting("fresh", created_at=NOW - timedelta(minutes=5)),
            _make_meeting(
                "stale",
                statistics=MeetingStatistics(total_spins=1, last_activity=NOW - timedelta(days=3)),
            ),
        ]

        recent = compute_recent_meetings(meetings, limit=2)

        assert [m.name for m in recent] == ["fresh", "spun"]
        assert recent[1].roster_size == 2
        assert recent[1].total_spins == 4
