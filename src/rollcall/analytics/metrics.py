"""Pure metric computations over selection records.

No I/O here: AnalyticsAggregator fetches rows and hands plain lists to
these functions. Timestamps are bucketed in UTC; naive datetimes are
treated as UTC.

Rounding is half-up (2.5 -> 3, -2.5 -> -2), not banker's rounding.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone

from src.rollcall.analytics.schemas import (
    NO_DATA,
    DailyActivity,
    DepartmentPerformance,
    EngagementScore,
    FairnessReport,
    HourlyBucket,
    ParticipantSelectionCount,
    PeakHours,
    RecentMeeting,
    TopParticipant,
    WeeklyTrend,
    WeekStats,
)
from src.rollcall.selection.schemas import Meeting, Participant, SelectionRecord

SESSION_DURATION_CAP_SECONDS = 60.0


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _in_window(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= as_utc(value) < end


def average_duration_ms(records: list[SelectionRecord]) -> float:
    """Mean duration over records that carry one; 0.0 when none do."""
    durations = [r.duration_ms for r in records if r.duration_ms is not None]
    return sum(durations) / len(durations) if durations else 0.0


def format_seconds(duration_ms: float) -> str:
    return f"{int(round_half_up(duration_ms / 1000))}s"


# ── Trend ───────────────────────────────────────────────────────────────────


def calculate_trend(current: float, previous: float) -> str:
    """Signed percentage change from previous to current.

    previous == 0 maps to "+100%" when current > 0, else "+0%".
    """
    if previous == 0:
        return "+100%" if current > 0 else "+0%"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{int(round_half_up(change))}%"


def summarize_week(
    meetings: list[Meeting],
    participants: list[Participant],
    records: list[SelectionRecord],
    start: datetime,
    end: datetime,
) -> WeekStats:
    """Counts for the half-open window [start, end)."""
    window_records = [r for r in records if _in_window(r.selected_at, start, end)]
    return WeekStats(
        meetings=sum(1 for m in meetings if _in_window(m.created_at, start, end)),
        participants=sum(1 for p in participants if _in_window(p.created_at, start, end)),
        spins=len(window_records),
        response_time_ms=average_duration_ms(window_records),
    )


def compute_weekly_trend(this_week: WeekStats, last_week: WeekStats) -> WeeklyTrend:
    # Operands swapped for response time: lower is better
    return WeeklyTrend(
        meetings=calculate_trend(this_week.meetings, last_week.meetings),
        participants=calculate_trend(this_week.participants, last_week.participants),
        spins=calculate_trend(this_week.spins, last_week.spins),
        response_time=calculate_trend(last_week.response_time_ms, this_week.response_time_ms),
        this_week=this_week,
        last_week=last_week,
    )


# ── Fairness & Engagement ───────────────────────────────────────────────────


def compute_fairness(
    participants: list[Participant], records: list[SelectionRecord]
) -> FairnessReport:
    """Percentage of scoped participants with at least one scoped record.

    Records of participants outside the list are ignored.
    """
    if not participants:
        return FairnessReport()

    counts = Counter(r.participant_id for r in records)
    distribution = [
        ParticipantSelectionCount(
            participant_id=p.id,
            participant_name=p.name,
            department=p.department,
            selection_count=counts.get(p.id, 0),
        )
        for p in participants
    ]
    distribution.sort(key=lambda d: (-d.selection_count, d.participant_name, d.participant_id))

    selected = sum(1 for d in distribution if d.selection_count > 0)
    return FairnessReport(
        fairness_score=int(round_half_up(100 * selected / len(participants))),
        participants_selected_at_least_once=selected,
        total_participants=len(participants),
        selection_distribution=distribution,
    )


def compute_engagement(
    active_participants: list[Participant],
    window_records: list[SelectionRecord],
    window_days: int = 30,
) -> EngagementScore:
    """Blend participation, repeat usage and spin duration into a 0-10 score.

    Weights are 4 (participation), 3 (repeat usage), 3 (duration, capped
    at 60s). Participation is capped at 100% in case records reference
    participants that have since been deactivated.
    """
    per_participant = Counter(r.participant_id for r in window_records)
    selected = len(per_participant)
    repeat = sum(1 for count in per_participant.values() if count > 1)

    total = len(active_participants)
    participation = min(1.0, selected / total) if total else 0.0
    repeat_usage = repeat / selected if selected else 0.0
    avg_seconds = average_duration_ms(window_records) / 1000
    duration_factor = min(1.0, avg_seconds / SESSION_DURATION_CAP_SECONDS)

    score = min(10.0, participation * 4 + repeat_usage * 3 + duration_factor * 3)
    return EngagementScore(
        overall_score=round_half_up(score, 1),
        participation_rate=int(round_half_up(participation * 100)),
        repeat_usage_rate=int(round_half_up(repeat_usage * 100)),
        average_session_duration=int(round_half_up(avg_seconds)),
        window_days=window_days,
    )


# ── Time Distribution ───────────────────────────────────────────────────────


def compute_peak_hours(records: list[SelectionRecord]) -> PeakHours:
    """Busiest UTC hour; ties go to the earlier hour."""
    if not records:
        return PeakHours()

    by_hour = Counter(as_utc(r.selected_at).hour for r in records)
    distribution = [
        HourlyBucket(hour=hour, selections=count)
        for hour, count in sorted(by_hour.items(), key=lambda item: (-item[1], item[0]))
    ]
    peak = distribution[0]
    return PeakHours(
        peak_hour=f"{peak.hour}:00-{peak.hour + 1}:00",
        activity_percentage=int(round_half_up(peak.selections / len(records) * 100)),
        hourly_distribution=distribution,
    )


def compute_weekly_activity(
    records: list[SelectionRecord], now: datetime, days: int = 7
) -> list[DailyActivity]:
    """Per-day selection counts for the last `days` days, oldest first, zero-filled."""
    by_date = Counter(as_utc(r.selected_at).date() for r in records)
    today = as_utc(now).date()
    activity = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        activity.append(
            DailyActivity(
                date=day.isoformat(),
                day=day.strftime("%a"),
                selections=by_date.get(day, 0),
            )
        )
    return activity


# ── Rankings ────────────────────────────────────────────────────────────────


def compute_department_performance(
    records: list[SelectionRecord], now: datetime, window_days: int = 7
) -> list[DepartmentPerformance]:
    """Group records by their department snapshot.

    growth compares the department's selections in the last window against
    the window before it.
    """
    now = as_utc(now)
    current_start = now - timedelta(days=window_days)
    previous_start = now - timedelta(days=2 * window_days)

    groups: dict[str, list[SelectionRecord]] = defaultdict(list)
    for record in records:
        groups[record.department].append(record)

    departments = []
    for name, dept_records in groups.items():
        current = sum(1 for r in dept_records if _in_window(r.selected_at, current_start, now))
        previous = sum(
            1 for r in dept_records if _in_window(r.selected_at, previous_start, current_start)
        )
        departments.append(
            DepartmentPerformance(
                name=name,
                selections=len(dept_records),
                participants=len({r.participant_id for r in dept_records}),
                meetings=len({r.meeting_id for r in dept_records}),
                average_response_time=round_half_up(average_duration_ms(dept_records) / 1000, 1),
                growth=calculate_trend(current, previous),
            )
        )
    departments.sort(key=lambda d: (-d.selections, d.name))
    return departments


def compute_top_participants(
    participants: list[Participant], records: list[SelectionRecord], limit: int = 10
) -> list[TopParticipant]:
    """Participants ranked by record count, most selected first."""
    counts = Counter(r.participant_id for r in records)
    meetings: dict[str, set[str]] = defaultdict(set)
    last_active: dict[str, datetime] = {}
    for record in records:
        meetings[record.participant_id].add(record.meeting_id)
        stamp = as_utc(record.selected_at)
        if record.participant_id not in last_active or stamp > last_active[record.participant_id]:
            last_active[record.participant_id] = stamp

    ranked = sorted(participants, key=lambda p: (-counts.get(p.id, 0), p.name, p.id))
    return [
        TopParticipant(
            participant_id=p.id,
            name=p.name,
            department=p.department,
            selections=counts.get(p.id, 0),
            meetings=len(meetings.get(p.id, ())),
            last_active=last_active[p.id].isoformat() if p.id in last_active else "Never",
        )
        for p in ranked[:limit]
    ]


def compute_recent_meetings(meetings: list[Meeting], limit: int = 5) -> list[RecentMeeting]:
    """Meetings ordered by last spin, falling back to creation time."""

    def _sort_key(meeting: Meeting) -> datetime:
        stamp = meeting.statistics.last_activity or meeting.created_at
        return as_utc(stamp) if stamp else datetime.min.replace(tzinfo=timezone.utc)

    ordered = sorted(meetings, key=_sort_key, reverse=True)
    recent = []
    for meeting in ordered[:limit]:
        stamp = meeting.statistics.last_activity or meeting.created_at
        recent.append(
            RecentMeeting(
                id=meeting.id,
                name=meeting.name,
                department=meeting.department,
                last_spin=stamp.isoformat() if stamp else None,
                total_spins=meeting.statistics.total_spins,
                roster_size=len(meeting.roster),
            )
        )
    return recent


__all__ = [
    "NO_DATA",
    "as_utc",
    "average_duration_ms",
    "calculate_trend",
    "compute_department_performance",
    "compute_engagement",
    "compute_fairness",
    "compute_peak_hours",
    "compute_recent_meetings",
    "compute_top_participants",
    "compute_weekly_activity",
    "compute_weekly_trend",
    "format_seconds",
    "round_half_up",
    "summarize_week",
]
