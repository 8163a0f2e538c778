"""Pydantic schemas for analytics responses.

Every report has a zero-valued form; empty organizations and empty
scopes produce it instead of an error.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

NO_DATA = "No data"


class ParticipantSelectionCount(BaseModel):
    """One participant's selection count inside a fairness scope."""

    participant_id: str
    participant_name: str
    department: str
    selection_count: int


class FairnessReport(BaseModel):
    """Share of scoped participants selected at least once."""

    fairness_score: int = 0
    participants_selected_at_least_once: int = 0
    total_participants: int = 0
    selection_distribution: list[ParticipantSelectionCount] = Field(default_factory=list)


class EngagementScore(BaseModel):
    """0-10 engagement score over a trailing window, with its components."""

    overall_score: float = 0.0
    participation_rate: int = 0  # percent
    repeat_usage_rate: int = 0  # percent
    average_session_duration: int = 0  # seconds
    window_days: int = 30


class HourlyBucket(BaseModel):
    hour: int = Field(ge=0, le=23)
    selections: int


class PeakHours(BaseModel):
    """Busiest hour of day (UTC) across the full history."""

    peak_hour: str = NO_DATA
    activity_percentage: int = 0
    hourly_distribution: list[HourlyBucket] = Field(default_factory=list)


class WeekStats(BaseModel):
    """Raw counts for one 7-day window."""

    meetings: int = 0
    participants: int = 0
    spins: int = 0
    response_time_ms: float = 0.0


class WeeklyTrend(BaseModel):
    """Signed percentage change of this week against last week.

    response_time is inverted: a faster week reads as a positive trend.
    """

    meetings: str = "+0%"
    participants: str = "+0%"
    spins: str = "+0%"
    response_time: str = "+0%"
    this_week: WeekStats = Field(default_factory=WeekStats)
    last_week: WeekStats = Field(default_factory=WeekStats)


class DepartmentPerformance(BaseModel):
    """Selection activity grouped by the department snapshot on each record."""

    name: str
    selections: int
    participants: int
    meetings: int
    average_response_time: float  # seconds, one decimal
    growth: str = "+0%"


class DailyActivity(BaseModel):
    date: str  # YYYY-MM-DD
    day: str  # Mon, Tue, ...
    selections: int


class TopParticipant(BaseModel):
    participant_id: str
    name: str
    department: str
    selections: int
    meetings: int
    last_active: str  # ISO timestamp or "Never"


class RecentMeeting(BaseModel):
    id: str
    name: str
    department: str
    last_spin: str | None
    total_spins: int
    roster_size: int


class AnalyticsOverview(BaseModel):
    total_selections: int = 0
    active_participants: int = 0
    meetings_held: int = 0
    avg_response_time: str = "0s"
    trends: WeeklyTrend = Field(default_factory=WeeklyTrend)


class DashboardStats(BaseModel):
    total_meetings: int = 0
    active_participants: int = 0
    spins_this_month: int = 0
    avg_selection_time: str = "0s"
    trends: WeeklyTrend = Field(default_factory=WeeklyTrend)
