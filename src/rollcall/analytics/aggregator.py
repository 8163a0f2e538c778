"""AnalyticsAggregator for selection fairness and usage dashboards.

Read-only and stateless: every report is computed at query time from the
persisted selection log, meetings and participants. Rows are fetched
through SelectionRepository (parallel reads via asyncio.gather) and handed
to the pure functions in analytics.metrics.

Every query is bounded by organization_id. Empty data produces the
zero-valued form of each report rather than an error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from src.rollcall.analytics import metrics
from src.rollcall.analytics.schemas import (
    AnalyticsOverview,
    DailyActivity,
    DashboardStats,
    DepartmentPerformance,
    EngagementScore,
    FairnessReport,
    PeakHours,
    RecentMeeting,
    TopParticipant,
    WeeklyTrend,
)
from src.rollcall.config import Settings, get_settings
from src.rollcall.errors import ValidationError
from src.rollcall.selection.coordinator import utcnow
from src.rollcall.selection.schemas import Participant, SelectionScope

logger = structlog.get_logger(__name__)


def _org_scope(organization_id: str) -> SelectionScope:
    return SelectionScope(organization_id=organization_id)


def _check_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer", field="limit")


class AnalyticsAggregator:
    """Fairness, engagement and activity reports over the selection log.

    Args:
        repository: SelectionRepository (or a test double).
        clock: Returns the current time; injectable for tests.
        settings: Application settings (defaults to get_settings()).
    """

    def __init__(
        self,
        repository,
        clock: Callable[[], datetime] = utcnow,
        settings: Settings | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._settings = settings or get_settings()

    # ── Fairness ────────────────────────────────────────────────────────

    async def _participants_in_scope(self, scope: SelectionScope) -> list[Participant]:
        """Active participants a fairness report is measured against.

        A meeting-bound scope uses the meeting's roster when it has one, and
        the meeting's department/team otherwise. The scope's own department
        and team narrow the result further.
        """
        org = scope.organization_id
        if scope.meeting_id is None:
            return await self._repository.list_participants(
                org, department=scope.department, team_id=scope.team_id, active_only=True
            )

        meeting = await self._repository.get_meeting(org, scope.meeting_id)
        if meeting is None:
            logger.warning(
                "analytics.meeting_not_found",
                organization_id=org,
                meeting_id=scope.meeting_id,
            )
            return []

        if meeting.roster:
            participants = await self._repository.list_participants(
                org, participant_ids=meeting.roster, active_only=True
            )
        else:
            participants = await self._repository.list_participants(
                org,
                department=scope.department or meeting.department,
                team_id=scope.team_id or meeting.team_id,
                active_only=True,
            )
        return [
            p
            for p in participants
            if (scope.department is None or p.department == scope.department)
            and (scope.team_id is None or p.team_id == scope.team_id)
        ]

    async def get_fairness(self, scope: SelectionScope) -> FairnessReport:
        """Share of in-scope participants selected at least once.

        Args:
            scope: Organization plus optional department/meeting/team bounds.

        Returns:
            FairnessReport; all zeros when the scope has no participants.
        """
        participants, records = await asyncio.gather(
            self._participants_in_scope(scope),
            self._repository.list_records(scope),
        )
        report = metrics.compute_fairness(participants, records)
        logger.debug(
            "analytics.fairness_computed",
            organization_id=scope.organization_id,
            meeting_id=scope.meeting_id,
            department=scope.department,
            fairness_score=report.fairness_score,
        )
        return report

    # ── Engagement & Time Distribution ──────────────────────────────────

    async def get_engagement_score(self, organization_id: str) -> EngagementScore:
        """0-10 engagement score over the trailing ENGAGEMENT_WINDOW_DAYS."""
        window_days = self._settings.ENGAGEMENT_WINDOW_DAYS
        since = self._clock() - timedelta(days=window_days)
        participants, records = await asyncio.gather(
            self._repository.list_participants(organization_id, active_only=True),
            self._repository.list_records(_org_scope(organization_id), since=since),
        )
        return metrics.compute_engagement(participants, records, window_days=window_days)

    async def get_peak_hours(self, organization_id: str) -> PeakHours:
        """Busiest UTC hour across the full selection history."""
        records = await self._repository.list_records(_org_scope(organization_id))
        return metrics.compute_peak_hours(records)

    async def get_weekly_activity(self, organization_id: str) -> list[DailyActivity]:
        """Per-day selection counts for the last seven days, oldest first."""
        now = self._clock()
        today_start = metrics.as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
        records = await self._repository.list_records(
            _org_scope(organization_id), since=today_start - timedelta(days=6)
        )
        return metrics.compute_weekly_activity(records, now, days=7)

    # ── Trends ──────────────────────────────────────────────────────────

    async def get_weekly_trend(self, organization_id: str) -> WeeklyTrend:
        """This window against the previous one (TREND_WINDOW_DAYS each).

        Compares meetings created, participants created, selections and
        average spin duration.
        """
        now = self._clock()
        window = timedelta(days=self._settings.TREND_WINDOW_DAYS)
        current_start = now - window
        previous_start = current_start - window

        meetings, participants, records = await asyncio.gather(
            self._repository.list_meetings(organization_id),
            self._repository.list_participants(organization_id),
            self._repository.list_records(
                _org_scope(organization_id), since=previous_start, until=now
            ),
        )
        this_week = metrics.summarize_week(meetings, participants, records, current_start, now)
        last_week = metrics.summarize_week(
            meetings, participants, records, previous_start, current_start
        )
        return metrics.compute_weekly_trend(this_week, last_week)

    async def get_department_performance(
        self, organization_id: str
    ) -> list[DepartmentPerformance]:
        """Selection activity grouped by each record's department snapshot."""
        records = await self._repository.list_records(_org_scope(organization_id))
        return metrics.compute_department_performance(
            records, self._clock(), window_days=self._settings.TREND_WINDOW_DAYS
        )

    # ── Rankings ────────────────────────────────────────────────────────

    async def get_top_participants(
        self, organization_id: str, limit: int = 10
    ) -> list[TopParticipant]:
        """Active participants ranked by number of selections."""
        _check_limit(limit)
        participants, records = await asyncio.gather(
            self._repository.list_participants(organization_id, active_only=True),
            self._repository.list_records(_org_scope(organization_id)),
        )
        return metrics.compute_top_participants(participants, records, limit=limit)

    async def get_recent_meetings(
        self, organization_id: str, limit: int = 5
    ) -> list[RecentMeeting]:
        """Active meetings, most recently spun first."""
        _check_limit(limit)
        meetings = await self._repository.list_meetings(organization_id, active_only=True)
        return metrics.compute_recent_meetings(meetings, limit=limit)

    # ── Summaries ───────────────────────────────────────────────────────

    async def get_overview(self, organization_id: str) -> AnalyticsOverview:
        """Headline totals for the analytics page.

        meetings_held counts meetings with at least one recorded spin.
        """
        participants, records, trends = await asyncio.gather(
            self._repository.list_participants(organization_id, active_only=True),
            self._repository.list_records(_org_scope(organization_id)),
            self.get_weekly_trend(organization_id),
        )
        return AnalyticsOverview(
            total_selections=len(records),
            active_participants=len(participants),
            meetings_held=len({r.meeting_id for r in records}),
            avg_response_time=metrics.format_seconds(metrics.average_duration_ms(records)),
            trends=trends,
        )

    async def get_dashboard_stats(self, organization_id: str) -> DashboardStats:
        """Home dashboard counters; spins are counted from the start of the month (UTC)."""
        now = metrics.as_utc(self._clock())
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        meetings, participants, month_records, trends = await asyncio.gather(
            self._repository.list_meetings(organization_id, active_only=True),
            self._repository.list_participants(organization_id, active_only=True),
            self._repository.list_records(_org_scope(organization_id), since=month_start),
            self.get_weekly_trend(organization_id),
        )
        return DashboardStats(
            total_meetings=len(meetings),
            active_participants=len(participants),
            spins_this_month=len(month_records),
            avg_selection_time=metrics.format_seconds(
                metrics.average_duration_ms(month_records)
            ),
            trends=trends,
        )
