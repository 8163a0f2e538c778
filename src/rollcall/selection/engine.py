"""SelectionEngine -- entry points exposed to collaborator services.

Runs a spin end to end:
  ParticipantPool -> eligibility filter -> strategy -> TransactionCoordinator

and exposes the direct-write path used after a manual (human) pick, the
clear-history operation, and the history listing.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime

import structlog

from src.rollcall.config import Settings, get_settings
from src.rollcall.errors import ValidationError
from src.rollcall.selection.coordinator import TransactionCoordinator, utcnow
from src.rollcall.selection.pool import ParticipantPool, filter_eligible
from src.rollcall.selection.schemas import (
    ClearHistoryResult,
    ManualSelection,
    SelectionMetadata,
    SelectionMethod,
    SelectionOutcome,
    SelectionRecord,
    SelectionScope,
    check_duration,
)
from src.rollcall.selection.strategies import get_strategy

logger = structlog.get_logger(__name__)


def _require(value: str | None, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value


class SelectionEngine:
    """Selection workflow facade.

    Args:
        repository: SelectionRepository (or a test double).
        rng: Random source for strategies; seeded from SELECTION_SEED
            when omitted.
        clock: Returns the current time; injectable for tests.
        settings: Application settings (defaults to get_settings()).
    """

    def __init__(
        self,
        repository,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._pool = ParticipantPool(repository)
        self._coordinator = TransactionCoordinator(repository, clock=clock)
        self._rng = rng or random.Random(self._settings.SELECTION_SEED)

    async def select(
        self,
        organization_id: str,
        meeting_id: str,
        department: str | None = None,
        selection_method: SelectionMethod | str | None = None,
        exclude_recently_selected: bool | None = None,
        duration_ms: int | None = None,
        session_id: str | None = None,
    ) -> SelectionOutcome | ManualSelection:
        """Run one spin for a meeting.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.
            department: Optional department overriding the meeting's own
                (ignored when the meeting has an explicit roster).
            selection_method: random, weighted or manual. Defaults to the
                meeting's configured method.
            exclude_recently_selected: Apply the recency policy. Defaults to
                the meeting's setting.
            duration_ms: Optional spin duration, 0-60000 ms.
            session_id: Optional id grouping spins of one run.

        Returns:
            SelectionOutcome with the chosen participant and committed record,
            or ManualSelection carrying the eligible set (nothing recorded).

        Raises:
            ValidationError: Missing ids or out-of-range duration.
            InvalidSelectionMethodError: Unknown selection method.
            NotFoundError: Meeting does not exist.
            NoEligibleParticipantsError: Nobody eligible after filtering.
            TransactionFailedError: The atomic write was aborted.
        """
        _require(organization_id, "organization_id")
        _require(meeting_id, "meeting_id")
        check_duration(duration_ms)
        requested = SelectionMethod.parse(selection_method) if selection_method is not None else None

        pool = await self._pool.resolve(organization_id, meeting_id, department=department)
        settings = pool.meeting.settings
        method = requested or settings.selection_method
        exclude = (
            settings.exclude_recently_selected
            if exclude_recently_selected is None
            else exclude_recently_selected
        )

        eligible = filter_eligible(pool.candidates, exclude)
        decision = get_strategy(method).decide(eligible, self._rng)

        if decision.deferred:
            logger.info(
                "selection.deferred_to_manual",
                organization_id=organization_id,
                meeting_id=meeting_id,
                total_eligible=len(decision.eligible),
            )
            return ManualSelection(
                eligible_participants=decision.eligible,
                total_eligible=len(decision.eligible),
            )

        metadata = SelectionMetadata(
            excluded_recently_selected=exclude,
            total_eligible=len(eligible),
            spin_duration_ms=settings.spin_duration_ms,
        )
        record, participant = await self._coordinator.record(
            organization_id,
            meeting_id,
            decision.chosen.id,
            method,
            duration_ms=duration_ms,
            session_id=session_id,
            metadata=metadata,
        )
        return SelectionOutcome(participant=participant, record=record)

    async def record_selection(
        self,
        organization_id: str,
        meeting_id: str,
        participant_id: str,
        method: SelectionMethod | str = SelectionMethod.MANUAL,
        duration_ms: int | None = None,
        session_id: str | None = None,
    ) -> SelectionRecord:
        """Record a selection decided outside the engine (e.g. a manual pick).

        Raises:
            ValidationError: Missing ids or out-of-range duration.
            InvalidSelectionMethodError: Unknown selection method.
            NotFoundError: Meeting or participant does not exist.
            TransactionFailedError: The atomic write was aborted.
        """
        _require(organization_id, "organization_id")
        _require(meeting_id, "meeting_id")
        _require(participant_id, "participant_id")
        check_duration(duration_ms)
        parsed = SelectionMethod.parse(method)

        record, _ = await self._coordinator.record(
            organization_id,
            meeting_id,
            participant_id,
            parsed,
            duration_ms=duration_ms,
            session_id=session_id,
        )
        return record

    async def clear_history(self, scope: SelectionScope) -> ClearHistoryResult:
        """Delete the records in scope and reset the matching counters."""
        return await self._coordinator.clear_history(scope)

    async def get_history(
        self,
        scope: SelectionScope,
        participant_id: str | None = None,
        limit: int | None = None,
    ) -> list[SelectionRecord]:
        """Newest-first selection records in scope.

        Args:
            scope: Organization plus optional meeting/department/team bounds.
            participant_id: Optional participant filter.
            limit: Maximum rows (defaults to HISTORY_DEFAULT_LIMIT).
        """
        limit = self._settings.HISTORY_DEFAULT_LIMIT if limit is None else limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer", field="limit")
        return await self._repository.list_records(
            scope,
            participant_id=participant_id,
            limit=limit,
            newest_first=True,
        )
