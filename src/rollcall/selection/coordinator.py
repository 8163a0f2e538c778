"""TransactionCoordinator -- atomic writes that keep counters in step with the log.

record() performs three writes inside one transaction:
1. Insert the SelectionRecord (with name/department/team snapshots).
2. Increment the participant's selection_count and advance last_selected_at.
3. Increment the meeting's total_spins and advance last_activity.

clear_history() deletes the records in a scope and re-derives the counters
of every affected participant and meeting in the same transaction.

Storage failures abort the whole unit and surface as TransactionFailedError.
Nothing here retries; retry policy belongs to the caller.
Caller-input errors raised inside the transaction (NotFoundError and
friends) roll it back and propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.rollcall.errors import NotFoundError, SelectionError, TransactionFailedError
from src.rollcall.selection.schemas import (
    ClearHistoryResult,
    Participant,
    SelectionMetadata,
    SelectionMethod,
    SelectionRecord,
    SelectionScope,
    check_duration,
)

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionCoordinator:
    """Owns every write to selection records and their dependent counters.

    Args:
        repository: SelectionRepository (or a test double) providing
            transaction().
        clock: Returns the current time; injectable for tests.
    """

    def __init__(self, repository, clock: Callable[[], datetime] = utcnow) -> None:
        self._repository = repository
        self._clock = clock

    async def record(
        self,
        organization_id: str,
        meeting_id: str,
        participant_id: str,
        method: SelectionMethod,
        duration_ms: int | None = None,
        session_id: str | None = None,
        metadata: SelectionMetadata | None = None,
    ) -> tuple[SelectionRecord, Participant]:
        """Persist one selection and its counter updates atomically.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.
            participant_id: Chosen participant's UUID string.
            method: Selection method that produced the choice.
            duration_ms: Optional spin duration in milliseconds.
            session_id: Optional id grouping spins of one run.
            metadata: Optional context stored on the record.

        Returns:
            The committed record and the participant with updated counters.

        Raises:
            ValidationError: If duration_ms is not an integer in range.
            NotFoundError: If the meeting or participant does not exist.
            TransactionFailedError: If the storage layer aborted the write.
        """
        check_duration(duration_ms)
        meta = metadata or SelectionMetadata()

        try:
            async with self._repository.transaction() as uow:
                meeting = await uow.get_meeting(organization_id, meeting_id)
                if meeting is None:
                    raise NotFoundError(
                        f"Meeting not found: {meeting_id}",
                        organization_id=organization_id,
                        meeting_id=meeting_id,
                    )
                participant = await uow.get_participant(organization_id, participant_id)
                if participant is None:
                    raise NotFoundError(
                        f"Participant not found: {participant_id}",
                        organization_id=organization_id,
                        participant_id=participant_id,
                    )

                # Stamped once both row locks are held
                selected_at = self._clock()
                if session_id:
                    prior = await uow.count_session_records(organization_id, session_id)
                    meta = meta.model_copy(update={"selection_round": prior + 1})

                record = SelectionRecord(
                    organization_id=organization_id,
                    meeting_id=meeting.id,
                    participant_id=participant.id,
                    participant_name=participant.name,
                    department=participant.department,
                    team_id=participant.team_id,
                    selection_method=method,
                    duration_ms=duration_ms,
                    session_id=session_id,
                    metadata=meta,
                    selected_at=selected_at,
                )
                await uow.add_record(record)
                updated = await uow.increment_participant(
                    organization_id, participant.id, selected_at
                )
                await uow.increment_meeting(organization_id, meeting.id, selected_at)
        except SelectionError:
            raise
        except Exception as exc:
            logger.error(
                "selection.transaction_failed",
                organization_id=organization_id,
                meeting_id=meeting_id,
                participant_id=participant_id,
                exc_info=True,
            )
            raise TransactionFailedError(
                "Selection could not be recorded; no changes were committed",
                organization_id=organization_id,
                meeting_id=meeting_id,
                participant_id=participant_id,
            ) from exc

        logger.info(
            "selection.recorded",
            organization_id=organization_id,
            meeting_id=record.meeting_id,
            participant_id=record.participant_id,
            record_id=record.id,
            method=method.value,
            session_id=session_id,
            selection_count=updated.selection_count,
        )
        return record, updated

    async def clear_history(self, scope: SelectionScope) -> ClearHistoryResult:
        """Delete records in scope and re-derive the affected counters.

        Participants whose records were removed are recounted from what
        remains. Without a meeting bound, every participant matching the
        scope's department/team is recounted as well. Affected meetings,
        and the scoped meeting if any, get total_spins/last_activity
        recounted the same way.

        Raises:
            TransactionFailedError: If the storage layer aborted the clear.
        """
        org = scope.organization_id
        try:
            async with self._repository.transaction() as uow:
                deleted = await uow.delete_records(scope)

                participant_ids = {pid for pid, _ in deleted}
                if scope.meeting_id is None:
                    participant_ids.update(
                        await uow.list_participant_ids(
                            org, department=scope.department, team_id=scope.team_id
                        )
                    )
                meeting_ids = {mid for _, mid in deleted}
                if scope.meeting_id is not None:
                    meeting_ids.add(scope.meeting_id)

                # Meetings before participants, each sorted: the same lock order as record()
                for mid in sorted(meeting_ids):
                    await uow.refresh_meeting_counters(org, mid)
                for pid in sorted(participant_ids):
                    await uow.refresh_participant_counters(org, pid)
        except SelectionError:
            raise
        except Exception as exc:
            logger.error(
                "history.clear_failed",
                organization_id=org,
                department=scope.department,
                meeting_id=scope.meeting_id,
                team_id=scope.team_id,
                exc_info=True,
            )
            raise TransactionFailedError(
                "Selection history could not be cleared; no changes were committed",
                organization_id=org,
            ) from exc

        result = ClearHistoryResult(
            cleared_count=len(deleted),
            participants_reset=len(participant_ids),
            meetings_reset=len(meeting_ids),
        )
        logger.info(
            "history.cleared",
            organization_id=org,
            department=scope.department,
            meeting_id=scope.meeting_id,
            team_id=scope.team_id,
            cleared_count=result.cleared_count,
        )
        return result
