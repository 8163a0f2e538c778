"""Candidate pool resolution and recency-based eligibility filtering.

ParticipantPool turns a meeting (plus optional department override) into
the raw candidate set: active participants on the meeting's explicit
roster, or, when the meeting has no roster, active participants matching
its department and team.

apply_recency_policy narrows that set when recently selected people should
sit out a turn:
1. Anyone never selected is eligible, and only they are.
2. Once everyone has been selected at least once, the least recently
   selected half (rounded up) stays eligible.

Rule 2 re-admits every participant eventually, since others keep
accumulating more recent selections.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import structlog

from src.rollcall.errors import NoEligibleParticipantsError, NotFoundError
from src.rollcall.selection.schemas import Meeting, Participant

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CandidatePool:
    """Raw candidates for one meeting, before eligibility filtering."""

    meeting: Meeting
    candidates: list[Participant]


class ParticipantPool:
    """Resolves the candidate set for a meeting from the repository."""

    def __init__(self, repository) -> None:
        self._repository = repository

    async def resolve(
        self,
        organization_id: str,
        meeting_id: str,
        department: str | None = None,
    ) -> CandidatePool:
        """Load the meeting and its active candidates.

        Args:
            organization_id: Organization UUID string.
            meeting_id: Meeting UUID string.
            department: Overrides the meeting's department when the meeting
                has no explicit roster.

        Returns:
            CandidatePool, possibly with an empty candidate list.

        Raises:
            NotFoundError: If the meeting does not exist in the organization.
        """
        meeting = await self._repository.get_meeting(organization_id, meeting_id)
        if meeting is None:
            raise NotFoundError(
                f"Meeting not found: {meeting_id}",
                organization_id=organization_id,
                meeting_id=meeting_id,
            )

        if meeting.roster:
            candidates = await self._repository.list_participants(
                organization_id,
                participant_ids=meeting.roster,
                active_only=True,
            )
        else:
            candidates = await self._repository.list_participants(
                organization_id,
                department=department or meeting.department,
                team_id=meeting.team_id,
                active_only=True,
            )

        logger.debug(
            "pool.resolved",
            organization_id=organization_id,
            meeting_id=meeting_id,
            roster=bool(meeting.roster),
            candidates=len(candidates),
        )
        return CandidatePool(meeting=meeting, candidates=candidates)


def apply_recency_policy(candidates: list[Participant]) -> list[Participant]:
    """Drop recently selected participants from a candidate list.

    Candidate order is preserved for never-selected participants; the
    previously-selected half comes back ordered oldest selection first.
    """
    never_selected = [p for p in candidates if p.last_selected_at is None]
    if never_selected:
        return never_selected

    previously_selected = sorted(candidates, key=lambda p: p.last_selected_at)
    keep = math.ceil(len(previously_selected) / 2)
    return previously_selected[:keep]


def filter_eligible(
    candidates: list[Participant],
    exclude_recently_selected: bool,
) -> list[Participant]:
    """Apply the eligibility policy and reject an empty result.

    Raises:
        NoEligibleParticipantsError: If nobody is eligible.
    """
    eligible = apply_recency_policy(candidates) if exclude_recently_selected else list(candidates)
    if not eligible:
        raise NoEligibleParticipantsError(
            "No eligible participants found",
            total_candidates=len(candidates),
            exclude_recently_selected=exclude_recently_selected,
        )
    return eligible
