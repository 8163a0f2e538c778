"""Pydantic v2 schemas for the selection domain.

Defines the data contracts for participants, meetings, selection records,
selection outcomes, and the SelectionScope value type used by aggregate
queries and clear-history operations. The engine, coordinator, repository,
and analytics aggregator all import from this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.rollcall.errors import InvalidSelectionMethodError, ValidationError

MAX_DURATION_MS = 60_000


def check_duration(duration_ms: int | None) -> None:
    """Reject spin durations outside 0..MAX_DURATION_MS.

    Raises:
        ValidationError: For non-integers (bool included) or out-of-range values.
    """
    if duration_ms is None:
        return
    if isinstance(duration_ms, bool) or not isinstance(duration_ms, int):
        raise ValidationError("duration_ms must be an integer", field="duration_ms")
    if not 0 <= duration_ms <= MAX_DURATION_MS:
        raise ValidationError(
            f"duration_ms must be between 0 and {MAX_DURATION_MS}",
            field="duration_ms",
            value=duration_ms,
        )


# ── Enums ────────────────────────────────────────────────────────────────────


class SelectionMethod(str, Enum):
    """How a participant is chosen from the eligible set."""

    RANDOM = "random"
    WEIGHTED = "weighted"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: SelectionMethod | str) -> SelectionMethod:
        """Coerce a raw value to a SelectionMethod.

        Raises:
            InvalidSelectionMethodError: For anything outside the enum.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidSelectionMethodError(
                f"Invalid selection method: {value!r}",
                allowed=[m.value for m in cls],
            ) from None


# ── Scope ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SelectionScope:
    """Organization-bounded filter for aggregate queries and clear operations.

    organization_id is mandatory; department, meeting_id and team_id narrow
    the scope further when set.
    """

    organization_id: str
    department: str | None = None
    meeting_id: str | None = None
    team_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.organization_id, str) or not self.organization_id.strip():
            raise ValidationError("organization_id is required")
        for name in ("department", "meeting_id", "team_id"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, str) or not value.strip()):
                raise ValidationError(f"{name} must be a non-empty string when set")


# ── Participants & Meetings ─────────────────────────────────────────────────


class Participant(BaseModel):
    """A person who can be picked during a meeting spin."""

    id: str
    organization_id: str
    name: str
    email: str | None = None
    role: str | None = None
    department: str
    team_id: str | None = None
    selection_count: int = Field(default=0, ge=0)
    last_selected_at: datetime | None = None
    is_active: bool = True
    created_at: datetime | None = None


class MeetingSettings(BaseModel):
    """Per-meeting defaults applied when a request leaves them unset."""

    selection_method: SelectionMethod = SelectionMethod.RANDOM
    exclude_recently_selected: bool = True
    spin_duration_ms: int = Field(default=3000, ge=0)
    allow_manual_selection: bool = False


class MeetingStatistics(BaseModel):
    """Counters maintained by the transaction coordinator."""

    total_spins: int = Field(default=0, ge=0)
    last_activity: datetime | None = None


class Meeting(BaseModel):
    """A recurring meeting whose participants take turns being picked.

    roster lists explicit participant ids. When it is empty the candidate
    pool falls back to the meeting's department/team scope.
    """

    id: str
    organization_id: str
    name: str
    department: str
    team_id: str | None = None
    roster: list[str] = Field(default_factory=list)
    is_active: bool = True
    settings: MeetingSettings = Field(default_factory=MeetingSettings)
    statistics: MeetingStatistics = Field(default_factory=MeetingStatistics)
    created_at: datetime | None = None


# ── Selection Records ────────────────────────────────────────────────────────


class SelectionMetadata(BaseModel):
    """Context captured alongside a selection record."""

    model_config = ConfigDict(extra="allow")

    excluded_recently_selected: bool = False
    total_eligible: int | None = Field(default=None, ge=0)
    spin_duration_ms: int | None = Field(default=None, ge=0)
    selection_round: int | None = Field(default=None, ge=1)


class SelectionRecord(BaseModel):
    """Immutable selection event.

    Name, department and team are snapshots taken at selection time, so
    later participant edits never rewrite history.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    organization_id: str
    meeting_id: str
    participant_id: str
    participant_name: str
    department: str
    team_id: str | None = None
    selection_method: SelectionMethod
    duration_ms: int | None = Field(default=None, ge=0, le=MAX_DURATION_MS)
    session_id: str | None = None
    metadata: SelectionMetadata = Field(default_factory=SelectionMetadata)
    selected_at: datetime


# ── Outcomes ─────────────────────────────────────────────────────────────────


class SelectionOutcome(BaseModel):
    """Result of an automatic pick: the participant and the committed record."""

    participant: Participant
    record: SelectionRecord


class ManualSelection(BaseModel):
    """Result of a manual spin: the eligible set, with nothing recorded."""

    eligible_participants: list[Participant]
    total_eligible: int


class ClearHistoryResult(BaseModel):
    """Counts from a clear-history operation."""

    cleared_count: int
    participants_reset: int = 0
    meetings_reset: int = 0
