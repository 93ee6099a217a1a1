"""Snapshot types consumed and produced by the election rules engine."""

from datetime import UTC, date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================
# CONSTANTS
# ============================================


# Reserved partylist key used for candidates without a partylist
INDEPENDENT = "independent"


class ElectionType:
    """Kinds of elections."""

    SSG = "ssg"
    DEPARTMENTAL = "departmental"


class ElectionStatus:
    """Election lifecycle states."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    OPEN_STATES = (UPCOMING, ACTIVE)
    LOCKED_STATES = (COMPLETED, CANCELLED)


class BallotState:
    """Per-position ballot state shown to a voter."""

    NOT_ELIGIBLE = "not_eligible"
    NEEDS_PARTICIPATION_CONFIRM = "needs_participation_confirm"
    NOT_OPEN_YET = "not_open_yet"
    OPEN = "open"
    VOTED = "voted"
    CLOSED = "closed"


class ParticipationStatus:
    """Participation confirmation status of a voter in an election."""

    CONFIRMED = "confirmed"
    NOT_CONFIRMED = "not_confirmed"
    NOT_REQUIRED = "not_required"


class ViolationKind:
    """Candidacy admission rule violations."""

    ELECTION_LOCKED = "election_locked"
    POSITION_NOT_IN_ELECTION = "position_not_in_election"
    POSITION_INACTIVE = "position_inactive"
    PARTYLIST_NOT_IN_ELECTION = "partylist_not_in_election"
    CANDIDATE_HOLDS_BALLOTS = "candidate_holds_ballots"
    VOTER_ALREADY_CANDIDATE = "voter_already_candidate"
    POSITION_CAPACITY_EXCEEDED = "position_capacity_exceeded"
    PARTYLIST_CAPACITY_EXCEEDED = "partylist_capacity_exceeded"
    PARTYLIST_CONFLICT = "partylist_conflict"
    VOTER_NOT_ELIGIBLE = "voter_not_eligible"
    CANDIDATE_NUMBER_TAKEN = "candidate_number_taken"


def as_utc(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def partylist_key(partylist_id: str | None) -> str:
    """Capacity-accounting key for a partylist, with independents mapped to the sentinel."""
    return partylist_id or INDEPENDENT


# ============================================
# ENTITY SNAPSHOTS
# ============================================


class Snapshot(BaseModel):
    """Base for immutable entity snapshots."""

    model_config = ConfigDict(frozen=True)


class Voter(Snapshot):
    id: str
    school_id: str | None = None
    year_level: int = Field(..., ge=1, le=4)
    department_id: str | None = None
    is_class_officer: bool = False
    is_active: bool = True


class Election(Snapshot):
    id: str
    type: str
    department_id: str | None = None
    status: str = ElectionStatus.UPCOMING
    title: str | None = None
    election_date: date | None = None

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in (ElectionType.SSG, ElectionType.DEPARTMENTAL):
            raise ValueError(f"Unknown election type: {value}")
        return value

    @property
    def is_departmental(self) -> bool:
        return self.type == ElectionType.DEPARTMENTAL


class Position(Snapshot):
    """An electable seat. Capacity limits are checked by the engine, not here."""

    id: str
    election_id: str
    name: str
    order: int = 1
    max_votes: int = 1
    max_candidates: int = 10
    max_candidates_per_partylist: int = 1
    eligible_year_levels: frozenset[int] = frozenset()
    ballot_open_time: datetime | None = None
    ballot_close_time: datetime | None = None
    is_active: bool = True

    @field_validator("ballot_open_time", "ballot_close_time")
    @classmethod
    def _utc_window(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class Partylist(Snapshot):
    id: str
    election_id: str
    name: str


class Candidate(Snapshot):
    id: str
    election_id: str
    voter_id: str
    position_id: str
    partylist_id: str | None = None
    candidate_number: int
    is_active: bool = True

    @property
    def partylist_key(self) -> str:
        return partylist_key(self.partylist_id)


class CandidateDraft(Snapshot):
    """A proposed candidate insert, or an edit when ``candidate_id`` is set."""

    election_id: str
    voter_id: str
    position_id: str
    partylist_id: str | None = None
    candidate_number: int = Field(..., ge=1)
    is_active: bool = True
    candidate_id: str | None = None

    @property
    def partylist_key(self) -> str:
        return partylist_key(self.partylist_id)

    @property
    def is_edit(self) -> bool:
        return self.candidate_id is not None


class ParticipationRecord(Snapshot):
    voter_id: str
    election_id: str
    confirmed_at: datetime

    @field_validator("confirmed_at")
    @classmethod
    def _utc_confirmed(cls, value: datetime) -> datetime:
        return as_utc(value)


class Ballot(Snapshot):
    id: str
    election_id: str
    position_id: str
    voter_id: str
    candidate_id: str
    submitted_at: datetime

    @field_validator("submitted_at")
    @classmethod
    def _utc_submitted(cls, value: datetime) -> datetime:
        return as_utc(value)


# ============================================
# ENGINE OUTPUTS
# ============================================


class RuleViolation(Snapshot):
    kind: str
    message: str
    details: dict[str, str | int | None] = Field(default_factory=dict)


class ValidationResult(Snapshot):
    """Either admitted, or a non-empty ordered list of violations."""

    violations: tuple[RuleViolation, ...] = ()

    @property
    def admitted(self) -> bool:
        return not self.violations

    @property
    def primary(self) -> RuleViolation | None:
        return self.violations[0] if self.violations else None


class CandidateResult(Snapshot):
    candidate_id: str
    candidate_number: int
    partylist_id: str | None = None
    vote_count: int
    vote_percentage: float
    rank: int
    is_winner: bool


class PositionResult(Snapshot):
    position_id: str
    position_name: str
    max_votes: int
    scope: str
    candidates: tuple[CandidateResult, ...]
    total_votes_for_position: int
    tie_at_cutoff: bool = False

    @property
    def winners(self) -> tuple[CandidateResult, ...]:
        return tuple(c for c in self.candidates if c.is_winner)


class Scope(Snapshot):
    """Tally scope: global when ``department_id`` is None, else one department."""

    department_id: str | None = None

    @classmethod
    def department(cls, department_id: str) -> "Scope":
        return cls(department_id=department_id)

    @property
    def is_global(self) -> bool:
        return self.department_id is None

    @property
    def key(self) -> str:
        return "global" if self.is_global else f"department:{self.department_id}"


GLOBAL = Scope()
