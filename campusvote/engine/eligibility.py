"""Ballot eligibility decisions for a voter, a position and an instant."""

from datetime import datetime

from campusvote.engine.errors import ConfigurationError, DataIntegrityError
from campusvote.engine.models import (
    Ballot,
    BallotState,
    Election,
    ElectionStatus,
    ParticipationRecord,
    Position,
    Voter,
    as_utc,
)


# ============================================
# ELIGIBILITY ATTRIBUTES
# ============================================


def requires_participation(election: Election) -> bool:
    """Whether voters must confirm participation before voting in this election."""
    return election.is_departmental


def election_ineligibility_reason(voter: Voter, election: Election) -> str | None:
    """
    Check the voter attributes the election type demands.

    Returns:
        None when eligible, otherwise a human-readable reason.
    """
    if not voter.is_active:
        return "Voter account is inactive"

    if election.is_departmental:
        if not voter.is_class_officer:
            return "Only class officers may take part in departmental elections"
        if voter.department_id != election.department_id:
            return "Voter does not belong to the election's department"

    return None


def position_ineligibility_reason(voter: Voter, position: Position) -> str | None:
    """Check the position's year-level restriction (empty means every year)."""
    levels = position.eligible_year_levels
    if levels and voter.year_level not in levels:
        allowed = ", ".join(str(level) for level in sorted(levels))
        return f"Position is restricted to year levels {allowed}"
    return None


def is_eligible(voter: Voter, election: Election, position: Position) -> bool:
    return (
        election_ineligibility_reason(voter, election) is None
        and position_ineligibility_reason(voter, position) is None
    )


def validate_seats(position: Position) -> None:
    """Raise ConfigurationError when a position has no seats to fill."""
    if position.max_votes <= 0:
        raise ConfigurationError(
            f"Position {position.name} has no seats to fill",
            position_id=position.id,
            max_votes=position.max_votes,
        )


def validate_ballot_window(position: Position) -> tuple[datetime, datetime]:
    """
    Return the position's (open, close) window, normalized to UTC.

    Raises:
        ConfigurationError: if either bound is missing or close <= open.
    """
    open_time = position.ballot_open_time
    close_time = position.ballot_close_time

    if open_time is None or close_time is None:
        raise ConfigurationError(
            f"Ballot window is not configured for position {position.name}",
            position_id=position.id,
        )

    if close_time <= open_time:
        raise ConfigurationError(
            f"Ballot window for position {position.name} closes before it opens",
            position_id=position.id,
            ballot_open_time=open_time.isoformat(),
            ballot_close_time=close_time.isoformat(),
        )

    return open_time, close_time


# ============================================
# BALLOT STATE
# ============================================


def evaluate(
    voter: Voter,
    election: Election,
    position: Position,
    participation: ParticipationRecord | None,
    existing_ballot: Ballot | None,
    now: datetime,
) -> str:
    """
    Compute the voter's BallotState for one position at one instant.

    Checks run in a fixed order and the first match wins: eligibility,
    then an existing ballot, then participation confirmation, then the
    position's time window. The window is inclusive at open and
    exclusive at close.

    Raises:
        ConfigurationError: the position does not belong to the election, or
            it has no seats, or its time window is missing or malformed.
        DataIntegrityError: the existing ballot belongs to another voter or
            position.
    """
    if position.election_id != election.id:
        raise ConfigurationError(
            f"Position {position.name} does not belong to election {election.id}",
            position_id=position.id,
            election_id=election.id,
        )

    if not is_eligible(voter, election, position):
        return BallotState.NOT_ELIGIBLE

    if existing_ballot is not None:
        if (
            existing_ballot.voter_id != voter.id
            or existing_ballot.position_id != position.id
            or existing_ballot.election_id != election.id
        ):
            raise DataIntegrityError(
                "Ballot does not match the voter and position it was looked up for",
                ballot_id=existing_ballot.id,
            )
        return BallotState.VOTED

    if (
        requires_participation(election)
        and participation is None
        and election.status in ElectionStatus.OPEN_STATES
    ):
        return BallotState.NEEDS_PARTICIPATION_CONFIRM

    validate_seats(position)
    open_time, close_time = validate_ballot_window(position)

    if election.status in ElectionStatus.LOCKED_STATES or not position.is_active:
        return BallotState.CLOSED

    now = as_utc(now)
    if now < open_time:
        return BallotState.NOT_OPEN_YET
    if now < close_time:
        return BallotState.OPEN
    return BallotState.CLOSED
