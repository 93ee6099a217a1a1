"""Participation confirmation gate for departmental elections."""

from datetime import datetime

from campusvote.engine.eligibility import election_ineligibility_reason, requires_participation
from campusvote.engine.errors import ElectionNotAvailableError, VoterNotEligibleError
from campusvote.engine.models import (
    Election,
    ElectionStatus,
    ParticipationRecord,
    ParticipationStatus,
    Voter,
    as_utc,
)


def status(election: Election, record: ParticipationRecord | None) -> str:
    """Return the ParticipationStatus of a voter given their stored record, if any."""
    if not requires_participation(election):
        return ParticipationStatus.NOT_REQUIRED
    if record is None:
        return ParticipationStatus.NOT_CONFIRMED
    return ParticipationStatus.CONFIRMED


def confirm(
    voter: Voter,
    election: Election,
    existing: ParticipationRecord | None,
    now: datetime,
) -> tuple[ParticipationRecord, bool]:
    """
    Decide a participation confirmation.

    A repeated confirmation returns the stored record unchanged so that
    client retries succeed. Confirmation is permanent for the election.

    Returns:
        Tuple of (record, created) where created is False for a repeat.

    Raises:
        ElectionNotAvailableError: the election is completed or cancelled.
        VoterNotEligibleError: the voter may not take part in the election.
    """
    if existing is not None:
        if existing.voter_id != voter.id or existing.election_id != election.id:
            raise ValueError("Participation record does not match voter and election")
        return existing, False

    if election.status not in ElectionStatus.OPEN_STATES:
        raise ElectionNotAvailableError(
            f"Election is {election.status}, participation is closed",
            election_id=election.id,
            status=election.status,
        )

    reason = election_ineligibility_reason(voter, election)
    if reason is not None:
        raise VoterNotEligibleError(reason, voter_id=voter.id, election_id=election.id)

    record = ParticipationRecord(
        voter_id=voter.id,
        election_id=election.id,
        confirmed_at=as_utc(now),
    )
    return record, True
