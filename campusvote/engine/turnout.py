"""Voter turnout statistics for an election."""

from collections.abc import Iterable

from pydantic import BaseModel

from campusvote.engine.eligibility import election_ineligibility_reason
from campusvote.engine.models import Ballot, Election, ParticipationRecord, Voter


class TurnoutCounts(BaseModel):
    eligible_voters: int = 0
    confirmed: int = 0
    voted: int = 0
    confirmed_not_voted: int = 0
    turnout_rate: float = 0.0


class DepartmentTurnout(TurnoutCounts):
    department_id: str | None = None


class TurnoutSummary(TurnoutCounts):
    election_id: str
    departments: list[DepartmentTurnout] = []


def _rate(voted: int, eligible: int, decimals: int) -> float:
    return round(voted / eligible * 100, decimals) if eligible > 0 else 0.0


def compute_turnout(
    election: Election,
    voters: Iterable[Voter],
    participation_records: Iterable[ParticipationRecord],
    ballots: Iterable[Ballot],
    percent_decimals: int = 2,
) -> TurnoutSummary:
    """
    Summarize how many eligible voters confirmed and voted.

    A voter counts as voted once they hold at least one ballot in the
    election. Only voters eligible for the election type are counted.
    """
    eligible = {
        v.id: v for v in voters if election_ineligibility_reason(v, election) is None
    }
    confirmed = {
        r.voter_id
        for r in participation_records
        if r.election_id == election.id and r.voter_id in eligible
    }
    voted = {
        b.voter_id
        for b in ballots
        if b.election_id == election.id and b.voter_id in eligible
    }

    by_department: dict[str | None, list[str]] = {}
    for voter in eligible.values():
        by_department.setdefault(voter.department_id, []).append(voter.id)

    departments = []
    for department_id in sorted(by_department, key=lambda d: (d is None, d or "")):
        members = set(by_department[department_id])
        dept_voted = len(members & voted)
        dept_confirmed = len(members & confirmed)
        departments.append(
            DepartmentTurnout(
                department_id=department_id,
                eligible_voters=len(members),
                confirmed=dept_confirmed,
                voted=dept_voted,
                confirmed_not_voted=len((members & confirmed) - voted),
                turnout_rate=_rate(dept_voted, len(members), percent_decimals),
            )
        )

    return TurnoutSummary(
        election_id=election.id,
        eligible_voters=len(eligible),
        confirmed=len(confirmed),
        voted=len(voted),
        confirmed_not_voted=len(confirmed - voted),
        turnout_rate=_rate(len(voted), len(eligible), percent_decimals),
        departments=departments,
    )
