"""Ballot status and ballot casting service functions."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from campusvote.core.logging_config import election_logger
from campusvote.engine import eligibility
from campusvote.engine.errors import (
    BallotNotOpenError,
    ConfigurationError,
    InvalidBallotChoiceError,
)
from campusvote.engine.models import Ballot, BallotState, Election, Position, Voter
from campusvote.services import elections as election_service
from campusvote.services import participation as participation_service


# ============================================
# BALLOT READS
# ============================================


async def get_ballot(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    position_id: UUID | str,
    voter_id: UUID | str,
) -> Ballot | None:
    """Get the ballot a voter submitted for a position, if any."""
    result = await conn.fetchrow(
        """
        SELECT * FROM ballots
        WHERE election_id = $1 AND position_id = $2 AND voter_id = $3
        """,
        str(election_id),
        str(position_id),
        str(voter_id),
    )
    return _parse_ballot_row(result)


async def list_ballots(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    position_id: UUID | str | None = None,
    voter_id: UUID | str | None = None,
) -> list[Ballot]:
    """List submitted ballots of an election, optionally for one position or voter."""
    query = "SELECT * FROM ballots WHERE election_id = $1"
    params: list[Any] = [str(election_id)]

    if position_id:
        params.append(str(position_id))
        query += f" AND position_id = ${len(params)}"

    if voter_id:
        params.append(str(voter_id))
        query += f" AND voter_id = ${len(params)}"

    query += " ORDER BY submitted_at ASC, id ASC"

    results = await conn.fetch(query, *params)
    return [_parse_ballot_row(row) for row in results]


async def count_candidate_ballots(
    conn: asyncpg.Connection, candidate_id: UUID | str
) -> int:
    """Count the ballots cast for a candidate."""
    return await conn.fetchval(
        "SELECT COUNT(*) FROM ballots WHERE candidate_id = $1",
        str(candidate_id),
    )


async def ballot_set_version(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    position_id: UUID | str,
) -> str:
    """
    Identify the current ballot set of a position.

    Ballots are append-only, so the count together with the latest
    submission time changes whenever a ballot is added.
    """
    result = await conn.fetchrow(
        """
        SELECT COUNT(*) AS ballot_count, MAX(submitted_at) AS last_submitted
        FROM ballots
        WHERE election_id = $1 AND position_id = $2
        """,
        str(election_id),
        str(position_id),
    )
    last = result["last_submitted"].isoformat() if result["last_submitted"] else "-"
    return f"{result['ballot_count']}:{last}"


# ============================================
# BALLOT STATE
# ============================================


async def get_ballot_status(
    conn: asyncpg.Connection,
    voter: Voter,
    election: Election,
    position: Position,
    now: datetime | None = None,
) -> str:
    """
    Compute the voter's BallotState for one position.

    Raises:
        ConfigurationError: the position's ballot window is not usable.
    """
    participation = await participation_service.get_participation(
        conn, election.id, voter.id
    )
    existing = await get_ballot(conn, election.id, position.id, voter.id)
    return eligibility.evaluate(
        voter, election, position, participation, existing, now or datetime.now(UTC)
    )


async def list_ballot_statuses(
    conn: asyncpg.Connection,
    voter: Voter,
    election: Election,
    now: datetime | None = None,
) -> list[dict]:
    """
    Compute the voter's BallotState for every position of an election.

    A misconfigured position does not hide the others: it is reported with
    state None and the configuration error message.
    """
    now = now or datetime.now(UTC)
    participation = await participation_service.get_participation(
        conn, election.id, voter.id
    )
    ballots = {
        b.position_id: b
        for b in await list_ballots(conn, election.id, voter_id=voter.id)
    }

    statuses = []
    for position in await election_service.list_positions(conn, election.id):
        entry = {
            "position_id": position.id,
            "position_name": position.name,
            "state": None,
            "configuration_error": None,
        }
        try:
            entry["state"] = eligibility.evaluate(
                voter, election, position, participation, ballots.get(position.id), now
            )
        except ConfigurationError as e:
            election_logger.log_configuration_error(e.message, e.details)
            entry["configuration_error"] = e.message
        statuses.append(entry)

    return statuses


# ============================================
# BALLOT CASTING
# ============================================


async def cast_ballot(
    conn: asyncpg.Connection,
    voter: Voter,
    election: Election,
    position: Position,
    candidate_id: UUID | str,
    now: datetime | None = None,
) -> Ballot:
    """
    Record a voter's choice for a position.

    The position must be Open for the voter. The insert is guarded by the
    one-ballot-per-position constraint; losing a race to a concurrent
    submission is reported as Voted.

    Raises:
        BallotNotOpenError: the position is not Open for the voter.
        InvalidBallotChoiceError: the candidate is not running for the position.
        ConfigurationError: the position's ballot window is not usable.
    """
    now = now or datetime.now(UTC)

    state = await get_ballot_status(conn, voter, election, position, now)
    if state != BallotState.OPEN:
        election_logger.log_ballot_rejected(election.id, position.id, voter.id, state)
        raise BallotNotOpenError(state, position_id=position.id)

    candidate = await election_service.get_candidate(conn, candidate_id)
    if (
        candidate is None
        or candidate.position_id != position.id
        or candidate.election_id != election.id
        or not candidate.is_active
    ):
        raise InvalidBallotChoiceError(
            f"Candidate is not running for {position.name}",
            position_id=position.id,
            candidate_id=str(candidate_id),
        )

    result = await conn.fetchrow(
        """
        INSERT INTO ballots (election_id, position_id, voter_id, candidate_id, submitted_at)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT ON CONSTRAINT ballots_one_per_position DO NOTHING
        RETURNING *
        """,
        election.id,
        position.id,
        voter.id,
        candidate.id,
        now,
    )

    if result is None:
        election_logger.log_ballot_rejected(
            election.id, position.id, voter.id, BallotState.VOTED
        )
        raise BallotNotOpenError(BallotState.VOTED, position_id=position.id)

    election_logger.log_ballot_cast(election.id, position.id, voter.id)
    return _parse_ballot_row(result)


def _parse_ballot_row(row: asyncpg.Record | None) -> Ballot | None:
    """Parse a ballot row into a snapshot."""
    if not row:
        return None

    return Ballot(
        id=str(row["id"]),
        election_id=str(row["election_id"]),
        position_id=str(row["position_id"]),
        voter_id=str(row["voter_id"]),
        candidate_id=str(row["candidate_id"]),
        submitted_at=row["submitted_at"],
    )
