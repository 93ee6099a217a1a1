"""Participation confirmation service functions."""

from datetime import UTC, datetime
from uuid import UUID

import asyncpg

from campusvote.core.logging_config import election_logger
from campusvote.engine import participation as participation_rules
from campusvote.engine.models import Election, ParticipationRecord, Voter


async def get_participation(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    voter_id: UUID | str,
) -> ParticipationRecord | None:
    """Get a voter's participation record for an election."""
    result = await conn.fetchrow(
        """
        SELECT voter_id, election_id, confirmed_at
        FROM election_participation
        WHERE election_id = $1 AND voter_id = $2
        """,
        str(election_id),
        str(voter_id),
    )
    return _parse_participation_row(result)


async def list_participation(
    conn: asyncpg.Connection, election_id: UUID | str
) -> list[ParticipationRecord]:
    """List every participation record of an election."""
    results = await conn.fetch(
        """
        SELECT voter_id, election_id, confirmed_at
        FROM election_participation
        WHERE election_id = $1
        ORDER BY confirmed_at ASC
        """,
        str(election_id),
    )
    return [_parse_participation_row(row) for row in results]


async def get_participation_status(
    conn: asyncpg.Connection, voter: Voter, election: Election
) -> dict:
    """Get the participation status of a voter, with the confirmation time if any."""
    record = await get_participation(conn, election.id, voter.id)
    return {
        "election_id": election.id,
        "voter_id": voter.id,
        "status": participation_rules.status(election, record),
        "confirmed_at": record.confirmed_at if record else None,
    }


async def confirm_participation(
    conn: asyncpg.Connection,
    voter: Voter,
    election: Election,
    now: datetime | None = None,
) -> tuple[ParticipationRecord, bool]:
    """
    Confirm a voter's participation in an election.

    Idempotent: a repeated or concurrent confirmation returns the stored
    record with created=False.

    Raises:
        ElectionNotAvailableError: the election is completed or cancelled.
        VoterNotEligibleError: the voter may not take part in the election.
    """
    now = now or datetime.now(UTC)
    existing = await get_participation(conn, election.id, voter.id)
    record, created = participation_rules.confirm(voter, election, existing, now)

    if created:
        result = await conn.fetchrow(
            """
            INSERT INTO election_participation (voter_id, election_id, confirmed_at)
            VALUES ($1, $2, $3)
            ON CONFLICT ON CONSTRAINT election_participation_voter_key DO NOTHING
            RETURNING voter_id, election_id, confirmed_at
            """,
            voter.id,
            election.id,
            record.confirmed_at,
        )
        if result:
            record = _parse_participation_row(result)
        else:
            # Lost the race to a concurrent confirmation
            record = await get_participation(conn, election.id, voter.id)
            created = False

    election_logger.log_participation_confirmed(election.id, voter.id, created)
    return record, created


def _parse_participation_row(row: asyncpg.Record | None) -> ParticipationRecord | None:
    """Parse a participation row into a record."""
    if not row:
        return None

    return ParticipationRecord(
        voter_id=str(row["voter_id"]),
        election_id=str(row["election_id"]),
        confirmed_at=row["confirmed_at"],
    )
