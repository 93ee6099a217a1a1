"""Snapshot loaders for elections, positions, candidates and voters."""

from typing import Any
from uuid import UUID

import asyncpg

from campusvote.engine.models import Candidate, Election, Partylist, Position, Voter


# ============================================
# ELECTIONS & POSITIONS
# ============================================


async def get_election(conn: asyncpg.Connection, election_id: UUID) -> Election | None:
    """Get an election snapshot by ID."""
    result = await conn.fetchrow(
        """
        SELECT id, title, election_type, department_id, status, election_date
        FROM elections
        WHERE id = $1
        """,
        str(election_id),
    )
    return _parse_election_row(result)


async def get_position(conn: asyncpg.Connection, position_id: UUID) -> Position | None:
    """Get a position snapshot by ID."""
    result = await conn.fetchrow(
        "SELECT * FROM positions WHERE id = $1",
        str(position_id),
    )
    return _parse_position_row(result)


async def get_position_for_update(
    conn: asyncpg.Connection, position_id: UUID | str
) -> Position | None:
    """Get a position snapshot and lock its row until the transaction ends."""
    result = await conn.fetchrow(
        "SELECT * FROM positions WHERE id = $1 FOR UPDATE",
        str(position_id),
    )
    return _parse_position_row(result)


async def list_positions(conn: asyncpg.Connection, election_id: UUID) -> list[Position]:
    """List the positions of an election in ballot order."""
    results = await conn.fetch(
        """
        SELECT * FROM positions
        WHERE election_id = $1
        ORDER BY position_order ASC, name ASC, id ASC
        """,
        str(election_id),
    )
    return [_parse_position_row(row) for row in results]


# ============================================
# CANDIDATES
# ============================================


async def get_candidate(conn: asyncpg.Connection, candidate_id: UUID) -> Candidate | None:
    """Get a candidate snapshot by ID."""
    result = await conn.fetchrow(
        "SELECT * FROM candidates WHERE id = $1",
        str(candidate_id),
    )
    return _parse_candidate_row(result)


async def list_candidates(
    conn: asyncpg.Connection,
    election_id: UUID,
    position_id: UUID | None = None,
) -> list[Candidate]:
    """List candidates of an election, optionally for one position only."""
    query = "SELECT * FROM candidates WHERE election_id = $1"
    params: list[Any] = [str(election_id)]

    if position_id:
        params.append(str(position_id))
        query += f" AND position_id = ${len(params)}"

    query += " ORDER BY position_id ASC, candidate_number ASC"

    results = await conn.fetch(query, *params)
    return [_parse_candidate_row(row) for row in results]


# ============================================
# PARTYLISTS
# ============================================


async def get_partylist(
    conn: asyncpg.Connection, partylist_id: UUID | str
) -> Partylist | None:
    """Get a partylist snapshot by ID."""
    result = await conn.fetchrow(
        "SELECT id, election_id, name FROM partylists WHERE id = $1",
        str(partylist_id),
    )
    return _parse_partylist_row(result)


# ============================================
# VOTERS
# ============================================


async def get_voter(conn: asyncpg.Connection, voter_id: UUID) -> Voter | None:
    """Get a voter snapshot by ID."""
    result = await conn.fetchrow(
        """
        SELECT id, school_id, year_level, department_id, is_class_officer, is_active
        FROM voters
        WHERE id = $1
        """,
        str(voter_id),
    )
    return _parse_voter_row(result)


async def list_voters(
    conn: asyncpg.Connection,
    department_id: UUID | str | None = None,
) -> list[Voter]:
    """List registered voters, optionally restricted to one department."""
    query = """
        SELECT id, school_id, year_level, department_id, is_class_officer, is_active
        FROM voters
    """
    params: list[Any] = []

    if department_id:
        params.append(str(department_id))
        query += " WHERE department_id = $1"

    query += " ORDER BY id ASC"

    results = await conn.fetch(query, *params)
    return [_parse_voter_row(row) for row in results]


async def get_voter_departments(
    conn: asyncpg.Connection,
    election_id: UUID | str,
    position_id: UUID | str,
) -> dict[str, str | None]:
    """Map every voter holding a ballot for the position to their department."""
    results = await conn.fetch(
        """
        SELECT DISTINCT b.voter_id, v.department_id
        FROM ballots b
        JOIN voters v ON v.id = b.voter_id
        WHERE b.election_id = $1 AND b.position_id = $2
        """,
        str(election_id),
        str(position_id),
    )
    return {
        str(row["voter_id"]): str(row["department_id"]) if row["department_id"] else None
        for row in results
    }


# ============================================
# ROW PARSERS
# ============================================


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _parse_election_row(row: asyncpg.Record | None) -> Election | None:
    """Parse an election row into a snapshot."""
    if not row:
        return None

    return Election(
        id=str(row["id"]),
        type=row["election_type"],
        department_id=_str_or_none(row["department_id"]),
        status=row["status"],
        title=row["title"],
        election_date=row["election_date"],
    )


def _parse_position_row(row: asyncpg.Record | None) -> Position | None:
    """Parse a position row into a snapshot."""
    if not row:
        return None

    return Position(
        id=str(row["id"]),
        election_id=str(row["election_id"]),
        name=row["name"],
        order=row["position_order"],
        max_votes=row["max_votes"],
        max_candidates=row["max_candidates"],
        max_candidates_per_partylist=row["max_candidates_per_partylist"],
        eligible_year_levels=frozenset(row["eligible_year_levels"] or ()),
        ballot_open_time=row["ballot_open_time"],
        ballot_close_time=row["ballot_close_time"],
        is_active=row["is_active"],
    )


def _parse_candidate_row(row: asyncpg.Record | None) -> Candidate | None:
    """Parse a candidate row into a snapshot."""
    if not row:
        return None

    return Candidate(
        id=str(row["id"]),
        election_id=str(row["election_id"]),
        voter_id=str(row["voter_id"]),
        position_id=str(row["position_id"]),
        partylist_id=_str_or_none(row["partylist_id"]),
        candidate_number=row["candidate_number"],
        is_active=row["is_active"],
    )


def _parse_partylist_row(row: asyncpg.Record | None) -> Partylist | None:
    if not row:
        return None

    return Partylist(
        id=str(row["id"]),
        election_id=str(row["election_id"]),
        name=row["name"],
    )


def _parse_voter_row(row: asyncpg.Record | None) -> Voter | None:
    """Parse a voter row into a snapshot."""
    if not row:
        return None

    return Voter(
        id=str(row["id"]),
        school_id=row["school_id"],
        year_level=row["year_level"],
        department_id=_str_or_none(row["department_id"]),
        is_class_officer=row["is_class_officer"],
        is_active=row["is_active"],
    )
