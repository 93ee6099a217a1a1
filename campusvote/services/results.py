"""Election results and turnout service functions."""

import hashlib
from uuid import UUID

import asyncpg

from campusvote.core.config import settings
from campusvote.core.logging_config import election_logger, get_logger
from campusvote.engine import tally as tally_engine
from campusvote.engine.errors import DataIntegrityError
from campusvote.engine.models import (
    GLOBAL,
    Candidate,
    Election,
    Position,
    PositionResult,
    Scope,
)
from campusvote.engine.turnout import TurnoutSummary, compute_turnout
from campusvote.services import ballots as ballot_service
from campusvote.services import elections as election_service
from campusvote.services import participation as participation_service

logger = get_logger(__name__)

# Shared across requests; keyed by tally input version so entries never go stale
_cache = tally_engine.TallyCache(max_size=settings.RESULTS_CACHE_SIZE)


def _scope(department_id: UUID | str | None) -> Scope:
    return Scope.department(str(department_id)) if department_id else GLOBAL


def _input_version(
    ballot_version: str, position: Position, candidates: list[Candidate]
) -> str:
    """Fingerprint the ballot set together with the position and its candidate roster."""
    roster = ",".join(
        f"{c.id}:{c.candidate_number}:{c.partylist_id}:{c.is_active}"
        for c in sorted(candidates, key=lambda c: c.id)
    )
    digest = hashlib.sha256(f"{position.name}|{position.max_votes}|{roster}".encode()).hexdigest()
    return f"{ballot_version}:{digest[:16]}"


# ============================================
# POSITION RESULTS
# ============================================


async def get_position_results(
    conn: asyncpg.Connection,
    position: Position,
    department_id: UUID | str | None = None,
) -> PositionResult:
    """
    Tally one position, globally or for the ballots of one department.

    Raises:
        DataIntegrityError: the stored ballots or position are corrupted.
    """
    scope = _scope(department_id)
    candidates = await election_service.list_candidates(
        conn, position.election_id, position.id
    )
    ballot_version = await ballot_service.ballot_set_version(
        conn, position.election_id, position.id
    )
    version = _input_version(ballot_version, position, candidates)

    cached = _cache.get(position.id, scope, version)
    if cached is not None:
        return cached

    ballots = await ballot_service.list_ballots(conn, position.election_id, position.id)
    voter_departments = None
    if not scope.is_global:
        voter_departments = await election_service.get_voter_departments(
            conn, position.election_id, position.id
        )

    try:
        result = tally_engine.tally(
            ballots,
            candidates,
            position,
            scope,
            voter_departments,
            settings.RESULTS_PERCENT_DECIMALS,
        )
    except DataIntegrityError as e:
        election_logger.log_data_integrity_error(e.message, e.details)
        raise

    _cache.put(position.id, scope, version, result)
    return result


async def get_position_results_by_department(
    conn: asyncpg.Connection, position: Position
) -> dict[str, PositionResult]:
    """Tally one position separately for every department whose voters cast ballots."""
    ballots = await ballot_service.list_ballots(conn, position.election_id, position.id)
    candidates = await election_service.list_candidates(
        conn, position.election_id, position.id
    )
    voter_departments = await election_service.get_voter_departments(
        conn, position.election_id, position.id
    )

    try:
        return tally_engine.tally_by_department(
            ballots,
            candidates,
            position,
            voter_departments,
            settings.RESULTS_PERCENT_DECIMALS,
        )
    except DataIntegrityError as e:
        election_logger.log_data_integrity_error(e.message, e.details)
        raise


# ============================================
# ELECTION RESULTS
# ============================================


async def get_election_results(
    conn: asyncpg.Connection,
    election: Election,
    department_id: UUID | str | None = None,
) -> list[PositionResult]:
    """Tally every position of an election in ballot order."""
    positions = await election_service.list_positions(conn, election.id)
    results = []
    for position in positions:
        results.append(await get_position_results(conn, position, department_id))
    logger.debug(f"Tallied {len(results)} positions for election {election.id}")
    return results


async def get_turnout(conn: asyncpg.Connection, election: Election) -> TurnoutSummary:
    """Summarize eligible, confirmed and voted counts for an election."""
    voters = await election_service.list_voters(
        conn, election.department_id if election.is_departmental else None
    )
    records = await participation_service.list_participation(conn, election.id)
    ballots = await ballot_service.list_ballots(conn, election.id)
    return compute_turnout(
        election, voters, records, ballots, settings.RESULTS_PERCENT_DECIMALS
    )
