"""Candidacy validation and admission service functions."""

import asyncpg

from campusvote.core.logging_config import election_logger
from campusvote.engine import admission
from campusvote.engine.errors import CandidacyRejected, ConcurrentAdmissionError
from campusvote.engine.models import (
    Candidate,
    CandidateDraft,
    Position,
    RuleViolation,
    ValidationResult,
    ViolationKind,
)
from campusvote.services import ballots as ballot_service
from campusvote.services import elections as election_service

# Candidate constraints and the rule each one enforces
CONSTRAINT_RULES = {
    "candidates_partylist_fkey": ViolationKind.PARTYLIST_NOT_IN_ELECTION,
    "candidates_voter_position_key": ViolationKind.VOTER_ALREADY_CANDIDATE,
    "candidates_number_key": ViolationKind.CANDIDATE_NUMBER_TAKEN,
}


async def _load_snapshot(
    conn: asyncpg.Connection, draft: CandidateDraft, lock: bool = False
) -> dict | None:
    """
    Read everything admission needs for a draft.

    With lock=True the position row is locked so concurrent admissions to
    the same position queue behind each other.
    """
    election = await election_service.get_election(conn, draft.election_id)
    if election is None:
        return None

    if lock:
        position = await election_service.get_position_for_update(conn, draft.position_id)
    else:
        position = await election_service.get_position(conn, draft.position_id)
    if position is None:
        return None

    voter = await election_service.get_voter(conn, draft.voter_id)
    if voter is None:
        return None

    candidates = await election_service.list_candidates(conn, election.id)
    if draft.is_edit and not any(c.id == draft.candidate_id for c in candidates):
        return None

    partylists = None
    if draft.partylist_id is not None:
        partylist = await election_service.get_partylist(conn, draft.partylist_id)
        partylists = [partylist] if partylist else []

    ballot_count = 0
    if draft.is_edit:
        ballot_count = await ballot_service.count_candidate_ballots(
            conn, draft.candidate_id
        )

    return {
        "election": election,
        "position": position,
        "existing_candidates": candidates,
        "voter": voter,
        "partylists": partylists,
        "ballot_count": ballot_count,
    }


def _reject(draft: CandidateDraft, violations: tuple[RuleViolation, ...]) -> CandidacyRejected:
    election_logger.log_candidacy_rejected(
        draft.election_id,
        draft.position_id,
        draft.voter_id,
        [v.kind for v in violations],
    )
    return CandidacyRejected(violations)


async def validate_candidacy(
    conn: asyncpg.Connection, draft: CandidateDraft
) -> ValidationResult | None:
    """
    Validate a candidate insert or edit without writing it.

    Returns None when the election, position, voter or edited candidate
    does not exist.
    """
    snapshot = await _load_snapshot(conn, draft)
    if snapshot is None:
        return None

    return admission.validate(draft, **snapshot)


async def get_position_capacity(
    conn: asyncpg.Connection, position: Position
) -> dict:
    """Get the remaining candidate slots of a position."""
    candidates = await election_service.list_candidates(
        conn, position.election_id, position.id
    )
    return admission.remaining_capacity(position, candidates)


async def _write_candidate(
    conn: asyncpg.Connection, draft: CandidateDraft, platform: str | None
) -> asyncpg.Record | None:
    if draft.is_edit:
        return await conn.fetchrow(
            """
            UPDATE candidates
            SET voter_id = $1, position_id = $2, partylist_id = $3,
                candidate_number = $4, is_active = $5,
                platform = COALESCE($6, platform),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = $7 AND election_id = $8
            RETURNING *
            """,
            draft.voter_id,
            draft.position_id,
            draft.partylist_id,
            draft.candidate_number,
            draft.is_active,
            platform,
            draft.candidate_id,
            draft.election_id,
        )

    return await conn.fetchrow(
        """
        INSERT INTO candidates (
            election_id, voter_id, position_id, partylist_id,
            candidate_number, platform, is_active
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        RETURNING *
        """,
        draft.election_id,
        draft.voter_id,
        draft.position_id,
        draft.partylist_id,
        draft.candidate_number,
        platform,
        draft.is_active,
    )


async def admit_candidate(
    conn: asyncpg.Connection,
    draft: CandidateDraft,
    platform: str | None = None,
) -> Candidate | None:
    """
    Validate and persist a candidate insert or edit atomically.

    Runs in a SERIALIZABLE transaction with the position row locked, so
    the capacity counts cannot change between the check and the write.

    Returns:
        The stored candidate, or None when the election, position, voter
        or edited candidate does not exist.

    Raises:
        CandidacyRejected: one or more admission rules are violated,
            including unique and partylist constraint rejections from the
            database.
        ConcurrentAdmissionError: a concurrent write aborted the transaction
            but a fresh snapshot would admit the draft.
        ConfigurationError: the position's capacity limits are non-positive.
    """
    try:
        async with conn.transaction(isolation="serializable"):
            snapshot = await _load_snapshot(conn, draft, lock=True)
            if snapshot is None:
                return None

            result = admission.validate(draft, **snapshot)
            if not result.admitted:
                raise _reject(draft, result.violations)

            row = await _write_candidate(conn, draft, platform)
            candidate = (
                await election_service.get_candidate(conn, row["id"]) if row else None
            )

    except (
        asyncpg.exceptions.UniqueViolationError,
        asyncpg.exceptions.ForeignKeyViolationError,
    ) as e:
        kind = CONSTRAINT_RULES.get(e.constraint_name)
        if kind is None:
            raise
        violation = RuleViolation(
            kind=kind,
            message="Candidacy conflicts with a concurrent change",
            details={"constraint": e.constraint_name},
        )
        raise _reject(draft, (violation,)) from e

    except asyncpg.exceptions.SerializationError as e:
        result = await validate_candidacy(conn, draft)
        if result is not None and not result.admitted:
            raise _reject(draft, result.violations) from e
        raise ConcurrentAdmissionError(
            "Candidacy could not be admitted because of a concurrent change",
            election_id=draft.election_id,
            position_id=draft.position_id,
        ) from e

    if candidate is None:
        return None

    election_logger.log_candidacy_admitted(
        candidate.election_id, candidate.position_id, candidate.id, draft.is_edit
    )
    return candidate
