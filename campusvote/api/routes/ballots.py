"""Ballot status and ballot casting API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from campusvote.api.deps import CurrentElection, CurrentPosition, load_voter
from campusvote.core.database import get_db
from campusvote.core.responses import success_response
from campusvote.services import ballots as ballot_service

router = APIRouter(prefix="/elections", tags=["Ballots"])


# ============================================
# PYDANTIC MODELS
# ============================================


class CastBallotRequest(BaseModel):
    """Cast ballot request model."""

    voter_id: UUID
    candidate_id: UUID


# ============================================
# BALLOT STATUS ENDPOINTS
# ============================================


@router.get("/{election_id}/voters/{voter_id}/ballot-status")
async def list_ballot_statuses(
    election: CurrentElection,
    voter_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """
    Get the voter's ballot state for every position of the election.

    Positions with a broken ballot window are returned with state null and
    a configuration_error message instead of failing the whole request.
    """
    voter = await load_voter(conn, voter_id)
    statuses = await ballot_service.list_ballot_statuses(conn, voter, election)
    return success_response(data={"election_id": election.id, "positions": statuses})


@router.get("/{election_id}/positions/{position_id}/voters/{voter_id}/ballot-status")
async def get_ballot_status(
    election: CurrentElection,
    position: CurrentPosition,
    voter_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get the voter's ballot state for one position."""
    voter = await load_voter(conn, voter_id)
    state = await ballot_service.get_ballot_status(conn, voter, election, position)
    return success_response(
        data={"position_id": position.id, "voter_id": voter.id, "state": state}
    )


# ============================================
# BALLOT CASTING ENDPOINTS
# ============================================


@router.post(
    "/{election_id}/positions/{position_id}/ballots",
    status_code=status.HTTP_201_CREATED,
)
async def cast_ballot(
    election: CurrentElection,
    position: CurrentPosition,
    request: CastBallotRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """
    Submit the voter's choice for a position.

    Responds 409 with the current ballot state when the position is not
    open for the voter (including when they have already voted).
    """
    voter = await load_voter(conn, request.voter_id)
    ballot = await ballot_service.cast_ballot(
        conn, voter, election, position, request.candidate_id
    )
    return success_response(data=ballot.model_dump(), message="Ballot submitted")
