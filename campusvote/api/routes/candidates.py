"""Candidacy validation and admission API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from campusvote.api.deps import CurrentElection, CurrentPosition
from campusvote.core.database import get_db
from campusvote.core.responses import not_found_response, success_response
from campusvote.engine.models import CandidateDraft, Election
from campusvote.services import candidates as candidate_service

router = APIRouter(prefix="/elections", tags=["Candidates"])


# ============================================
# PYDANTIC MODELS
# ============================================


class CandidateRequest(BaseModel):
    """Create or edit candidate request model."""

    voter_id: UUID
    position_id: UUID
    partylist_id: UUID | None = None
    candidate_number: int = Field(..., ge=1)
    is_active: bool = True
    platform: str | None = None


def _draft(
    election: Election, request: CandidateRequest, candidate_id: UUID | None = None
) -> CandidateDraft:
    return CandidateDraft(
        election_id=election.id,
        voter_id=str(request.voter_id),
        position_id=str(request.position_id),
        partylist_id=str(request.partylist_id) if request.partylist_id else None,
        candidate_number=request.candidate_number,
        is_active=request.is_active,
        candidate_id=str(candidate_id) if candidate_id else None,
    )


# ============================================
# CANDIDATE ENDPOINTS
# ============================================


@router.post("/{election_id}/candidates/validate")
async def validate_candidate(
    election: CurrentElection,
    request: CandidateRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    candidate_id: UUID | None = None,
):
    """
    Check a candidate insert (or an edit, with ?candidate_id=) without saving it.

    Always responds 200; `admitted` is false and `violations` lists every
    broken rule in order when the candidacy would be refused.
    """
    result = await candidate_service.validate_candidacy(
        conn, _draft(election, request, candidate_id)
    )
    if result is None:
        not_found_response("Candidate, position or voter")

    return success_response(
        data={
            "admitted": result.admitted,
            "violations": [v.model_dump() for v in result.violations],
        }
    )


@router.post("/{election_id}/candidates", status_code=status.HTTP_201_CREATED)
async def create_candidate(
    election: CurrentElection,
    request: CandidateRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Register a candidate; responds 400 with the violations when refused."""
    candidate = await candidate_service.admit_candidate(
        conn, _draft(election, request), request.platform
    )
    if candidate is None:
        not_found_response("Position or voter")

    return success_response(data=candidate.model_dump(), message="Candidate added")


@router.put("/{election_id}/candidates/{candidate_id}")
async def update_candidate(
    election: CurrentElection,
    candidate_id: UUID,
    request: CandidateRequest,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Edit a candidate; the edited record's own prior state never counts against it."""
    candidate = await candidate_service.admit_candidate(
        conn, _draft(election, request, candidate_id), request.platform
    )
    if candidate is None:
        not_found_response("Candidate")

    return success_response(data=candidate.model_dump(), message="Candidate updated")


@router.get("/{election_id}/positions/{position_id}/capacity")
async def get_position_capacity(
    election: CurrentElection,
    position: CurrentPosition,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get the remaining candidate slots of a position, overall and per partylist."""
    capacity = await candidate_service.get_position_capacity(conn, position)
    return success_response(data=capacity)
