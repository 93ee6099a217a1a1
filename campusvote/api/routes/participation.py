"""Participation confirmation API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from campusvote.api.deps import CurrentElection, load_voter
from campusvote.core.database import get_db
from campusvote.core.responses import success_response
from campusvote.services import participation as participation_service

router = APIRouter(prefix="/elections", tags=["Participation"])


class ConfirmParticipationRequest(BaseModel):
    """Confirm participation request model."""

    voter_id: UUID


@router.post("/{election_id}/participation", status_code=status.HTTP_201_CREATED)
async def confirm_participation(
    election: CurrentElection,
    request: ConfirmParticipationRequest,
    response: Response,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """
    Confirm the voter's participation in the election.

    Repeating the call is harmless: it responds 200 with the stored record.
    """
    voter = await load_voter(conn, request.voter_id)
    record, created = await participation_service.confirm_participation(
        conn, voter, election
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    return success_response(
        data={**record.model_dump(), "created": created},
        message="Participation confirmed" if created else "Participation already confirmed",
    )


@router.get("/{election_id}/voters/{voter_id}/participation")
async def get_participation_status(
    election: CurrentElection,
    voter_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get whether the voter has confirmed participation (or needs to)."""
    voter = await load_voter(conn, voter_id)
    result = await participation_service.get_participation_status(conn, voter, election)
    return success_response(data=result)
