"""Election results and turnout API routes."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query

from campusvote.api.deps import CurrentElection, CurrentPosition
from campusvote.core.database import get_db
from campusvote.core.responses import success_response
from campusvote.engine.models import PositionResult
from campusvote.services import results as results_service

router = APIRouter(prefix="/elections", tags=["Results"])


def _serialize(result: PositionResult) -> dict:
    data = result.model_dump()
    data["winners"] = [c.candidate_id for c in result.winners]
    return data


@router.get("/{election_id}/results")
async def get_election_results(
    election: CurrentElection,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    department_id: Annotated[UUID | None, Query()] = None,
):
    """
    Get ranked results for every position of the election.

    Pass department_id to count only ballots cast by voters of that
    department.
    """
    results = await results_service.get_election_results(conn, election, department_id)
    return success_response(
        data={
            "election_id": election.id,
            "scope": results[0].scope if results else None,
            "positions": [_serialize(r) for r in results],
        }
    )


@router.get("/{election_id}/positions/{position_id}/results")
async def get_position_results(
    election: CurrentElection,
    position: CurrentPosition,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
    department_id: Annotated[UUID | None, Query()] = None,
):
    """Get ranked results for one position."""
    result = await results_service.get_position_results(conn, position, department_id)
    return success_response(data=_serialize(result))


@router.get("/{election_id}/positions/{position_id}/results/by-department")
async def get_position_results_by_department(
    election: CurrentElection,
    position: CurrentPosition,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get one position's results broken down by the voters' departments."""
    results = await results_service.get_position_results_by_department(conn, position)
    return success_response(
        data={department_id: _serialize(r) for department_id, r in results.items()}
    )


@router.get("/{election_id}/turnout")
async def get_turnout(
    election: CurrentElection,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
):
    """Get eligible, confirmed and voted counts for the election."""
    summary = await results_service.get_turnout(conn, election)
    return success_response(data=summary.model_dump())
