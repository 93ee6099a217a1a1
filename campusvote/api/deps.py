"""API dependencies for resolving path entities."""

from typing import Annotated
from uuid import UUID

import asyncpg
from fastapi import Depends

from campusvote.core.database import get_db
from campusvote.core.responses import not_found_response
from campusvote.engine.models import Election, Position, Voter
from campusvote.services import elections as election_service


async def get_election_or_404(
    election_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
) -> Election:
    """Dependency resolving the election in the path."""
    election = await election_service.get_election(conn, election_id)
    if election is None:
        not_found_response("Election")
    return election


async def get_position_or_404(
    election_id: UUID,
    position_id: UUID,
    conn: Annotated[asyncpg.Connection, Depends(get_db)],
) -> Position:
    """Dependency resolving a position of the election in the path."""
    position = await election_service.get_position(conn, position_id)
    if position is None or position.election_id != str(election_id):
        not_found_response("Position")
    return position


async def load_voter(conn: asyncpg.Connection, voter_id: UUID) -> Voter:
    """Get a voter or respond 404."""
    voter = await election_service.get_voter(conn, voter_id)
    if voter is None:
        not_found_response("Voter")
    return voter


CurrentElection = Annotated[Election, Depends(get_election_or_404)]
CurrentPosition = Annotated[Position, Depends(get_position_or_404)]
