"""
Pytest configuration and fixtures for campusvote tests.

This module provides:
- Test environment settings
- Snapshot factories for the rules engine
- FastAPI async test client with the database dependency stubbed
- A real database connection for integration tests (skipped when unreachable)
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import UTC, datetime, timedelta
from itertools import count
from uuid import uuid4

import asyncpg
import pytest
from httpx import ASGITransport, AsyncClient

from campusvote.engine.models import (
    Ballot,
    Candidate,
    CandidateDraft,
    Election,
    ElectionStatus,
    ElectionType,
    ParticipationRecord,
    Position,
    Voter,
)

BALLOT_OPEN = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)
BALLOT_CLOSE = datetime(2026, 3, 2, 17, 0, tzinfo=UTC)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Force the test environment on the shared settings object."""
    from campusvote.core.config import settings

    old_environment = settings.ENVIRONMENT
    settings.ENVIRONMENT = "test"
    yield
    settings.ENVIRONMENT = old_environment


@pytest.fixture(scope="session")
def test_settings():
    from campusvote.core.config import settings

    return settings


# ============================================
# SNAPSHOT FACTORIES
# ============================================


@pytest.fixture
def ballot_window() -> tuple[datetime, datetime]:
    return BALLOT_OPEN, BALLOT_CLOSE


@pytest.fixture
def make_voter():
    def _make(**overrides) -> Voter:
        data = {
            "id": f"voter-{uuid4().hex[:8]}",
            "year_level": 3,
            "department_id": "dept-cs",
            "is_class_officer": False,
            "is_active": True,
        }
        data.update(overrides)
        return Voter(**data)

    return _make


@pytest.fixture
def make_election():
    def _make(**overrides) -> Election:
        data = {
            "id": "election-1",
            "type": ElectionType.SSG,
            "status": ElectionStatus.ACTIVE,
            "title": "Supreme Student Government 2026",
        }
        data.update(overrides)
        return Election(**data)

    return _make


@pytest.fixture
def make_position():
    def _make(**overrides) -> Position:
        data = {
            "id": "position-president",
            "election_id": "election-1",
            "name": "President",
            "ballot_open_time": BALLOT_OPEN,
            "ballot_close_time": BALLOT_CLOSE,
        }
        data.update(overrides)
        return Position(**data)

    return _make


@pytest.fixture
def make_candidate():
    numbers = count(1)

    def _make(**overrides) -> Candidate:
        number = next(numbers)
        data = {
            "id": f"candidate-{number}",
            "election_id": "election-1",
            "voter_id": f"candidate-voter-{number}",
            "position_id": "position-president",
            "partylist_id": None,
            "candidate_number": number,
            "is_active": True,
        }
        data.update(overrides)
        return Candidate(**data)

    return _make


@pytest.fixture
def make_draft():
    def _make(**overrides) -> CandidateDraft:
        data = {
            "election_id": "election-1",
            "voter_id": "draft-voter",
            "position_id": "position-president",
            "partylist_id": None,
            "candidate_number": 99,
        }
        data.update(overrides)
        return CandidateDraft(**data)

    return _make


@pytest.fixture
def make_ballot():
    ids = count(1)

    def _make(candidate: Candidate, voter_id: str | None = None, **overrides) -> Ballot:
        number = next(ids)
        data = {
            "id": f"ballot-{number}",
            "election_id": candidate.election_id,
            "position_id": candidate.position_id,
            "voter_id": voter_id or f"ballot-voter-{number}",
            "candidate_id": candidate.id,
            "submitted_at": BALLOT_OPEN + timedelta(minutes=number),
        }
        data.update(overrides)
        return Ballot(**data)

    return _make


@pytest.fixture
def make_participation():
    def _make(voter: Voter, election: Election) -> ParticipationRecord:
        return ParticipationRecord(
            voter_id=voter.id, election_id=election.id, confirmed_at=BALLOT_OPEN
        )

    return _make


# ============================================
# API CLIENT
# ============================================


class StubConnection:
    """Stand-in for asyncpg.Connection; services are monkeypatched in API tests."""


@pytest.fixture
async def async_client():
    """FastAPI async test client with get_db overridden."""
    from campusvote.core.database import get_db
    from campusvote.main import app

    async def _stub_db():
        yield StubConnection()

    app.dependency_overrides[get_db] = _stub_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


# ============================================
# DATABASE (integration tests)
# ============================================


@pytest.fixture
async def db_connection(test_settings):
    """
    Provide a database connection wrapped in a rolled-back transaction.

    The outer transaction is SERIALIZABLE so services may open nested
    serializable blocks (savepoints) inside it.
    """
    try:
        conn = await asyncpg.connect(dsn=test_settings.DATABASE_URL, timeout=5)
    except (OSError, asyncpg.exceptions.PostgresError) as e:
        pytest.skip(f"Database not reachable: {e}")

    exists = await conn.fetchval("SELECT to_regclass('public.ballots') IS NOT NULL")
    if not exists:
        await conn.close()
        pytest.skip("Database schema not migrated (run alembic upgrade head)")

    transaction = conn.transaction(isolation="serializable")
    await transaction.start()
    try:
        yield conn
    finally:
        await transaction.rollback()
        await conn.close()
