"""initial election schema

Revision ID: 4c1a7e2d9b10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c1a7e2d9b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the election, candidacy, participation and ballot tables."""
    op.execute("""
    CREATE EXTENSION IF NOT EXISTS "uuid-ossp";

    -- ============================================
    -- DEPARTMENTS & VOTERS - maintained by the registry, read by the engine
    -- ============================================
    CREATE TABLE IF NOT EXISTS departments (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        name VARCHAR(255) NOT NULL UNIQUE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS voters (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        school_id VARCHAR(50) NOT NULL UNIQUE,
        year_level SMALLINT NOT NULL CHECK (year_level BETWEEN 1 AND 4),
        department_id UUID REFERENCES departments(id) ON DELETE SET NULL,
        is_class_officer BOOLEAN NOT NULL DEFAULT FALSE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_voters_department ON voters(department_id);

    -- ============================================
    -- ELECTIONS
    -- ============================================
    CREATE TABLE IF NOT EXISTS elections (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        title VARCHAR(255) NOT NULL,
        election_type VARCHAR(20) NOT NULL CHECK (election_type IN ('ssg', 'departmental')),
        department_id UUID REFERENCES departments(id),
        status VARCHAR(20) NOT NULL DEFAULT 'upcoming'
            CHECK (status IN ('upcoming', 'active', 'completed', 'cancelled')),
        election_date DATE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT departmental_election_department CHECK (
            (election_type = 'departmental') = (department_id IS NOT NULL)
        )
    );

    CREATE INDEX IF NOT EXISTS idx_elections_status ON elections(status);

    -- ============================================
    -- POSITIONS - windows and limits are validated by the engine
    -- ============================================
    CREATE TABLE IF NOT EXISTS positions (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
        name VARCHAR(255) NOT NULL,
        position_order INTEGER NOT NULL DEFAULT 1,
        max_votes INTEGER NOT NULL DEFAULT 1 CHECK (max_votes >= 1),
        max_candidates INTEGER NOT NULL DEFAULT 10,
        max_candidates_per_partylist INTEGER NOT NULL DEFAULT 1,
        eligible_year_levels SMALLINT[] NOT NULL DEFAULT '{}',
        ballot_open_time TIMESTAMP WITH TIME ZONE,
        ballot_close_time TIMESTAMP WITH TIME ZONE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT positions_election_name_key UNIQUE (election_id, name)
    );

    CREATE INDEX IF NOT EXISTS idx_positions_order ON positions(election_id, position_order);

    -- ============================================
    -- PARTYLISTS
    -- ============================================
    CREATE TABLE IF NOT EXISTS partylists (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
        name VARCHAR(255) NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT partylists_election_name_key UNIQUE (election_id, name)
    );

    -- ============================================
    -- CANDIDATES
    -- ============================================
    CREATE TABLE IF NOT EXISTS candidates (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
        voter_id UUID NOT NULL REFERENCES voters(id),
        position_id UUID NOT NULL REFERENCES positions(id) ON DELETE CASCADE,
        partylist_id UUID CONSTRAINT candidates_partylist_fkey
            REFERENCES partylists(id) ON DELETE SET NULL,
        candidate_number INTEGER NOT NULL CHECK (candidate_number >= 1),
        platform TEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT candidates_voter_position_key UNIQUE (election_id, position_id, voter_id),
        CONSTRAINT candidates_number_key UNIQUE (election_id, position_id, candidate_number)
    );

    CREATE INDEX IF NOT EXISTS idx_candidates_voter ON candidates(election_id, voter_id);
    CREATE INDEX IF NOT EXISTS idx_candidates_partylist ON candidates(position_id, partylist_id);

    -- ============================================
    -- PARTICIPATION - one confirmation per voter and election
    -- ============================================
    CREATE TABLE IF NOT EXISTS election_participation (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        voter_id UUID NOT NULL REFERENCES voters(id),
        election_id UUID NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
        confirmed_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT election_participation_voter_key UNIQUE (voter_id, election_id)
    );

    -- ============================================
    -- BALLOTS - append-only, one per voter and position
    -- ============================================
    CREATE TABLE IF NOT EXISTS ballots (
        id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
        election_id UUID NOT NULL REFERENCES elections(id),
        position_id UUID NOT NULL REFERENCES positions(id),
        voter_id UUID NOT NULL REFERENCES voters(id),
        candidate_id UUID NOT NULL REFERENCES candidates(id),
        submitted_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP,

        CONSTRAINT ballots_one_per_position UNIQUE (voter_id, position_id, election_id)
    );

    CREATE INDEX IF NOT EXISTS idx_ballots_position ON ballots(election_id, position_id);
    CREATE INDEX IF NOT EXISTS idx_ballots_candidate ON ballots(candidate_id);

    CREATE OR REPLACE FUNCTION reject_ballot_mutation() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'ballots are append-only';
    END;
    $$ LANGUAGE plpgsql;

    DROP TRIGGER IF EXISTS ballots_append_only ON ballots;
    CREATE TRIGGER ballots_append_only
        BEFORE UPDATE OR DELETE ON ballots
        FOR EACH ROW EXECUTE FUNCTION reject_ballot_mutation();

    COMMENT ON TABLE ballots IS 'Submitted ballots; never updated or deleted';
    COMMENT ON COLUMN positions.max_votes IS 'Number of seats; also the winner cutoff';
    """)


def downgrade() -> None:
    """Drop the election schema."""
    op.execute("""
    DROP TRIGGER IF EXISTS ballots_append_only ON ballots;
    DROP FUNCTION IF EXISTS reject_ballot_mutation();
    DROP TABLE IF EXISTS ballots CASCADE;
    DROP TABLE IF EXISTS election_participation CASCADE;
    DROP TABLE IF EXISTS candidates CASCADE;
    DROP TABLE IF EXISTS partylists CASCADE;
    DROP TABLE IF EXISTS positions CASCADE;
    DROP TABLE IF EXISTS elections CASCADE;
    DROP TABLE IF EXISTS voters CASCADE;
    DROP TABLE IF EXISTS departments CASCADE;
    """)
