"""Core tables: leagues, seasons, rounds, submissions, votes, standings.

leagues, league_members and seasons are owned by the league service and are
created here only if missing so a fresh database can run standalone.

Revision ID: 001_core_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_core_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Leagues (external) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leagues (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            settings JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS league_members (
            id SERIAL PRIMARY KEY,
            league_id INTEGER NOT NULL REFERENCES leagues(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL,
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT league_members_league_user_key UNIQUE (league_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS seasons (
            id SERIAL PRIMARY KEY,
            league_id INTEGER NOT NULL REFERENCES leagues(id) ON DELETE CASCADE,
            number INTEGER NOT NULL DEFAULT 1,
            name VARCHAR(128) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Rounds ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rounds (
            id SERIAL PRIMARY KEY,
            league_id INTEGER NOT NULL REFERENCES leagues(id) ON DELETE CASCADE,
            season_id INTEGER NOT NULL REFERENCES seasons(id) ON DELETE CASCADE,
            theme VARCHAR(256) NOT NULL,
            description TEXT,
            status VARCHAR(16) NOT NULL DEFAULT 'draft',
            submission_start TIMESTAMPTZ,
            submission_end TIMESTAMPTZ,
            voting_end TIMESTAMPTZ,
            voting_config JSONB,
            created_by INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT rounds_status_check
                CHECK (status IN ('draft', 'submitting', 'voting', 'revealed', 'archived'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_rounds_status_deadlines
        ON rounds(status, submission_end, voting_end)
    """)

    # --- Submissions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id SERIAL PRIMARY KEY,
            round_id INTEGER NOT NULL REFERENCES rounds(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL,
            title VARCHAR(256) NOT NULL,
            creator VARCHAR(256) NOT NULL,
            album VARCHAR(256),
            provider VARCHAR(32) NOT NULL,
            provider_item_id VARCHAR(128) NOT NULL,
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT submissions_round_user_key UNIQUE (round_id, user_id)
        )
    """)

    # --- Votes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS votes (
            id SERIAL PRIMARY KEY,
            round_id INTEGER NOT NULL REFERENCES rounds(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL,
            submission_id INTEGER NOT NULL REFERENCES submissions(id) ON DELETE CASCADE,
            points INTEGER NOT NULL,
            kind VARCHAR(8) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT votes_kind_check CHECK (kind IN ('upvote', 'downvote'))
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_votes_round_user ON votes(round_id, user_id)")

    # --- Leaderboard entries ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_entries (
            league_id INTEGER NOT NULL REFERENCES leagues(id) ON DELETE CASCADE,
            scope_key VARCHAR(32) NOT NULL,
            user_id INTEGER NOT NULL,
            season_id INTEGER,
            total_points INTEGER NOT NULL DEFAULT 0,
            upvotes_received INTEGER NOT NULL DEFAULT 0,
            downvotes_received INTEGER NOT NULL DEFAULT 0,
            wins INTEGER NOT NULL DEFAULT 0,
            rounds_participated INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT leaderboard_entries_pkey PRIMARY KEY (league_id, scope_key, user_id)
        )
    """)

    # --- User statistics ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_statistics (
            league_id INTEGER NOT NULL REFERENCES leagues(id) ON DELETE CASCADE,
            scope_key VARCHAR(32) NOT NULL,
            user_id INTEGER NOT NULL,
            season_id INTEGER,
            total_submissions INTEGER NOT NULL DEFAULT 0,
            placement_total INTEGER NOT NULL DEFAULT 0,
            avg_placement DOUBLE PRECISION,
            best_placement INTEGER,
            worst_placement INTEGER,
            total_votes_cast INTEGER NOT NULL DEFAULT 0,
            total_upvotes_cast INTEGER NOT NULL DEFAULT 0,
            total_downvotes_cast INTEGER NOT NULL DEFAULT 0,
            total_points_earned INTEGER NOT NULL DEFAULT 0,
            total_wins INTEGER NOT NULL DEFAULT 0,
            category_affinity JSONB NOT NULL DEFAULT '{}'::jsonb,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_statistics_pkey PRIMARY KEY (league_id, scope_key, user_id)
        )
    """)


def downgrade() -> None:
    for table in [
        "user_statistics",
        "leaderboard_entries",
        "votes",
        "submissions",
        "rounds",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
