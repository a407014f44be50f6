"""Baseline schema: users, gamification unlocks, catalog and reading progress.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            display_name VARCHAR(100) NOT NULL,
            role VARCHAR(16) NOT NULL DEFAULT 'user',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            experience INTEGER NOT NULL DEFAULT 0 CHECK (experience >= 0),
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            streak_current INTEGER NOT NULL DEFAULT 0,
            streak_longest INTEGER NOT NULL DEFAULT 0,
            streak_last_read_date TIMESTAMPTZ,
            gamification_reset_applied BOOLEAN NOT NULL DEFAULT false,
            gamification_reset_at TIMESTAMPTZ,
            version_id INTEGER NOT NULL DEFAULT 1
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_experience ON users(experience DESC)")

    # --- Unlocks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            unlocked_at TIMESTAMPTZ NOT NULL,
            awarded_by_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            reason VARCHAR(256),
            UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL,
            UNIQUE (user_id, badge_id)
        )
    """)

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS books (
            id BIGSERIAL PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            author VARCHAR(100) NOT NULL,
            description TEXT,
            genre VARCHAR(32),
            difficulty VARCHAR(16) NOT NULL DEFAULT 'beginner',
            total_chapters INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_approved BOOLEAN NOT NULL DEFAULT true,
            created_by_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS chapters (
            id BIGSERIAL PRIMARY KEY,
            book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            chapter_number INTEGER NOT NULL,
            title VARCHAR(200) NOT NULL,
            word_count INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (book_id, chapter_number)
        )
    """)

    # --- Reading progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reading_progress (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            book_id BIGINT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'not-started',
            progress_percentage INTEGER NOT NULL DEFAULT 0
                CHECK (progress_percentage BETWEEN 0 AND 100),
            current_chapter_id BIGINT REFERENCES chapters(id) ON DELETE SET NULL,
            chapters_read JSONB NOT NULL DEFAULT '[]',
            chapters_completed JSONB NOT NULL DEFAULT '[]',
            total_reading_time INTEGER NOT NULL DEFAULT 0,
            total_sessions INTEGER NOT NULL DEFAULT 0,
            longest_session INTEGER NOT NULL DEFAULT 0,
            average_session_time INTEGER NOT NULL DEFAULT 0,
            average_reading_speed INTEGER NOT NULL DEFAULT 0,
            started_at TIMESTAMPTZ,
            last_read_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            version_id INTEGER NOT NULL DEFAULT 1,
            UNIQUE (user_id, book_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reading_progress_user_status
        ON reading_progress(user_id, status)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS reading_sessions (
            id BIGSERIAL PRIMARY KEY,
            progress_id BIGINT NOT NULL REFERENCES reading_progress(id) ON DELETE CASCADE,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ,
            duration INTEGER,
            chapter_id BIGINT REFERENCES chapters(id) ON DELETE SET NULL,
            words_read INTEGER NOT NULL DEFAULT 0
        )
    """)
    # At most one open session per record
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_reading_sessions_open
        ON reading_sessions(progress_id)
        WHERE end_time IS NULL
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS bookmarks (
            id BIGSERIAL PRIMARY KEY,
            progress_id BIGINT NOT NULL REFERENCES reading_progress(id) ON DELETE CASCADE,
            chapter_id BIGINT NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
            position INTEGER NOT NULL DEFAULT 0,
            note VARCHAR(500),
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS notes (
            id BIGSERIAL PRIMARY KEY,
            progress_id BIGINT NOT NULL REFERENCES reading_progress(id) ON DELETE CASCADE,
            chapter_id BIGINT NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
            content VARCHAR(1000) NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            is_private BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_results (
            id BIGSERIAL PRIMARY KEY,
            progress_id BIGINT NOT NULL REFERENCES reading_progress(id) ON DELETE CASCADE,
            chapter_id BIGINT NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
            score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
            total_questions INTEGER NOT NULL CHECK (total_questions >= 1),
            correct_answers INTEGER NOT NULL CHECK (correct_answers >= 0),
            answers JSONB NOT NULL DEFAULT '[]',
            completed_at TIMESTAMPTZ NOT NULL
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS quiz_results CASCADE")
    op.execute("DROP TABLE IF EXISTS notes CASCADE")
    op.execute("DROP TABLE IF EXISTS bookmarks CASCADE")
    op.execute("DROP TABLE IF EXISTS reading_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS reading_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS chapters CASCADE")
    op.execute("DROP TABLE IF EXISTS books CASCADE")
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
