"""Fixtures for tests that run against a real PostgreSQL database.

The schema comes from ``alembic upgrade head`` against ``SQ_DATABASE_URL``,
and every test starts from empty tables. When the database cannot be
reached the tests in this directory are skipped.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfquest.auth.jwt import reset_keys
from shelfquest.auth.service import new_user
from shelfquest.config import get_settings
from shelfquest.database import close_db, get_session, init_db
from shelfquest.db.models import Book, User
from shelfquest.main import create_app
from shelfquest.progress.state_machine import COMPLETED, READING, apply_status, new_progress

PROJECT_ROOT = Path(__file__).resolve().parents[2]

TABLES = (
    "quiz_results",
    "notes",
    "bookmarks",
    "reading_sessions",
    "reading_progress",
    "chapters",
    "books",
    "user_badges",
    "user_achievements",
    "users",
)

_migrated = False


def _ensure_migrations() -> None:
    """Apply Alembic migrations once per test run. Runs synchronously."""
    global _migrated  # noqa: PLW0603
    if _migrated:
        return
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        check=True,
        capture_output=True,
        cwd=PROJECT_ROOT,
    )
    _migrated = True


async def _database_reachable() -> bool:
    try:
        async for session in get_session():
            await session.execute(text("SELECT 1"))
            break
    except (OSError, SQLAlchemyError):
        return False
    return True


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Migrated, empty database with the app's engine initialised."""
    settings = get_settings()
    await init_db(settings.database_url)
    if not await _database_reachable():
        await close_db()
        pytest.skip(f"PostgreSQL is not reachable at {settings.database_url}")

    _ensure_migrations()

    # Fresh connections after the migration subprocess changed the schema
    await close_db()
    await init_db(settings.database_url)

    async for session in get_session():
        await session.execute(text(f"TRUNCATE TABLE {', '.join(TABLES)} RESTART IDENTITY CASCADE"))
        await session.commit()
        break

    yield

    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A session for one logical request."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def other_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A second, independent session: a concurrent request or a fresh read-back."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the real app and database. Redis stays unconfigured."""
    reset_keys()
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    reset_keys()


async def create_user(db: AsyncSession, email: str, role: str = "user") -> User:
    user = new_user(email, role=role)
    db.add(user)
    await db.commit()
    return user


async def seed_completed_books(db: AsyncSession, user: User, count: int, started_at: datetime) -> list[Book]:
    """Books the user read to the end, each finished a week after ``started_at``."""
    books = [Book(title=f"Finished {n}", author="A. Author", total_chapters=1) for n in range(1, count + 1)]
    db.add_all(books)
    await db.flush()
    for book in books:
        progress = new_progress(user.id, book.id, READING, started_at)
        apply_status(progress, COMPLETED, started_at + timedelta(days=7))
        db.add(progress)
    await db.commit()
    return books
