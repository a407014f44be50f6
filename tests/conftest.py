"""Shared test fixtures.

Unit tests work on transient ORM objects built by the domain factories.
API tests run the real app through httpx's ASGITransport with the database
session, the current user and Redis replaced via dependency overrides, so
no PostgreSQL or Redis server is needed. Tests under tests/integration/ use
a real, migrated PostgreSQL database instead.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shelfquest.auth.dependencies import get_current_user
from shelfquest.auth.service import new_user
from shelfquest.database import get_session
from shelfquest.db.models import Book, ReadingProgress, ReadingSession, User
from shelfquest.main import create_app
from shelfquest.progress.state_machine import COMPLETED, new_progress
from shelfquest.redis_client import get_optional_redis

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def make_user(user_id: int = 1, role: str = "user", email: str | None = None) -> User:
    user = new_user(email or f"reader{user_id}@example.com", role=role)
    user.id = user_id
    return user


def make_book(book_id: int = 10, total_chapters: int = 10, genre: str | None = "fantasy") -> Book:
    return Book(
        id=book_id,
        title=f"Book {book_id}",
        author="A. Author",
        genre=genre,
        difficulty="beginner",
        total_chapters=total_chapters,
        is_active=True,
        is_approved=True,
    )


def make_progress(
    user: User,
    book: Book | None = None,
    progress_id: int = 100,
    status: str | None = None,
    now: datetime = T0,
) -> ReadingProgress:
    book = book or make_book()
    progress = new_progress(user.id, book.id) if status is None else new_progress(user.id, book.id, status, now)
    progress.id = progress_id
    progress.book = book
    return progress


def make_completed(
    user: User,
    book_id: int,
    started_at: datetime = T0,
    completed_at: datetime | None = None,
) -> ReadingProgress:
    """A completed record with explicit dates."""
    progress = make_progress(user, make_book(book_id), progress_id=book_id)
    progress.status = COMPLETED
    progress.progress_percentage = 100
    progress.started_at = started_at
    progress.completed_at = completed_at or started_at + timedelta(days=7)
    progress.last_read_at = progress.completed_at
    return progress


def closed_session(start: datetime, minutes: int, words: int = 0) -> ReadingSession:
    return ReadingSession(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration=minutes,
        chapter_id=None,
        words_read=words,
    )


@pytest.fixture
def user() -> User:
    return make_user()


@pytest.fixture
def librarian() -> User:
    return make_user(user_id=99, role="librarian", email="librarian@example.com")


@pytest.fixture
def fake_db() -> MagicMock:
    """Stand-in AsyncSession for routes whose services are monkeypatched."""
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def fake_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def app(fake_db, fake_redis, user):
    application = create_app()

    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield fake_db

    application.dependency_overrides[get_session] = _session
    application.dependency_overrides[get_optional_redis] = lambda: fake_redis
    application.dependency_overrides[get_current_user] = lambda: user
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app (lifespan not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def as_librarian(app, librarian):
    """Authenticate requests as the librarian instead of the default reader."""
    app.dependency_overrides[get_current_user] = lambda: librarian
    return librarian
