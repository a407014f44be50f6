"""Integration: a reader's whole journey through real sessions and the migrated schema."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from shelfquest.auth.jwt import create_access_token
from shelfquest.auth.service import resolve_user_from_claims
from shelfquest.catalog import service as catalog_service
from shelfquest.db.models import ReadingProgress, ReadingSession, User, UserAchievement
from shelfquest.gamification import service as gamification_service
from shelfquest.progress import service as progress_service
from shelfquest.progress.state_machine import COMPLETED, READING
from tests.conftest import T0
from tests.integration.conftest import create_user


async def _ten_chapter_book(db, librarian):
    book = await catalog_service.create_book(db, librarian, "The Long Read", "A. Author", genre="fantasy")
    chapters = [await catalog_service.add_chapter(db, book.id, f"Chapter {n}", word_count=2000) for n in range(1, 11)]
    return book, chapters


class TestProvisionedReader:
    """The first request of an unknown reader goes through the real dependencies."""

    @pytest.mark.asyncio
    async def test_first_request_checks_achievements(self, client):
        token = create_access_token(0, "newreader@example.com", name="New Reader")
        headers = {"Authorization": f"Bearer {token}"}

        resp = await client.post("/api/v1/gamification/check-achievements", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["new_achievements"] == []
        assert data["new_badges"] == []
        assert (data["level"], data["experience"]) == (1, 0)

        profile = await client.get("/api/v1/gamification/profile", headers=headers)
        assert profile.status_code == 200
        assert profile.json()["display_name"] == "New Reader"
        assert profile.json()["achievements"] == 0

        badges = await client.get("/api/v1/gamification/badges", headers=headers)
        assert badges.status_code == 200
        assert badges.json()["total_earned"] == 0

    @pytest.mark.asyncio
    async def test_provisioned_user_evaluates_in_same_session(self, db_session):
        user = await resolve_user_from_claims(db_session, {"email": "fresh@example.com"})
        result = await gamification_service.evaluate_achievements(db_session, None, user, T0)
        assert not result.unlocked_anything
        assert user.achievements == []


class TestTenChapterBook:
    @pytest.mark.asyncio
    async def test_read_complete_evaluate_reset(self, db_session, other_session):
        """Start, read every chapter in a session, unlock achievements, then reset."""
        librarian = await create_user(db_session, "librarian@example.com", role="librarian")
        book, chapters = await _ten_chapter_book(db_session, librarian)
        reader = await resolve_user_from_claims(db_session, {"email": "reader@example.com"})

        progress, xp = await progress_service.start_reading(db_session, None, reader, book.id, now=T0)
        assert xp == 5
        assert progress.status == READING

        for n, chapter in enumerate(chapters, start=1):
            now = T0 + timedelta(hours=6 * n)
            await progress_service.start_session(db_session, None, reader, progress.id, chapter.id, now=now)
            ended = await progress_service.end_session(
                db_session, None, reader, progress.id, 2000, now=now + timedelta(minutes=25)
            )
            assert ended == {"duration_minutes": 25, "experience_delta": 5}

            result = await progress_service.complete_chapter(
                db_session, None, reader, progress.id, chapter.id, now=now + timedelta(minutes=25)
            )
            assert result["progress_percentage"] == 10 * n
            assert result["book_completed"] == (n == 10)
            assert (progress.status == COMPLETED) == (n == 10)

        assert reader.experience == 5 + 10 * 5 + 10 * 30 + 100
        assert reader.streak_current == 3

        evaluation = await gamification_service.evaluate_achievements(
            db_session, None, reader, T0 + timedelta(days=3)
        )
        assert sorted(r.id for r in evaluation.new_achievements) == ["first_book", "speed_reader"]
        assert evaluation.new_badges == []
        assert (reader.experience, reader.level) == (605, 4)

        again = await gamification_service.evaluate_achievements(db_session, None, reader, T0 + timedelta(days=3))
        assert not again.unlocked_anything

        stored = await other_session.get(ReadingProgress, progress.id)
        assert stored.status == COMPLETED
        assert stored.progress_percentage == 100
        assert sorted(stored.chapters_completed) == sorted(c.id for c in chapters)
        assert (stored.total_sessions, stored.total_reading_time, stored.average_reading_speed) == (10, 250, 80)
        stored_user = await other_session.get(User, reader.id)
        assert {a.achievement_id for a in stored_user.achievements} == {"first_book", "speed_reader"}

        await gamification_service.reset_gamification(db_session, reader, T0 + timedelta(days=4))
        unlocked = await db_session.execute(
            select(func.count(UserAchievement.id)).where(UserAchievement.user_id == reader.id)
        )
        assert unlocked.scalar_one() == 0
        assert (reader.experience, reader.level, reader.streak_current) == (0, 1, 0)

        after_reset = await gamification_service.evaluate_achievements(
            db_session, None, reader, T0 + timedelta(days=5)
        )
        assert not after_reset.unlocked_anything


class TestSessionPersistence:
    @pytest.mark.asyncio
    async def test_start_closes_dangling_session(self, db_session, other_session):
        """Opening a session while one is open closes the old one in the same commit."""
        librarian = await create_user(db_session, "librarian@example.com", role="librarian")
        book, chapters = await _ten_chapter_book(db_session, librarian)
        reader = await create_user(db_session, "reader@example.com")
        progress, _ = await progress_service.start_reading(db_session, None, reader, book.id, now=T0)

        await progress_service.start_session(db_session, None, reader, progress.id, chapters[0].id, now=T0)
        await progress_service.start_session(
            db_session, None, reader, progress.id, chapters[1].id, now=T0 + timedelta(minutes=40)
        )

        counts = await other_session.execute(
            select(func.count(ReadingSession.id), func.count(ReadingSession.end_time)).where(
                ReadingSession.progress_id == progress.id
            )
        )
        total, closed = counts.one()
        assert (total, closed) == (2, 1)
        stored = await other_session.get(ReadingProgress, progress.id)
        assert stored.total_reading_time == 40
        assert stored.current_chapter_id == chapters[1].id

    @pytest.mark.asyncio
    async def test_chapter_sets_persist_in_place(self, db_session, other_session):
        librarian = await create_user(db_session, "librarian@example.com", role="librarian")
        book, chapters = await _ten_chapter_book(db_session, librarian)
        reader = await create_user(db_session, "reader@example.com")
        progress, _ = await progress_service.start_reading(db_session, None, reader, book.id, now=T0)

        await progress_service.read_chapter(db_session, None, reader, progress.id, chapters[0].id, now=T0)
        await progress_service.complete_chapter(db_session, None, reader, progress.id, chapters[1].id, now=T0)

        stored = await other_session.get(ReadingProgress, progress.id)
        assert sorted(stored.chapters_read) == sorted([chapters[0].id, chapters[1].id])
        assert stored.chapters_completed == [chapters[1].id]
        assert stored.progress_percentage == 10
