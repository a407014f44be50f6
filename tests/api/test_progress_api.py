"""Progress endpoints: request/response shapes and error mapping."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from shelfquest.auth.dependencies import get_current_user
from shelfquest.db.models import Bookmark, Note
from shelfquest.errors import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from shelfquest.progress import service as progress_service
from shelfquest.progress.sessions import end_session, start_session
from shelfquest.progress.state_machine import READING
from tests.conftest import T0, make_progress


class TestStartReading:
    @pytest.mark.asyncio
    async def test_returns_progress_and_xp(self, client, monkeypatch, user):
        progress = make_progress(user, status=READING)

        async def fake_start(db, redis, caller, book_id):
            assert caller is user
            assert book_id == 10
            return progress, 5

        monkeypatch.setattr(progress_service, "start_reading", fake_start)
        resp = await client.post("/api/v1/progress/start", json={"book_id": 10})

        assert resp.status_code == 201
        data = resp.json()
        assert data["experience_delta"] == 5
        assert data["progress"]["status"] == "reading"
        assert data["progress"]["book_title"] == "Book 10"
        assert data["progress"]["statistics"]["total_sessions"] == 0

    @pytest.mark.asyncio
    async def test_missing_book_is_404(self, client, monkeypatch):
        async def fake_start(*_args):
            raise NotFoundError("Book not found or not available")

        monkeypatch.setattr(progress_service, "start_reading", fake_start)
        resp = await client.post("/api/v1/progress/start", json={"book_id": 10})
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Book not found or not available"}

    @pytest.mark.asyncio
    async def test_body_validation(self, client):
        resp = await client.post("/api/v1/progress/start", json={})
        assert resp.status_code == 422


class TestProgressDetail:
    @pytest.mark.asyncio
    async def test_includes_sessions(self, client, monkeypatch, user):
        progress = make_progress(user)
        start_session(progress, None, T0)
        end_session(progress, 600, T0 + timedelta(minutes=20))

        async def fake_get(db, caller, progress_id):
            return progress

        monkeypatch.setattr(progress_service, "get_progress", fake_get)
        resp = await client.get("/api/v1/progress/100")

        assert resp.status_code == 200
        data = resp.json()
        assert data["total_reading_time"] == 20
        assert data["sessions"][0]["duration"] == 20
        assert data["statistics"]["average_reading_speed"] == 30

    @pytest.mark.asyncio
    async def test_foreign_record_is_403(self, client, monkeypatch):
        async def fake_get(*_args):
            raise PermissionDeniedError("You can only access your own reading progress")

        monkeypatch.setattr(progress_service, "get_progress", fake_get)
        resp = await client.get("/api/v1/progress/100")
        assert resp.status_code == 403


class TestSessions:
    @pytest.mark.asyncio
    async def test_end_session(self, client, monkeypatch):
        async def fake_end(db, redis, caller, progress_id, words_read):
            assert words_read == 1200
            return {"duration_minutes": 42, "experience_delta": 8}

        monkeypatch.setattr(progress_service, "end_session", fake_end)
        resp = await client.put("/api/v1/progress/100/session/end", json={"words_read": 1200})
        assert resp.status_code == 200
        assert resp.json() == {"duration_minutes": 42, "experience_delta": 8}

    @pytest.mark.asyncio
    async def test_negative_words_rejected(self, client):
        resp = await client.put("/api/v1/progress/100/session/end", json={"words_read": -5})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_terminal_record_is_409(self, client, monkeypatch):
        async def fake_start(*_args):
            raise InvalidStateError("Cannot start a session on a completed book")

        monkeypatch.setattr(progress_service, "start_session", fake_start)
        resp = await client.put("/api/v1/progress/100/session/start", json={})
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_concurrent_update_is_409(self, client, monkeypatch):
        async def fake_start(*_args):
            raise StaleDataError("version mismatch")

        monkeypatch.setattr(progress_service, "start_session", fake_start)
        resp = await client.put("/api/v1/progress/100/session/start", json={"chapter_id": 3})
        assert resp.status_code == 409
        assert "retry" in resp.json()["detail"]


class TestChapters:
    @pytest.mark.asyncio
    async def test_complete_chapter(self, client, monkeypatch):
        async def fake_complete(db, redis, caller, progress_id, chapter_id):
            assert (progress_id, chapter_id) == (100, 7)
            return {"progress_percentage": 100, "book_completed": True, "experience_delta": 130}

        monkeypatch.setattr(progress_service, "complete_chapter", fake_complete)
        resp = await client.put("/api/v1/progress/100/chapter/7/complete")
        assert resp.status_code == 200
        assert resp.json()["book_completed"] is True

    @pytest.mark.asyncio
    async def test_chapter_of_other_book_is_422(self, client, monkeypatch):
        async def fake_read(*_args):
            raise ValidationError("Chapter does not belong to this book")

        monkeypatch.setattr(progress_service, "read_chapter", fake_read)
        resp = await client.put("/api/v1/progress/100/chapter/7/read")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Chapter does not belong to this book"


class TestStatus:
    @pytest.mark.asyncio
    async def test_invalid_transition_is_409(self, client, monkeypatch):
        async def fake_status(*_args):
            raise InvalidStateError("Invalid transition: completed -> reading")

        monkeypatch.setattr(progress_service, "set_status", fake_status)
        resp = await client.put("/api/v1/progress/100/status", json={"status": "reading"})
        assert resp.status_code == 409


class TestAnnotations:
    @pytest.mark.asyncio
    async def test_add_bookmark(self, client, monkeypatch):
        async def fake_add(db, caller, progress_id, chapter_id, position, note):
            return Bookmark(id=1, chapter_id=chapter_id, position=position, note=note, created_at=T0)

        monkeypatch.setattr(progress_service, "add_bookmark", fake_add)
        resp = await client.post("/api/v1/progress/100/bookmarks", json={"chapter_id": 2, "position": 40})
        assert resp.status_code == 201
        assert resp.json()["position"] == 40

    @pytest.mark.asyncio
    async def test_note_too_long(self, client):
        resp = await client.post("/api/v1/progress/100/notes", json={"chapter_id": 2, "content": "x" * 1001})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_list_notes(self, client, monkeypatch):
        note = Note(id=3, chapter_id=2, content="hi", position=0, is_private=True, created_at=T0, updated_at=T0)

        async def fake_list(*_args):
            return [note]

        monkeypatch.setattr(progress_service, "list_notes", fake_list)
        resp = await client.get("/api/v1/progress/100/notes")
        assert resp.status_code == 200
        assert resp.json()[0]["content"] == "hi"

    @pytest.mark.asyncio
    async def test_delete_missing_note(self, client, monkeypatch):
        async def fake_delete(*_args):
            raise NotFoundError("Note not found")

        monkeypatch.setattr(progress_service, "delete_note", fake_delete)
        resp = await client.delete("/api/v1/progress/100/notes/9")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_quiz_score_out_of_range(self, client):
        payload = {"chapter_id": 2, "score": 120, "total_questions": 5, "correct_answers": 5}
        resp = await client.post("/api/v1/progress/100/quiz-results", json=payload)
        assert resp.status_code == 422


class TestSummary:
    @pytest.mark.asyncio
    async def test_summary_route_is_not_a_progress_id(self, client, monkeypatch):
        async def fake_summary(db, caller):
            return progress_service.summarize([])

        monkeypatch.setattr(progress_service, "stats_summary", fake_summary)
        resp = await client.get("/api/v1/progress/stats/summary")
        assert resp.status_code == 200
        assert resp.json()["total_books"] == 0


class TestAuth:
    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, app, client):
        app.dependency_overrides.pop(get_current_user)
        resp = await client.get("/api/v1/progress", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, app, client):
        app.dependency_overrides.pop(get_current_user)
        resp = await client.get("/api/v1/progress")
        assert resp.status_code in (401, 403)
