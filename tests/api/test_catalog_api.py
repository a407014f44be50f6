"""Catalog endpoints."""

import pytest

from shelfquest.catalog import service as catalog_service
from shelfquest.db.models import Chapter
from shelfquest.errors import NotFoundError, ValidationError
from tests.conftest import make_book


class TestReadCatalog:
    @pytest.mark.asyncio
    async def test_get_book(self, client, monkeypatch):
        async def fake_get(db, book_id, available_only=False):
            assert available_only is True
            return make_book(book_id, total_chapters=12)

        monkeypatch.setattr(catalog_service, "get_book", fake_get)
        resp = await client.get("/api/v1/books/10")
        assert resp.status_code == 200
        assert resp.json()["total_chapters"] == 12

    @pytest.mark.asyncio
    async def test_unknown_book(self, client, monkeypatch):
        async def fake_get(*_args, **_kwargs):
            raise NotFoundError("Book not found or not available")

        monkeypatch.setattr(catalog_service, "get_book", fake_get)
        resp = await client.get("/api/v1/books/10/chapters")
        assert resp.status_code == 404


class TestAuthoring:
    @pytest.mark.asyncio
    async def test_readers_cannot_create(self, client):
        resp = await client.post("/api/v1/books", json={"title": "T", "author": "A"})
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_librarian_creates_book(self, client, as_librarian, monkeypatch):
        async def fake_create(db, librarian, **fields):
            assert librarian is as_librarian
            book = make_book(55, total_chapters=0)
            book.title = fields["title"]
            return book

        monkeypatch.setattr(catalog_service, "create_book", fake_create)
        resp = await client.post("/api/v1/books", json={"title": "Dune", "author": "Herbert"})
        assert resp.status_code == 201
        assert resp.json()["title"] == "Dune"

    @pytest.mark.asyncio
    async def test_bad_difficulty(self, client, as_librarian, monkeypatch):
        async def fake_create(*_args, **_kwargs):
            raise ValidationError("Difficulty must be one of ['beginner', 'intermediate', 'advanced']")

        monkeypatch.setattr(catalog_service, "create_book", fake_create)
        resp = await client.post("/api/v1/books", json={"title": "T", "author": "A", "difficulty": "hard"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_add_chapter(self, client, as_librarian, monkeypatch):
        async def fake_add(db, book_id, **fields):
            return Chapter(id=1, book_id=book_id, chapter_number=1, title=fields["title"], word_count=0)

        monkeypatch.setattr(catalog_service, "add_chapter", fake_add)
        resp = await client.post("/api/v1/books/10/chapters", json={"title": "Prologue"})
        assert resp.status_code == 201
        assert resp.json() == {"id": 1, "book_id": 10, "chapter_number": 1, "title": "Prologue", "word_count": 0}
