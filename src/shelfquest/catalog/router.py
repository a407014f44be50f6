"""Catalog endpoints: book/chapter lookup and librarian authoring."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shelfquest.auth.dependencies import get_current_user, require_librarian
from shelfquest.catalog import service as catalog_service
from shelfquest.catalog.schemas import BookCreateRequest, BookResponse, ChapterCreateRequest, ChapterResponse
from shelfquest.database import get_session
from shelfquest.db.models import Book, Chapter, User

router = APIRouter(prefix="/api/v1/books", tags=["Catalog"])


def _book_response(book: Book) -> BookResponse:
    return BookResponse(
        id=book.id,
        title=book.title,
        author=book.author,
        genre=book.genre,
        difficulty=book.difficulty,
        total_chapters=book.total_chapters,
    )


def _chapter_response(chapter: Chapter) -> ChapterResponse:
    return ChapterResponse(
        id=chapter.id,
        book_id=chapter.book_id,
        chapter_number=chapter.chapter_number,
        title=chapter.title,
        word_count=chapter.word_count,
    )


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    book = await catalog_service.get_book(db, book_id, available_only=True)
    return _book_response(book)


@router.get("/{book_id}/chapters", response_model=list[ChapterResponse])
async def list_chapters(
    book_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await catalog_service.get_book(db, book_id, available_only=True)
    chapters = await catalog_service.list_chapters(db, book_id)
    return [_chapter_response(c) for c in chapters]


@router.post("", response_model=BookResponse, status_code=201)
async def create_book(
    payload: BookCreateRequest,
    librarian: User = Depends(require_librarian),
    db: AsyncSession = Depends(get_session),
):
    book = await catalog_service.create_book(
        db,
        librarian,
        title=payload.title,
        author=payload.author,
        genre=payload.genre,
        difficulty=payload.difficulty,
        description=payload.description,
    )
    return _book_response(book)


@router.post("/{book_id}/chapters", response_model=ChapterResponse, status_code=201)
async def add_chapter(
    book_id: int,
    payload: ChapterCreateRequest,
    _librarian: User = Depends(require_librarian),
    db: AsyncSession = Depends(get_session),
):
    chapter = await catalog_service.add_chapter(
        db,
        book_id,
        title=payload.title,
        chapter_number=payload.chapter_number,
        word_count=payload.word_count,
    )
    return _chapter_response(chapter)
