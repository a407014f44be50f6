"""Book and chapter lookups used by the reading core, plus librarian authoring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from shelfquest.db.models import Book, Chapter, User
from shelfquest.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DIFFICULTIES = ("beginner", "intermediate", "advanced")


async def get_book(db: AsyncSession, book_id: int, *, available_only: bool = False) -> Book:
    """Fetch a book. Raises NotFoundError if missing (or not readable when available_only)."""
    stmt = select(Book).where(Book.id == book_id)
    if available_only:
        stmt = stmt.where(Book.is_active.is_(True), Book.is_approved.is_(True))
    result = await db.execute(stmt)
    book = result.scalar_one_or_none()
    if book is None:
        msg = "Book not found or not available"
        raise NotFoundError(msg)
    return book


async def get_chapter(db: AsyncSession, chapter_id: int) -> Chapter:
    result = await db.execute(select(Chapter).where(Chapter.id == chapter_id))
    chapter = result.scalar_one_or_none()
    if chapter is None:
        msg = "Chapter not found"
        raise NotFoundError(msg)
    return chapter


async def get_chapter_of_book(db: AsyncSession, chapter_id: int, book_id: int) -> Chapter:
    """Fetch a chapter and check it belongs to ``book_id``."""
    chapter = await get_chapter(db, chapter_id)
    if chapter.book_id != book_id:
        msg = "Chapter does not belong to this book"
        raise ValidationError(msg)
    return chapter


async def list_chapters(db: AsyncSession, book_id: int) -> list[Chapter]:
    result = await db.execute(
        select(Chapter)
        .where(Chapter.book_id == book_id, Chapter.is_active.is_(True))
        .order_by(Chapter.chapter_number)
    )
    return list(result.scalars().all())


async def create_book(
    db: AsyncSession,
    librarian: User,
    title: str,
    author: str,
    genre: str | None = None,
    difficulty: str = "beginner",
    description: str | None = None,
) -> Book:
    if difficulty not in DIFFICULTIES:
        msg = f"Difficulty must be one of {list(DIFFICULTIES)}"
        raise ValidationError(msg)

    book = Book(
        title=title.strip(),
        author=author.strip(),
        genre=genre,
        difficulty=difficulty,
        description=description,
        total_chapters=0,
        is_active=True,
        is_approved=True,
        created_by_id=librarian.id,
    )
    db.add(book)
    await db.commit()
    logger.info("book_created", book_id=book.id, librarian_id=librarian.id)
    return book


async def add_chapter(
    db: AsyncSession,
    book_id: int,
    title: str,
    chapter_number: int | None = None,
    word_count: int = 0,
) -> Chapter:
    """Append a chapter and bump the book's total_chapters counter in place."""
    await get_book(db, book_id)

    if chapter_number is None:
        result = await db.execute(
            select(func.coalesce(func.max(Chapter.chapter_number), 0)).where(Chapter.book_id == book_id)
        )
        chapter_number = result.scalar_one() + 1

    chapter = Chapter(
        book_id=book_id,
        chapter_number=chapter_number,
        title=title.strip(),
        word_count=max(0, word_count),
        is_active=True,
    )
    db.add(chapter)
    await db.execute(
        update(Book).where(Book.id == book_id).values(total_chapters=Book.total_chapters + 1)
    )
    await db.commit()
    return chapter
