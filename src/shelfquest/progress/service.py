"""Reading-progress operations: load, mutate through the state machine, reward, commit.

Every public function is one logical operation and ends with a single
commit. Experience earned by the action is added to the progress owner in
the same transaction; level-up events go out only after the commit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from shelfquest.auth.service import get_user_by_id
from shelfquest.catalog.service import get_book, get_chapter_of_book
from shelfquest.db.models import Bookmark, Note, QuizResult, ReadingProgress, ReadingSession, User
from shelfquest.errors import NotFoundError, PermissionDeniedError
from shelfquest.gamification.streak_service import update_reading_streak
from shelfquest.gamification.xp_service import (
    XP_BOOK_COMPLETED,
    XP_CHAPTER_COMPLETED,
    XP_CHAPTER_READ,
    XP_START_BOOK,
    add_experience,
    emit_level_up,
    session_experience,
)
from shelfquest.progress import annotations, sessions
from shelfquest.progress import state_machine as sm

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def get_progress(db: AsyncSession, user: User, progress_id: int) -> ReadingProgress:
    """Load a progress record the caller may act on (owner or librarian)."""
    result = await db.execute(select(ReadingProgress).where(ReadingProgress.id == progress_id))
    progress = result.scalar_one_or_none()
    if progress is None:
        msg = "Reading progress not found"
        raise NotFoundError(msg)
    if progress.user_id != user.id and not user.is_librarian:
        msg = "You can only access your own reading progress"
        raise PermissionDeniedError(msg)
    return progress


async def get_progress_for_book(db: AsyncSession, user: User, book_id: int) -> ReadingProgress:
    result = await db.execute(
        select(ReadingProgress).where(ReadingProgress.user_id == user.id, ReadingProgress.book_id == book_id)
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        msg = "No reading progress for this book"
        raise NotFoundError(msg)
    return progress


async def list_progress(db: AsyncSession, user: User, status: str | None = None) -> list[ReadingProgress]:
    stmt = select(ReadingProgress).where(ReadingProgress.user_id == user.id)
    if status is not None:
        stmt = stmt.where(ReadingProgress.status == status)
    result = await db.execute(stmt.order_by(ReadingProgress.last_read_at.desc().nulls_last(), ReadingProgress.id))
    return list(result.scalars().all())


async def _owner(db: AsyncSession, user: User, progress: ReadingProgress) -> User:
    """The user who earns rewards for ``progress`` (differs from the caller for librarians)."""
    if progress.user_id == user.id:
        return user
    owner = await get_user_by_id(db, progress.user_id)
    if owner is None:
        msg = "Progress owner not found"
        raise NotFoundError(msg)
    return owner


async def _commit_with_rewards(db: AsyncSession, redis: object | None, owner: User, old_level: int) -> None:
    await db.commit()
    if owner.level > old_level:
        await emit_level_up(redis, owner, old_level)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def start_reading(
    db: AsyncSession,
    redis: object | None,
    user: User,
    book_id: int,
    now: datetime | None = None,
) -> tuple[ReadingProgress, int]:
    """Create (or resume) the caller's record for a book. Returns (progress, experience_delta)."""
    now = _now(now)
    book = await get_book(db, book_id, available_only=True)

    result = await db.execute(
        select(ReadingProgress).where(ReadingProgress.user_id == user.id, ReadingProgress.book_id == book_id)
    )
    progress = result.scalar_one_or_none()

    xp = 0
    if progress is None:
        progress = sm.new_progress(user.id, book_id, sm.READING, now)
        progress.book = book
        db.add(progress)
        xp = XP_START_BOOK
    elif progress.status == sm.NOT_STARTED:
        sm.set_status(progress, sm.READING, now)
        xp = XP_START_BOOK
    elif progress.status == sm.PAUSED:
        sm.set_status(progress, sm.READING, now)

    old_level = add_experience(user, xp)
    await _commit_with_rewards(db, redis, user, old_level)
    await db.refresh(progress)
    logger.info("reading_started", user_id=user.id, book_id=book_id, progress_id=progress.id, xp=xp)
    return progress, xp


async def set_status(
    db: AsyncSession,
    redis: object | None,
    user: User,
    progress_id: int,
    status: str,
    now: datetime | None = None,
) -> tuple[ReadingProgress, int]:
    """Explicit status change. Completing a book pays the completion bonus once."""
    now = _now(now)
    progress = await get_progress(db, user, progress_id)
    owner = await _owner(db, user, progress)

    previous = progress.status
    changed = sm.set_status(progress, status, now)

    xp = 0
    if changed and status == sm.COMPLETED:
        xp = XP_BOOK_COMPLETED
    elif changed and previous == sm.NOT_STARTED and status == sm.READING:
        xp = XP_START_BOOK

    old_level = add_experience(owner, xp)
    await _commit_with_rewards(db, redis, owner, old_level)
    if changed:
        logger.info("progress_status_changed", progress_id=progress.id, old=previous, new=status)
    return progress, xp


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def start_session(
    db: AsyncSession,
    redis: object | None,
    user: User,
    progress_id: int,
    chapter_id: int | None = None,
    now: datetime | None = None,
) -> ReadingSession:
    now = _now(now)
    progress = await get_progress(db, user, progress_id)
    if chapter_id is not None:
        await get_chapter_of_book(db, chapter_id, progress.book_id)
    owner = await _owner(db, user, progress)

    started = sessions.start_session(progress, chapter_id, now)

    # A session left open is closed and paid out like a normal end
    xp = 0
    if started.closed_duration is not None:
        xp = session_experience(started.closed_duration)
        update_reading_streak(owner, now)
        logger.info("session_auto_closed", progress_id=progress.id, duration=started.closed_duration)

    old_level = add_experience(owner, xp)
    await _commit_with_rewards(db, redis, owner, old_level)
    return started.session


async def end_session(
    db: AsyncSession,
    redis: object | None,
    user: User,
    progress_id: int,
    words_read: int = 0,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Close the open session. Returns {duration_minutes, experience_delta}."""
    now = _now(now)
    progress = await get_progress(db, user, progress_id)
    owner = await _owner(db, user, progress)

    duration = sessions.end_session(progress, words_read, now)
    if duration is None:
        return {"duration_minutes": None, "experience_delta": 0}

    xp = session_experience(duration)
    old_level = add_experience(owner, xp)
    update_reading_streak(owner, now)
    await _commit_with_rewards(db, redis, owner, old_level)

    logger.info("session_ended", progress_id=progress.id, duration=duration, words_read=words_read, xp=xp)
    return {"duration_minutes": duration, "experience_delta": xp}


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------


async def read_chapter(
    db: AsyncSession,
    redis: object | None,
    user: User,
    progress_id: int,
    chapter_id: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = _now(now)
    progress = await get_progress(db, user, progress_id)
    await get_chapter_of_book(db, chapter_id, progress.book_id)
    owner = await _owner(db, user, progress)

    newly_read = sm.mark_chapter_as_read(progress, chapter_id)
    progress.current_chapter_id = chapter_id
    progress.last_read_at = now

    xp = XP_CHAPTER_READ if newly_read else 0
    old_level = add_experience(owner, xp)
    await _commit_with_rewards(db, redis, owner, old_level)
    return {"chapters_read": list(progress.chapters_read), "experience_delta": xp}


async def complete_chapter(
    db: AsyncSession,
    redis: object | None,
    user: User,
    progress_id: int,
    chapter_id: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Returns {progress_percentage, book_completed, experience_delta}."""
    now = _now(now)
    progress = await get_progress(db, user, progress_id)
    await get_chapter_of_book(db, chapter_id, progress.book_id)
    owner = await _owner(db, user, progress)

    was_completed = progress.status == sm.COMPLETED
    was_read = chapter_id in progress.chapters_read
    newly_completed = sm.mark_chapter_as_completed(progress, chapter_id, progress.book.total_chapters, now)
    book_completed = not was_completed and progress.status == sm.COMPLETED

    xp = 0
    if not was_read:
        xp += XP_CHAPTER_READ
    if newly_completed:
        xp += XP_CHAPTER_COMPLETED
    if book_completed:
        xp += XP_BOOK_COMPLETED

    old_level = add_experience(owner, xp)
    update_reading_streak(owner, now)
    await _commit_with_rewards(db, redis, owner, old_level)

    if book_completed:
        logger.info("book_completed", user_id=owner.id, book_id=progress.book_id, progress_id=progress.id)
    return {
        "progress_percentage": progress.progress_percentage,
        "book_completed": book_completed,
        "experience_delta": xp,
    }


# ---------------------------------------------------------------------------
# Bookmarks, notes, quiz results
# ---------------------------------------------------------------------------


async def add_bookmark(
    db: AsyncSession,
    user: User,
    progress_id: int,
    chapter_id: int,
    position: int = 0,
    note: str | None = None,
) -> Bookmark:
    progress = await get_progress(db, user, progress_id)
    await get_chapter_of_book(db, chapter_id, progress.book_id)
    bookmark = annotations.add_bookmark(progress, chapter_id, position, note)
    await db.commit()
    return bookmark


async def add_note(
    db: AsyncSession,
    user: User,
    progress_id: int,
    chapter_id: int,
    content: str,
    position: int = 0,
    is_private: bool = True,
) -> Note:
    progress = await get_progress(db, user, progress_id)
    await get_chapter_of_book(db, chapter_id, progress.book_id)
    note = annotations.add_note(progress, chapter_id, content, position, is_private)
    await db.commit()
    return note


async def list_notes(db: AsyncSession, user: User, progress_id: int) -> list[Note]:
    progress = await get_progress(db, user, progress_id)
    return list(progress.notes)


async def delete_note(db: AsyncSession, user: User, progress_id: int, note_id: int) -> None:
    progress = await get_progress(db, user, progress_id)
    annotations.delete_note(progress, note_id)
    await db.commit()


async def add_quiz_result(
    db: AsyncSession,
    user: User,
    progress_id: int,
    chapter_id: int,
    score: int,
    total_questions: int,
    correct_answers: int,
    answers: list[dict[str, Any]] | None = None,
) -> QuizResult:
    progress = await get_progress(db, user, progress_id)
    await get_chapter_of_book(db, chapter_id, progress.book_id)
    result = annotations.add_quiz_result(progress, chapter_id, score, total_questions, correct_answers, answers)
    await db.commit()
    return result


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def summarize(records: list[ReadingProgress]) -> dict[str, Any]:
    """Aggregate a user's records into the reading summary."""
    by_status = {status: 0 for status in sm.STATUSES}
    for p in records:
        by_status[p.status] = by_status.get(p.status, 0) + 1

    total_time = sum(p.total_reading_time for p in records)
    total_sessions = sum(p.total_sessions for p in records)
    return {
        "total_books": len(records),
        "by_status": by_status,
        "chapters_completed": sum(len(p.chapters_completed) for p in records),
        "total_reading_time": total_time,
        "total_sessions": total_sessions,
        "average_session_time": sm.round_half_up(total_time / total_sessions) if total_sessions else 0,
        "average_progress": sm.round_half_up(sum(p.progress_percentage for p in records) / len(records))
        if records
        else 0,
    }


async def stats_summary(db: AsyncSession, user: User) -> dict[str, Any]:
    return summarize(await list_progress(db, user))
