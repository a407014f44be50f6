"""Bookmarks, notes and quiz results: append-only entries on a progress record."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from shelfquest.db.models import Bookmark, Note, QuizResult, ReadingProgress
from shelfquest.errors import NotFoundError, ValidationError

MAX_BOOKMARK_NOTE = 500
MAX_NOTE_CONTENT = 1000


def add_bookmark(
    progress: ReadingProgress,
    chapter_id: int,
    position: int = 0,
    note: str | None = None,
    now: datetime | None = None,
) -> Bookmark:
    if position < 0:
        msg = "Bookmark position must be >= 0"
        raise ValidationError(msg)
    if note is not None and len(note) > MAX_BOOKMARK_NOTE:
        msg = f"Bookmark note must be at most {MAX_BOOKMARK_NOTE} characters"
        raise ValidationError(msg)

    bookmark = Bookmark(
        chapter_id=chapter_id,
        position=position,
        note=note,
        created_at=now or datetime.now(timezone.utc),
    )
    progress.bookmarks.append(bookmark)
    return bookmark


def add_note(
    progress: ReadingProgress,
    chapter_id: int,
    content: str,
    position: int = 0,
    is_private: bool = True,
    now: datetime | None = None,
) -> Note:
    content = content.strip()
    if not content or len(content) > MAX_NOTE_CONTENT:
        msg = f"Note content is required and must be at most {MAX_NOTE_CONTENT} characters"
        raise ValidationError(msg)

    now = now or datetime.now(timezone.utc)
    note = Note(
        chapter_id=chapter_id,
        content=content,
        position=max(0, position),
        is_private=is_private,
        created_at=now,
        updated_at=now,
    )
    progress.notes.append(note)
    return note


def delete_note(progress: ReadingProgress, note_id: int) -> Note:
    """Remove a note by id. The ORM deletes the orphaned row on flush."""
    for note in progress.notes:
        if note.id == note_id:
            progress.notes.remove(note)
            return note
    msg = "Note not found"
    raise NotFoundError(msg)


def add_quiz_result(
    progress: ReadingProgress,
    chapter_id: int,
    score: int,
    total_questions: int,
    correct_answers: int,
    answers: list[dict[str, Any]] | None = None,
    now: datetime | None = None,
) -> QuizResult:
    if not 0 <= score <= 100:
        msg = "Quiz score must be between 0 and 100"
        raise ValidationError(msg)
    if total_questions < 1 or not 0 <= correct_answers <= total_questions:
        msg = "correct_answers must be between 0 and total_questions (>= 1)"
        raise ValidationError(msg)

    result = QuizResult(
        chapter_id=chapter_id,
        score=score,
        total_questions=total_questions,
        correct_answers=correct_answers,
        answers=list(answers or []),
        completed_at=now or datetime.now(timezone.utc),
    )
    progress.quiz_results.append(result)
    return result
