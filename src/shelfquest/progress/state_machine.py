"""Reading-progress lifecycle: status transitions, chapter sets, percentage.

Derived fields are recomputed by explicit calls made from each operation,
never from a save hook. All functions mutate the record in memory; the
service layer flushes.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from shelfquest.db.models import ReadingProgress
from shelfquest.errors import InvalidStateError, ValidationError

NOT_STARTED = "not-started"
READING = "reading"
PAUSED = "paused"
COMPLETED = "completed"
ABANDONED = "abandoned"

STATUSES: tuple[str, ...] = (NOT_STARTED, READING, PAUSED, COMPLETED, ABANDONED)
TERMINAL_STATUSES = frozenset({COMPLETED, ABANDONED})

VALID_TRANSITIONS: dict[str, list[str]] = {
    NOT_STARTED: [READING],
    READING: [PAUSED, COMPLETED, ABANDONED],
    PAUSED: [READING, ABANDONED],
    COMPLETED: [],
    ABANDONED: [],
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (12.5 -> 13, not 12)."""
    return math.floor(value + 0.5)


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def new_progress(
    user_id: int,
    book_id: int,
    status: str = NOT_STARTED,
    now: datetime | None = None,
) -> ReadingProgress:
    """Build a fully initialised record (column defaults only apply on INSERT)."""
    progress = ReadingProgress(
        user_id=user_id,
        book_id=book_id,
        status=NOT_STARTED,
        progress_percentage=0,
        current_chapter_id=None,
        chapters_read=[],
        chapters_completed=[],
        total_reading_time=0,
        total_sessions=0,
        longest_session=0,
        average_session_time=0,
        average_reading_speed=0,
        started_at=None,
        last_read_at=None,
        completed_at=None,
        sessions=[],
        bookmarks=[],
        notes=[],
        quiz_results=[],
    )
    if status != NOT_STARTED:
        apply_status(progress, status, now)
    return progress


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate an explicit status change. Raises InvalidStateError if not allowed."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        msg = f"Invalid transition: {current_status} -> {target_status}. Valid transitions: {valid}"
        raise InvalidStateError(msg)


def apply_status(progress: ReadingProgress, status: str, now: datetime | None = None) -> None:
    """Write ``status`` and run its timestamp side effects.

    Runs for every status write, including internal ones (session start,
    auto-completion), and tolerates records that reached a state outside
    the transition table.
    """
    now = _now(now)
    progress.status = status

    if status == READING and progress.started_at is None:
        progress.started_at = now

    if status == COMPLETED:
        if progress.completed_at is None:
            progress.completed_at = now
        progress.progress_percentage = 100

    if status in (READING, PAUSED):
        progress.last_read_at = now


def set_status(progress: ReadingProgress, status: str, now: datetime | None = None) -> bool:
    """Explicit transition requested by the reader. Returns False if nothing changed."""
    if status not in STATUSES:
        msg = f"Unknown status '{status}'. Expected one of {list(STATUSES)}"
        raise ValidationError(msg)
    if status == progress.status:
        return False
    validate_transition(progress.status, status)
    apply_status(progress, status, now)
    return True


def mark_chapter_as_read(progress: ReadingProgress, chapter_id: int) -> bool:
    """Add to chapters_read. Returns True if the chapter was not there yet."""
    if chapter_id in progress.chapters_read:
        return False
    progress.chapters_read.append(chapter_id)
    return True


def mark_chapter_as_completed(
    progress: ReadingProgress,
    chapter_id: int,
    total_chapters: int,
    now: datetime | None = None,
) -> bool:
    """Mark read + completed, then recompute the percentage.

    Returns True if the chapter was newly completed.
    """
    if progress.status == ABANDONED:
        msg = "Cannot complete chapters of an abandoned book"
        raise InvalidStateError(msg)

    mark_chapter_as_read(progress, chapter_id)

    newly_completed = chapter_id not in progress.chapters_completed
    if newly_completed:
        progress.chapters_completed.append(chapter_id)

    update_progress_percentage(progress, total_chapters, now)
    return newly_completed


def update_progress_percentage(
    progress: ReadingProgress,
    total_chapters: int,
    now: datetime | None = None,
) -> int:
    """Recompute the percentage from the completed set and the book's chapter count.

    Reaching >= 100 forces the record to completed. A book with no chapters
    leaves the percentage untouched.
    """
    if total_chapters <= 0:
        return progress.progress_percentage

    percentage = min(100, round_half_up(100 * len(progress.chapters_completed) / total_chapters))
    if progress.status == COMPLETED:
        percentage = 100
    progress.progress_percentage = percentage

    if percentage >= 100 and progress.status != COMPLETED:
        apply_status(progress, COMPLETED, now)

    return progress.progress_percentage


def check_invariants(progress: ReadingProgress) -> list[str]:
    """Return a list of violated invariants (empty when the record is consistent)."""
    problems = []
    if not set(progress.chapters_completed) <= set(progress.chapters_read):
        problems.append("chapters_completed is not a subset of chapters_read")
    if progress.progress_percentage >= 100 and progress.status != COMPLETED:
        problems.append("progress_percentage is 100 but status is not completed")
    open_sessions = [s for s in progress.sessions if s.end_time is None]
    if len(open_sessions) > 1:
        problems.append(f"{len(open_sessions)} open sessions")
    return problems
