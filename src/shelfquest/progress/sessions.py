"""Reading sessions on a progress record and the statistics derived from them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NamedTuple

from shelfquest.db.models import ReadingProgress, ReadingSession
from shelfquest.errors import InvalidStateError, ValidationError
from shelfquest.progress.state_machine import READING, TERMINAL_STATUSES, apply_status, round_half_up


class StartedSession(NamedTuple):
    session: ReadingSession
    # Duration of a session that was still open and got closed first
    closed_duration: int | None


def open_session(progress: ReadingProgress) -> ReadingSession | None:
    """The most recent session, if it has not ended yet."""
    if not progress.sessions:
        return None
    last = progress.sessions[-1]
    return last if last.end_time is None else None


def start_session(
    progress: ReadingProgress,
    chapter_id: int | None,
    now: datetime | None = None,
) -> StartedSession:
    """Open a new session. A session left open is closed first with 0 words."""
    if now is None:
        now = datetime.now(timezone.utc)
    if progress.status in TERMINAL_STATUSES:
        msg = f"Cannot start a session on a {progress.status} book"
        raise InvalidStateError(msg)

    closed_duration = None
    if open_session(progress) is not None:
        closed_duration = end_session(progress, 0, now)

    session = ReadingSession(start_time=now, end_time=None, duration=None, chapter_id=chapter_id, words_read=0)
    progress.sessions.append(session)
    apply_status(progress, READING, now)
    progress.current_chapter_id = chapter_id
    return StartedSession(session, closed_duration)


def end_session(
    progress: ReadingProgress,
    words_read: int = 0,
    now: datetime | None = None,
) -> int | None:
    """Close the most recent session. Returns its duration in minutes, or None if none was open."""
    if isinstance(words_read, bool) or not isinstance(words_read, int) or words_read < 0:
        msg = f"words_read must be a non-negative integer, got {words_read!r}"
        raise ValidationError(msg)

    session = open_session(progress)
    if session is None:
        return None

    if now is None:
        now = datetime.now(timezone.utc)
    session.end_time = now
    session.duration = max(0, round_half_up((now - session.start_time).total_seconds() / 60))
    session.words_read = words_read

    progress.total_reading_time += session.duration
    recompute_statistics(progress)
    return session.duration


def recompute_statistics(progress: ReadingProgress) -> None:
    closed = [s for s in progress.sessions if s.end_time is not None]
    if not closed:
        return

    durations = [s.duration or 0 for s in closed]
    total_time = sum(durations)
    total_words = sum(s.words_read or 0 for s in closed)

    progress.total_sessions = len(closed)
    progress.longest_session = max(durations)
    progress.average_session_time = round_half_up(total_time / len(closed))
    progress.average_reading_speed = round_half_up(total_words / total_time) if total_time > 0 else 0
