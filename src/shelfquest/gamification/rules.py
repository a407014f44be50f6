"""Static achievement and badge rule registry.

Rules are frozen value objects built once at import time. Each predicate is
a pure function of (user, full progress history).

Achievements honour the gamification reset: completed books and sessions
dated on or before ``user.gamification_reset_at`` do not count. Badges are
lifetime milestones and ignore the reset.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING

from shelfquest.progress.state_machine import COMPLETED

if TYPE_CHECKING:
    from shelfquest.db.models import ReadingProgress, User

Predicate = Callable[["User", Sequence["ReadingProgress"]], bool]

SPEED_READER_WINDOW = timedelta(days=3)
MARATHON_SESSION_MINUTES = 120
TIME_MASTER_MINUTES = 6000  # 100 hours


@dataclass(frozen=True)
class AchievementRule:
    id: str
    name: str
    description: str
    icon: str
    experience: int
    predicate: Predicate


@dataclass(frozen=True)
class BadgeRule:
    id: str
    name: str
    description: str
    icon: str
    color: str
    predicate: Predicate

    # Badges are cosmetic
    experience: int = 0


# ---------------------------------------------------------------------------
# Reset filter helpers
# ---------------------------------------------------------------------------


def _after_reset(user: User, when: datetime | None) -> bool:
    """True if ``when`` counts for achievements given the user's reset marker."""
    reset_at = user.gamification_reset_at
    if reset_at is None:
        return True
    return when is not None and when > reset_at


def completed_after_reset(user: User, progress: Sequence[ReadingProgress]) -> list[ReadingProgress]:
    """Completed records whose best-known date falls after the reset."""
    return [
        p
        for p in progress
        if p.status == COMPLETED and _after_reset(user, p.completed_at or p.last_read_at or p.started_at)
    ]


def completed_lifetime(progress: Sequence[ReadingProgress]) -> int:
    return sum(1 for p in progress if p.status == COMPLETED)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _books_completed(threshold: int) -> Predicate:
    def predicate(user: User, progress: Sequence[ReadingProgress]) -> bool:
        return len(completed_after_reset(user, progress)) >= threshold

    return predicate


def _speed_reader(user: User, progress: Sequence[ReadingProgress]) -> bool:
    for p in progress:
        if p.status != COMPLETED or p.started_at is None or p.completed_at is None:
            continue
        if user.gamification_reset_at is not None and not (
            _after_reset(user, p.completed_at) or _after_reset(user, p.started_at)
        ):
            continue
        if p.completed_at - p.started_at < SPEED_READER_WINDOW:
            return True
    return False


def _marathon_reader(user: User, progress: Sequence[ReadingProgress]) -> bool:
    for p in progress:
        for session in p.sessions:
            if (session.duration or 0) <= MARATHON_SESSION_MINUTES:
                continue
            ended = session.end_time or p.last_read_at or p.completed_at or p.started_at
            if _after_reset(user, ended):
                return True
    return False


def _lifetime_books(threshold: int) -> Predicate:
    def predicate(_user: User, progress: Sequence[ReadingProgress]) -> bool:
        return completed_lifetime(progress) >= threshold

    return predicate


def _time_master(_user: User, progress: Sequence[ReadingProgress]) -> bool:
    return sum(p.total_reading_time or 0 for p in progress) >= TIME_MASTER_MINUTES


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

ACHIEVEMENTS: tuple[AchievementRule, ...] = (
    AchievementRule(
        id="first_book",
        name="First Book",
        description="Complete your first book",
        icon="📚",
        experience=50,
        predicate=_books_completed(1),
    ),
    AchievementRule(
        id="bookworm",
        name="Bookworm",
        description="Complete 10 books",
        icon="🐛",
        experience=200,
        predicate=_books_completed(10),
    ),
    AchievementRule(
        id="speed_reader",
        name="Speed Reader",
        description="Complete a book in less than 3 days",
        icon="⚡",
        experience=100,
        predicate=_speed_reader,
    ),
    AchievementRule(
        id="marathon_reader",
        name="Reading Marathon",
        description="Read for more than 2 hours in a single session",
        icon="🏃",
        experience=75,
        predicate=_marathon_reader,
    ),
)

BADGES: tuple[BadgeRule, ...] = (
    BadgeRule(
        id="bronze_reader",
        name="Bronze Reader",
        description="Complete 5 books",
        icon="🥉",
        color="#CD7F32",
        predicate=_lifetime_books(5),
    ),
    BadgeRule(
        id="silver_reader",
        name="Silver Reader",
        description="Complete 25 books",
        icon="🥈",
        color="#C0C0C0",
        predicate=_lifetime_books(25),
    ),
    BadgeRule(
        id="gold_reader",
        name="Gold Reader",
        description="Complete 50 books",
        icon="🥇",
        color="#FFD700",
        predicate=_lifetime_books(50),
    ),
    BadgeRule(
        id="time_master",
        name="Time Master",
        description="Accumulate 100 hours of reading",
        icon="⏰",
        color="#4169E1",
        predicate=_time_master,
    ),
)

ACHIEVEMENTS_BY_ID = MappingProxyType({rule.id: rule for rule in ACHIEVEMENTS})
BADGES_BY_ID = MappingProxyType({rule.id: rule for rule in BADGES})
