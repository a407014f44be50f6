"""Experience grants with level recomputation and level-up detection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from shelfquest.errors import ValidationError
from shelfquest.gamification.events import LEVEL_UP_CHANNEL, publish_event
from shelfquest.gamification.level_thresholds import level_from_experience, level_title

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shelfquest.db.models import User

logger = structlog.get_logger()

# Rewards for reading actions
XP_START_BOOK = 5
XP_CHAPTER_READ = 10
XP_CHAPTER_COMPLETED = 20
XP_BOOK_COMPLETED = 100
MINUTES_PER_SESSION_XP = 5


def validate_points(points: object) -> int:
    """Reject anything that is not a non-negative int. bool is not accepted."""
    if isinstance(points, bool) or not isinstance(points, int):
        msg = f"Experience points must be an integer, got {type(points).__name__}"
        raise ValidationError(msg)
    if points < 0:
        msg = f"Experience points must be non-negative, got {points}"
        raise ValidationError(msg)
    return points


def add_experience(user: User, points: int) -> int:
    """Add XP in memory and recompute the level. Returns the level before the grant.

    The caller flushes the user row in the same transaction as the action
    that earned the points.
    """
    validate_points(points)
    old_level = user.level
    user.experience += points
    user.level = level_from_experience(user.experience)
    return old_level


def session_experience(duration_minutes: int) -> int:
    """One XP per full five minutes of reading."""
    return max(0, duration_minutes) // MINUTES_PER_SESSION_XP


async def grant_experience(
    db: AsyncSession,
    redis: object | None,
    user: User,
    points: int,
    source: str = "manual",
) -> dict:
    """Grant XP, flush, and announce a level-up if one happened."""
    old_level = add_experience(user, points)
    await db.flush()

    if user.level > old_level:
        await emit_level_up(redis, user, old_level)

    return {"level": user.level, "experience": user.experience, "source": source}


async def emit_level_up(redis: object | None, user: User, old_level: int) -> None:
    logger.info("level_up", user_id=user.id, old_level=old_level, new_level=user.level)
    await publish_event(
        redis,
        LEVEL_UP_CHANNEL,
        {
            "user_id": user.id,
            "old_level": old_level,
            "new_level": user.level,
            "title": level_title(user.level),
        },
    )
