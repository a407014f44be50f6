"""Daily reading streak tracking.

A streak counts consecutive UTC calendar days with at least one reading
action. Reading at 23:59 and again at 00:01 the next day extends the streak;
two reads 30 hours apart on non-adjacent days break it.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shelfquest.db.models import User

logger = structlog.get_logger()


def utc_date(dt: datetime) -> date:
    """Calendar date of ``dt`` in UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(timezone.utc).date()


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative on clock skew)."""
    return (utc_date(later) - utc_date(earlier)).days


def update_reading_streak(user: User, now: datetime | None = None) -> tuple[int, int]:
    """Apply one reading action at ``now``. Returns (current, longest)."""
    if now is None:
        now = datetime.now(timezone.utc)

    last = user.streak_last_read_date
    if last is None:
        user.streak_current = 1
        user.streak_last_read_date = now
        user.streak_longest = max(user.streak_longest, 1)
        return user.streak_current, user.streak_longest

    days_diff = days_between(last, now)

    if days_diff == 1:
        user.streak_current += 1
        user.streak_last_read_date = now
        if user.streak_current > user.streak_longest:
            user.streak_longest = user.streak_current
    elif days_diff > 1:
        user.streak_current = 1
        user.streak_last_read_date = now
        user.streak_longest = max(user.streak_longest, 1)
    # days_diff == 0: already read today. days_diff < 0: out-of-order call, same as 0.

    return user.streak_current, user.streak_longest


async def update_streak(db: AsyncSession, user: User, now: datetime | None = None) -> dict:
    """Record a reading action for ``user`` and persist the streak."""
    current, longest = update_reading_streak(user, now)
    await db.flush()
    logger.debug("streak_updated", user_id=user.id, current=current, longest=longest)
    return {"current": current, "longest": longest}
