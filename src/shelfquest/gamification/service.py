"""Gamification operations backed by the database: evaluation, resets, awards, rankings."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError

from shelfquest.auth.service import get_user_by_id
from shelfquest.db.models import ReadingProgress, User
from shelfquest.errors import InvalidStateError, NotFoundError, ValidationError
from shelfquest.gamification.evaluator import (
    EvaluationResult,
    award_achievement,
    evaluate,
    visible_achievements,
    visible_badges,
)
from shelfquest.gamification.events import ACHIEVEMENT_CHANNEL, BADGE_CHANNEL, publish_event
from shelfquest.gamification.level_thresholds import compute_level
from shelfquest.gamification.rules import ACHIEVEMENTS, BADGES
from shelfquest.gamification.xp_service import emit_level_up, grant_experience
from shelfquest.progress.state_machine import COMPLETED, READING, round_half_up

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shelfquest.gamification.rules import AchievementRule, BadgeRule

logger = structlog.get_logger()

LEADERBOARD_TYPES = ("experience", "level", "books")
DIFFICULTY_ORDER = {"beginner": 1, "intermediate": 2, "advanced": 3}


async def _commit_unlocks(db: AsyncSession, user: User) -> None:
    """Commit new unlock rows. A concurrent unlock of the same rule hits the unique constraint."""
    user_id = user.id
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("unlock_conflict", user_id=user_id)
        msg = "Achievements were updated by a concurrent request, please retry"
        raise InvalidStateError(msg) from e


async def load_progress_history(db: AsyncSession, user_id: int) -> list[ReadingProgress]:
    result = await db.execute(
        select(ReadingProgress).where(ReadingProgress.user_id == user_id).order_by(ReadingProgress.id)
    )
    return list(result.scalars().all())


async def announce_unlocks(
    redis: object | None,
    user: User,
    achievements: list[AchievementRule],
    badges: list[BadgeRule],
    old_level: int,
) -> None:
    """Log and publish freshly unlocked rules. Call after the commit."""
    for rule in achievements:
        logger.info("achievement_unlocked", user_id=user.id, achievement_id=rule.id, xp=rule.experience)
        await publish_event(
            redis,
            ACHIEVEMENT_CHANNEL,
            {"user_id": user.id, "achievement_id": rule.id, "name": rule.name, "experience": rule.experience},
        )
    for badge in badges:
        logger.info("badge_earned", user_id=user.id, badge_id=badge.id)
        await publish_event(
            redis,
            BADGE_CHANNEL,
            {"user_id": user.id, "badge_id": badge.id, "name": badge.name, "color": badge.color},
        )
    if user.level > old_level:
        await emit_level_up(redis, user, old_level)


async def evaluate_achievements(
    db: AsyncSession,
    redis: object | None,
    user: User,
    now: datetime | None = None,
) -> EvaluationResult:
    """Evaluate every rule against the user's full reading history and persist unlocks."""
    history = await load_progress_history(db, user.id)
    result = evaluate(user, history, now)
    if not result.unlocked_anything:
        return result

    await _commit_unlocks(db, user)
    await announce_unlocks(redis, user, result.new_achievements, result.new_badges, result.old_level)
    return result


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------


def apply_reset(user: User, now: datetime | None = None) -> None:
    """Zero experience, level, streak and unlocks and stamp the reset marker."""
    user.experience = 0
    user.level = 1
    user.streak_current = 0
    user.streak_longest = 0
    user.streak_last_read_date = None
    user.achievements.clear()
    user.badges.clear()
    user.gamification_reset_applied = True
    user.gamification_reset_at = now or datetime.now(timezone.utc)


async def reset_gamification(db: AsyncSession, user: User, now: datetime | None = None) -> None:
    apply_reset(user, now)
    await db.commit()
    logger.info("gamification_reset", user_id=user.id, reset_at=user.gamification_reset_at.isoformat())


async def reset_all(db: AsyncSession, librarian: User, now: datetime | None = None) -> int:
    """Reset every user's gamification state in one transaction. Returns the count."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(User).order_by(User.id))
    users = list(result.scalars().all())
    for user in users:
        apply_reset(user, now)
    await db.commit()
    logger.info("gamification_reset_all", librarian_id=librarian.id, users=len(users))
    return len(users)


# ---------------------------------------------------------------------------
# Manual award
# ---------------------------------------------------------------------------


async def award(
    db: AsyncSession,
    redis: object | None,
    librarian: User,
    user_id: int,
    achievement_id: str,
    reason: str | None = None,
) -> tuple[User, AchievementRule]:
    target = librarian if user_id == librarian.id else await get_user_by_id(db, user_id)
    if target is None:
        msg = "User not found"
        raise NotFoundError(msg)

    old_level = target.level
    rule = award_achievement(target, achievement_id, librarian.id, reason)
    await _commit_unlocks(db, target)

    logger.info("achievement_awarded", user_id=target.id, achievement_id=rule.id, librarian_id=librarian.id)
    await announce_unlocks(redis, target, [rule], [], old_level)
    return target, rule


async def grant(
    db: AsyncSession,
    redis: object | None,
    librarian: User,
    user_id: int,
    points: int,
    reason: str | None = None,
) -> tuple[User, dict]:
    """Grant experience to a reader outside any reading action (club prizes, corrections)."""
    target = librarian if user_id == librarian.id else await get_user_by_id(db, user_id)
    if target is None:
        msg = "User not found"
        raise NotFoundError(msg)

    result = await grant_experience(db, redis, target, points, source="librarian")
    await db.commit()

    logger.info("experience_granted", user_id=target.id, points=points, reason=reason, librarian_id=librarian.id)
    return target, result


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


def _books_completed_subquery():
    return (
        select(ReadingProgress.user_id, func.count(ReadingProgress.id).label("books"))
        .where(ReadingProgress.status == COMPLETED)
        .group_by(ReadingProgress.user_id)
        .subquery()
    )


async def leaderboard(db: AsyncSession, board_type: str = "experience", limit: int = 10) -> list[dict[str, Any]]:
    """Top active users by experience, level or completed books."""
    if board_type not in LEADERBOARD_TYPES:
        msg = f"Leaderboard type must be one of {list(LEADERBOARD_TYPES)}"
        raise ValidationError(msg)

    books = _books_completed_subquery()
    books_col = func.coalesce(books.c.books, 0)
    stmt = (
        select(User, books_col.label("books"))
        .outerjoin(books, books.c.user_id == User.id)
        .where(User.is_active.is_(True))
    )
    if board_type == "experience":
        stmt = stmt.order_by(User.experience.desc(), User.id)
    elif board_type == "level":
        stmt = stmt.order_by(User.level.desc(), User.experience.desc(), User.id)
    else:
        stmt = stmt.order_by(books_col.desc(), User.experience.desc(), User.id)

    result = await db.execute(stmt.limit(limit))
    return [
        {
            "rank": rank,
            "user_id": user.id,
            "display_name": user.display_name,
            "level": user.level,
            "experience": user.experience,
            "books_completed": books_count,
        }
        for rank, (user, books_count) in enumerate(result.all(), start=1)
    ]


async def leaderboard_position(db: AsyncSession, user: User, board_type: str = "experience") -> int:
    """1-based rank of ``user``: one more than the number of active users strictly ahead."""
    if board_type == "experience":
        ahead = select(func.count(User.id)).where(User.is_active.is_(True), User.experience > user.experience)
    elif board_type == "level":
        ahead = select(func.count(User.id)).where(
            User.is_active.is_(True),
            (User.level > user.level) | and_(User.level == user.level, User.experience > user.experience),
        )
    else:
        books = _books_completed_subquery()
        own = await db.execute(select(func.coalesce(func.max(books.c.books), 0)).where(books.c.user_id == user.id))
        ahead = (
            select(func.count(User.id))
            .join(books, books.c.user_id == User.id)
            .where(User.is_active.is_(True), books.c.books > own.scalar_one())
        )
    result = await db.execute(ahead)
    return result.scalar_one() + 1


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def summarize_gamification(user: User, history: list[ReadingProgress]) -> dict[str, Any]:
    completed = [p for p in history if p.status == COMPLETED]
    genres = Counter(p.book.genre for p in completed if p.book is not None and p.book.genre)
    difficulties = [p.book.difficulty for p in completed if p.book is not None]
    total_time = sum(p.total_reading_time for p in history)
    total_sessions = sum(p.total_sessions for p in history)
    level_info = compute_level(user.experience)

    return {
        "level": user.level,
        "title": level_info["title"],
        "experience": user.experience,
        "xp_to_next_level": level_info["xp_to_next_level"],
        "achievements_unlocked": len(visible_achievements(user)),
        "achievements_available": len(ACHIEVEMENTS),
        "badges_earned": len(visible_badges(user)),
        "badges_available": len(BADGES),
        "streak_current": user.streak_current,
        "streak_longest": user.streak_longest,
        "books_completed": len(completed),
        "books_reading": sum(1 for p in history if p.status == READING),
        "total_reading_time": total_time,
        "average_session_time": round_half_up(total_time / total_sessions) if total_sessions else 0,
        "favorite_genre": genres.most_common(1)[0][0] if genres else None,
        "hardest_difficulty": max(difficulties, key=lambda d: DIFFICULTY_ORDER.get(d, 0)) if difficulties else None,
    }


async def gamification_stats(db: AsyncSession, user: User) -> dict[str, Any]:
    return summarize_gamification(user, await load_progress_history(db, user.id))
