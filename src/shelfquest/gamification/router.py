"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shelfquest.auth.dependencies import get_current_user, require_librarian
from shelfquest.config import get_settings
from shelfquest.database import get_session
from shelfquest.db.models import User, UserAchievement, UserBadge
from shelfquest.gamification import service as gamification_service
from shelfquest.gamification.evaluator import visible_achievements, visible_badges
from shelfquest.gamification.level_thresholds import MAX_TITLED_LEVEL, compute_level, level_threshold, level_title
from shelfquest.gamification.rules import ACHIEVEMENTS, BADGES, AchievementRule, BadgeRule
from shelfquest.gamification.schemas import (
    AchievementResponse,
    AchievementsResponse,
    AllLevelsResponse,
    AwardAchievementRequest,
    AwardAchievementResponse,
    BadgeResponse,
    BadgesResponse,
    CheckAchievementsResponse,
    GamificationStatsResponse,
    GrantExperienceRequest,
    GrantExperienceResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelEntry,
    LevelResponse,
    ProfileResponse,
    ResetResponse,
    StreakResponse,
)
from shelfquest.gamification.streak_service import update_streak
from shelfquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/gamification", tags=["Gamification"])


def _achievement_response(rule: AchievementRule, unlocked: UserAchievement | None = None) -> AchievementResponse:
    return AchievementResponse(
        id=rule.id,
        name=rule.name,
        description=rule.description,
        icon=rule.icon,
        experience=rule.experience,
        unlocked=unlocked is not None,
        unlocked_at=unlocked.unlocked_at if unlocked else None,
    )


def _badge_response(rule: BadgeRule, earned: UserBadge | None = None) -> BadgeResponse:
    return BadgeResponse(
        id=rule.id,
        name=rule.name,
        description=rule.description,
        icon=rule.icon,
        color=rule.color,
        earned=earned is not None,
        earned_at=earned.earned_at if earned else None,
    )


def _level_response(user: User) -> LevelResponse:
    info = compute_level(user.experience)
    return LevelResponse(
        level=info["level"],
        title=info["title"],
        experience=user.experience,
        xp_into_level=info["xp_into_level"],
        xp_for_level=info["xp_for_level"],
        next_level_xp=info["next_level_xp"],
        xp_to_next_level=info["xp_to_next_level"],
        progress_to_next_level=info["progress_to_next_level"],
    )


def _streak_response(user: User) -> StreakResponse:
    return StreakResponse(
        current=user.streak_current,
        longest=user.streak_longest,
        last_read_date=user.streak_last_read_date,
    )


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get the titled level ladder."""
    levels = [
        LevelEntry(
            level=level,
            title=level_title(level),
            xp_required=level_threshold(level) - (level_threshold(level - 1) if level > 1 else 0),
            cumulative=level_threshold(level),
        )
        for level in range(1, MAX_TITLED_LEVEL + 1)
    ]
    return AllLevelsResponse(levels=levels)


# ── Authenticated endpoints ──


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user)):
    """Level, streak and unlock counts for the current user."""
    return ProfileResponse(
        user_id=user.id,
        display_name=user.display_name,
        level=_level_response(user),
        streak=_streak_response(user),
        achievements=len(visible_achievements(user)),
        badges=len(visible_badges(user)),
        gamification_reset_at=user.gamification_reset_at,
    )


@router.get("/achievements", response_model=AchievementsResponse)
async def list_achievements(user: User = Depends(get_current_user)):
    """All achievement rules, with unlock state for the current user."""
    unlocked = {a.achievement_id: a for a in visible_achievements(user)}
    items = [_achievement_response(rule, unlocked.get(rule.id)) for rule in ACHIEVEMENTS]
    return AchievementsResponse(
        achievements=items,
        total_available=len(ACHIEVEMENTS),
        total_unlocked=sum(1 for i in items if i.unlocked),
    )


@router.get("/badges", response_model=BadgesResponse)
async def list_badges(user: User = Depends(get_current_user)):
    earned = {b.badge_id: b for b in visible_badges(user)}
    items = [_badge_response(rule, earned.get(rule.id)) for rule in BADGES]
    return BadgesResponse(
        badges=items,
        total_available=len(BADGES),
        total_earned=sum(1 for i in items if i.earned),
    )


@router.post("/check-achievements", response_model=CheckAchievementsResponse)
async def check_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    """Evaluate all rules against the current user's reading history."""
    result = await gamification_service.evaluate_achievements(db, redis, user)
    return CheckAchievementsResponse(
        new_achievements=[_achievement_response(rule) for rule in result.new_achievements],
        new_badges=[_badge_response(rule) for rule in result.new_badges],
        experience_delta=result.experience_delta,
        level=user.level,
        experience=user.experience,
        leveled_up=user.level > result.old_level,
    )


@router.post("/streak", response_model=StreakResponse)
async def record_reading_day(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Record a reading action for today and return the updated streak."""
    await update_streak(db, user)
    await db.commit()
    return _streak_response(user)


@router.post("/reset", response_model=ResetResponse)
async def reset_own_gamification(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await gamification_service.reset_gamification(db, user)
    return ResetResponse(reset_at=user.gamification_reset_at, users_reset=1)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    board_type: str = Query("experience", alias="type"),
    limit: int = Query(10, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    limit = min(limit, get_settings().leaderboard_max_limit)
    entries = await gamification_service.leaderboard(db, board_type, limit)
    position = await gamification_service.leaderboard_position(db, user, board_type)
    return LeaderboardResponse(
        type=board_type,
        entries=[LeaderboardEntry(**e) for e in entries],
        your_position=position,
    )


@router.get("/stats", response_model=GamificationStatsResponse)
async def get_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    stats = await gamification_service.gamification_stats(db, user)
    return GamificationStatsResponse(**stats)


# ── Librarian endpoints ──


@router.post("/reset-all", response_model=ResetResponse)
async def reset_all_gamification(
    librarian: User = Depends(require_librarian),
    db: AsyncSession = Depends(get_session),
):
    count = await gamification_service.reset_all(db, librarian)
    return ResetResponse(reset_at=librarian.gamification_reset_at, users_reset=count)


@router.post("/admin/award-achievement", response_model=AwardAchievementResponse)
async def award_achievement(
    payload: AwardAchievementRequest,
    librarian: User = Depends(require_librarian),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    target, rule = await gamification_service.award(
        db, redis, librarian, payload.user_id, payload.achievement_id, payload.reason
    )
    unlocked = next((a for a in target.achievements if a.achievement_id == rule.id), None)
    return AwardAchievementResponse(
        user_id=target.id,
        achievement=_achievement_response(rule, unlocked),
        level=target.level,
        experience=target.experience,
    )


@router.post("/admin/grant-experience", response_model=GrantExperienceResponse)
async def grant_experience(
    payload: GrantExperienceRequest,
    librarian: User = Depends(require_librarian),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    """Grant experience points to a reader and recompute their level."""
    target, result = await gamification_service.grant(
        db, redis, librarian, payload.user_id, payload.points, payload.reason
    )
    return GrantExperienceResponse(
        user_id=target.id,
        points=payload.points,
        level=result["level"],
        title=level_title(result["level"]),
        experience=result["experience"],
    )
