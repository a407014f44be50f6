"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Level ---


class LevelResponse(BaseModel):
    level: int
    title: str
    experience: int
    xp_into_level: int
    xp_for_level: int
    next_level_xp: int
    xp_to_next_level: int
    progress_to_next_level: float


class LevelEntry(BaseModel):
    level: int
    title: str
    xp_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


# --- Streak ---


class StreakResponse(BaseModel):
    current: int
    longest: int
    last_read_date: datetime | None = None


# --- Achievements / badges ---


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    experience: int
    unlocked: bool = False
    unlocked_at: datetime | None = None


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    color: str
    earned: bool = False
    earned_at: datetime | None = None


class AchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]
    total_available: int
    total_unlocked: int


class BadgesResponse(BaseModel):
    badges: list[BadgeResponse]
    total_available: int
    total_earned: int


class CheckAchievementsResponse(BaseModel):
    new_achievements: list[AchievementResponse]
    new_badges: list[BadgeResponse]
    experience_delta: int
    level: int
    experience: int
    leveled_up: bool


# --- Profile ---


class ProfileResponse(BaseModel):
    user_id: int
    display_name: str
    level: LevelResponse
    streak: StreakResponse
    achievements: int
    badges: int
    gamification_reset_at: datetime | None = None


# --- Admin ---


class AwardAchievementRequest(BaseModel):
    user_id: int
    achievement_id: str = Field(..., min_length=1, max_length=64)
    reason: str | None = Field(None, max_length=256)


class AwardAchievementResponse(BaseModel):
    user_id: int
    achievement: AchievementResponse
    level: int
    experience: int


class GrantExperienceRequest(BaseModel):
    user_id: int
    points: int = Field(..., ge=0, strict=True)
    reason: str | None = Field(None, max_length=256)


class GrantExperienceResponse(BaseModel):
    user_id: int
    points: int
    level: int
    title: str
    experience: int


class ResetResponse(BaseModel):
    reset_at: datetime | None = None
    users_reset: int = 1


# --- Leaderboard / stats ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    display_name: str
    level: int
    experience: int
    books_completed: int


class LeaderboardResponse(BaseModel):
    type: str
    entries: list[LeaderboardEntry]
    your_position: int


class GamificationStatsResponse(BaseModel):
    level: int
    title: str
    experience: int
    xp_to_next_level: int
    achievements_unlocked: int
    achievements_available: int
    badges_earned: int
    badges_available: int
    streak_current: int
    streak_longest: int
    books_completed: int
    books_reading: int
    total_reading_time: int
    average_session_time: int
    favorite_genre: str | None = None
    hardest_difficulty: str | None = None
