"""Achievement/badge evaluation against a user's full reading history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from shelfquest.db.models import UserAchievement, UserBadge
from shelfquest.errors import InvalidStateError, NotFoundError
from shelfquest.gamification.rules import (
    ACHIEVEMENTS,
    ACHIEVEMENTS_BY_ID,
    BADGES,
    AchievementRule,
    BadgeRule,
)
from shelfquest.gamification.xp_service import add_experience

if TYPE_CHECKING:
    from shelfquest.db.models import ReadingProgress, User


@dataclass
class EvaluationResult:
    new_achievements: list[AchievementRule] = field(default_factory=list)
    new_badges: list[BadgeRule] = field(default_factory=list)
    experience_delta: int = 0
    old_level: int = 1

    @property
    def unlocked_anything(self) -> bool:
        return bool(self.new_achievements or self.new_badges)


def evaluate(
    user: User,
    progress: Sequence[ReadingProgress],
    now: datetime | None = None,
    achievements: Sequence[AchievementRule] = ACHIEVEMENTS,
    badges: Sequence[BadgeRule] = BADGES,
) -> EvaluationResult:
    """Unlock every rule whose predicate now holds and that is not unlocked yet.

    Rewards are summed and granted with a single add_experience call, so a
    repeated call with unchanged input changes nothing.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    result = EvaluationResult(old_level=user.level)
    unlocked_achievements = {a.achievement_id for a in user.achievements}
    unlocked_badges = {b.badge_id for b in user.badges}

    for rule in achievements:
        if rule.id in unlocked_achievements or not rule.predicate(user, progress):
            continue
        user.achievements.append(UserAchievement(achievement_id=rule.id, unlocked_at=now))
        result.new_achievements.append(rule)
        result.experience_delta += rule.experience

    for badge in badges:
        if badge.id in unlocked_badges or not badge.predicate(user, progress):
            continue
        user.badges.append(UserBadge(badge_id=badge.id, earned_at=now))
        result.new_badges.append(badge)
        result.experience_delta += badge.experience

    add_experience(user, result.experience_delta)
    return result


def award_achievement(
    user: User,
    achievement_id: str,
    awarded_by_id: int | None,
    reason: str | None = None,
    now: datetime | None = None,
) -> AchievementRule:
    """Unlock an achievement without evaluating its predicate (librarian action)."""
    rule = ACHIEVEMENTS_BY_ID.get(achievement_id.lower())
    if rule is None:
        msg = f"Achievement '{achievement_id}' not found"
        raise NotFoundError(msg)
    if any(a.achievement_id == rule.id for a in user.achievements):
        msg = "User already has this achievement"
        raise InvalidStateError(msg)

    user.achievements.append(
        UserAchievement(
            achievement_id=rule.id,
            unlocked_at=now or datetime.now(timezone.utc),
            awarded_by_id=awarded_by_id,
            reason=reason or "Awarded manually by a librarian",
        )
    )
    add_experience(user, rule.experience)
    return rule


def visible_achievements(user: User) -> list[UserAchievement]:
    """Unlocks that happened after the last gamification reset."""
    reset_at = user.gamification_reset_at
    return [a for a in user.achievements if reset_at is None or a.unlocked_at > reset_at]


def visible_badges(user: User) -> list[UserBadge]:
    reset_at = user.gamification_reset_at
    return [b for b in user.badges if reset_at is None or b.earned_at > reset_at]
