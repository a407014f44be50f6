"""Experience grants: validation, level recomputation and level-up events."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from shelfquest.errors import ValidationError
from shelfquest.gamification.events import LEVEL_UP_CHANNEL
from shelfquest.gamification.xp_service import (
    add_experience,
    grant_experience,
    session_experience,
    validate_points,
)
from tests.conftest import make_user


class TestAddExperience:
    def test_adds_and_recomputes_level(self):
        user = make_user()
        old = add_experience(user, 100)
        assert old == 1
        assert user.experience == 100
        assert user.level == 2

    def test_returns_previous_level(self):
        user = make_user()
        add_experience(user, 250)
        assert add_experience(user, 400) == 2
        assert user.experience == 650
        assert user.level == 4

    def test_zero_points_is_a_no_op(self):
        user = make_user()
        add_experience(user, 0)
        assert user.experience == 0
        assert user.level == 1

    def test_level_matches_experience_after_many_grants(self):
        user = make_user()
        for _ in range(37):
            add_experience(user, 13)
        assert user.experience == 481
        assert user.level == 3

    @pytest.mark.parametrize("points", [-1, 1.5, "10", None, True])
    def test_rejects_invalid_points(self, points):
        user = make_user()
        with pytest.raises(ValidationError):
            add_experience(user, points)
        assert user.experience == 0
        assert user.level == 1


class TestValidatePoints:
    def test_accepts_int(self):
        assert validate_points(5) == 5

    def test_rejects_bool(self):
        with pytest.raises(ValidationError):
            validate_points(False)


class TestSessionExperience:
    @pytest.mark.parametrize("duration,expected", [(0, 0), (4, 0), (5, 1), (14, 2), (121, 24), (-3, 0)])
    def test_one_point_per_five_minutes(self, duration, expected):
        assert session_experience(duration) == expected


class TestGrantExperience:
    @pytest.mark.asyncio
    async def test_flushes_and_publishes_level_up(self, fake_db, fake_redis):
        user = make_user()
        result = await grant_experience(fake_db, fake_redis, user, 120, source="test")

        assert result == {"level": 2, "experience": 120, "source": "test"}
        fake_db.flush.assert_awaited_once()
        fake_redis.publish.assert_awaited_once()
        channel, payload = fake_redis.publish.await_args.args
        assert channel == LEVEL_UP_CHANNEL
        assert json.loads(payload)["new_level"] == 2

    @pytest.mark.asyncio
    async def test_no_event_without_level_up(self, fake_db, fake_redis):
        user = make_user()
        await grant_experience(fake_db, fake_redis, user, 10)
        fake_redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_raise(self, fake_db):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        user = make_user()
        result = await grant_experience(fake_db, redis, user, 500)
        assert result["level"] == 3
