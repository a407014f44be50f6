"""Local user provisioning from verified token claims."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect

from shelfquest.auth.service import new_user, resolve_user_from_claims
from shelfquest.gamification.evaluator import evaluate, visible_achievements, visible_badges
from tests.conftest import T0, make_user


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


class TestNewUser:
    def test_fresh_gamification_state(self):
        user = new_user("  Reader@Example.com ")
        assert user.email == "reader@example.com"
        assert user.display_name == "Reader"
        assert (user.experience, user.level, user.streak_current) == (0, 1, 0)
        assert user.gamification_reset_at is None

    def test_unknown_role_falls_back_to_user(self):
        assert new_user("a@example.com", role="admin").role == "user"

    def test_unlock_collections_start_loaded(self):
        """A transient user must not need a lazy load to read its unlocks."""
        user = new_user("fresh@example.com")
        state = inspect(user)
        assert "achievements" not in state.unloaded
        assert "badges" not in state.unloaded
        assert user.achievements == []
        assert user.badges == []


class TestResolveUser:
    @pytest.mark.asyncio
    async def test_by_numeric_subject(self, fake_db):
        existing = make_user(4)
        fake_db.execute.return_value = _result(existing)
        assert await resolve_user_from_claims(fake_db, {"sub": "4"}) is existing

    @pytest.mark.asyncio
    async def test_provisions_unknown_email(self, fake_db):
        fake_db.execute.side_effect = [_result(None), _result(None)]
        user = await resolve_user_from_claims(fake_db, {"sub": "4", "email": "new@example.com", "name": "New"})
        assert user.email == "new@example.com"
        assert user.display_name == "New"
        fake_db.add.assert_called_once_with(user)
        fake_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provisioned_user_can_be_evaluated(self, fake_db):
        """The first request of a new reader evaluates against empty, loaded collections."""
        fake_db.execute.side_effect = [_result(None)]
        user = await resolve_user_from_claims(fake_db, {"email": "first@example.com"})
        result = evaluate(user, [], T0)
        assert not result.unlocked_anything
        assert visible_achievements(user) == []
        assert visible_badges(user) == []

    @pytest.mark.asyncio
    async def test_no_subject_no_email(self, fake_db):
        fake_db.execute.return_value = _result(None)
        assert await resolve_user_from_claims(fake_db, {"sub": "abc"}) is None
