"""User lookup and local account provisioning from token claims."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from shelfquest.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ROLES = ("user", "librarian")


def new_user(email: str, display_name: str | None = None, role: str = "user") -> User:
    """Build a user with a fresh gamification state.

    Column defaults only apply on INSERT. The unlock collections start out
    loaded, since an implicit lazy load fails under AsyncSession.
    """
    if role not in ROLES:
        role = "user"
    email = email.strip()
    return User(
        email=email.lower(),
        display_name=display_name or email.split("@")[0],
        role=role,
        is_active=True,
        experience=0,
        level=1,
        streak_current=0,
        streak_longest=0,
        streak_last_read_date=None,
        gamification_reset_applied=False,
        gamification_reset_at=None,
        achievements=[],
        badges=[],
    )


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def resolve_user_from_claims(db: AsyncSession, claims: dict[str, Any]) -> User | None:
    """Find the local user for a verified token, creating one on first sight of an email.

    Registration lives with the identity provider, so the first authenticated
    request provisions the local record that holds progress and gamification.
    """
    sub = claims.get("sub")
    if sub is not None and str(sub).isdigit():
        user = await get_user_by_id(db, int(sub))
        if user is not None:
            return user

    email = claims.get("email")
    if not email:
        return None

    user = await get_user_by_email(db, email)
    if user is None:
        user = new_user(email, claims.get("name"), claims.get("role", "user"))
        db.add(user)
        await db.commit()
        logger.info("user_provisioned", user_id=user.id, role=user.role)
    return user
