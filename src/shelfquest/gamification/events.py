"""Best-effort pub/sub fan-out of gamification events."""

from __future__ import annotations

import json
from typing import Any

import structlog

logger = structlog.get_logger()

LEVEL_UP_CHANNEL = "pubsub:level_up"
ACHIEVEMENT_CHANNEL = "pubsub:achievement_unlocked"
BADGE_CHANNEL = "pubsub:badge_earned"


async def publish_event(redis: object | None, channel: str, payload: dict[str, Any]) -> bool:
    """Publish a JSON payload. Returns False when Redis is absent or the publish fails."""
    if redis is None:
        return False
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("event_publish_failed", channel=channel, exc_info=True)
        return False
    return True
