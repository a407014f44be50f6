"""Level thresholds and computation.

Levels grow with a triangular curve: level n starts at 50 * n * (n - 1)
cumulative XP, i.e. level 1 spans 0-99, level 2 spans 100-299, level 3
spans 300-599, level 4 spans 600-999, and so on.
"""

from __future__ import annotations

from math import isqrt

LEVEL_TITLES: list[str] = [
    "Page Turner",
    "Curious Reader",
    "Chapter Chaser",
    "Story Seeker",
    "Bookworm",
    "Avid Reader",
    "Library Regular",
    "Tale Collector",
    "Saga Explorer",
    "Master Reader",
]

# Titles above the last entry stay on the last title
MAX_TITLED_LEVEL = len(LEVEL_TITLES)


def level_threshold(level: int) -> int:
    """Cumulative XP at which ``level`` begins."""
    if level < 1:
        msg = f"Level must be >= 1, got {level}"
        raise ValueError(msg)
    return 50 * level * (level - 1)


def level_from_experience(xp: int) -> int:
    """Largest level whose threshold is <= xp. Never below 1.

    n * (n - 1) * 50 <= xp  <=>  (2n - 1)^2 <= 4 * (xp // 50) + 1
    """
    if xp <= 0:
        return 1
    return max(1, (isqrt(4 * (xp // 50) + 1) + 1) // 2)


def level_title(level: int) -> str:
    return LEVEL_TITLES[min(level, MAX_TITLED_LEVEL) - 1]


def compute_level(total_xp: int) -> dict:
    """Compute display info for the gamification profile."""
    level = level_from_experience(total_xp)
    current = level_threshold(level)
    next_xp = level_threshold(level + 1)

    xp_into_level = total_xp - current
    xp_for_level = next_xp - current

    return {
        "level": level,
        "title": level_title(level),
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level_xp": next_xp,
        "xp_to_next_level": max(0, next_xp - total_xp),
        "progress_to_next_level": round(100 * xp_into_level / xp_for_level, 1),
    }
