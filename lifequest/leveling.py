from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def xp_for_next_level(level: int) -> int:
    return 100 + level * 100


def add_xp(player: dict, amount: int) -> bool:
    """Add XP and resolve every level-up it pays for.

    A single large grant can cross several thresholds, so the threshold is
    re-evaluated after each level. Returns True if at least one level was gained.
    """
    xp = player.get("xp", 0) + amount
    level = player.get("level", 0)
    leveled = False
    while xp >= xp_for_next_level(level):
        xp -= xp_for_next_level(level)
        level += 1
        leveled = True
    player["xp"] = xp
    if leveled:
        logger.info("Level up: %s -> %s", player.get("level", 0), level)
    player["level"] = level
    return leveled
