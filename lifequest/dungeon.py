"""Dungeon stage gating and turn-based combat.

Per (player, dungeon) the flow is Locked -> Unlocked -> InProgress(stage) ->
Completed. Progress lives in ``player["dungeon_progress"]``; stage unlock flags
live on the dungeon record, so an attack mutates both and the caller persists
both together.
"""
from __future__ import annotations

import logging

from lifequest.errors import (
    AlreadyCompleted,
    AlreadyUnlocked,
    DungeonLocked,
    InsufficientEnergy,
    InvalidEnemy,
    InvalidIndex,
    LevelTooLow,
    NotCompleted,
    NotFound,
    StageLocked,
)
from lifequest.ledger import grant_reward, spend_energy

logger = logging.getLogger(__name__)


def get_progress(player: dict, dungeon_id) -> dict | None:
    for progress in player.get("dungeon_progress", []):
        if progress.get("dungeon_id") == dungeon_id:
            return progress
    return None


def _new_progress(dungeon_id) -> dict:
    return {"dungeon_id": dungeon_id, "current_stage": 0, "completed": False, "current_enemy_hp": None}


def normalize_stages(stages) -> list[dict]:
    """Coerce client-supplied stages; empty enemy ids become None and numbering defaults to 1-based position."""
    if not isinstance(stages, list):
        return []
    return [
        {
            "stage_number": s.get("stage_number", i + 1),
            "enemy_id": s.get("enemy_id") or None,
            "unlocked": bool(s.get("unlocked", False)),
        }
        for i, s in enumerate(stages)
        if isinstance(s, dict)
    ]


def unlock_dungeon(player: dict, dungeon: dict) -> dict:
    if dungeon.get("unlocked"):
        raise AlreadyUnlocked("Dungeon already unlocked")
    min_level = dungeon.get("min_level", 0)
    if player.get("level", 0) < min_level:
        raise LevelTooLow(f"Requires level {min_level} to unlock. Your level: {player.get('level', 0)}")
    dungeon["unlocked"] = True
    stages = dungeon.get("stages", [])
    if stages:
        stages[0]["unlocked"] = True
    return dungeon


def unlock_stage(dungeon: dict, stage_number: int) -> dict:
    for stage in dungeon.get("stages", []):
        if stage.get("stage_number") == stage_number:
            stage["unlocked"] = True
            return stage
    raise InvalidIndex(f"No stage numbered {stage_number}")


def can_navigate_to_stage(player: dict, dungeon: dict, index: int) -> bool:
    if index == 0:
        return True
    stages = dungeon.get("stages", [])
    if index < 0 or index >= len(stages):
        return False
    progress = get_progress(player, dungeon.get("id"))
    if progress is not None and index <= progress.get("current_stage", 0):
        return True
    return bool(stages[index].get("unlocked"))


def _weapon_bonus(player: dict, weapon: dict | None) -> int:
    if weapon is None or weapon.get("id") != player.get("equipped_weapon_id"):
        return 0
    return int(weapon.get("damage_bonus") or 0)


def attack(player: dict, dungeon: dict, characters: dict, weapon: dict | None = None) -> dict:
    """Hit the current stage's enemy once for one energy.

    ``characters`` maps character id to record. ``weapon`` is the player's
    equipped weapon record, if any. Every precondition is checked before the
    first write, so a rejected attack leaves both records untouched.
    """
    if not dungeon.get("unlocked"):
        raise DungeonLocked("Dungeon not unlocked")
    if player.get("energy", 0) < 1:
        raise InsufficientEnergy("Not enough energy")

    progress = get_progress(player, dungeon.get("id"))
    is_new = progress is None
    if is_new:
        progress = _new_progress(dungeon.get("id"))
    if progress["completed"]:
        raise AlreadyCompleted("Dungeon already completed")

    stages = dungeon.get("stages", [])
    index = progress["current_stage"]
    if index >= len(stages):
        raise AlreadyCompleted("All stages completed")
    stage = stages[index]
    if index != 0 and not stage.get("unlocked"):
        raise StageLocked("Stage not unlocked")

    enemy = characters.get(stage.get("enemy_id")) if stage.get("enemy_id") is not None else None
    if not enemy or not enemy.get("enemy_stats"):
        raise InvalidEnemy("Invalid enemy")
    stats = enemy["enemy_stats"]

    if is_new:
        player.setdefault("dungeon_progress", []).append(progress)
    stages[0]["unlocked"] = True

    if progress["current_enemy_hp"] is None:
        progress["current_enemy_hp"] = int(stats.get("hp", 10))

    damage = int(player.get("base_attack", 1)) + _weapon_bonus(player, weapon)
    progress["current_enemy_hp"] -= damage
    spend_energy(player, 1)
    hp_after = progress["current_enemy_hp"]

    defeated = hp_after <= 0
    reward = None
    leveled = False
    if defeated:
        reward = stats.get("base_reward") or {}
        leveled = grant_reward(player, reward)
        progress["current_enemy_hp"] = None
        progress["current_stage"] += 1
        if progress["current_stage"] < len(stages):
            stages[progress["current_stage"]]["unlocked"] = True
        else:
            progress["completed"] = True
            dungeon["completed"] = True
            logger.info("Dungeon %s cleared", dungeon.get("name") or dungeon.get("id"))

    return {
        "damage_dealt": damage,
        "enemy_hp": max(0, hp_after),
        "enemy_defeated": defeated,
        "reward": reward,
        "leveled_up": leveled,
        "stage": progress["current_stage"],
        "dungeon_completed": progress["completed"],
    }


def restart_dungeon(player: dict, dungeon: dict) -> dict:
    progress = get_progress(player, dungeon.get("id"))
    if progress is None:
        raise NotFound("No progress found for this dungeon")
    if not progress.get("completed"):
        raise NotCompleted("Dungeon can only be restarted once completed")
    progress["current_stage"] = 0
    progress["completed"] = False
    progress["current_enemy_hp"] = None
    for i, stage in enumerate(dungeon.get("stages", [])):
        stage["unlocked"] = i == 0
    dungeon["completed"] = False
    return progress
