from __future__ import annotations

import copy

from lifequest.errors import InvalidRequest
from lifequest.ledger import RESOURCE_KEYS

MAX_DAILY_GOAL = 480

DEFAULT_MARKET_RATES = {"meat": 1, "wood": 2, "stone": 3, "iron": 5, "crystal": 10}

DEFAULT_SETTINGS = {
    "difficulty": {
        "easy": {"reward": {"xp": 1, "coins": 1}, "punishment": {"coins": -1}},
        "medium": {"reward": {"xp": 5, "coins": 5}, "punishment": {"coins": -5}},
        "hard": {"reward": {"xp": 10, "coins": 10}, "punishment": {"coins": -10}},
    },
    "pomodoro_daily_goal": 60,
    "pomodoro_xp": 10,
    "market_rates": DEFAULT_MARKET_RATES,
    "testing_mode": False,
}

DEFAULT_PLAYER = {
    "name": "Player",
    "level": 0,
    "xp": 0,
    "coins": 0,
    "energy": 0,
    "pomodoro_count": 0,
    "build_power": 0,
    "resources": {key: 0 for key in RESOURCE_KEYS},
    "base_attack": 1,
    "equipped_weapon_id": None,
    "active_characters": [],
    "collected_characters": [],
    "max_population": 5,
    "dungeon_progress": [],
    "pomodoro_entries": [],
    "settings": DEFAULT_SETTINGS,
}


def new_player() -> dict:
    return copy.deepcopy(DEFAULT_PLAYER)


def normalize_player(player: dict) -> dict:
    """Fill in fields that saves from older versions do not carry."""
    for key, value in DEFAULT_PLAYER.items():
        if key not in player:
            player[key] = copy.deepcopy(value)
    for key in RESOURCE_KEYS:
        player["resources"].setdefault(key, 0)
    settings = player["settings"]
    for key, value in DEFAULT_SETTINGS.items():
        if key not in settings:
            settings[key] = copy.deepcopy(value)
    return player


def difficulty_rules(player: dict, difficulty: str) -> dict:
    rules = player.get("settings", {}).get("difficulty", {}).get(difficulty)
    if rules is None:
        rules = DEFAULT_SETTINGS["difficulty"].get(difficulty)
    if rules is None:
        raise InvalidRequest(f"Unknown difficulty: {difficulty}")
    return rules


def update_settings(player: dict, changes: dict) -> dict:
    settings = player.setdefault("settings", copy.deepcopy(DEFAULT_SETTINGS))
    if changes.get("difficulty"):
        settings["difficulty"] = changes["difficulty"]
    if changes.get("pomodoro_daily_goal") is not None:
        settings["pomodoro_daily_goal"] = max(0, min(MAX_DAILY_GOAL, int(changes["pomodoro_daily_goal"])))
    if changes.get("pomodoro_xp") is not None:
        settings["pomodoro_xp"] = max(0, int(changes["pomodoro_xp"]))
    if changes.get("market_rates"):
        settings["market_rates"] = {**DEFAULT_MARKET_RATES, **changes["market_rates"]}
    if changes.get("testing_mode") is not None:
        settings["testing_mode"] = bool(changes["testing_mode"])
    if changes.get("name"):
        player["name"] = str(changes["name"]).strip() or DEFAULT_PLAYER["name"]
    return settings


def reset_stats(player: dict) -> None:
    player["level"] = 0
    player["xp"] = 0
    player["coins"] = 0
    player["energy"] = 0


def set_active_characters(player: dict, character_ids: list) -> None:
    if not isinstance(character_ids, list):
        raise InvalidRequest("active_characters must be a list")
    if len(character_ids) > player.get("max_population", 0):
        raise InvalidRequest(f"Cannot exceed max population ({player.get('max_population', 0)})")
    collected = set(player.get("collected_characters", []))
    if any(cid not in collected for cid in character_ids):
        raise InvalidRequest("All active characters must be from collected characters")
    player["active_characters"] = list(character_ids)
