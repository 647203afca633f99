from __future__ import annotations

import math

from lifequest.errors import (
    InsufficientBuildPower,
    InsufficientCoins,
    InsufficientEnergy,
    InsufficientResources,
    InvalidRequest,
)
from lifequest.leveling import add_xp

RESOURCE_KEYS = ("meat", "wood", "stone", "iron", "crystal")
MAX_ENERGY = 24


def _resources(player: dict) -> dict:
    res = player.setdefault("resources", {})
    for key in RESOURCE_KEYS:
        res.setdefault(key, 0)
    return res


def _cost_resources(cost: dict) -> dict:
    res = cost.get("resources") or {}
    return {key: int(res.get(key) or 0) for key in RESOURCE_KEYS}


def can_afford(player: dict, cost: dict) -> bool:
    try:
        check_affordable(player, cost)
    except (InsufficientCoins, InsufficientResources, InsufficientBuildPower):
        return False
    return True


def check_affordable(player: dict, cost: dict) -> None:
    coins = int(cost.get("coins") or 0)
    if player.get("coins", 0) < coins:
        raise InsufficientCoins(f"Not enough coins (need {coins}, have {player.get('coins', 0)})")
    have = _resources(player)
    for key, need in _cost_resources(cost).items():
        if have[key] < need:
            raise InsufficientResources(f"Not enough {key} (need {need}, have {have[key]})")
    build_power = int(cost.get("build_power") or 0)
    if player.get("build_power", 0) < build_power:
        raise InsufficientBuildPower(f"Not enough build power (need {build_power}, have {player.get('build_power', 0)})")


def debit(player: dict, cost: dict) -> None:
    check_affordable(player, cost)
    player["coins"] = player.get("coins", 0) - int(cost.get("coins") or 0)
    have = _resources(player)
    for key, need in _cost_resources(cost).items():
        have[key] -= need
    player["build_power"] = player.get("build_power", 0) - int(cost.get("build_power") or 0)


def credit(player: dict, amount: dict) -> None:
    player["coins"] = player.get("coins", 0) + int(amount.get("coins") or 0)
    have = _resources(player)
    for key, gain in _cost_resources(amount).items():
        have[key] += gain
    player["build_power"] = player.get("build_power", 0) + int(amount.get("build_power") or 0)
    energy = int(amount.get("energy") or 0)
    if energy:
        player["energy"] = min(player.get("energy", 0) + energy, MAX_ENERGY)


def grant_reward(player: dict, reward: dict) -> bool:
    leveled = add_xp(player, int(reward.get("xp") or 0)) if reward.get("xp") else False
    credit(player, {k: v for k, v in reward.items() if k != "xp"})
    return leveled


def spend_energy(player: dict, amount: int = 1) -> None:
    if player.get("energy", 0) < amount:
        raise InsufficientEnergy("Not enough energy")
    player["energy"] -= amount


def add_energy_from_sleep(player: dict, hours: float) -> int:
    """One energy per whole hour slept, capped at MAX_ENERGY. Returns the new energy."""
    if hours < 0:
        raise InvalidRequest("Hours slept must not be negative")
    gained = math.floor(hours)
    player["energy"] = max(0, min(MAX_ENERGY, player.get("energy", 0) + gained))
    return player["energy"]


def apply_punishment(player: dict, coins: int) -> None:
    # Punishments are stored as negative amounts and may take coins below zero.
    player["coins"] = player.get("coins", 0) + int(coins or 0)
