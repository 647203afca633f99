from __future__ import annotations

import logging
import random

from lifequest.errors import AlreadyCompleted, InsufficientEnergy, InsufficientResources, InvalidRequest, NotFound, WeaponLocked
from lifequest.ledger import RESOURCE_KEYS, credit, debit, spend_energy
from lifequest.player import DEFAULT_MARKET_RATES

logger = logging.getLogger(__name__)

DEFAULT_HOUSE_BONUS = 5


def house_bonus(building: dict) -> int:
    # Houses saved before bonus_population existed grant the default.
    bonus = building.get("bonus_population")
    return DEFAULT_HOUSE_BONUS if bonus is None else int(bonus)


def start_build(player: dict, building: dict) -> dict:
    """Finish a building in one step, paying build power and resources together."""
    if building.get("built"):
        raise AlreadyCompleted("Building already built")
    cost = {
        "build_power": int(building.get("build_power_required") or 0),
        "resources": building.get("resources_required") or {},
    }
    debit(player, cost)
    building["built"] = True
    if building.get("type") == "house":
        player["max_population"] = player.get("max_population", 0) + house_bonus(building)
    logger.info("Built %s", building.get("name") or building.get("type"))
    return building


def craft_weapon(player: dict, weapon: dict) -> dict:
    if not weapon.get("unlocked"):
        raise WeaponLocked("Weapon not unlocked")
    debit(player, weapon.get("cost") or {})
    return weapon


def toggle_equip(player: dict, weapon: dict) -> bool:
    """Equip the weapon, or unequip it if it is already equipped. Returns the new equipped state."""
    if player.get("equipped_weapon_id") == weapon.get("id"):
        player["equipped_weapon_id"] = None
        return False
    player["equipped_weapon_id"] = weapon.get("id")
    return True


def gacha_pool(player: dict, characters: list[dict]) -> list[dict]:
    collected = set(player.get("collected_characters", []))
    return [
        c for c in characters
        if c.get("character_type") == "supporting_character" and c.get("id") not in collected
    ]


def gacha_pull(player: dict, characters: list[dict], rng: random.Random | None = None) -> dict:
    if player.get("energy", 0) < 1:
        raise InsufficientEnergy("Not enough energy")
    pool = gacha_pool(player, characters)
    if not pool:
        raise NotFound("No characters available for gacha")
    pulled = (rng or random.Random()).choice(pool)
    spend_energy(player, 1)
    player.setdefault("collected_characters", []).append(pulled["id"])
    return pulled


def exchange_resource(player: dict, resource: str, amount: int) -> int:
    """Sell ``amount`` of a resource at the player's market rate. Returns the coins earned."""
    if resource not in RESOURCE_KEYS:
        raise InvalidRequest("Invalid resource type")
    if not amount or amount <= 0:
        raise InvalidRequest("Invalid resource or amount")
    if player.get("resources", {}).get(resource, 0) < amount:
        raise InsufficientResources(f"Not enough {resource}")
    rates = player.get("settings", {}).get("market_rates") or DEFAULT_MARKET_RATES
    coins = amount * int(rates.get(resource) or 1)
    player["resources"][resource] -= amount
    credit(player, {"coins": coins})
    return coins


def check_deletable(building: dict) -> None:
    """Only buildings flagged deletable, or houses not yet built, may be removed."""
    if building.get("deletable") or (building.get("type") == "house" and not building.get("built")):
        return
    raise InvalidRequest("This building cannot be deleted")
