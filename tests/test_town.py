from __future__ import annotations

import random
import unittest

from lifequest import town
from lifequest.errors import (
    AlreadyCompleted,
    InsufficientBuildPower,
    InsufficientEnergy,
    InsufficientResources,
    InvalidRequest,
    NotFound,
    WeaponLocked,
)
from lifequest.player import new_player, set_active_characters, update_settings


class BuildingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.player = new_player()
        self.player["build_power"] = 50
        self.player["resources"].update({"wood": 10, "stone": 4})

    def test_house_pays_costs_and_raises_population(self) -> None:
        house = {"type": "house", "build_power_required": 50, "resources_required": {"wood": 10}, "bonus_population": 3}
        town.start_build(self.player, house)
        self.assertTrue(house["built"])
        self.assertEqual(self.player["build_power"], 0)
        self.assertEqual(self.player["resources"]["wood"], 0)
        self.assertEqual(self.player["max_population"], 8)
        with self.assertRaises(AlreadyCompleted):
            town.start_build(self.player, house)

    def test_house_bonus_absent_versus_explicit_zero(self) -> None:
        self.assertEqual(town.house_bonus({"type": "house"}), 5)
        self.assertEqual(town.house_bonus({"type": "house", "bonus_population": None}), 5)
        self.assertEqual(town.house_bonus({"type": "house", "bonus_population": 0}), 0)

    def test_insufficient_build_power_or_resources_leave_player_untouched(self) -> None:
        greedy = {"type": "market", "build_power_required": 75, "resources_required": {}}
        with self.assertRaises(InsufficientBuildPower):
            town.start_build(self.player, greedy)
        stony = {"type": "blacksmith", "build_power_required": 25, "resources_required": {"stone": 5}}
        with self.assertRaises(InsufficientResources):
            town.start_build(self.player, stony)
        self.assertEqual(self.player["build_power"], 50)
        self.assertFalse(stony.get("built", False))

    def test_only_unbuilt_houses_or_deletable_buildings_can_be_removed(self) -> None:
        town.check_deletable({"type": "house", "built": False})
        town.check_deletable({"type": "tavern", "built": True, "deletable": True})
        for building in ({"type": "house", "built": True}, {"type": "market", "built": False}):
            with self.assertRaises(InvalidRequest):
                town.check_deletable(building)


class WeaponTests(unittest.TestCase):
    def setUp(self) -> None:
        self.player = new_player()
        self.player["coins"] = 30
        self.player["resources"]["iron"] = 3
        self.sword = {"id": "w1", "damage_bonus": 2, "unlocked": True, "cost": {"coins": 20, "resources": {"iron": 3}}}

    def test_craft_debits_cost(self) -> None:
        town.craft_weapon(self.player, self.sword)
        self.assertEqual(self.player["coins"], 10)
        self.assertEqual(self.player["resources"]["iron"], 0)

    def test_locked_weapon(self) -> None:
        self.sword["unlocked"] = False
        with self.assertRaises(WeaponLocked):
            town.craft_weapon(self.player, self.sword)
        self.assertEqual(self.player["coins"], 30)

    def test_equip_toggles(self) -> None:
        self.assertTrue(town.toggle_equip(self.player, self.sword))
        self.assertEqual(self.player["equipped_weapon_id"], "w1")
        self.assertFalse(town.toggle_equip(self.player, self.sword))
        self.assertIsNone(self.player["equipped_weapon_id"])


class GachaTests(unittest.TestCase):
    def setUp(self) -> None:
        self.player = new_player()
        self.characters = [
            {"id": "c1", "character_type": "supporting_character"},
            {"id": "c2", "character_type": "supporting_character"},
            {"id": "e1", "character_type": "enemy"},
        ]

    def test_pull_costs_energy_and_collects(self) -> None:
        self.player["energy"] = 2
        rng = random.Random(7)
        first = town.gacha_pull(self.player, self.characters, rng)
        second = town.gacha_pull(self.player, self.characters, rng)
        self.assertEqual({first["id"], second["id"]}, {"c1", "c2"})
        self.assertEqual(self.player["energy"], 0)
        self.assertEqual(sorted(self.player["collected_characters"]), ["c1", "c2"])

    def test_pull_rejections(self) -> None:
        with self.assertRaises(InsufficientEnergy):
            town.gacha_pull(self.player, self.characters)
        self.player["energy"] = 1
        self.player["collected_characters"] = ["c1", "c2"]
        with self.assertRaises(NotFound):
            town.gacha_pull(self.player, self.characters)
        self.assertEqual(self.player["energy"], 1)

    def test_active_characters_must_fit_population(self) -> None:
        self.player["collected_characters"] = ["c1", "c2"]
        set_active_characters(self.player, ["c1"])
        self.assertEqual(self.player["active_characters"], ["c1"])
        with self.assertRaises(InvalidRequest):
            set_active_characters(self.player, ["e1"])
        self.player["max_population"] = 1
        with self.assertRaises(InvalidRequest):
            set_active_characters(self.player, ["c1", "c2"])


class MarketTests(unittest.TestCase):
    def test_exchange_uses_player_rates(self) -> None:
        player = new_player()
        player["resources"]["iron"] = 4
        self.assertEqual(town.exchange_resource(player, "iron", 3), 15)
        update_settings(player, {"market_rates": {"iron": 7}})
        self.assertEqual(town.exchange_resource(player, "iron", 1), 7)
        self.assertEqual(player["coins"], 22)
        self.assertEqual(player["resources"]["iron"], 0)

    def test_exchange_rejections(self) -> None:
        player = new_player()
        with self.assertRaises(InvalidRequest):
            town.exchange_resource(player, "gold", 1)
        with self.assertRaises(InvalidRequest):
            town.exchange_resource(player, "wood", 0)
        with self.assertRaises(InsufficientResources):
            town.exchange_resource(player, "wood", 1)


if __name__ == "__main__":
    unittest.main()
