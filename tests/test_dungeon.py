from __future__ import annotations

import copy
import unittest

from lifequest import dungeon as engine
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
from lifequest.player import new_player


def make_enemy(enemy_id: str, hp: int = 10, xp: int = 5, coins: int = 5) -> dict:
    return {
        "id": enemy_id,
        "name": enemy_id.title(),
        "character_type": "enemy",
        "enemy_stats": {"hp": hp, "base_reward": {"xp": xp, "coins": coins, "resources": {"wood": 2, "iron": 1}}},
    }


def make_dungeon(*enemy_ids: str, min_level: int = 0) -> dict:
    return {
        "id": "d1",
        "name": "Cellar",
        "min_level": min_level,
        "unlocked": False,
        "completed": False,
        "stages": [{"stage_number": i + 1, "enemy_id": eid, "unlocked": False} for i, eid in enumerate(enemy_ids)],
    }


class UnlockTests(unittest.TestCase):
    def test_unlock_opens_first_stage(self) -> None:
        dungeon = make_dungeon("rat", "wolf")
        engine.unlock_dungeon(new_player(), dungeon)
        self.assertTrue(dungeon["unlocked"])
        self.assertTrue(dungeon["stages"][0]["unlocked"])
        self.assertFalse(dungeon["stages"][1]["unlocked"])

    def test_unlock_twice_and_level_gate(self) -> None:
        dungeon = make_dungeon("rat", min_level=3)
        with self.assertRaises(LevelTooLow):
            engine.unlock_dungeon(new_player(), dungeon)
        self.assertFalse(dungeon["unlocked"])

        player = new_player()
        player["level"] = 3
        engine.unlock_dungeon(player, dungeon)
        with self.assertRaises(AlreadyUnlocked):
            engine.unlock_dungeon(player, dungeon)


class AttackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.player = new_player()
        self.player.update({"energy": 5, "base_attack": 3, "equipped_weapon_id": "sword"})
        self.weapon = {"id": "sword", "damage_bonus": 2}
        self.characters = {"rat": make_enemy("rat", hp=10), "wolf": make_enemy("wolf", hp=4)}
        self.dungeon = make_dungeon("rat", "wolf")
        engine.unlock_dungeon(self.player, self.dungeon)

    def hit(self) -> dict:
        return engine.attack(self.player, self.dungeon, self.characters, self.weapon)

    def test_two_hits_defeat_enemy_and_unlock_next_stage(self) -> None:
        first = self.hit()
        self.assertEqual(first["damage_dealt"], 5)
        self.assertEqual(first["enemy_hp"], 5)
        self.assertFalse(first["enemy_defeated"])
        self.assertIsNone(first["reward"])
        self.assertEqual(self.player["energy"], 4)

        second = self.hit()
        self.assertEqual(second["enemy_hp"], 0)
        self.assertTrue(second["enemy_defeated"])
        self.assertEqual(second["reward"]["coins"], 5)
        self.assertEqual(self.player["energy"], 3)
        self.assertEqual(self.player["xp"], 5)
        self.assertEqual(self.player["coins"], 5)
        self.assertEqual(self.player["resources"]["wood"], 2)

        progress = engine.get_progress(self.player, "d1")
        self.assertEqual(progress["current_stage"], 1)
        self.assertIsNone(progress["current_enemy_hp"])
        self.assertTrue(self.dungeon["stages"][1]["unlocked"])

    def test_clearing_last_stage_completes_dungeon(self) -> None:
        self.hit()
        self.hit()
        result = self.hit()
        self.assertTrue(result["enemy_defeated"])
        self.assertTrue(result["dungeon_completed"])
        self.assertTrue(self.dungeon["completed"])
        with self.assertRaises(AlreadyCompleted):
            self.hit()

    def test_overkill_reports_zero_hp(self) -> None:
        self.characters["rat"]["enemy_stats"]["hp"] = 1
        result = self.hit()
        self.assertEqual(result["enemy_hp"], 0)
        self.assertTrue(result["enemy_defeated"])

    def test_weapon_bonus_only_when_equipped(self) -> None:
        self.player["equipped_weapon_id"] = None
        result = self.hit()
        self.assertEqual(result["damage_dealt"], 3)

    def test_rejections_leave_records_untouched(self) -> None:
        cases = []

        no_energy = copy.deepcopy(self.player)
        no_energy["energy"] = 0
        cases.append((no_energy, copy.deepcopy(self.dungeon), self.characters, InsufficientEnergy))

        locked = copy.deepcopy(self.dungeon)
        locked["unlocked"] = False
        cases.append((copy.deepcopy(self.player), locked, self.characters, DungeonLocked))

        cases.append((copy.deepcopy(self.player), copy.deepcopy(self.dungeon), {}, InvalidEnemy))

        statless = {"rat": {"id": "rat", "character_type": "enemy"}}
        cases.append((copy.deepcopy(self.player), copy.deepcopy(self.dungeon), statless, InvalidEnemy))

        for player, dungeon, characters, error in cases:
            before = (copy.deepcopy(player), copy.deepcopy(dungeon))
            with self.assertRaises(error):
                engine.attack(player, dungeon, characters, self.weapon)
            self.assertEqual((player, dungeon), before)

    def test_locked_stage_rejected(self) -> None:
        self.player["dungeon_progress"].append({"dungeon_id": "d1", "current_stage": 1, "completed": False, "current_enemy_hp": None})
        before = copy.deepcopy(self.player)
        with self.assertRaises(StageLocked):
            self.hit()
        self.assertEqual(self.player, before)

    def test_progress_created_lazily(self) -> None:
        self.assertIsNone(engine.get_progress(self.player, "d1"))
        self.hit()
        self.assertEqual(len(self.player["dungeon_progress"]), 1)


class RestartAndNavigationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.player = new_player()
        self.player.update({"energy": 10, "base_attack": 10})
        self.characters = {"rat": make_enemy("rat", hp=5), "wolf": make_enemy("wolf", hp=5), "bear": make_enemy("bear", hp=5)}
        self.dungeon = make_dungeon("rat", "wolf", "bear")
        engine.unlock_dungeon(self.player, self.dungeon)

    def test_restart_requires_completion(self) -> None:
        with self.assertRaises(NotFound):
            engine.restart_dungeon(self.player, self.dungeon)
        engine.attack(self.player, self.dungeon, self.characters)
        with self.assertRaises(NotCompleted):
            engine.restart_dungeon(self.player, self.dungeon)

    def test_restart_relocks_stages(self) -> None:
        for _ in range(3):
            engine.attack(self.player, self.dungeon, self.characters)
        self.assertTrue(self.dungeon["completed"])

        progress = engine.restart_dungeon(self.player, self.dungeon)
        self.assertEqual(progress, {"dungeon_id": "d1", "current_stage": 0, "completed": False, "current_enemy_hp": None})
        self.assertEqual([s["unlocked"] for s in self.dungeon["stages"]], [True, False, False])
        self.assertFalse(self.dungeon["completed"])

    def test_stage_zero_always_reachable(self) -> None:
        for dungeon in (make_dungeon(), make_dungeon("rat"), self.dungeon):
            self.assertTrue(engine.can_navigate_to_stage(new_player(), dungeon, 0))

    def test_later_stages_need_progress_or_unlock(self) -> None:
        self.assertFalse(engine.can_navigate_to_stage(self.player, self.dungeon, 2))
        self.assertFalse(engine.can_navigate_to_stage(self.player, self.dungeon, 7))

        engine.attack(self.player, self.dungeon, self.characters)
        self.assertTrue(engine.can_navigate_to_stage(self.player, self.dungeon, 1))
        self.assertFalse(engine.can_navigate_to_stage(self.player, self.dungeon, 2))

        engine.unlock_stage(self.dungeon, 3)
        self.assertTrue(engine.can_navigate_to_stage(self.player, self.dungeon, 2))

    def test_unlock_stage_unknown_number(self) -> None:
        with self.assertRaises(InvalidIndex):
            engine.unlock_stage(self.dungeon, 99)


if __name__ == "__main__":
    unittest.main()
