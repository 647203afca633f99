from __future__ import annotations

import json
import logging

from fastapi import Body, FastAPI, Form, Request
from fastapi.responses import JSONResponse

from lifequest import store
from lifequest.dungeon import attack, can_navigate_to_stage, normalize_stages, restart_dungeon, unlock_dungeon, unlock_stage
from lifequest.errors import EngineError, InvalidRequest
from lifequest.ledger import add_energy_from_sleep, grant_reward
from lifequest.player import reset_stats, set_active_characters, update_settings
from lifequest.pomodoro import add_session, get_monthly_heatmap, get_progress
from lifequest.recurrence import sweep_habits, sweep_tasks
from lifequest.tasks import (
    complete_task,
    new_habit,
    new_task,
    record_habit,
    reset_habit_counter,
    skip_task,
    toggle_checklist_item,
    update_habit,
    update_task,
)
from lifequest.town import (
    check_deletable,
    craft_weapon,
    exchange_resource,
    gacha_pool,
    gacha_pull,
    start_build,
    toggle_equip,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="LifeQuest")


@app.on_event("startup")
def startup() -> None:
    store.init_db()


@app.exception_handler(EngineError)
async def engine_error(request: Request, exc: EngineError) -> JSONResponse:
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc, exc.kind)
    return JSONResponse({"error": str(exc), "kind": exc.kind}, status_code=exc.status_code)


# Player


@app.get("/player")
def player_get() -> dict:
    return store.get_player()


@app.put("/player/settings")
def player_settings(changes: dict = Body(...)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        was_testing = player["settings"].get("testing_mode")
        update_settings(player, changes)
        store.save_player(player)
        if was_testing and not player["settings"]["testing_mode"]:
            store.clear_simulated_date()
        return player


@app.post("/player/sleep")
def player_sleep(hours: float = Form(...)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        add_energy_from_sleep(player, hours)
        store.save_player(player)
        return player


@app.post("/player/reward")
def player_reward(xp: int = Form(0), coins: int = Form(0)) -> dict:
    if xp < 0:
        raise InvalidRequest("XP rewards must not be negative")
    with store.WRITE_LOCK:
        player = store.get_player()
        leveled = grant_reward(player, {"xp": xp, "coins": coins})
        store.save_player(player)
        return {"player": player, "leveled_up": leveled}


@app.post("/player/reset-stats")
def player_reset_stats() -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        reset_stats(player)
        store.save_player(player)
        return player


@app.put("/player/active-characters")
def player_active_characters(active_characters: list = Body(..., embed=True)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        set_active_characters(player, active_characters)
        store.save_player(player)
        return player


# Focus sessions


@app.post("/pomodoro")
def pomodoro_add(minutes: int = Form(25), hour: int | None = Form(None)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        result = add_session(player, minutes=minutes, hour=hour, now=store.app_now())
        store.save_player(player)
        return {"player": player, **result}


@app.get("/pomodoro/progress")
def pomodoro_progress() -> dict:
    return get_progress(store.get_player(), store.app_now())


@app.get("/pomodoro/monthly")
def pomodoro_monthly(year: int | None = None, month: int | None = None) -> dict:
    now = store.app_now()
    return get_monthly_heatmap(store.get_player(), year or now.year, month or now.month)


# Tasks & habits


def _swept(kind: str, sweep) -> list[dict]:
    with store.WRITE_LOCK:
        records = store.list_records(kind)
        reset = sweep(records, store.app_now())
        if reset:
            store.save_state(None, *((kind, r) for r in reset))
        return records


def _swept_one(kind: str, record_id: str, sweep) -> dict:
    with store.WRITE_LOCK:
        record = store.get_record(kind, record_id)
        if sweep([record], store.app_now()):
            store.save_record(kind, record)
        return record


def _edited(kind: str, record_id: str, edit) -> dict:
    with store.WRITE_LOCK:
        record = store.get_record(kind, record_id)
        edit(record)
        record["id"] = record_id
        return store.save_record(kind, record)


def _deleted(kind: str, record_id: str) -> dict:
    with store.WRITE_LOCK:
        store.delete_record(kind, record_id)
    return {"deleted": record_id}


@app.get("/tasks")
def tasks_list() -> list:
    return _swept("task", sweep_tasks)


@app.post("/tasks/reset")
def tasks_reset() -> dict:
    with store.WRITE_LOCK:
        reset = sweep_tasks(store.list_records("task"), store.app_now())
        store.save_state(None, *(("task", t) for t in reset))
        return {"reset": len(reset)}


@app.get("/tasks/{task_id}")
def task_get(task_id: str) -> dict:
    return _swept_one("task", task_id, sweep_tasks)


@app.post("/tasks", status_code=201)
def task_create(fields: dict = Body(...)) -> dict:
    return store.save_record("task", new_task(fields, store.app_now()))


@app.put("/tasks/{task_id}")
def task_update(task_id: str, fields: dict = Body(...)) -> dict:
    now = store.app_now()
    return _edited("task", task_id, lambda task: update_task(task, fields, now))


@app.delete("/tasks/{task_id}")
def task_delete(task_id: str) -> dict:
    return _deleted("task", task_id)


@app.post("/tasks/{task_id}/complete")
def task_complete(task_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        task = store.get_record("task", task_id)
        leveled = complete_task(task, player, store.app_now())
        store.save_state(player, ("task", task))
        return {"task": task, "leveled_up": leveled}


@app.post("/tasks/{task_id}/skip")
def task_skip(task_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        task = store.get_record("task", task_id)
        skip_task(task, player, store.app_now())
        store.save_state(player, ("task", task))
        return task


@app.post("/tasks/{task_id}/checklist/{index}/toggle")
def task_checklist_toggle(task_id: str, index: int) -> dict:
    with store.WRITE_LOCK:
        task = store.get_record("task", task_id)
        toggle_checklist_item(task, index)
        return store.save_record("task", task)


@app.get("/habits")
def habits_list() -> list:
    return _swept("habit", sweep_habits)


@app.get("/habits/{habit_id}")
def habit_get(habit_id: str) -> dict:
    return _swept_one("habit", habit_id, sweep_habits)


@app.post("/habits", status_code=201)
def habit_create(fields: dict = Body(...)) -> dict:
    return store.save_record("habit", new_habit(fields, store.app_now()))


@app.put("/habits/{habit_id}")
def habit_update(habit_id: str, fields: dict = Body(...)) -> dict:
    now = store.app_now()
    return _edited("habit", habit_id, lambda habit: update_habit(habit, fields, now))


@app.delete("/habits/{habit_id}")
def habit_delete(habit_id: str) -> dict:
    return _deleted("habit", habit_id)


@app.post("/habits/{habit_id}/reset")
def habit_reset(habit_id: str) -> dict:
    now = store.app_now()
    return _edited("habit", habit_id, lambda habit: reset_habit_counter(habit, now))


@app.post("/habits/{habit_id}/record")
def habit_record(habit_id: str, action: str = Form(...)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        habit = store.get_record("habit", habit_id)
        result = record_habit(habit, player, action, store.app_now())
        store.save_state(player, ("habit", habit))
        return result


# Dungeons


@app.get("/dungeons")
def dungeons_list() -> list:
    return store.list_records("dungeon")


def _min_level(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid min_level: {value!r}") from exc


@app.post("/dungeons", status_code=201)
def dungeon_create(fields: dict = Body(...)) -> dict:
    dungeon = {
        "name": fields.get("name", ""),
        "description": fields.get("description", ""),
        "min_level": _min_level(fields.get("min_level")),
        "unlocked": False,
        "completed": False,
        "stages": normalize_stages(fields.get("stages")),
    }
    return store.save_record("dungeon", dungeon)


@app.put("/dungeons/{dungeon_id}")
def dungeon_update(dungeon_id: str, fields: dict = Body(...)) -> dict:
    changes = dict(fields)
    if "stages" in changes:
        changes["stages"] = normalize_stages(changes["stages"])
    if "min_level" in changes:
        changes["min_level"] = _min_level(changes["min_level"])
    return _edited("dungeon", dungeon_id, lambda dungeon: dungeon.update(changes))


@app.delete("/dungeons/{dungeon_id}")
def dungeon_delete(dungeon_id: str) -> dict:
    return _deleted("dungeon", dungeon_id)


@app.post("/dungeons/{dungeon_id}/unlock")
def dungeon_unlock(dungeon_id: str) -> dict:
    with store.WRITE_LOCK:
        dungeon = unlock_dungeon(store.get_player(), store.get_record("dungeon", dungeon_id))
        return store.save_record("dungeon", dungeon)


@app.post("/dungeons/{dungeon_id}/attack")
def dungeon_attack(dungeon_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        dungeon = store.get_record("dungeon", dungeon_id)
        weapon = None
        if player.get("equipped_weapon_id"):
            weapon = store.records_by_id("weapon").get(player["equipped_weapon_id"])
        result = attack(player, dungeon, store.records_by_id("character"), weapon)
        store.save_state(player, ("dungeon", dungeon))
        if result["dungeon_completed"]:
            store.log_event("dungeon", f"Cleared {dungeon.get('name') or dungeon_id}")
        return {**result, "dungeon": dungeon}


@app.post("/dungeons/{dungeon_id}/next-stage")
def dungeon_next_stage(dungeon_id: str, stage_number: int = Form(...)) -> dict:
    with store.WRITE_LOCK:
        dungeon = store.get_record("dungeon", dungeon_id)
        unlock_stage(dungeon, stage_number)
        return store.save_record("dungeon", dungeon)


@app.post("/dungeons/{dungeon_id}/restart")
def dungeon_restart(dungeon_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        dungeon = store.get_record("dungeon", dungeon_id)
        progress = restart_dungeon(player, dungeon)
        store.save_state(player, ("dungeon", dungeon))
        return {"progress": progress, "dungeon": dungeon}


@app.get("/dungeons/{dungeon_id}/stages/{index}")
def dungeon_stage_reachable(dungeon_id: str, index: int) -> dict:
    dungeon = store.get_record("dungeon", dungeon_id)
    return {"index": index, "reachable": can_navigate_to_stage(store.get_player(), dungeon, index)}


# Town


@app.post("/characters", status_code=201)
def character_create(fields: dict = Body(...)) -> dict:
    return store.save_record("character", fields)


@app.post("/buildings", status_code=201)
def building_create(fields: dict = Body(...)) -> dict:
    return store.save_record("building", {**fields, "built": False})


@app.put("/buildings/{building_id}")
def building_update(building_id: str, fields: dict = Body(...)) -> dict:
    return _edited("building", building_id, lambda building: building.update(fields))


@app.delete("/buildings/{building_id}")
def building_delete(building_id: str) -> dict:
    with store.WRITE_LOCK:
        check_deletable(store.get_record("building", building_id))
        return _deleted("building", building_id)


@app.post("/buildings/{building_id}/build")
def building_build(building_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        building = start_build(player, store.get_record("building", building_id))
        store.save_state(player, ("building", building))
        return {"building": building, "player": player}


@app.post("/weapons", status_code=201)
def weapon_create(fields: dict = Body(...)) -> dict:
    return store.save_record("weapon", fields)


@app.put("/weapons/{weapon_id}")
def weapon_update(weapon_id: str, fields: dict = Body(...)) -> dict:
    return _edited("weapon", weapon_id, lambda weapon: weapon.update(fields))


@app.delete("/weapons/{weapon_id}")
def weapon_delete(weapon_id: str) -> dict:
    return _deleted("weapon", weapon_id)


@app.post("/weapons/{weapon_id}/craft")
def weapon_craft(weapon_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        weapon = craft_weapon(player, store.get_record("weapon", weapon_id))
        store.save_player(player)
        return {"weapon": weapon, "player": player}


@app.post("/weapons/{weapon_id}/equip")
def weapon_equip(weapon_id: str) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        equipped = toggle_equip(player, store.get_record("weapon", weapon_id))
        store.save_player(player)
        return {"equipped": equipped, "player": player}


@app.get("/gacha/pool")
def gacha_pool_get() -> list:
    return gacha_pool(store.get_player(), store.list_records("character"))


@app.post("/gacha/pull")
def gacha_pull_post() -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        character = gacha_pull(player, store.list_records("character"))
        store.save_player(player)
        return {"character": character, "player": player}


@app.post("/market/exchange")
def market_exchange(resource: str = Form(...), amount: int = Form(...)) -> dict:
    with store.WRITE_LOCK:
        player = store.get_player()
        coins = exchange_resource(player, resource, amount)
        store.save_player(player)
        return {"resource": resource, "amount": amount, "coins": coins, "player": player}


# Testing & save data


@app.post("/testing/advance-day")
def advance_day() -> dict:
    if not store.get_player()["settings"].get("testing_mode"):
        raise InvalidRequest("Testing mode is off")
    return {"today": store.testing_advance_day(1)}


@app.get("/export")
def export_save() -> JSONResponse:
    return JSONResponse(store.export_save_data())


@app.post("/import")
def import_save(payload: str = Form(...)) -> dict:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise InvalidRequest(f"Invalid save data: {exc}") from exc
    store.import_save_data(data)
    return {"imported": True}
