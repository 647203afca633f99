from __future__ import annotations

import logging
from datetime import datetime

from lifequest.errors import AlreadyCompleted, AlreadySkipped, InvalidIndex, InvalidRequest
from lifequest.ledger import apply_punishment, grant_reward
from lifequest.player import difficulty_rules
from lifequest.recurrence import as_datetime, reset_habit, should_reset_habit, start_of_day

logger = logging.getLogger(__name__)

REPEAT_TYPES = ("daily", "weekly", "monthly")
HABIT_TYPES = ("positive", "negative", "both")

TASK_FIELDS = ("title", "description", "difficulty", "checklist", "start_date", "repeat_type", "repeat_every", "repeat_on", "tags")
HABIT_FIELDS = ("title", "description", "type", "difficulty", "tags", "reset_counter")

# Valid repeat_on values per repeat type: weekdays from Sunday = 0, or days of the month.
REPEAT_ON_RANGE = {"weekly": (0, 6), "monthly": (1, 31)}


def _checklist(items) -> list[dict]:
    out = []
    for item in items or []:
        # Plain strings are accepted as unchecked items.
        if isinstance(item, str):
            out.append({"text": item, "checked": False})
        elif not isinstance(item, dict):
            raise InvalidRequest(f"Invalid checklist item: {item!r}")
        else:
            out.append({"text": item.get("text", ""), "checked": bool(item.get("checked", False))})
    return out


def _start_date(value, now: datetime) -> str:
    if not value:
        return now.isoformat()
    try:
        return as_datetime(value).isoformat()
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid start date: {value!r}") from exc


def _repeat_every(value) -> int:
    try:
        return max(1, int(value or 1))
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Invalid repeat interval: {value!r}") from exc


def _repeat_on(values, repeat_type: str) -> list[int]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise InvalidRequest("repeat_on must be a list")
    low, high = REPEAT_ON_RANGE.get(repeat_type, (0, 31))
    days = []
    for value in values:
        try:
            day = int(value)
        except (TypeError, ValueError) as exc:
            raise InvalidRequest(f"Invalid repeat day: {value!r}") from exc
        if not low <= day <= high:
            raise InvalidRequest(f"Repeat day {day} out of range {low}-{high} for {repeat_type} tasks")
        days.append(day)
    return days


def new_task(fields: dict, now: datetime) -> dict:
    title = (fields.get("title") or "").strip()
    if not title:
        raise InvalidRequest("Task title is required")
    repeat_type = fields.get("repeat_type", "daily")
    if repeat_type not in REPEAT_TYPES:
        raise InvalidRequest(f"Unknown repeat type: {repeat_type}")
    return {
        "title": title,
        "description": fields.get("description", ""),
        "difficulty": fields.get("difficulty", "easy"),
        "checklist": _checklist(fields.get("checklist")),
        "start_date": _start_date(fields.get("start_date"), now),
        "repeat_type": repeat_type,
        "repeat_every": _repeat_every(fields.get("repeat_every")),
        "repeat_on": _repeat_on(fields.get("repeat_on"), repeat_type),
        "tags": list(fields.get("tags") or []),
        "completed": False,
        "completed_date": None,
        "skipped": False,
        "skipped_date": None,
        "last_reset": now.isoformat(),
    }


def new_habit(fields: dict, now: datetime) -> dict:
    title = (fields.get("title") or "").strip()
    if not title:
        raise InvalidRequest("Habit title is required")
    habit_type = fields.get("type", "positive")
    if habit_type not in HABIT_TYPES:
        raise InvalidRequest(f"Unknown habit type: {habit_type}")
    counter = fields.get("reset_counter", "daily")
    if counter not in REPEAT_TYPES:
        raise InvalidRequest(f"Unknown reset counter: {counter}")
    return {
        "title": title,
        "description": fields.get("description", ""),
        "type": habit_type,
        "difficulty": fields.get("difficulty", "easy"),
        "tags": list(fields.get("tags") or []),
        "reset_counter": counter,
        "streak": 0,
        "current_count": 0,
        "last_reset": now.isoformat(),
        "entries": [],
    }


def update_task(task: dict, changes: dict, now: datetime) -> dict:
    """Apply edits to a task's definition; completion state and last_reset are kept."""
    merged = {key: task.get(key) for key in TASK_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in TASK_FIELDS})
    checked = new_task(merged, now)
    task.update({key: checked[key] for key in TASK_FIELDS})
    return task


def update_habit(habit: dict, changes: dict, now: datetime) -> dict:
    merged = {key: habit.get(key) for key in HABIT_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in HABIT_FIELDS})
    checked = new_habit(merged, now)
    habit.update({key: checked[key] for key in HABIT_FIELDS})
    return habit


def reset_habit_counter(habit: dict, now: datetime) -> dict:
    """Manual reset: zero the counter and restart the period. Entries are kept."""
    habit["current_count"] = 0
    habit["last_reset"] = now.isoformat()
    return habit


def complete_task(task: dict, player: dict, now: datetime) -> bool:
    if task.get("completed"):
        raise AlreadyCompleted("Task already completed")
    rules = difficulty_rules(player, task.get("difficulty", "easy"))
    task["completed"] = True
    task["completed_date"] = now.isoformat()
    task["skipped"] = False
    task["skipped_date"] = None
    return grant_reward(player, rules.get("reward", {}))


def skip_task(task: dict, player: dict, now: datetime) -> None:
    if task.get("skipped"):
        raise AlreadySkipped("Task already skipped")
    rules = difficulty_rules(player, task.get("difficulty", "easy"))
    task["skipped"] = True
    task["skipped_date"] = now.isoformat()
    task["completed"] = False
    task["completed_date"] = None
    penalty = (rules.get("punishment") or {}).get("coins", 0)
    apply_punishment(player, penalty)
    logger.info("Skipped task %r (%d coins)", task.get("title"), penalty)


def toggle_checklist_item(task: dict, index: int) -> dict:
    checklist = task.get("checklist") or []
    if index < 0 or index >= len(checklist):
        raise InvalidIndex("Invalid checklist index")
    checklist[index]["checked"] = not checklist[index]["checked"]
    return checklist[index]


def record_habit(habit: dict, player: dict, action: str, now: datetime) -> dict:
    """Record a +/- occurrence of a habit.

    The habit's own period check runs first so the entry lands in the current
    period. A negative action on a positive-only habit still costs the
    punishment but leaves no entry. The streak grows at most once per day.
    """
    if action not in ("positive", "negative"):
        raise InvalidRequest(f"Unknown habit action: {action}")
    rules = difficulty_rules(player, habit.get("difficulty", "easy"))

    today = start_of_day(now)
    if should_reset_habit(habit, today):
        reset_habit(habit, now)

    recorded_today = any(start_of_day(as_datetime(e["date"])) == today for e in habit.get("entries", []))
    habit_type = habit.get("type", "positive")
    entries = habit.setdefault("entries", [])
    leveled = False

    if action == "positive":
        if habit_type in ("positive", "both"):
            habit["current_count"] = habit.get("current_count", 0) + 1
            entries.append({"date": now.isoformat(), "value": 1})
            leveled = grant_reward(player, rules.get("reward", {}))
            if not recorded_today:
                habit["streak"] = habit.get("streak", 0) + 1
    else:
        if habit_type in ("negative", "both"):
            habit["current_count"] = habit.get("current_count", 0) + 1
            entries.append({"date": now.isoformat(), "value": -1})
        apply_punishment(player, (rules.get("punishment") or {}).get("coins", 0))

    return {"habit": habit, "leveled_up": leveled}
