"""Calendar recurrence for tasks and habits.

There is no background timer. Callers run ``sweep_tasks``/``sweep_habits``
before reading a collection, and each sweep derives "today" from the clock
it is handed. A record reset by one sweep is not eligible again the same day,
so repeated sweeps are no-ops.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)


def as_datetime(value) -> datetime | None:
    """Parse a stored timestamp into a naive local datetime.

    Aware values (``+00:00`` offsets or a trailing ``Z``) are converted to
    local time first so they compare with the naive clock.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def start_of_day(value) -> datetime:
    moment = as_datetime(value)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _timestamp(now: datetime) -> str:
    return now.isoformat()


def should_reset_task(task: dict, today: datetime) -> bool:
    today = start_of_day(today)
    # Only finished tasks have state to clear.
    if not task.get("completed") and not task.get("skipped"):
        return False
    if not task.get("last_reset"):
        return False
    last_reset = start_of_day(task["last_reset"])
    if last_reset == today:
        return False

    start = start_of_day(task["start_date"]) if task.get("start_date") else None
    if start is not None and start > today:
        return False

    repeat_type = task.get("repeat_type", "daily")
    repeat_on = task.get("repeat_on") or []

    if repeat_type == "daily":
        return last_reset < today

    if repeat_type == "weekly":
        if not repeat_on:
            anchor = start or last_reset
            days_since_start = (today - anchor).days
            period = 7 * max(1, int(task.get("repeat_every") or 1))
            return days_since_start % period == 0 and last_reset < today
        # repeat_on weekdays count from Sunday = 0.
        return (today.weekday() + 1) % 7 in repeat_on and last_reset < today

    if repeat_type == "monthly":
        if not repeat_on:
            anchor = start or last_reset
            return today.day == anchor.day and last_reset < today
        return today.day in repeat_on and last_reset < today

    return False


def should_reset_habit(habit: dict, today: datetime) -> bool:
    today = start_of_day(today)
    if not habit.get("last_reset"):
        return False
    last_reset = start_of_day(habit["last_reset"])
    counter = habit.get("reset_counter", "daily")

    if counter == "daily":
        return last_reset < today
    if counter == "weekly":
        return (today - last_reset).days >= 7
    if counter == "monthly":
        return (last_reset.year, last_reset.month) != (today.year, today.month)
    return False


def reset_task(task: dict, now: datetime) -> dict:
    task["completed"] = False
    task["completed_date"] = None
    task["skipped"] = False
    task["skipped_date"] = None
    task["last_reset"] = _timestamp(now)
    return task


def _in_period(entry_date: datetime, counter: str, today: datetime) -> bool:
    if counter == "daily":
        return start_of_day(entry_date) == today
    if counter == "weekly":
        return entry_date >= today - timedelta(days=7)
    if counter == "monthly":
        return (entry_date.year, entry_date.month) == (today.year, today.month)
    return True


def reset_habit(habit: dict, now: datetime) -> dict:
    """Start a new counting period, keeping only the entries that belong to it.

    ``current_count`` is recomputed from the retained entries rather than zeroed.
    """
    today = start_of_day(now)
    counter = habit.get("reset_counter", "daily")
    habit["last_reset"] = _timestamp(now)
    habit["entries"] = [e for e in habit.get("entries", []) if _in_period(as_datetime(e["date"]), counter, today)]
    habit["current_count"] = len(habit["entries"])
    return habit


def sweep_tasks(tasks: list[dict], now: datetime) -> list[dict]:
    today = start_of_day(now)
    reset = [reset_task(task, now) for task in tasks if should_reset_task(task, today)]
    if reset:
        logger.info("Reset %d recurring task(s) for %s", len(reset), today.date().isoformat())
    return reset


def sweep_habits(habits: list[dict], now: datetime) -> list[dict]:
    today = start_of_day(now)
    reset = [reset_habit(habit, now) for habit in habits if should_reset_habit(habit, today)]
    if reset:
        logger.info("Reset %d habit counter(s) for %s", len(reset), today.date().isoformat())
    return reset
