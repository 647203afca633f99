"""Focus-session log aggregation: daily goal progress, day streak, monthly heatmap."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from lifequest.errors import InvalidRequest
from lifequest.ledger import credit
from lifequest.leveling import add_xp
from lifequest.recurrence import as_datetime, start_of_day

logger = logging.getLogger(__name__)

FULL_SESSION_MINUTES = 25
BUILD_POWER_PER_SESSION = 25
DEFAULT_DAILY_GOAL = 60
DEFAULT_SESSION_XP = 10


def is_completed_session(entry: dict) -> bool:
    """Explicit True/False wins; entries saved before the flag existed count only at exactly 25 minutes."""
    flag = entry.get("completed")
    if flag is True:
        return True
    if flag is False:
        return False
    return entry.get("minutes") == FULL_SESSION_MINUTES


def _daily_goal(player: dict) -> int:
    # A goal of 0 is treated as unset.
    return player.get("settings", {}).get("pomodoro_daily_goal") or DEFAULT_DAILY_GOAL


def add_session(player: dict, minutes: int = FULL_SESSION_MINUTES, hour: int | None = None, completed: bool | None = None, now: datetime | None = None) -> dict:
    if minutes < 0:
        raise InvalidRequest("Session minutes must not be negative")
    if hour is not None and not 0 <= hour <= 23:
        raise InvalidRequest(f"Hour must be between 0 and 23, got {hour}")
    now = now or datetime.now()
    if completed is None:
        completed = minutes == FULL_SESSION_MINUTES
    entry = {
        "date": now.isoformat(),
        "minutes": minutes,
        "hour": hour if hour is not None else now.hour,
        "completed": completed,
    }
    player.setdefault("pomodoro_entries", []).append(entry)
    player["pomodoro_count"] = player.get("pomodoro_count", 0) + 1

    xp_added = 0
    leveled = False
    if completed:
        credit(player, {"build_power": BUILD_POWER_PER_SESSION})
        xp_added = player.get("settings", {}).get("pomodoro_xp", DEFAULT_SESSION_XP)
        leveled = add_xp(player, xp_added) if xp_added else False
        logger.info("Focus session completed: +%d build power, +%d xp", BUILD_POWER_PER_SESSION, xp_added)
    return {"entry": entry, "xp_added": xp_added, "leveled_up": leveled}


def _minutes_by_day(entries: list[dict]) -> dict:
    totals: dict = {}
    for entry in entries:
        if not is_completed_session(entry):
            continue
        day = start_of_day(as_datetime(entry["date"])).date()
        totals[day] = totals.get(day, 0) + (entry.get("minutes") or 0)
    return totals


def get_streak(player: dict, now: datetime | None = None) -> int:
    totals = _minutes_by_day(player.get("pomodoro_entries", []))
    goal = _daily_goal(player)
    day = start_of_day(now or datetime.now()).date()
    streak = 0
    while totals.get(day, 0) >= goal:
        streak += 1
        day -= timedelta(days=1)
    return streak


def get_progress(player: dict, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    today = start_of_day(now).date()
    totals = _minutes_by_day(player.get("pomodoro_entries", []))
    today_minutes = totals.get(today, 0)
    goal = _daily_goal(player)
    return {
        "today_minutes": today_minutes,
        "yesterday_minutes": totals.get(today - timedelta(days=1), 0),
        "streak": get_streak(player, now),
        "daily_goal": goal,
        "completed": today_minutes,
        "progress": min(100, today_minutes / goal * 100),
    }


def get_monthly_heatmap(player: dict, year: int | None = None, month: int | None = None) -> dict:
    """Bucket completed sessions of one month (1-12) by ``"<day>-<hour>"``."""
    now = datetime.now()
    year = year if year is not None else now.year
    month = month if month is not None else now.month
    data: dict = {}
    for entry in player.get("pomodoro_entries", []):
        moment = as_datetime(entry["date"])
        if (moment.year, moment.month) != (year, month) or not is_completed_session(entry):
            continue
        hour = entry.get("hour")
        key = f"{moment.day}-{hour if hour is not None else moment.hour}"
        bucket = data.setdefault(key, {"count": 0, "total_minutes": 0})
        bucket["count"] += 1
        bucket["total_minutes"] += entry.get("minutes") or FULL_SESSION_MINUTES
    return {"year": year, "month": month, "data": data}
