from __future__ import annotations

import logging

from lifequest import store
from lifequest.recurrence import sweep_habits, sweep_tasks

logger = logging.getLogger(__name__)


def run_midnight_tick() -> dict:
    """Run the recurrence sweep over every stored task and habit.

    Reads also sweep on demand, so this only keeps stored state fresh for
    exports; running it twice on one day changes nothing the second time.
    """
    with store.WRITE_LOCK:
        now = store.app_now()
        tasks = sweep_tasks(store.list_records("task"), now)
        habits = sweep_habits(store.list_records("habit"), now)
        store.save_state(None, *(("task", t) for t in tasks), *(("habit", h) for h in habits))
    if tasks or habits:
        store.log_event("reset", f"Midnight tick reset {len(tasks)} task(s) and {len(habits)} habit(s).")
    return {"today": now.date().isoformat(), "tasks_reset": len(tasks), "habits_reset": len(habits)}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    store.init_db()
    result = run_midnight_tick()
    logger.info("Tick for %s: %d task(s), %d habit(s) reset", result["today"], result["tasks_reset"], result["habits_reset"])


if __name__ == "__main__":
    main()
