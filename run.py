#!/usr/bin/env python3
"""
LifeQuest launcher (FastAPI + SQLite)

Usage:
  python run.py                      # server at http://127.0.0.1:8000
  python run.py --tick               # run the recurrence sweep once and exit
  python run.py --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import argparse

import uvicorn

from lifequest.jobs.midnight_tick import main as run_tick


def main() -> int:
    parser = argparse.ArgumentParser(prog="LifeQuest")
    parser.add_argument("--tick", action="store_true", help="Run the midnight tick once and exit")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable uvicorn auto-reload")
    args = parser.parse_args()

    if args.tick:
        run_tick()
        return 0

    uvicorn.run("lifequest.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
