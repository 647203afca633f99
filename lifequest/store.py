from __future__ import annotations

import json
import os
import sqlite3
import threading
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

from lifequest.errors import NotFound
from lifequest.player import new_player, normalize_player

DB_PATH = Path(os.environ.get("LIFEQUEST_DB", Path(__file__).resolve().parent.parent / "data.sqlite3"))

RECORD_KINDS = ("task", "habit", "dungeon", "character", "weapon", "building")

# Every engine operation is read-modify-write on the player document.
WRITE_LOCK = threading.RLock()


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_json(raw: str | None, fallback=None):
    if not raw:
        return fallback
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return fallback


def _insert_event(conn: sqlite3.Connection, kind: str, text: str, meta: dict | None = None) -> None:
    conn.execute(
        "INSERT INTO event_log (date, kind, text, meta_json) VALUES (?, ?, ?, ?)",
        (app_now().date().isoformat(), kind, text, json.dumps(meta or {})),
    )


def init_db() -> None:
    conn = get_conn()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS player (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                data_json TEXT NOT NULL,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS app_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                simulated_date TEXT
            );

            CREATE TABLE IF NOT EXISTS record (
                kind TEXT NOT NULL,
                id TEXT NOT NULL,
                data_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT,
                PRIMARY KEY (kind, id)
            );

            CREATE TABLE IF NOT EXISTS event_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,
                kind TEXT NOT NULL,
                text TEXT NOT NULL,
                meta_json TEXT
            );
            """
        )
        conn.execute(
            "INSERT INTO player (id, data_json, updated_at) VALUES (1, ?, ?) ON CONFLICT(id) DO NOTHING",
            (json.dumps(new_player()), utc_now_iso()),
        )
        conn.execute("INSERT INTO app_state (id, simulated_date) VALUES (1, NULL) ON CONFLICT(id) DO NOTHING")
        conn.commit()
    finally:
        conn.close()


def get_player() -> dict:
    conn = get_conn()
    try:
        row = conn.execute("SELECT data_json FROM player WHERE id = 1").fetchone()
        if not row:
            raise NotFound("Player not found")
        return normalize_player(_parse_json(row["data_json"], {}))
    finally:
        conn.close()


def _write_player(conn: sqlite3.Connection, player: dict) -> None:
    conn.execute("UPDATE player SET data_json = ?, updated_at = ? WHERE id = 1", (json.dumps(player), utc_now_iso()))


def _write_record(conn: sqlite3.Connection, kind: str, record: dict) -> dict:
    if kind not in RECORD_KINDS:
        raise ValueError(f"Unknown record kind: {kind}")
    record.setdefault("id", uuid.uuid4().hex)
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO record (kind, id, data_json, created_at, updated_at) VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(kind, id) DO UPDATE SET data_json=excluded.data_json, updated_at=excluded.updated_at
        """,
        (kind, record["id"], json.dumps(record), now, now),
    )
    return record


def save_player(player: dict) -> dict:
    return save_state(player)[0]


def save_record(kind: str, record: dict) -> dict:
    return save_state(None, (kind, record))[1]


def save_state(player: dict | None, *records: tuple[str, dict]) -> tuple:
    """Persist the player and any records touched by one operation in a single transaction."""
    conn = get_conn()
    try:
        if player is not None:
            _write_player(conn, player)
        saved = [_write_record(conn, kind, record) for kind, record in records]
        conn.commit()
        return (player, *saved)
    finally:
        conn.close()


def get_record(kind: str, record_id: str) -> dict:
    conn = get_conn()
    try:
        row = conn.execute("SELECT data_json FROM record WHERE kind = ? AND id = ?", (kind, record_id)).fetchone()
        if row is None:
            raise NotFound(f"{kind.capitalize()} not found")
        return _parse_json(row["data_json"], {})
    finally:
        conn.close()


def list_records(kind: str) -> list[dict]:
    conn = get_conn()
    try:
        rows = conn.execute("SELECT data_json FROM record WHERE kind = ? ORDER BY created_at, id", (kind,)).fetchall()
        return [_parse_json(r["data_json"], {}) for r in rows]
    finally:
        conn.close()


def records_by_id(kind: str) -> dict:
    return {r["id"]: r for r in list_records(kind)}


def delete_record(kind: str, record_id: str) -> None:
    conn = get_conn()
    try:
        cur = conn.execute("DELETE FROM record WHERE kind = ? AND id = ?", (kind, record_id))
        if cur.rowcount == 0:
            raise NotFound(f"{kind.capitalize()} not found")
        conn.commit()
    finally:
        conn.close()


def log_event(kind: str, text: str, meta: dict | None = None) -> None:
    conn = get_conn()
    try:
        _insert_event(conn, kind, text, meta)
        conn.commit()
    finally:
        conn.close()


def recent_events(limit: int = 12) -> list[dict]:
    conn = get_conn()
    try:
        rows = conn.execute("SELECT * FROM event_log ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
    finally:
        conn.close()


def app_now() -> datetime:
    """Wall-clock now, or the simulated date at the current time of day in testing mode."""
    conn = get_conn()
    try:
        row = conn.execute("SELECT simulated_date FROM app_state WHERE id = 1").fetchone()
        player_row = conn.execute("SELECT data_json FROM player WHERE id = 1").fetchone()
    finally:
        conn.close()
    now = datetime.now()
    player = _parse_json(player_row["data_json"], {}) if player_row else {}
    if player.get("settings", {}).get("testing_mode") and row and row["simulated_date"]:
        return datetime.combine(date.fromisoformat(row["simulated_date"]), now.time())
    return now


def testing_advance_day(days: int = 1) -> str:
    new_date = (app_now().date() + timedelta(days=days)).isoformat()
    conn = get_conn()
    try:
        conn.execute("UPDATE app_state SET simulated_date = ? WHERE id = 1", (new_date,))
        conn.commit()
        return new_date
    finally:
        conn.close()


def clear_simulated_date() -> None:
    conn = get_conn()
    try:
        conn.execute("UPDATE app_state SET simulated_date = NULL WHERE id = 1")
        conn.commit()
    finally:
        conn.close()


def export_save_data() -> dict:
    conn = get_conn()
    try:
        out = {}
        for table in ["player", "app_state", "record", "event_log"]:
            out[table] = [dict(r) for r in conn.execute(f"SELECT * FROM {table}").fetchall()]
        return out
    finally:
        conn.close()


def import_save_data(payload: dict) -> None:
    conn = get_conn()
    try:
        for table in ["player", "app_state", "record", "event_log"]:
            rows = payload.get(table)
            if rows is None:
                continue
            conn.execute(f"DELETE FROM {table}")
            if not rows:
                continue
            cols = list(rows[0].keys())
            placeholders = ",".join("?" for _ in cols)
            for row in rows:
                conn.execute(f"INSERT INTO {table} ({','.join(cols)}) VALUES ({placeholders})", tuple(row[c] for c in cols))
        conn.commit()
    finally:
        conn.close()
