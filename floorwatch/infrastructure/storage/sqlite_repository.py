"""SQLite repository for user preferences and alert events."""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from floorwatch.infrastructure.utils.timeutils import utc_now


JsonDict = Dict[str, Any]

# Keys that must never be written to disk.
FORBIDDEN_KEYS = frozenset({"password"})


@dataclass(frozen=True)
class AlertEventRow:
    ts: str
    project_id: str
    floor_price: float
    minimum_price: str
    message: str


class SQLiteRepository:
    def __init__(self, db_path: Path) -> None:
        self._path = db_path
        if self._path.as_posix() != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                # The store holds the access token: owner read/write only.
                fd = os.open(self._path.as_posix(), os.O_CREAT | os.O_WRONLY, 0o600)
                os.close(fd)
        self._conn = sqlite3.connect(self._path.as_posix(), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()
        self._purge_forbidden_keys()

    def _init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS preferences (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL,
              updated_at TEXT NOT NULL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS alert_events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              project_id TEXT NOT NULL,
              floor_price REAL NOT NULL,
              minimum_price TEXT NOT NULL,
              message TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def _purge_forbidden_keys(self) -> None:
        cur = self._conn.cursor()
        cur.executemany("DELETE FROM preferences WHERE key = ?", [(k,) for k in FORBIDDEN_KEYS])
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ---- preferences ----
    def get_preference(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM preferences WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_preference(self, key: str, value: str) -> None:
        if key in FORBIDDEN_KEYS:
            raise ValueError(f"Refusing to persist {key!r}")
        self._conn.execute(
            """
            INSERT INTO preferences(key, value, updated_at) VALUES(?,?,?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, utc_now().isoformat()),
        )
        self._conn.commit()

    def delete_preference(self, key: str) -> None:
        self._conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        self._conn.commit()

    # ---- alert events ----
    def insert_alert_event(self, row: AlertEventRow) -> None:
        self._conn.execute(
            """
            INSERT INTO alert_events(ts, project_id, floor_price, minimum_price, message)
            VALUES(?,?,?,?,?)
            """,
            (row.ts, row.project_id, float(row.floor_price), row.minimum_price, row.message),
        )
        self._conn.commit()

    def list_alert_events(self, limit: int = 200) -> List[JsonDict]:
        rows = self._conn.execute(
            """
            SELECT ts, project_id, floor_price, minimum_price, message
            FROM alert_events ORDER BY id DESC LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]
