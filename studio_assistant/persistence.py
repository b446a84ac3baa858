"""SQLite-backed store for the learning tracker's accumulated state."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class SQLiteLearningStore:
    """Persist learning state as an opaque JSON blob per profile.

    Several assistants may share one store, so access is serialised with a
    lock.
    """

    def __init__(self, db_path: str | Path = ":memory:", *, profile: str = "default") -> None:
        self.db_path = str(db_path)
        self.profile = profile
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock, closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS learning_state (
                    profile TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self.conn.commit()

    def save(self, payload: dict) -> None:
        row = (
            self.profile,
            json.dumps(payload, ensure_ascii=True, sort_keys=True),
            datetime.now(timezone.utc).isoformat(),
        )
        with self._lock, closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                INSERT INTO learning_state (profile, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(profile) DO UPDATE SET
                    payload=excluded.payload,
                    updated_at=excluded.updated_at
                """,
                row,
            )
            self.conn.commit()

    def load(self) -> Optional[dict]:
        with self._lock, closing(self.conn.cursor()) as cur:
            cur.execute("SELECT payload FROM learning_state WHERE profile = ?", (self.profile,))
            row = cur.fetchone()
        if not row:
            return None
        return json.loads(row["payload"])

    def close(self) -> None:
        self.conn.close()
