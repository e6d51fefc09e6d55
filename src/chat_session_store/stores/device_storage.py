from __future__ import annotations

import sqlite3
from pathlib import Path


class DeviceStorage:
    """Durable string key/value storage for a single device profile.

    Pass ``":memory:"`` for a throwaway in-process store.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialize_schema()

    def close(self) -> None:
        self._conn.close()

    def get_item(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM storage WHERE key = ? LIMIT 1",
            (key,),
        ).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set_item(self, key: str, value: str) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO storage (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def remove_item(self, key: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM storage WHERE key = ?", (key,))

    def clear(self) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM storage")

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        self._conn.commit()
