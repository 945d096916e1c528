"""Durable per-date storage of serialized undo/redo stacks.

One record per date key, stored as JSON in an SQLite file next to the
day records. If the file cannot be opened the store switches to an
in-memory dict for the rest of the session and never retries.

Write failures after a successful open are raised as HistoryStoreError:
the manager decides whether to roll back.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from daybook.history.errors import HistoryStoreError


logger = logging.getLogger(__name__)


@dataclass
class HistoryState:
    date_key: str
    undo_stack: list[dict] = field(default_factory=list)
    redo_stack: list[dict] = field(default_factory=list)
    max_history_size: int = 100
    last_modified: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict:
        return {
            "dateKey": self.date_key,
            "undoStack": self.undo_stack,
            "redoStack": self.redo_stack,
            "maxHistorySize": self.max_history_size,
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryState":
        return cls(
            date_key=data["dateKey"],
            undo_stack=list(data.get("undoStack") or []),
            redo_stack=list(data.get("redoStack") or []),
            max_history_size=int(data.get("maxHistorySize") or 100),
            last_modified=data.get("lastModified") or "",
        )


class HistoryStore:
    """get/put of HistoryState records keyed by date."""

    def __init__(self, path: Path | str | None) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = None
        self._fallback: dict[str, dict] | None = None if path is not None else {}

    @classmethod
    def in_memory(cls) -> "HistoryStore":
        return cls(None)

    @property
    def is_fallback(self) -> bool:
        return self._fallback is not None

    def _connect(self) -> sqlite3.Connection | None:
        if self._fallback is not None:
            return None
        if self._conn is not None:
            return self._conn
        try:
            conn = sqlite3.connect(str(self.path))
            conn.execute("""
                CREATE TABLE IF NOT EXISTS history (
                    date_key TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    last_modified TEXT NOT NULL
                )
            """)
            conn.commit()
        except sqlite3.Error as e:
            logger.warning(
                "History store %s not available, falling back to in-memory storage: %s",
                self.path,
                e,
            )
            self._fallback = {}
            return None
        self._conn = conn
        return conn

    def get(self, date_key: str) -> HistoryState | None:
        conn = self._connect()
        if conn is None:
            raw = self._fallback.get(date_key)
            return HistoryState.from_dict(raw) if raw is not None else None

        try:
            row = conn.execute(
                "SELECT state FROM history WHERE date_key = ?", (date_key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise HistoryStoreError(f"Could not read history for {date_key}: {e}") from e
        if row is None:
            return None
        try:
            return HistoryState.from_dict(json.loads(row[0]))
        except (ValueError, KeyError, TypeError) as e:
            raise HistoryStoreError(f"Corrupt history record for {date_key}: {e}") from e

    def put(self, state: HistoryState) -> None:
        data = state.to_dict()
        conn = self._connect()
        if conn is None:
            # Round-trip through JSON so callers can't alias the stored stacks
            try:
                self._fallback[state.date_key] = json.loads(json.dumps(data))
            except (TypeError, ValueError) as e:
                raise HistoryStoreError(f"Could not save history for {state.date_key}: {e}") from e
            return

        try:
            conn.execute(
                "INSERT INTO history (date_key, state, last_modified) VALUES (?, ?, ?) "
                "ON CONFLICT(date_key) DO UPDATE SET "
                "state = excluded.state, last_modified = excluded.last_modified",
                (state.date_key, json.dumps(data), state.last_modified),
            )
            conn.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise HistoryStoreError(f"Could not save history for {state.date_key}: {e}") from e

    def date_keys(self) -> list[str]:
        conn = self._connect()
        if conn is None:
            return sorted(self._fallback)
        try:
            rows = conn.execute("SELECT date_key FROM history ORDER BY date_key").fetchall()
        except sqlite3.Error as e:
            raise HistoryStoreError(f"Could not list histories: {e}") from e
        return [r[0] for r in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
