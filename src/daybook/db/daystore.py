"""Day-record store: notes and checklist items keyed by date.

All day-record writes live here. Commands in daybook.history.commands
are the only callers that mutate through this module; everything else
reads through get_day_data().

Operations are coroutines so callers can treat the store like any other
I/O-bound collaborator. The SQLite calls themselves are synchronous.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from daybook.db.migrate import migrate


class DayStoreError(Exception):
    """The day-record store could not complete an operation."""


class RecordNotFoundError(DayStoreError, LookupError):
    """A note or checklist item id does not exist for the given date."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Records
# =============================================================================

@dataclass
class Note:
    id: str
    content: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        return cls(
            id=data["id"],
            content=data["content"],
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
        )


@dataclass
class ChecklistItem:
    id: str
    text: str
    completed: bool
    order: int
    created_at: datetime
    updated_at: datetime
    original_date: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "order": self.order,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "originalDate": self.original_date,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChecklistItem":
        return cls(
            id=data["id"],
            text=data["text"],
            completed=bool(data["completed"]),
            order=int(data["order"]),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            original_date=data.get("originalDate"),
        )


@dataclass
class DayData:
    date: str
    notes: list[Note] = field(default_factory=list)
    checklist: list[ChecklistItem] = field(default_factory=list)

    def find_note(self, note_id: str) -> Note | None:
        return next((n for n in self.notes if n.id == note_id), None)

    def find_item(self, item_id: str) -> ChecklistItem | None:
        return next((i for i in self.checklist if i.id == item_id), None)


def _row_to_note(row) -> Note:
    note_id, content, created_at, updated_at = row
    return Note(
        id=note_id,
        content=content,
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )


def _row_to_item(row) -> ChecklistItem:
    item_id, text, completed, order, original_date, created_at, updated_at = row
    return ChecklistItem(
        id=item_id,
        text=text,
        completed=bool(completed),
        order=order,
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
        original_date=original_date,
    )


_ITEM_COLUMNS = "id, text, completed, sort_order, original_date, created_at, updated_at"


# =============================================================================
# Store
# =============================================================================

class DayStore:
    """SQLite-backed day-record store."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    @classmethod
    def open(cls, path: Path | str) -> "DayStore":
        """Open (and migrate) a store. Pass ":memory:" for a scratch store."""
        conn = sqlite3.connect(str(path))
        migrate(conn)
        return cls(conn)

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Cursor whose writes are committed together, or rolled back."""
        try:
            cur = self.conn.cursor()
            yield cur
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DayStoreError(f"Conflicting record: {e}") from e
        except sqlite3.Error as e:
            # Drop partial writes so a later commit cannot persist them;
            # a closed connection has nothing to roll back
            with suppress(sqlite3.ProgrammingError):
                self.conn.rollback()
            raise DayStoreError(f"Day store unavailable: {e}") from e
        except DayStoreError:
            self.conn.rollback()
            raise

    def _ensure_day(self, cur: sqlite3.Cursor, date_key: str, now: datetime) -> None:
        cur.execute(
            "INSERT OR IGNORE INTO days (date, created_at, updated_at) VALUES (?, ?, ?)",
            (date_key, now.isoformat(), now.isoformat()),
        )
        cur.execute(
            "UPDATE days SET updated_at = ? WHERE date = ?",
            (now.isoformat(), date_key),
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_day_data(self, date_key: str) -> DayData | None:
        """Return the day's notes and checklist (sorted by order), or None."""
        with self._cursor() as cur:
            cur.execute("SELECT 1 FROM days WHERE date = ?", (date_key,))
            if cur.fetchone() is None:
                return None

            cur.execute(
                "SELECT id, content, created_at, updated_at FROM notes "
                "WHERE date = ? ORDER BY created_at, id",
                (date_key,),
            )
            notes = [_row_to_note(r) for r in cur.fetchall()]

            cur.execute(
                f"SELECT {_ITEM_COLUMNS} FROM checklist_items "
                "WHERE date = ? ORDER BY sort_order, created_at",
                (date_key,),
            )
            checklist = [_row_to_item(r) for r in cur.fetchall()]

        return DayData(date=date_key, notes=notes, checklist=checklist)

    async def get_uncompleted_items_before(
        self, date_key: str
    ) -> list[tuple[str, list[ChecklistItem]]]:
        """Unchecked items grouped by date for all days before date_key.

        Most recent day first.
        """
        with self._cursor() as cur:
            cur.execute(
                f"SELECT date, {_ITEM_COLUMNS} FROM checklist_items "
                "WHERE date < ? AND completed = 0 "
                "ORDER BY date DESC, sort_order",
                (date_key,),
            )
            rows = cur.fetchall()

        grouped: dict[str, list[ChecklistItem]] = {}
        for row in rows:
            grouped.setdefault(row[0], []).append(_row_to_item(row[1:]))
        return list(grouped.items())

    async def completion_percentage(self, date_key: str) -> int:
        """Share of completed checklist items, rounded to a whole percent."""
        day = await self.get_day_data(date_key)
        if day is None or not day.checklist:
            return 0
        done = sum(1 for item in day.checklist if item.completed)
        return round(done / len(day.checklist) * 100)

    # =========================================================================
    # Notes
    # =========================================================================

    async def add_note(self, date_key: str, content: str) -> Note:
        """Create a note. Returns the stored note with its generated id."""
        now = utcnow()
        note = Note(id=str(uuid.uuid4()), content=content, created_at=now, updated_at=now)
        await self.restore_note(date_key, note)
        return note

    async def restore_note(self, date_key: str, note: Note) -> None:
        """Insert a note snapshot verbatim (same id and timestamps)."""
        with self._cursor() as cur:
            self._ensure_day(cur, date_key, utcnow())
            cur.execute(
                "INSERT INTO notes (id, date, content, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    note.id,
                    date_key,
                    note.content,
                    note.created_at.isoformat(),
                    note.updated_at.isoformat(),
                ),
            )

    async def update_note(self, date_key: str, note_id: str, content: str) -> None:
        now = utcnow()
        with self._cursor() as cur:
            cur.execute(
                "UPDATE notes SET content = ?, updated_at = ? WHERE id = ? AND date = ?",
                (content, now.isoformat(), note_id, date_key),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"Note {note_id} not found on {date_key}")
            self._ensure_day(cur, date_key, now)

    async def delete_note(self, date_key: str, note_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM notes WHERE id = ? AND date = ?", (note_id, date_key)
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"Note {note_id} not found on {date_key}")
            self._ensure_day(cur, date_key, utcnow())

    # =========================================================================
    # Checklist
    # =========================================================================

    async def add_checklist_item(
        self, date_key: str, text: str, *, original_date: str | None = None
    ) -> ChecklistItem:
        """Append an unchecked item after the current last one."""
        now = utcnow()
        with self._cursor() as cur:
            cur.execute(
                "SELECT COALESCE(MAX(sort_order) + 1, 0) FROM checklist_items WHERE date = ?",
                (date_key,),
            )
            order = cur.fetchone()[0]

        item = ChecklistItem(
            id=str(uuid.uuid4()),
            text=text,
            completed=False,
            order=order,
            created_at=now,
            updated_at=now,
            original_date=original_date or date_key,
        )
        await self.restore_checklist_item(date_key, item)
        return item

    async def restore_checklist_item(self, date_key: str, item: ChecklistItem) -> None:
        """Insert an item snapshot verbatim (same id, order and flags)."""
        with self._cursor() as cur:
            self._ensure_day(cur, date_key, utcnow())
            cur.execute(
                f"INSERT INTO checklist_items ({_ITEM_COLUMNS}, date) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.id,
                    item.text,
                    int(item.completed),
                    item.order,
                    item.original_date,
                    item.created_at.isoformat(),
                    item.updated_at.isoformat(),
                    date_key,
                ),
            )

    async def update_checklist_item(
        self,
        date_key: str,
        item_id: str,
        *,
        text: str | None = None,
        completed: bool | None = None,
    ) -> None:
        sets = []
        params: list = []
        if text is not None:
            sets.append("text = ?")
            params.append(text)
        if completed is not None:
            sets.append("completed = ?")
            params.append(int(completed))
        now = utcnow()
        sets.append("updated_at = ?")
        params.append(now.isoformat())

        with self._cursor() as cur:
            cur.execute(
                f"UPDATE checklist_items SET {', '.join(sets)} WHERE id = ? AND date = ?",
                (*params, item_id, date_key),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(
                    f"Checklist item {item_id} not found on {date_key}"
                )
            self._ensure_day(cur, date_key, now)

    async def delete_checklist_item(self, date_key: str, item_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM checklist_items WHERE id = ? AND date = ?",
                (item_id, date_key),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(
                    f"Checklist item {item_id} not found on {date_key}"
                )
            self._ensure_day(cur, date_key, utcnow())

    async def reorder_checklist_items(self, date_key: str, ordered_ids: list[str]) -> None:
        """Renumber the day's items to follow ordered_ids.

        Unknown ids are ignored; items missing from ordered_ids keep their
        relative order after the listed ones.
        """
        now = utcnow()
        with self._cursor() as cur:
            cur.execute(
                "SELECT id FROM checklist_items WHERE date = ? ORDER BY sort_order, created_at",
                (date_key,),
            )
            current = [r[0] for r in cur.fetchall()]
            if not current:
                return

            known = set(current)
            listed = [i for i in dict.fromkeys(ordered_ids) if i in known]
            rest = [i for i in current if i not in set(listed)]

            for idx, item_id in enumerate(listed + rest):
                cur.execute(
                    "UPDATE checklist_items SET sort_order = ?, updated_at = ? WHERE id = ?",
                    (idx, now.isoformat(), item_id),
                )
            self._ensure_day(cur, date_key, now)
