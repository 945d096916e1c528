"""Shared plumbing for CLI commands.

Every mutating CLI command opens the workspace, builds a HistoryController
for the requested date, runs one coroutine, and flushes the history.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date
from typing import Awaitable, Callable, TypeVar

import typer

from daybook.db.daystore import ChecklistItem, DayData, Note
from daybook.db.workspace import Workspace, open_workspace
from daybook.history.controller import HistoryController, Notice, classify_error
from daybook.history.errors import PersistenceError, UndoRedoError


T = TypeVar("T")

_MARKS = {"information": "•", "warning": "⚠", "error": "✗"}


def print_notice(notice: Notice, error: BaseException | None = None) -> None:
    print(f"{_MARKS.get(notice.severity, '•')} {notice.message}")


def resolve_date(value: str | None) -> str:
    """Normalize --date to YYYY-MM-DD; default is today."""
    if value is None:
        return date.today().isoformat()
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        print(f"Invalid date: {value} (expected YYYY-MM-DD)")
        raise typer.Exit(1)


def resolve_item(day: DayData | None, selector: str) -> ChecklistItem:
    """Resolve a checklist selector: 1-based index or item id."""
    items = day.checklist if day else []
    if selector.isdigit():
        idx = int(selector)
        if 1 <= idx <= len(items):
            return items[idx - 1]
        print(f"Invalid item index: {selector} (have {len(items)} items)")
        raise typer.Exit(1)

    for item in items:
        if item.id == selector:
            return item

    print(f"Checklist item not found: {selector}")
    raise typer.Exit(1)


def resolve_note(day: DayData | None, selector: str) -> Note:
    """Resolve a note selector: 1-based index or note id."""
    notes = day.notes if day else []
    if selector.isdigit():
        idx = int(selector)
        if 1 <= idx <= len(notes):
            return notes[idx - 1]
        print(f"Invalid note index: {selector} (have {len(notes)} notes)")
        raise typer.Exit(1)

    for note in notes:
        if note.id == selector:
            return note

    print(f"Note not found: {selector}")
    raise typer.Exit(1)


def run_history(
    date_key: str,
    action: Callable[[Workspace, HistoryController], Awaitable[T]],
) -> T:
    """Run action against the history for date_key.

    A soft persistence failure has already been printed as a warning and
    does not fail the command. Any other undo/redo error exits 1, including
    one the controller reported instead of raising.
    """
    failed = False

    def on_error(notice: Notice, error: BaseException | None = None) -> None:
        nonlocal failed
        print_notice(notice)
        if notice.severity == "error":
            failed = True

    try:
        with open_workspace() as ws:
            controller = HistoryController(
                ws.days, ws.history, date_key, on_error=on_error
            )

            async def main() -> T:
                await controller.select_date(date_key)
                try:
                    return await action(ws, controller)
                finally:
                    try:
                        controller.close()
                    except PersistenceError as e:
                        print_notice(classify_error(e))

            result = asyncio.run(main())
        if failed:
            sys.exit(1)
        return result
    except typer.Exit:
        raise
    except PersistenceError as e:
        if e.inconsistent:
            sys.exit(1)
        return None  # type: ignore[return-value]
    except UndoRedoError:
        sys.exit(1)
    except RuntimeError as e:
        print(str(e))
        sys.exit(1)
