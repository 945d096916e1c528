"""Undo/redo commands.

  daybook undo [--date D]
  daybook redo [--date D]
  daybook history show [--date D]
  daybook history clear [--date D]
  daybook history dates
"""

from __future__ import annotations

import sys
from typing import Optional

import typer

from daybook.cli.session import resolve_date, run_history
from daybook.db.workspace import open_workspace
from daybook.history.commands import describe_command
from daybook.history.errors import HistoryStoreError


DateOption = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD (default: today)")


def register_top_level(app: typer.Typer):
    @app.command()
    def undo(date: Optional[str] = DateOption):
        """Undo the last change on a day."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            description = controller.undo_description
            if description is None:
                print("Nothing to undo.")
                return
            if await controller.undo():
                print(f"✓ Undid: {description}")

        run_history(date_key, action)

    @app.command()
    def redo(date: Optional[str] = DateOption):
        """Redo the last undone change on a day."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            description = controller.redo_description
            if description is None:
                print("Nothing to redo.")
                return
            if await controller.redo():
                print(f"✓ Redid: {description}")

        run_history(date_key, action)


def register(app: typer.Typer):
    @app.command()
    def show(date: Optional[str] = DateOption):
        """Show the undo and redo stacks for a day (newest first)."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            manager = controller.active
            sizes = controller.stack_sizes
            print(f"History for {date_key}: {sizes['undo']} undo, {sizes['redo']} redo")
            if manager.undo_stack:
                print("\nUndo:")
                for command in reversed(manager.undo_stack):
                    print(f"  • {describe_command(command)}  ({command.timestamp:%H:%M:%S})")
            if manager.redo_stack:
                print("\nRedo:")
                for command in reversed(manager.redo_stack):
                    print(f"  • {describe_command(command)}  ({command.timestamp:%H:%M:%S})")

        run_history(date_key, action)

    @app.command()
    def clear(date: Optional[str] = DateOption):
        """Forget the undo/redo history of a day (day content is kept)."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            await controller.clear_history()
            print(f"✓ History cleared for {date_key}")

        run_history(date_key, action)

    @app.command()
    def dates():
        """List days that have stored history."""
        try:
            with open_workspace() as ws:
                keys = ws.history.date_keys()
        except (RuntimeError, HistoryStoreError) as e:
            print(str(e))
            sys.exit(1)

        if not keys:
            print("No stored history.")
            return
        for key in keys:
            print(key)
