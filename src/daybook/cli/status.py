from __future__ import annotations

from typing import Optional

import typer

from daybook.cli.session import resolve_date, run_history
from daybook.history.config import get_config


def register(app):
    @app.command()
    def status(date: Optional[str] = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD")):
        date_key = resolve_date(date)

        async def action(ws, controller):
            print(f"Daybook workspace: {ws.root_dir.name}\n")

            cfg = get_config()
            store = "in-memory fallback" if ws.history.is_fallback else "durable"
            print("History:")
            print(f"  ✓ Store: {store}")
            print(f"  ✓ Max history size: {cfg.max_history_size}")
            print(f"  ✓ Persistence: {'on' if cfg.enable_persistence else 'off'}")

            day = await ws.days.get_day_data(date_key)
            notes = len(day.notes) if day else 0
            items = len(day.checklist) if day else 0
            done = await ws.days.completion_percentage(date_key)
            sizes = controller.stack_sizes

            print(f"\n{date_key}:")
            print(f"  • Notes:     {notes}")
            print(f"  • Items:     {items} ({done}% done)")
            print(f"  • Undo/redo: {sizes['undo']}/{sizes['redo']}")
            if controller.undo_description:
                print(f"  • Next undo: {controller.undo_description}")
            if controller.redo_description:
                print(f"  • Next redo: {controller.redo_description}")

        run_history(date_key, action)
