"""Checklist commands: daybook item add|list|edit|toggle|delete|move|carry-over

Items are addressed by their 1-based position in the day's checklist or by id.
"""

from __future__ import annotations

from typing import Optional

import typer

from daybook.cli.session import resolve_date, resolve_item, run_history
from daybook.history.builders import CARRY_OVER_DAYS, carry_over_command, move_item_command
from daybook.history.commands import (
    AddChecklistItemCommand,
    DeleteChecklistItemCommand,
    EditChecklistItemCommand,
    ToggleChecklistItemCommand,
)


DateOption = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD (default: today)")


def register(app: typer.Typer):
    @app.command()
    def add(text: str, date: Optional[str] = DateOption):
        """Add a checklist item."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            await controller.execute_command(
                AddChecklistItemCommand(store=ws.days, date_key=date_key, text=text)
            )
            print(f"✓ Item added ({date_key})")

        run_history(date_key, action)

    @app.command("list")
    def list_items(date: Optional[str] = DateOption):
        """List a day's checklist."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            day = await ws.days.get_day_data(date_key)
            if day is None or not day.checklist:
                print(f"No checklist items for {date_key}.")
                return
            print(f"Checklist for {date_key}:")
            for idx, item in enumerate(day.checklist, 1):
                mark = "x" if item.completed else " "
                carried = ""
                if item.original_date and item.original_date != date_key:
                    carried = f"  (from {item.original_date})"
                print(f"  [{idx}] [{mark}] {item.text}{carried}")

        run_history(date_key, action)

    @app.command()
    def edit(selector: str, text: str, date: Optional[str] = DateOption):
        """Change an item's text."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            item = resolve_item(await ws.days.get_day_data(date_key), selector)
            await controller.execute_command(
                EditChecklistItemCommand(
                    store=ws.days,
                    date_key=date_key,
                    item_id=item.id,
                    old_text=item.text,
                    new_text=text,
                )
            )
            print("✓ Item updated")

        run_history(date_key, action)

    @app.command()
    def toggle(selector: str, date: Optional[str] = DateOption):
        """Mark an item done, or not done."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            item = resolve_item(await ws.days.get_day_data(date_key), selector)
            await controller.execute_command(
                ToggleChecklistItemCommand(store=ws.days, date_key=date_key, item_id=item.id)
            )
            state = "not done" if item.completed else "done"
            print(f"✓ Item marked {state}: {item.text}")

        run_history(date_key, action)

    @app.command()
    def delete(selector: str, date: Optional[str] = DateOption):
        """Delete a checklist item."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            item = resolve_item(await ws.days.get_day_data(date_key), selector)
            await controller.execute_command(
                DeleteChecklistItemCommand(store=ws.days, date_key=date_key, item_id=item.id)
            )
            print("✓ Item deleted")

        run_history(date_key, action)

    @app.command()
    def move(selector: str, position: int, date: Optional[str] = DateOption):
        """Move an item to a 1-based position."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            item = resolve_item(await ws.days.get_day_data(date_key), selector)
            command = await move_item_command(ws.days, date_key, item.id, position)
            if command is None:
                print("Nothing to move.")
                return
            await controller.execute_command(command)
            print(f"✓ Item moved to position {position}")

        run_history(date_key, action)

    @app.command("carry-over")
    def carry_over(
        date: Optional[str] = DateOption,
        days: int = typer.Option(CARRY_OVER_DAYS, help="How many previous days to look at"),
    ):
        """Copy unchecked items from previous days into this one."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            command = await carry_over_command(ws.days, date_key, days)
            if command is None:
                print("Nothing to carry over.")
                return
            await controller.execute_command(command)
            print(f"✓ Carried over {len(command.commands)} items")

        run_history(date_key, action)
