"""Note commands: daybook note add|list|edit|delete

Every change goes through the undo history of its day, so
`daybook undo --date ...` reverts it.
"""

from __future__ import annotations

from typing import Optional

import typer

from daybook.cli.session import resolve_date, resolve_note, run_history
from daybook.history.commands import AddNoteCommand, DeleteNoteCommand, EditNoteCommand


DateOption = typer.Option(None, "--date", "-d", help="Day as YYYY-MM-DD (default: today)")


def register(app: typer.Typer):
    @app.command()
    def add(content: str, date: Optional[str] = DateOption):
        """Add a note to a day."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            await controller.execute_command(
                AddNoteCommand(store=ws.days, date_key=date_key, content=content)
            )
            print(f"✓ Note added ({date_key})")

        run_history(date_key, action)

    @app.command("list")
    def list_notes(date: Optional[str] = DateOption):
        """List a day's notes."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            day = await ws.days.get_day_data(date_key)
            if day is None or not day.notes:
                print(f"No notes for {date_key}.")
                return
            print(f"Notes for {date_key}:")
            for idx, note in enumerate(day.notes, 1):
                preview = note.content.replace("\n", " ")
                print(f"  [{idx}] {preview}")

        run_history(date_key, action)

    @app.command()
    def edit(selector: str, content: str, date: Optional[str] = DateOption):
        """Replace a note's content (index or id)."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            note = resolve_note(await ws.days.get_day_data(date_key), selector)
            await controller.execute_command(
                EditNoteCommand(
                    store=ws.days,
                    date_key=date_key,
                    note_id=note.id,
                    old_content=note.content,
                    new_content=content,
                )
            )
            print("✓ Note updated")

        run_history(date_key, action)

    @app.command()
    def delete(selector: str, date: Optional[str] = DateOption):
        """Delete a note (index or id)."""
        date_key = resolve_date(date)

        async def action(ws, controller):
            note = resolve_note(await ws.days.get_day_data(date_key), selector)
            await controller.execute_command(
                DeleteNoteCommand(store=ws.days, date_key=date_key, note_id=note.id)
            )
            print("✓ Note deleted")

        run_history(date_key, action)
