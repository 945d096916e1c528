"""Main CLI application wiring for Daybook.

kubectl-style subcommands:
  daybook note add "Call the plumber"
  daybook items list --date 2024-03-01
  daybook undo

Both singular and plural forms work identically.
"""

import typer

app = typer.Typer(add_completion=False, help="Daybook: notes and checklists per day, with undo")


@app.callback()
def main():
    """Daybook CLI."""
    pass


# =============================================================================
# Subcommand groups
# =============================================================================

# Notes
note_app = typer.Typer(help="Manage a day's notes")
app.add_typer(note_app, name="note")
app.add_typer(note_app, name="notes")

# Checklist items
item_app = typer.Typer(help="Manage a day's checklist")
app.add_typer(item_app, name="item")
app.add_typer(item_app, name="items")

# Undo history
history_app = typer.Typer(help="Inspect and clear undo history")
app.add_typer(history_app, name="history")


# =============================================================================
# Register commands to subgroups
# =============================================================================

from daybook.cli import note as note_cmd
from daybook.cli import item as item_cmd
from daybook.cli import history as history_cmd

note_cmd.register(note_app)
item_cmd.register(item_app)
history_cmd.register(history_app)


# =============================================================================
# Top-level commands
# =============================================================================

from daybook.cli import init as init_cmd
from daybook.cli import status as status_cmd

init_cmd.register(app)
status_cmd.register(app)
history_cmd.register_top_level(app)  # undo, redo


@app.command()
def tui(date: str = typer.Option(None, "--date", "-d", help="Day to open (YYYY-MM-DD)")):
    """Launch the Daybook TUI."""
    from daybook.cli.session import resolve_date
    from daybook.tui.app import DaybookApp

    DaybookApp(date_key=resolve_date(date)).run()
