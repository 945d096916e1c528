"""Daybook TUI application with Elm-inspired architecture.

- One open day: checklist on the left, notes on the right
- Every change is a history command, so ctrl+z / ctrl+y work across all of them
- Views are pure functions of state (no DB queries)
- DB reads happen in _reload(), DB writes only through the HistoryController
"""

from __future__ import annotations

from contextlib import ExitStack
from datetime import date
import logging

from textual import events
from textual.app import App, ComposeResult
from textual.css.query import NoMatches
from textual.widgets import Footer, Header, Input, ListView, TextArea
from textual.containers import Horizontal

from daybook.db.workspace import Workspace, open_workspace
from daybook.history.builders import carry_over_command, move_item_command
from daybook.history.commands import (
    AddChecklistItemCommand,
    AddNoteCommand,
    Command,
    DeleteChecklistItemCommand,
    DeleteNoteCommand,
    EditChecklistItemCommand,
    EditNoteCommand,
    ToggleChecklistItemCommand,
)
from daybook.history.controller import HistoryController, HistoryStatus, Notice
from daybook.history.errors import PersistenceError, UndoRedoError
from daybook.history.shortcuts import handle_shortcut
from daybook.tui.decorators import safe_action
from daybook.tui.state import (
    ClearSelection,
    DayLoaded,
    DayState,
    GotoDate,
    HistoryChanged,
    Select,
    ShiftDate,
)
from daybook.tui.views.day import DayView
from daybook.tui.views.input_dialog import ConfirmDialog, InputDialog


logger = logging.getLogger(__name__)


class DaybookApp(App):
    CSS_PATH = "tui.css"
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("a", "add_item", "Add Item"),
        ("n", "add_note", "Add Note"),
        ("e", "edit", "Edit"),
        ("x", "toggle", "Toggle"),
        ("d", "delete", "Delete"),
        ("K", "move_up", "Move Up"),
        ("J", "move_down", "Move Down"),
        ("c", "carry_over", "Carry Over"),
        ("left_square_bracket", "previous_day", "Prev Day"),
        ("right_square_bracket", "next_day", "Next Day"),
        ("t", "today", "Today"),
        ("H", "clear_history", "Clear History"),
        ("escape", "clear_selection", "Deselect"),
    ]

    def __init__(self, date_key: str | None = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state: DayState | None = None
        self.controller: HistoryController | None = None
        self.workspace: Workspace | None = None
        self.view = DayView()
        self._date_key = date_key or date.today().isoformat()
        self._resources = ExitStack()
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(id="main")
        yield Footer()

    async def on_mount(self) -> None:
        try:
            self.workspace = self._resources.enter_context(open_workspace())
        except RuntimeError as e:
            self.exit(return_code=1, message=str(e))
            return

        self.state = DayState(date_key=self._date_key)
        self.controller = HistoryController(
            self.workspace.days,
            self.workspace.history,
            self._date_key,
            on_error=self._show_notice,
            on_success=self._show_notice,
        )
        self._unsubscribe = self.controller.subscribe(self._on_history_status)
        await self._open_date(self._date_key)

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self.controller is not None:
            try:
                self.controller.close()
            except PersistenceError:
                logger.warning("History not saved on exit", exc_info=True)
        self._resources.close()

    # =====================
    # History wiring
    # =====================

    def _show_notice(self, notice: Notice, error: BaseException | None = None) -> None:
        self.notify(notice.message, severity=notice.severity)

    def _on_history_status(self, status: HistoryStatus) -> None:
        if self.state is None:
            return
        self.state.dispatch(HistoryChanged(status))
        self.sub_title = self._subtitle()

    def _subtitle(self) -> str:
        status = self.state.history
        if status.is_executing:
            return f"{self.state.date_key} · saving…"
        sizes = status.stack_sizes
        return f"{self.state.date_key} · undo {sizes['undo']} · redo {sizes['redo']}"

    async def _execute(self, command: Command) -> bool:
        """Run a command through the history. Failures are already notified."""
        try:
            await self.controller.execute_command(command)
        except UndoRedoError:
            return False
        finally:
            await self._reload()
        return True

    async def on_key(self, event: events.Key) -> None:
        if self.controller is None:
            return
        in_text_input = isinstance(self.focused, (Input, TextArea))
        action = await handle_shortcut(self.controller, event.key, in_text_input=in_text_input)
        if action is None:
            return
        event.stop()
        event.prevent_default()
        await self._reload()

    # =====================
    # Day switching
    # =====================

    async def _open_date(self, date_key: str) -> None:
        self.state.dispatch(GotoDate(date_key))
        status = await self.controller.select_date(date_key)
        self.state.dispatch(HistoryChanged(status))
        self.sub_title = self._subtitle()
        await self._reload()

    @safe_action
    async def action_previous_day(self) -> None:
        self.state.dispatch(ShiftDate(-1))
        await self._open_date(self.state.date_key)

    @safe_action
    async def action_next_day(self) -> None:
        self.state.dispatch(ShiftDate(1))
        await self._open_date(self.state.date_key)

    @safe_action
    async def action_today(self) -> None:
        await self._open_date(date.today().isoformat())

    @safe_action
    def action_clear_selection(self) -> None:
        self.state.dispatch(ClearSelection())
        self._render_view()

    # =====================
    # Checklist
    # =====================

    @safe_action
    def action_add_item(self) -> None:
        date_key = self.state.date_key

        async def on_text_result(text: str | None) -> None:
            if not text:
                return
            await self._execute(
                AddChecklistItemCommand(store=self.workspace.days, date_key=date_key, text=text)
            )

        self.push_screen(InputDialog("New Item", "Text:", ""), on_text_result)

    @safe_action
    async def action_toggle(self) -> None:
        self._sync_selection()
        item = self.state.selected_item
        if item is None:
            return
        await self._execute(
            ToggleChecklistItemCommand(
                store=self.workspace.days, date_key=self.state.date_key, item_id=item.id
            )
        )

    async def _move_selected(self, offset: int) -> None:
        self._sync_selection()
        item = self.state.selected_item
        if item is None:
            return
        position = self.state.checklist.index(item) + 1 + offset
        command = await move_item_command(
            self.workspace.days, self.state.date_key, item.id, position
        )
        if command is not None:
            await self._execute(command)

    @safe_action
    async def action_move_up(self) -> None:
        await self._move_selected(-1)

    @safe_action
    async def action_move_down(self) -> None:
        await self._move_selected(1)

    @safe_action
    async def action_carry_over(self) -> None:
        command = await carry_over_command(self.workspace.days, self.state.date_key)
        if command is None:
            self.notify("Nothing to carry over")
            return
        if await self._execute(command):
            self.notify(f"Carried over {len(command.commands)} items")

    # =====================
    # Notes
    # =====================

    @safe_action
    def action_add_note(self) -> None:
        date_key = self.state.date_key

        async def on_content_result(content: str | None) -> None:
            if not content:
                return
            await self._execute(
                AddNoteCommand(store=self.workspace.days, date_key=date_key, content=content)
            )

        self.push_screen(InputDialog("New Note", "Note:", ""), on_content_result)

    # =====================
    # Shared edit / delete
    # =====================

    @safe_action
    def action_edit(self) -> None:
        self._sync_selection()
        date_key = self.state.date_key
        days = self.workspace.days

        item = self.state.selected_item
        if item is not None:

            async def on_text_result(text: str | None) -> None:
                if not text or text == item.text:
                    return
                await self._execute(
                    EditChecklistItemCommand(
                        store=days,
                        date_key=date_key,
                        item_id=item.id,
                        old_text=item.text,
                        new_text=text,
                    )
                )

            self.push_screen(InputDialog("Edit Item", "Text:", item.text), on_text_result)
            return

        note = self.state.selected_note
        if note is not None:

            async def on_content_result(content: str | None) -> None:
                if not content or content == note.content:
                    return
                await self._execute(
                    EditNoteCommand(
                        store=days,
                        date_key=date_key,
                        note_id=note.id,
                        old_content=note.content,
                        new_content=content,
                    )
                )

            self.push_screen(InputDialog("Edit Note", "Note:", note.content), on_content_result)

    @safe_action
    async def action_delete(self) -> None:
        self._sync_selection()
        date_key = self.state.date_key
        days = self.workspace.days

        item = self.state.selected_item
        if item is not None:
            command = DeleteChecklistItemCommand(store=days, date_key=date_key, item_id=item.id)
        elif (note := self.state.selected_note) is not None:
            command = DeleteNoteCommand(store=days, date_key=date_key, note_id=note.id)
        else:
            return

        if await self._execute(command):
            self.notify("Deleted (ctrl+z to undo)")

    @safe_action
    def action_clear_history(self) -> None:
        async def on_confirm(confirmed: bool) -> None:
            if not confirmed:
                return
            try:
                await self.controller.clear_history()
            except UndoRedoError:
                return
            self.notify("History cleared")

        self.push_screen(
            ConfirmDialog(
                "Clear history?",
                f"Undo/redo history for {self.state.date_key} will be forgotten. "
                "Notes and items are kept.",
            ),
            on_confirm,
        )

    # =====================
    # Rendering
    # =====================

    async def _reload(self) -> None:
        """Re-read the open day and re-render."""
        if self.state is None or self.workspace is None:
            return
        day = await self.workspace.days.get_day_data(self.state.date_key)
        self.state.dispatch(DayLoaded(day))
        self._render_view()

    def _render_view(self) -> None:
        """Schedule a view re-render.

        Textual's `remove_children()` / `mount()` are async; running them in an
        exclusive worker avoids duplicate ids during fast key repeats.
        """
        if self.state is None:
            return

        self.run_worker(
            self._render_view_async(),
            group="render",
            exclusive=True,
            exit_on_error=False,
        )

    async def _render_view_async(self) -> None:
        if self.state is None:
            return

        try:
            container = self.screen.query_one("#main")
        except NoMatches:
            return

        await container.remove_children()
        await container.mount_all(self.view.render(self.state))

        try:
            self.screen.query_one(f"#{self.state.pane}").focus()
        except NoMatches:
            pass

    # =====================
    # Event handlers
    # =====================

    def _parse_widget_id(self, raw: str) -> tuple[str | None, str]:
        # Textual ids can't start with a digit, so we prefix UUIDs.
        prefix, _, rest = raw.partition("-")
        if prefix == "itm":
            return "item", rest
        if prefix == "not":
            return "note", rest
        return None, raw

    def _select_row(self, widget_id: str | None) -> bool:
        """Select the row with widget_id. Returns True if the pane changed."""
        if widget_id is None:
            return False
        kind, raw_id = self._parse_widget_id(widget_id)
        if kind is None:
            return False
        current = self.state.selection
        if current.kind == kind and current.id == raw_id:
            return False
        pane_before = self.state.pane
        self.state.dispatch(Select(kind=kind, item_id=raw_id))
        return self.state.pane != pane_before

    def _sync_selection(self) -> None:
        """Take the selection from the focused list (focus may move by tab)."""
        focused = self.focused
        if isinstance(focused, ListView) and focused.highlighted_child is not None:
            self._select_row(focused.highlighted_child.id)

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        if self.state is None or event.item is None:
            return
        # Freshly mounted lists highlight their first row; only the focused one counts
        if event.list_view is not self.focused:
            return
        if self._select_row(event.item.id):
            # Hints differ per pane
            self._render_view()


if __name__ == "__main__":
    DaybookApp().run()
