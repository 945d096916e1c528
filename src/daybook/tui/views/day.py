from datetime import date

from textual.containers import Horizontal, Vertical
from textual.widgets import ListItem, ListView, Static

from daybook.tui.state import DayState
from daybook.tui.views.base import View


class DayView(View):
    name = "day"

    HELP_STYLE = "[dim]"
    HELP_END = "[/dim]"

    def _header(self, state: DayState) -> str:
        weekday = date.fromisoformat(state.date_key).strftime("%A")
        items = state.checklist
        done = sum(1 for item in items if item.completed)
        return f"[b]{weekday} {state.date_key}[/b]   {done}/{len(items)} done ({state.completion}%)"

    def _history_line(self, state: DayState) -> str:
        h, e = self.HELP_STYLE, self.HELP_END
        status = state.history
        parts = []
        if status.undo_description:
            parts.append(f"ctrl+z: undo {status.undo_description}")
        if status.redo_description:
            parts.append(f"ctrl+y: redo {status.redo_description}")
        if not parts:
            parts.append("nothing to undo")
        return f"{h}{'   '.join(parts)}{e}"

    def _hints(self, state: DayState) -> str:
        h, e = self.HELP_STYLE, self.HELP_END
        if state.pane == "notes":
            return f"{h}n:add note  e:edit  d:delete  [/]:prev/next day  t:today{e}"
        return f"{h}a:add  x:toggle  e:edit  d:delete  K/J:move  c:carry over  [/]:day{e}"

    def _checklist(self, state: DayState) -> ListView:
        rows = []
        for item in state.checklist:
            mark = "[green]✔[/green]" if item.completed else "☐"
            text = f"[strike]{item.text}[/strike]" if item.completed else item.text
            if item.original_date and item.original_date != state.date_key:
                text += f"  {self.HELP_STYLE}from {item.original_date}{self.HELP_END}"
            rows.append(ListItem(Static(f"{mark} {text}"), id=f"itm-{item.id}"))
        if not rows:
            rows.append(ListItem(Static(f"{self.HELP_STYLE}(no items){self.HELP_END}")))

        index = _index_of(state, "item", [item.id for item in state.checklist])
        return ListView(*rows, id="checklist", initial_index=index)

    def _notes(self, state: DayState) -> ListView:
        rows = []
        for note in state.notes:
            rows.append(ListItem(Static(f"📝 {note.content}"), id=f"not-{note.id}"))
        if not rows:
            rows.append(ListItem(Static(f"{self.HELP_STYLE}(no notes){self.HELP_END}")))

        index = _index_of(state, "note", [note.id for note in state.notes])
        return ListView(*rows, id="notes", initial_index=index)

    def render(self, state: DayState):
        left = Vertical(
            Static("Checklist", classes="pane-title"),
            self._checklist(state),
            id="checklist-pane",
        )
        right = Vertical(
            Static("Notes", classes="pane-title"),
            self._notes(state),
            id="notes-pane",
        )
        return [
            Vertical(
                Static(self._header(state), id="day-header"),
                Horizontal(left, right, id="panes"),
                Static(self._history_line(state), id="history-line"),
                Static(self._hints(state), id="hints"),
                id="day",
            )
        ]


def _index_of(state: DayState, kind: str, ids: list[str]) -> int:
    if state.selection.kind == kind and state.selection.id in ids:
        return ids.index(state.selection.id)
    return 0
