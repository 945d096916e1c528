"""
TUI state management and actions.

Architecture:
- Actions are frozen dataclasses representing state transitions
- reduce(state, action) applies a transition in place
- DayState.dispatch(action) mutates self by applying reduce
- Computed properties provide convenient access to derived state
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Literal, Union

from daybook.db.daystore import ChecklistItem, DayData, Note
from daybook.history.controller import HistoryStatus


# =============================================================================
# Data Types
# =============================================================================

PaneName = Literal["checklist", "notes"]


@dataclass(frozen=True)
class Selection:
    """Represents a selected row in a pane."""
    kind: Optional[str] = None
    id: Optional[str] = None


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class GotoDate:
    """Open another day."""
    date_key: str


@dataclass(frozen=True)
class ShiftDate:
    """Move the open day by a number of days."""
    days: int


@dataclass(frozen=True)
class DayLoaded:
    """Fresh day content from the store (None for an empty day)."""
    day: Optional[DayData]


@dataclass(frozen=True)
class HistoryChanged:
    """New undo/redo status for the open day."""
    status: HistoryStatus


@dataclass(frozen=True)
class Select:
    """Select a checklist item or note."""
    kind: str
    item_id: str


@dataclass(frozen=True)
class ClearSelection:
    pass


Action = Union[GotoDate, ShiftDate, DayLoaded, HistoryChanged, Select, ClearSelection]


# =============================================================================
# Reducer
# =============================================================================

def _pane_for(kind: Optional[str]) -> PaneName:
    return "notes" if kind == "note" else "checklist"


def reduce(state: "DayState", action: Action) -> None:
    match action:
        case GotoDate(date_key=date_key):
            if date_key != state.date_key:
                state.date_key = date_key
                state.day = None
                state.selection = Selection()
                state.history = HistoryStatus(date_key=date_key)

        case ShiftDate(days=days):
            target = date.fromisoformat(state.date_key) + timedelta(days=days)
            reduce(state, GotoDate(target.isoformat()))

        case DayLoaded(day=day):
            state.day = day
            # Drop a selection whose row no longer exists (deleted or undone)
            sel = state.selection
            if sel.kind == "item" and (day is None or day.find_item(sel.id) is None):
                state.selection = Selection()
            elif sel.kind == "note" and (day is None or day.find_note(sel.id) is None):
                state.selection = Selection()

        case HistoryChanged(status=status):
            if status.date_key == state.date_key:
                state.history = status

        case Select(kind=kind, item_id=item_id):
            state.selection = Selection(kind=kind, id=item_id)
            state.pane = _pane_for(kind)

        case ClearSelection():
            state.selection = Selection()


# =============================================================================
# App State
# =============================================================================

@dataclass
class DayState:
    """
    Central application state: one open day.

    This is a mutable dataclass. State changes happen via dispatch(action),
    which calls the reduce function to apply transitions.
    """

    date_key: str
    day: Optional[DayData] = None
    pane: PaneName = "checklist"
    selection: Selection = field(default_factory=Selection)
    history: Optional[HistoryStatus] = None

    def __post_init__(self) -> None:
        if self.history is None:
            self.history = HistoryStatus(date_key=self.date_key)

    def dispatch(self, action: Action) -> None:
        """Apply an action to update state."""
        reduce(self, action)

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def checklist(self) -> list[ChecklistItem]:
        return self.day.checklist if self.day else []

    @property
    def notes(self) -> list[Note]:
        return self.day.notes if self.day else []

    @property
    def selected_item(self) -> Optional[ChecklistItem]:
        if self.selection.kind != "item" or self.day is None:
            return None
        return self.day.find_item(self.selection.id)

    @property
    def selected_note(self) -> Optional[Note]:
        if self.selection.kind != "note" or self.day is None:
            return None
        return self.day.find_note(self.selection.id)

    @property
    def completion(self) -> int:
        items = self.checklist
        if not items:
            return 0
        done = sum(1 for item in items if item.completed)
        return round(done / len(items) * 100)
