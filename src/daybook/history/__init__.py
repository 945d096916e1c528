"""Undo/redo engine: command catalog, per-date history managers, and the
controller the UI talks to.
"""

from daybook.history.commands import (
    AddChecklistItemCommand,
    AddNoteCommand,
    BatchCommand,
    Command,
    DeleteChecklistItemCommand,
    DeleteNoteCommand,
    EditChecklistItemCommand,
    EditNoteCommand,
    ReorderChecklistCommand,
    ToggleChecklistItemCommand,
    deserialize_command,
)
from daybook.history.config import configure, get_config, reset_config
from daybook.history.controller import HistoryController, HistoryStatus, Notice, classify_error
from daybook.history.errors import (
    CommandExecutionError,
    HistoryBusyError,
    PersistenceError,
    RollbackOutcome,
    UndoRedoError,
)
from daybook.history.manager import HistoryManager
from daybook.history.store import HistoryState, HistoryStore

__all__ = [
    "AddChecklistItemCommand",
    "AddNoteCommand",
    "BatchCommand",
    "Command",
    "CommandExecutionError",
    "DeleteChecklistItemCommand",
    "DeleteNoteCommand",
    "EditChecklistItemCommand",
    "EditNoteCommand",
    "HistoryBusyError",
    "HistoryController",
    "HistoryManager",
    "HistoryState",
    "HistoryStatus",
    "HistoryStore",
    "Notice",
    "PersistenceError",
    "ReorderChecklistCommand",
    "RollbackOutcome",
    "ToggleChecklistItemCommand",
    "UndoRedoError",
    "classify_error",
    "configure",
    "deserialize_command",
    "get_config",
    "reset_config",
]
