"""History access façade.

HistoryController binds "the selected date" to a HistoryManager and gives
callers (CLI, TUI) one object to execute, undo and redo through. Managers
are created lazily per date key, kept in a small LRU map, and flushed to
the history store when evicted.

Failures from the manager are classified here for display:
persistence problems are warnings, failed mutations are errors, a busy
history is transient.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Literal

from daybook.db.daystore import DayStore
from daybook.history.commands import Command
from daybook.history.errors import (
    CommandExecutionError,
    HistoryBusyError,
    PersistenceError,
    RollbackOutcome,
    UndoRedoError,
)
from daybook.history.manager import HistoryManager
from daybook.history.store import HistoryStore


logger = logging.getLogger(__name__)

Severity = Literal["information", "warning", "error"]
HistoryAction = Literal["execute", "undo", "redo", "clear"]


@dataclass(frozen=True)
class Notice:
    """A classified message for the UI."""
    severity: Severity
    message: str


@dataclass(frozen=True)
class HistoryStatus:
    date_key: str
    can_undo: bool = False
    can_redo: bool = False
    undo_description: str | None = None
    redo_description: str | None = None
    is_executing: bool = False
    stack_sizes: dict[str, int] = field(default_factory=lambda: {"undo": 0, "redo": 0})


def classify_error(error: BaseException, action: HistoryAction = "execute") -> Notice:
    match error:
        case PersistenceError(outcome=RollbackOutcome.INCONSISTENT):
            return Notice(
                "error",
                "Action could not be saved or reverted. "
                "What you see may not match the saved history; reload to resync.",
            )
        case PersistenceError():
            return Notice(
                "warning",
                "Action completed but could not be saved. Changes may be lost on reload.",
            )
        case CommandExecutionError():
            return Notice("error", f"Failed to {action} action")
        case HistoryBusyError():
            return Notice("information", "Another change is still being applied")
        case _:
            return Notice("error", str(error))


def success_notice(action: HistoryAction) -> Notice:
    return Notice("information", "Action undone" if action == "undo" else "Action redone")


StatusListener = Callable[[HistoryStatus], None]
ErrorHandler = Callable[[Notice, BaseException], None]
SuccessHandler = Callable[[Notice], None]


class HistoryController:
    def __init__(
        self,
        store: DayStore,
        history_store: HistoryStore,
        date_key: str,
        *,
        max_history_size: int | None = None,
        max_managers: int = 8,
        on_error: ErrorHandler | None = None,
        on_success: SuccessHandler | None = None,
    ) -> None:
        self.store = store
        self.history_store = history_store
        self.date_key = date_key
        self.max_history_size = max_history_size
        self.max_managers = max(1, max_managers)
        self.on_error = on_error
        self.on_success = on_success
        self._managers: OrderedDict[str, HistoryManager] = OrderedDict()
        self._subscribers: list[StatusListener] = []

    # =========================================================================
    # Managers
    # =========================================================================

    async def manager_for(self, date_key: str) -> HistoryManager:
        """Return the manager for date_key, creating and hydrating it on first use."""
        manager = self._managers.get(date_key)
        if manager is not None:
            self._managers.move_to_end(date_key)
            return manager

        manager = HistoryManager(
            date_key,
            self.store,
            self.history_store,
            max_history_size=self.max_history_size,
        )
        await manager.load()
        manager.add_listener(lambda: self._on_manager_change(date_key))
        self._managers[date_key] = manager
        self._evict()
        return manager

    def _evict(self) -> None:
        for date_key in list(self._managers):
            if len(self._managers) <= self.max_managers:
                return
            manager = self._managers[date_key]
            if date_key == self.date_key or manager.is_executing:
                continue
            try:
                manager.flush()
            except PersistenceError:
                logger.warning("Could not save history for %s on eviction", date_key, exc_info=True)
            del self._managers[date_key]

    async def select_date(self, date_key: str) -> HistoryStatus:
        """Make date_key the active history and publish its status."""
        self.date_key = date_key
        await self.manager_for(date_key)
        self._publish()
        return self.status()

    @property
    def active(self) -> HistoryManager | None:
        return self._managers.get(self.date_key)

    # =========================================================================
    # Status
    # =========================================================================

    def status(self) -> HistoryStatus:
        manager = self.active
        if manager is None:
            return HistoryStatus(date_key=self.date_key)
        return HistoryStatus(
            date_key=self.date_key,
            can_undo=manager.can_undo(),
            can_redo=manager.can_redo(),
            undo_description=manager.undo_description(),
            redo_description=manager.redo_description(),
            is_executing=manager.is_executing,
            stack_sizes=manager.stack_sizes(),
        )

    @property
    def can_undo(self) -> bool:
        return self.status().can_undo

    @property
    def can_redo(self) -> bool:
        return self.status().can_redo

    @property
    def undo_description(self) -> str | None:
        return self.status().undo_description

    @property
    def redo_description(self) -> str | None:
        return self.status().redo_description

    @property
    def is_executing(self) -> bool:
        return self.status().is_executing

    @property
    def stack_sizes(self) -> dict[str, int]:
        return self.status().stack_sizes

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Call listener with the new status after every change. Returns an unsubscribe."""
        if listener not in self._subscribers:
            self._subscribers.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._subscribers:
            self._subscribers.remove(listener)

    def _on_manager_change(self, date_key: str) -> None:
        if date_key == self.date_key:
            self._publish()

    def _publish(self) -> None:
        status = self.status()
        for listener in list(self._subscribers):
            try:
                listener(status)
            except Exception:
                logger.exception("History status subscriber error")

    # =========================================================================
    # Operations
    # =========================================================================

    def _report(self, error: UndoRedoError, action: HistoryAction) -> Notice:
        notice = classify_error(error, action)
        if isinstance(error, PersistenceError):
            if error.inconsistent:
                logger.error("History for %s may be inconsistent: %s", self.date_key, error)
            else:
                logger.warning("Persistence failed, but %s was rolled back: %s", action, error)
        elif isinstance(error, CommandExecutionError):
            logger.error("%s failed on %s: %s", action.capitalize(), self.date_key, error)
        if self.on_error is not None:
            self.on_error(notice, error)
        return notice

    async def execute_command(self, command: Command) -> None:
        """Run command on its date's history. Raises on failure after reporting."""
        manager = await self.manager_for(command.date_key)
        try:
            await manager.execute_command(command)
        except UndoRedoError as e:
            self._report(e, "execute")
            raise

    async def undo(self) -> bool:
        manager = await self.manager_for(self.date_key)
        if not manager.can_undo():
            return False
        try:
            done = await manager.undo()
        except UndoRedoError as e:
            self._report(e, "undo")
            return False
        if done and self.on_success is not None:
            self.on_success(success_notice("undo"))
        return done

    async def redo(self) -> bool:
        manager = await self.manager_for(self.date_key)
        if not manager.can_redo():
            return False
        try:
            done = await manager.redo()
        except UndoRedoError as e:
            self._report(e, "redo")
            return False
        if done and self.on_success is not None:
            self.on_success(success_notice("redo"))
        return done

    async def clear_history(self) -> None:
        manager = await self.manager_for(self.date_key)
        try:
            await manager.clear_history()
        except UndoRedoError as e:
            self._report(e, "clear")
            raise

    def close(self) -> None:
        """Flush every live manager. Raises the first PersistenceError seen."""
        first_error: PersistenceError | None = None
        for date_key, manager in self._managers.items():
            try:
                manager.flush()
            except PersistenceError as e:
                logger.warning("Could not save history for %s on close", date_key, exc_info=True)
                if first_error is None:
                    first_error = e
        self._managers.clear()
        if first_error is not None:
            raise first_error
