"""History manager: the undo/redo state machine for one date key.

States are Idle and Executing. Every command-affecting operation
(execute_command, undo, redo, clear_history, switch_date) runs with
is_executing set; a second call made meanwhile raises HistoryBusyError
instead of queueing.

Each transition follows the same shape:

    apply mutation -> update stacks -> persist -> notify

With optimistic updates disabled the stacks are updated before the
mutation is applied. If persisting fails the mutation is compensated, the
stacks are restored to what they were before the call, and
PersistenceError reports whether the compensation worked.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator

from daybook.db.daystore import DayStore
from daybook.history.commands import Command, deserialize_command, describe_command
from daybook.history.config import UndoRedoConfig, get_config
from daybook.history.errors import (
    CommandExecutionError,
    HistoryBusyError,
    HistoryStoreError,
    PersistenceError,
    RollbackOutcome,
)
from daybook.history.store import HistoryState, HistoryStore


logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Step = Callable[[], Awaitable[None]]


class HistoryManager:
    def __init__(
        self,
        date_key: str,
        store: DayStore,
        history_store: HistoryStore,
        *,
        max_history_size: int | None = None,
        config: UndoRedoConfig | None = None,
    ) -> None:
        self.date_key = date_key
        self.store = store
        self.history_store = history_store
        self._config = config
        self._max_history_size = max_history_size
        self.undo_stack: list[Command] = []
        self.redo_stack: list[Command] = []
        self.is_executing = False
        self.last_outcome = RollbackOutcome.OK
        self._listeners: list[Listener] = []

    @property
    def config(self) -> UndoRedoConfig:
        """Pinned config if one was given, else the live process-wide one."""
        return self._config if self._config is not None else get_config()

    @property
    def max_history_size(self) -> int:
        return self._max_history_size or self.config.max_history_size

    # =========================================================================
    # Status
    # =========================================================================

    def can_undo(self) -> bool:
        return bool(self.undo_stack) and not self.is_executing

    def can_redo(self) -> bool:
        return bool(self.redo_stack) and not self.is_executing

    def undo_description(self) -> str | None:
        return describe_command(self.undo_stack[-1]) if self.undo_stack else None

    def redo_description(self) -> str | None:
        return describe_command(self.redo_stack[-1]) if self.redo_stack else None

    def stack_sizes(self) -> dict[str, int]:
        return {"undo": len(self.undo_stack), "redo": len(self.redo_stack)}

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("History listener error")

    # =========================================================================
    # Persistence
    # =========================================================================

    async def load(self) -> None:
        """Replace both stacks with the persisted history for date_key."""
        self.undo_stack = []
        self.redo_stack = []
        if not self.config.enable_persistence:
            logger.debug("Persistence disabled - starting with empty history")
            return

        try:
            state = self.history_store.get(self.date_key)
        except HistoryStoreError:
            logger.warning("Failed to load history for %s, starting fresh", self.date_key, exc_info=True)
            return
        if state is None:
            return

        undo = self._hydrate(state.undo_stack, "undo")
        self.undo_stack = undo[-self.max_history_size:]
        self.redo_stack = self._hydrate(state.redo_stack, "redo")
        logger.debug(
            "Loaded history for %s: %d undo, %d redo commands",
            self.date_key,
            len(self.undo_stack),
            len(self.redo_stack),
        )

    def _hydrate(self, entries: list[dict], stack: str) -> list[Command]:
        commands = []
        for entry in entries:
            try:
                commands.append(deserialize_command(entry, self.store))
            except Exception as e:
                logger.warning(
                    "Dropping %s history entry %s (%s) for %s: %s",
                    stack,
                    entry.get("id") if isinstance(entry, dict) else "?",
                    entry.get("type") if isinstance(entry, dict) else "?",
                    self.date_key,
                    e,
                )
        return commands

    def _save(self) -> None:
        if not self.config.enable_persistence:
            return
        state = HistoryState(
            date_key=self.date_key,
            undo_stack=[c.serialize() for c in self.undo_stack],
            redo_stack=[c.serialize() for c in self.redo_stack],
            max_history_size=self.max_history_size,
        )
        self.history_store.put(state)

    def flush(self) -> None:
        """Persist the current stacks. Raises PersistenceError."""
        try:
            self._save()
        except HistoryStoreError as e:
            raise PersistenceError(f"Failed to persist history for {self.date_key}", e) from e

    # =========================================================================
    # Transitions
    # =========================================================================

    @contextmanager
    def _running(self) -> Iterator[None]:
        """Hold the busy flag for one operation; listeners run once it is released."""
        if self.is_executing:
            raise HistoryBusyError()
        self.is_executing = True
        try:
            yield
        finally:
            self.is_executing = False
            self._notify()

    def _trim(self) -> None:
        overflow = len(self.undo_stack) - self.max_history_size
        if overflow > 0:
            del self.undo_stack[:overflow]

    async def _apply(self, step: Step, what: str) -> None:
        try:
            await step()
        except Exception as e:
            raise CommandExecutionError(f"{what} failed: {e}", e) from e

    async def _transition(
        self,
        what: str,
        apply: Step,
        bookkeep: Callable[[], None],
        compensate: list[Step],
    ) -> None:
        prev_undo = list(self.undo_stack)
        prev_redo = list(self.redo_stack)

        if self.config.enable_optimistic_updates:
            await self._apply(apply, what)
            bookkeep()
        else:
            bookkeep()
            try:
                await self._apply(apply, what)
            except CommandExecutionError:
                self.undo_stack, self.redo_stack = prev_undo, prev_redo
                raise

        try:
            self._save()
        except HistoryStoreError as e:
            await self._roll_back(what, e, compensate, prev_undo, prev_redo)

        self.last_outcome = RollbackOutcome.OK

    async def _roll_back(
        self,
        what: str,
        error: HistoryStoreError,
        compensate: list[Step],
        prev_undo: list[Command],
        prev_redo: list[Command],
    ) -> None:
        rollback_error: BaseException | None = None
        try:
            for step in compensate:
                await step()
        except Exception as e:
            rollback_error = e
            logger.exception(
                "Failed to roll back %s after persistence failure on %s; "
                "day record may not match the undo history",
                what,
                self.date_key,
            )

        outcome = (
            RollbackOutcome.INCONSISTENT if rollback_error is not None
            else RollbackOutcome.SOFT_FAILURE
        )
        self.undo_stack, self.redo_stack = prev_undo, prev_redo
        self.last_outcome = outcome
        raise PersistenceError(
            f"Failed to persist {what}",
            error,
            outcome=outcome,
            rollback_error=rollback_error,
        ) from error

    async def execute_command(self, command: Command) -> None:
        """Apply a new command, merging it into the stack top when allowed."""
        with self._running():
            top = self.undo_stack[-1] if self.undo_stack else None
            merged = None
            if top is not None:
                merged = command.merge(top, self.config.window_for(command.type))

            if merged is not None:

                def replace_top() -> None:
                    self.undo_stack[-1] = merged

                # Back to the predecessor's after-state, which stays on top
                await self._transition(
                    "command", merged.execute, replace_top, [merged.undo, top.execute]
                )
                return

            def push() -> None:
                self.undo_stack.append(command)
                self.redo_stack = []
                self._trim()

            await self._transition("command", command.execute, push, [command.undo])

    async def undo(self) -> bool:
        """Revert the newest command. Returns False if there is nothing to undo."""
        with self._running():
            if not self.undo_stack:
                return False
            command = self.undo_stack[-1]

            def bookkeep() -> None:
                self.undo_stack.pop()
                self.redo_stack.append(command)

            await self._transition("undo", command.undo, bookkeep, [command.execute])
            return True

    async def redo(self) -> bool:
        """Re-apply the newest undone command. Returns False if there is none."""
        with self._running():
            if not self.redo_stack:
                return False
            command = self.redo_stack[-1]

            def bookkeep() -> None:
                self.redo_stack.pop()
                self.undo_stack.append(command)
                self._trim()

            await self._transition("redo", command.execute, bookkeep, [command.undo])
            return True

    async def clear_history(self) -> None:
        """Drop both stacks for the current date and persist the empty state."""
        with self._running():
            prev_undo, prev_redo = self.undo_stack, self.redo_stack
            self.undo_stack, self.redo_stack = [], []
            try:
                self._save()
            except HistoryStoreError as e:
                self.undo_stack, self.redo_stack = prev_undo, prev_redo
                raise PersistenceError("Failed to persist cleared history", e) from e

    async def switch_date(self, date_key: str) -> None:
        """Save the current history, then load the one for date_key."""
        if date_key == self.date_key:
            return
        with self._running():
            self.flush()
            self.date_key = date_key
            await self.load()
