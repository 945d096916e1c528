"""Error taxonomy for the undo/redo engine.

Everything the history manager raises derives from UndoRedoError so the
façade can classify failures for display without knowing the manager's
internals.
"""

from __future__ import annotations

from enum import Enum


class RollbackOutcome(str, Enum):
    """Result of compensating a mutation whose save failed."""

    OK = "ok"
    SOFT_FAILURE = "soft-failure"
    INCONSISTENT = "inconsistent"


class UndoRedoError(Exception):
    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CommandExecutionError(UndoRedoError):
    """The forward or inverse mutation itself failed. Stacks are unchanged."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Command execution failed: {message}", cause)


class PersistenceError(UndoRedoError):
    """The mutation succeeded but saving the history did not.

    outcome is SOFT_FAILURE when the mutation was rolled back cleanly and
    INCONSISTENT when the rollback itself failed, leaving the day record
    possibly out of step with the undo stack.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        outcome: RollbackOutcome = RollbackOutcome.SOFT_FAILURE,
        rollback_error: BaseException | None = None,
    ) -> None:
        super().__init__(f"Persistence failed: {message}", cause)
        self.outcome = outcome
        self.rollback_error = rollback_error

    @property
    def inconsistent(self) -> bool:
        return self.outcome is RollbackOutcome.INCONSISTENT


class HistoryBusyError(UndoRedoError):
    """Another command is in flight on the same history."""

    def __init__(self, message: str = "Cannot execute command while another command is executing") -> None:
        super().__init__(message)


class HistoryStoreError(Exception):
    """The history store could not read or write a state record."""
