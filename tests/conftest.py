"""Shared fixtures: a scratch SQLite day store and in-memory history.

Coroutines are driven with asyncio.run inside each test.
"""

import pytest

from daybook.db.daystore import DayStore
from daybook.history.config import reset_config
from daybook.history.errors import HistoryStoreError
from daybook.history.store import HistoryStore


DAY = "2024-03-01"


class FailingHistoryStore(HistoryStore):
    """In-memory history store whose writes fail while `fail` is set."""

    def __init__(self):
        super().__init__(None)
        self.fail = False
        self.puts = 0

    def put(self, state):
        if self.fail:
            raise HistoryStoreError("disk full")
        self.puts += 1
        super().put(state)


@pytest.fixture(autouse=True)
def _fresh_history_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store():
    s = DayStore.open(":memory:")
    yield s
    s.close()


@pytest.fixture
def history_store():
    return HistoryStore.in_memory()


@pytest.fixture
def failing_history_store():
    return FailingHistoryStore()
