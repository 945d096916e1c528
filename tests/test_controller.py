"""Tests for the HistoryController façade the UIs talk to."""

import asyncio

import pytest

from daybook.history.commands import AddNoteCommand, ToggleChecklistItemCommand
from daybook.history.controller import HistoryController, Notice, classify_error
from daybook.history.errors import (
    CommandExecutionError,
    HistoryBusyError,
    PersistenceError,
    RollbackOutcome,
)


DAY = "2024-03-01"
NEXT_DAY = "2024-03-02"


def add_note(store, text, date_key=DAY):
    return AddNoteCommand(store=store, date_key=date_key, content=text)


@pytest.fixture
def notices():
    return []


@pytest.fixture
def controller(store, history_store, notices):
    return HistoryController(
        store,
        history_store,
        DAY,
        on_error=lambda notice, error: notices.append(notice),
        on_success=notices.append,
    )


def test_status_follows_history(store, controller):
    async def scenario():
        initial = await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))
        return initial

    initial = asyncio.run(scenario())
    assert not initial.can_undo
    assert controller.can_undo
    assert not controller.can_redo
    assert controller.undo_description == "Add note"
    assert controller.redo_description is None
    assert controller.stack_sizes == {"undo": 1, "redo": 0}
    assert not controller.is_executing


def test_undo_redo_report_success(store, controller, notices):
    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))
        return await controller.undo(), await controller.redo(), await controller.redo()

    assert asyncio.run(scenario()) == (True, True, False)
    assert notices == [
        Notice("information", "Action undone"),
        Notice("information", "Action redone"),
    ]


def test_histories_are_per_date(store, controller):
    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "today"))
        await controller.select_date(NEXT_DAY)
        other = controller.status()
        # Commands go to the history of their own date, not the selected one
        await controller.execute_command(add_note(store, "back-filled", date_key=DAY))
        await controller.select_date(DAY)
        return other

    other = asyncio.run(scenario())
    assert other.date_key == NEXT_DAY
    assert not other.can_undo
    assert controller.stack_sizes == {"undo": 2, "redo": 0}


def test_subscribers_see_active_date_changes(store, controller):
    seen = []

    async def scenario():
        unsubscribe = controller.subscribe(seen.append)
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))
        await controller.execute_command(add_note(store, "elsewhere", date_key=NEXT_DAY))
        unsubscribe()
        await controller.undo()

    asyncio.run(scenario())
    assert [s.stack_sizes["undo"] for s in seen] == [0, 1]


def test_failed_execute_is_reported_and_raised(store, controller, notices):
    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(
            ToggleChecklistItemCommand(store=store, date_key=DAY, item_id="ghost")
        )

    with pytest.raises(CommandExecutionError):
        asyncio.run(scenario())
    assert notices == [Notice("error", "Failed to execute action")]


def test_failed_undo_returns_false(store, controller, notices, monkeypatch):
    async def broken(date_key, note_id):
        raise RuntimeError("locked")

    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))
        monkeypatch.setattr(store, "delete_note", broken)
        return await controller.undo()

    assert asyncio.run(scenario()) is False
    assert notices == [Notice("error", "Failed to undo action")]
    assert controller.can_undo


def test_persistence_warning(store, failing_history_store):
    notices = []
    controller = HistoryController(
        store, failing_history_store, DAY, on_error=lambda n, e: notices.append(n)
    )

    async def scenario():
        await controller.select_date(DAY)
        failing_history_store.fail = True
        with pytest.raises(PersistenceError):
            await controller.execute_command(add_note(store, "a"))

    asyncio.run(scenario())
    assert notices[0].severity == "warning"
    assert "could not be saved" in notices[0].message


def test_eviction_flushes_least_recently_used(store, failing_history_store):
    controller = HistoryController(store, failing_history_store, DAY, max_managers=2)

    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a", date_key="2024-01-01"))
        puts_before = failing_history_store.puts
        await controller.manager_for("2024-01-02")
        await controller.manager_for("2024-01-03")
        return puts_before

    puts_before = asyncio.run(scenario())
    # 2024-01-01 was evicted (and saved); the active date is never evicted
    assert failing_history_store.puts > puts_before
    assert set(controller._managers) == {DAY, "2024-01-03"}


def test_close_raises_first_save_error(store, failing_history_store):
    controller = HistoryController(store, failing_history_store, DAY)

    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))

    asyncio.run(scenario())
    failing_history_store.fail = True
    with pytest.raises(PersistenceError):
        controller.close()


def test_clear_history(store, controller):
    async def scenario():
        await controller.select_date(DAY)
        await controller.execute_command(add_note(store, "a"))
        await controller.clear_history()

    asyncio.run(scenario())
    assert not controller.can_undo


@pytest.mark.parametrize(
    "error, action, severity, text",
    [
        (PersistenceError("x"), "execute", "warning", "could not be saved"),
        (
            PersistenceError("x", outcome=RollbackOutcome.INCONSISTENT),
            "undo",
            "error",
            "could not be saved or reverted",
        ),
        (CommandExecutionError("x"), "redo", "error", "Failed to redo action"),
        (HistoryBusyError(), "undo", "information", "still being applied"),
        (ValueError("odd"), "execute", "error", "odd"),
    ],
)
def test_classify_error(error, action, severity, text):
    notice = classify_error(error, action)
    assert notice.severity == severity
    assert text in notice.message


def test_subscribers_see_idle_status_after_each_operation(store, controller):
    seen = []

    async def scenario():
        await controller.select_date(DAY)
        controller.subscribe(seen.append)
        await controller.execute_command(add_note(store, "a"))
        await controller.undo()

    asyncio.run(scenario())
    assert [(s.is_executing, s.can_undo, s.can_redo) for s in seen] == [
        (False, True, False),
        (False, False, True),
    ]
