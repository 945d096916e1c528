"""Tests for durable history storage and its in-memory fallback."""

import sqlite3

import pytest

from daybook.history.errors import HistoryStoreError
from daybook.history.store import HistoryState, HistoryStore


DAY = "2024-03-01"


def entry(cid: str) -> dict:
    return {"id": cid, "type": "add-note", "dateKey": DAY, "timestamp": "2024-03-01T09:00:00+00:00",
            "data": {"content": "x", "note": None}}


def test_put_then_get(tmp_path):
    store = HistoryStore(tmp_path / "history.db")
    store.put(HistoryState(date_key=DAY, undo_stack=[entry("a")], redo_stack=[entry("b")]))
    store.close()

    reopened = HistoryStore(tmp_path / "history.db")
    state = reopened.get(DAY)
    reopened.close()

    assert not reopened.is_fallback
    assert [e["id"] for e in state.undo_stack] == ["a"]
    assert [e["id"] for e in state.redo_stack] == ["b"]
    assert state.max_history_size == 100


def test_put_replaces_existing_record(tmp_path):
    store = HistoryStore(tmp_path / "history.db")
    store.put(HistoryState(date_key=DAY, undo_stack=[entry("a")]))
    store.put(HistoryState(date_key=DAY, undo_stack=[]))
    assert store.get(DAY).undo_stack == []
    assert store.date_keys() == [DAY]


def test_missing_record_is_none(tmp_path):
    assert HistoryStore(tmp_path / "history.db").get(DAY) is None


def test_unopenable_file_falls_back_to_memory(tmp_path):
    store = HistoryStore(tmp_path / "no-such-dir" / "history.db")
    assert store.get(DAY) is None
    assert store.is_fallback

    store.put(HistoryState(date_key=DAY, undo_stack=[entry("a")]))
    assert store.get(DAY).undo_stack[0]["id"] == "a"
    assert store.date_keys() == [DAY]


def test_fallback_copies_on_write():
    store = HistoryStore.in_memory()
    stack = [entry("a")]
    store.put(HistoryState(date_key=DAY, undo_stack=stack))
    stack.append(entry("b"))
    assert len(store.get(DAY).undo_stack) == 1


def test_unserializable_state_raises():
    store = HistoryStore.in_memory()
    with pytest.raises(HistoryStoreError):
        store.put(HistoryState(date_key=DAY, undo_stack=[{"id": object()}]))


def test_corrupt_record_raises(tmp_path):
    path = tmp_path / "history.db"
    HistoryStore(path).put(HistoryState(date_key=DAY))
    conn = sqlite3.connect(path)
    conn.execute("UPDATE history SET state = ? WHERE date_key = ?", ("{not json", DAY))
    conn.commit()
    conn.close()

    with pytest.raises(HistoryStoreError):
        HistoryStore(path).get(DAY)


def test_state_dict_uses_wire_names():
    data = HistoryState(date_key=DAY, max_history_size=7, last_modified="t").to_dict()
    assert data == {
        "dateKey": DAY,
        "undoStack": [],
        "redoStack": [],
        "maxHistorySize": 7,
        "lastModified": "t",
    }
    assert HistoryState.from_dict(data) == HistoryState(
        date_key=DAY, max_history_size=7, last_modified="t"
    )
