"""Tests for the command catalog: execute/undo, merging, descriptions, wire format."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from daybook.db.daystore import RecordNotFoundError
from daybook.history.commands import (
    AddChecklistItemCommand,
    AddNoteCommand,
    BatchCommand,
    DeleteChecklistItemCommand,
    DeleteNoteCommand,
    EditChecklistItemCommand,
    EditNoteCommand,
    ReorderChecklistCommand,
    ToggleChecklistItemCommand,
    describe_command,
    deserialize_command,
    merge_commands,
)
from daybook.history.config import configure


DAY = "2024-03-01"
T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def at(ms: int) -> datetime:
    return T0 + timedelta(milliseconds=ms)


def snapshot(day):
    """Comparable view of a day, ignoring updated_at stamps."""
    if day is None:
        return [], []
    return (
        [(n.id, n.content) for n in day.notes],
        [(i.id, i.text, i.completed, i.order) for i in day.checklist],
    )


async def seed(store):
    note = await store.add_note(DAY, "Morning pages")
    items = [await store.add_checklist_item(DAY, t) for t in ("Buy milk", "Email Ann", "Run")]
    return note, items


# ── Inverse law ──────────────────────────────────────────────────


@pytest.mark.parametrize(
    "build",
    [
        lambda s, note, items: AddNoteCommand(store=s, date_key=DAY, content="new"),
        lambda s, note, items: EditNoteCommand(
            store=s, date_key=DAY, note_id=note.id, old_content=note.content, new_content="edited"
        ),
        lambda s, note, items: DeleteNoteCommand(store=s, date_key=DAY, note_id=note.id),
        lambda s, note, items: AddChecklistItemCommand(store=s, date_key=DAY, text="Water plants"),
        lambda s, note, items: EditChecklistItemCommand(
            store=s, date_key=DAY, item_id=items[1].id, old_text="Email Ann", new_text="Call Ann"
        ),
        lambda s, note, items: ToggleChecklistItemCommand(store=s, date_key=DAY, item_id=items[0].id),
        lambda s, note, items: DeleteChecklistItemCommand(store=s, date_key=DAY, item_id=items[1].id),
        lambda s, note, items: ReorderChecklistCommand(
            store=s, date_key=DAY, new_order=[items[2].id, items[0].id, items[1].id]
        ),
    ],
    ids=[
        "add-note",
        "edit-note",
        "delete-note",
        "add-item",
        "edit-item",
        "toggle-item",
        "delete-item",
        "reorder",
    ],
)
def test_undo_restores_prior_state(store, build):
    async def scenario():
        note, items = await seed(store)
        before = snapshot(await store.get_day_data(DAY))
        command = build(store, note, items)
        await command.execute()
        during = snapshot(await store.get_day_data(DAY))
        await command.undo()
        after = snapshot(await store.get_day_data(DAY))
        return before, during, after

    before, during, after = asyncio.run(scenario())
    assert during != before
    assert after == before


def test_redo_of_add_reuses_the_same_record(store):
    async def scenario():
        command = AddChecklistItemCommand(store=store, date_key=DAY, text="Buy milk")
        await command.execute()
        first_id = command.item.id
        await command.undo()
        await command.execute()
        day = await store.get_day_data(DAY)
        return first_id, day

    first_id, day = asyncio.run(scenario())
    assert [i.id for i in day.checklist] == [first_id]


def test_delete_undo_puts_item_back_in_place(store):
    async def scenario():
        _, items = await seed(store)
        command = DeleteChecklistItemCommand(store=store, date_key=DAY, item_id=items[0].id)
        await command.execute()
        await command.undo()
        return items, await store.get_day_data(DAY)

    items, day = asyncio.run(scenario())
    assert [i.id for i in day.checklist] == [i.id for i in items]


def test_toggle_undo_restores_captured_flag(store):
    async def scenario():
        item = await store.add_checklist_item(DAY, "Buy milk")
        command = ToggleChecklistItemCommand(store=store, date_key=DAY, item_id=item.id)
        await command.execute()
        # Someone else flips it back meanwhile
        await store.update_checklist_item(DAY, item.id, completed=False)
        await command.undo()
        return command, (await store.get_day_data(DAY)).find_item(item.id)

    command, item = asyncio.run(scenario())
    assert command.completed_before is False
    assert item.completed is False


def test_toggle_undo_without_capture_flips(store):
    async def scenario():
        item = await store.add_checklist_item(DAY, "Buy milk")
        command = ToggleChecklistItemCommand(store=store, date_key=DAY, item_id=item.id)
        await command.undo()
        return (await store.get_day_data(DAY)).find_item(item.id)

    assert asyncio.run(scenario()).completed is True


@pytest.mark.parametrize(
    "command_cls, kwargs",
    [
        (DeleteNoteCommand, {"note_id": "ghost"}),
        (DeleteChecklistItemCommand, {"item_id": "ghost"}),
        (ToggleChecklistItemCommand, {"item_id": "ghost"}),
        (EditNoteCommand, {"note_id": "ghost", "old_content": "a", "new_content": "b"}),
    ],
)
def test_missing_target_raises(store, command_cls, kwargs):
    command = command_cls(store=store, date_key=DAY, **kwargs)
    with pytest.raises(RecordNotFoundError):
        asyncio.run(command.execute())


# ── Batch ────────────────────────────────────────────────────────


def test_batch_applies_and_reverts_as_one(store):
    async def scenario():
        _, items = await seed(store)
        before = snapshot(await store.get_day_data(DAY))
        batch = BatchCommand(
            store=store,
            date_key=DAY,
            label="Tidy up",
            commands=[
                AddChecklistItemCommand(store=store, date_key=DAY, text="New"),
                ToggleChecklistItemCommand(store=store, date_key=DAY, item_id=items[0].id),
                DeleteChecklistItemCommand(store=store, date_key=DAY, item_id=items[2].id),
            ],
        )
        await batch.execute()
        during = await store.get_day_data(DAY)
        await batch.undo()
        return before, during, snapshot(await store.get_day_data(DAY))

    before, during, after = asyncio.run(scenario())
    assert [i.text for i in during.checklist] == ["Buy milk", "Email Ann", "New"]
    assert during.checklist[0].completed is True
    assert after == before


def test_batch_failure_compensates_applied_members(store):
    async def scenario():
        await seed(store)
        before = snapshot(await store.get_day_data(DAY))
        batch = BatchCommand(
            store=store,
            date_key=DAY,
            commands=[
                AddChecklistItemCommand(store=store, date_key=DAY, text="New"),
                DeleteChecklistItemCommand(store=store, date_key=DAY, item_id="ghost"),
            ],
        )
        with pytest.raises(RecordNotFoundError):
            await batch.execute()
        return before, snapshot(await store.get_day_data(DAY))

    before, after = asyncio.run(scenario())
    assert after == before


# ── Merging ──────────────────────────────────────────────────────


def edit_note(store, ms, old, new, note_id="n1", date_key=DAY):
    return EditNoteCommand(
        store=store,
        date_key=date_key,
        timestamp=at(ms),
        note_id=note_id,
        old_content=old,
        new_content=new,
    )


def test_edits_within_window_merge(store):
    merged = merge_commands(edit_note(store, 0, "a", "ab"), edit_note(store, 400, "ab", "abc"))
    assert isinstance(merged, EditNoteCommand)
    assert merged.old_content == "a"
    assert merged.new_content == "abc"
    assert merged.timestamp == at(400)


@pytest.mark.parametrize(
    "current",
    [
        lambda s: edit_note(s, 1000, "ab", "abc"),  # window is exclusive
        lambda s: edit_note(s, -5, "ab", "abc"),  # clock went backwards
        lambda s: edit_note(s, 100, "x", "y", note_id="n2"),
        lambda s: edit_note(s, 100, "ab", "abc", date_key="2024-03-02"),
        lambda s: AddNoteCommand(store=s, date_key=DAY, timestamp=at(100), content="x"),
    ],
    ids=["at-window", "negative-delta", "other-note", "other-day", "other-type"],
)
def test_edits_do_not_merge(store, current):
    assert merge_commands(edit_note(store, 0, "a", "ab"), current(store)) is None


def test_adds_deletes_and_toggles_never_merge(store):
    for build in (
        lambda ms: AddNoteCommand(store=store, date_key=DAY, timestamp=at(ms), content="x"),
        lambda ms: DeleteNoteCommand(store=store, date_key=DAY, timestamp=at(ms), note_id="n1"),
        lambda ms: ToggleChecklistItemCommand(store=store, date_key=DAY, timestamp=at(ms), item_id="i1"),
    ):
        assert merge_commands(build(0), build(10)) is None


def test_per_type_windows(store):
    def edit_item(ms, old, new):
        return EditChecklistItemCommand(
            store=store, date_key=DAY, timestamp=at(ms), item_id="i1", old_text=old, new_text=new
        )

    def reorder(ms, new, old=None):
        return ReorderChecklistCommand(
            store=store, date_key=DAY, timestamp=at(ms), new_order=new, old_order=old
        )

    # Checklist text edits get a longer window than the 1000ms default
    assert merge_commands(edit_item(0, "a", "b"), edit_item(1200, "b", "c")) is not None
    assert merge_commands(edit_note(store, 0, "a", "b"), edit_note(store, 1200, "b", "c")) is None

    # Reorders get a shorter one
    merged = merge_commands(reorder(0, ["b", "a"], ["a", "b"]), reorder(300, ["a", "b"], ["b", "a"]))
    assert merged.old_order == ["a", "b"]
    assert merged.new_order == ["a", "b"]
    assert merge_commands(reorder(0, ["b", "a"]), reorder(600, ["a", "b"])) is None


def test_configured_window_applies(store):
    configure(merge_time_window=5000)
    assert merge_commands(edit_note(store, 0, "a", "b"), edit_note(store, 3000, "b", "c")) is not None


# ── Descriptions ─────────────────────────────────────────────────


def test_descriptions(store):
    assert describe_command(AddNoteCommand(store=store, date_key=DAY, content="x")) == "Add note"
    assert edit_note(store, 0, "a", "b").description == "Edit note"
    assert (
        ReorderChecklistCommand(store=store, date_key=DAY, new_order=[]).description
        == "Reorder checklist"
    )
    assert (
        ToggleChecklistItemCommand(store=store, date_key=DAY, item_id="i").description
        == "Toggle checklist item"
    )
    batch = BatchCommand(store=store, date_key=DAY, commands=[], label="Carry over unchecked items")
    assert batch.description == "Carry over unchecked items"


# ── Wire format ──────────────────────────────────────────────────


def test_serialized_shape(store):
    command = edit_note(store, 0, "a", "b")
    data = command.serialize()
    assert data == {
        "id": command.id,
        "type": "edit-note",
        "dateKey": DAY,
        "timestamp": "2024-03-01T09:00:00+00:00",
        "data": {"noteId": "n1", "oldContent": "a", "newContent": "b"},
    }


def test_deserialize_executed_delete_keeps_snapshot(store):
    async def scenario():
        _, items = await seed(store)
        command = DeleteChecklistItemCommand(store=store, date_key=DAY, item_id=items[1].id)
        await command.execute()
        restored = deserialize_command(command.serialize(), store)
        await restored.undo()
        return items, restored, await store.get_day_data(DAY)

    items, restored, day = asyncio.run(scenario())
    assert isinstance(restored, DeleteChecklistItemCommand)
    assert restored.deleted_item.text == "Email Ann"
    assert [i.id for i in day.checklist] == [i.id for i in items]


def test_deserialize_accepts_z_timestamps(store):
    command = deserialize_command(
        {
            "id": "c1",
            "type": "toggle-checklist-item",
            "dateKey": DAY,
            "timestamp": "2024-03-01T09:00:00.250Z",
            "data": {"itemId": "i1", "completedBefore": True},
        },
        store,
    )
    assert command.timestamp == at(250)
    assert command.completed_before is True


def test_deserialize_unknown_type(store):
    with pytest.raises(ValueError):
        deserialize_command(
            {"id": "c1", "type": "paint-it-black", "dateKey": DAY, "timestamp": T0.isoformat()},
            store,
        )


def test_deserialize_batch_fails_as_a_whole(store):
    good = AddNoteCommand(store=store, date_key=DAY, content="x").serialize()
    bad = {"id": "c2", "type": "edit-note", "dateKey": DAY, "timestamp": T0.isoformat(), "data": {}}
    batch = {
        "id": "b1",
        "type": "batch",
        "dateKey": DAY,
        "timestamp": T0.isoformat(),
        "data": {"commands": [good, bad], "description": "Both"},
    }
    with pytest.raises(KeyError):
        deserialize_command(batch, store)
