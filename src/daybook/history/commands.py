"""Command catalog: reversible mutations against the day-record store.

Each command is a dataclass tagged with a `type`. Execute/undo live on the
variant; merging, descriptions and (de)serialization are match statements
over the closed set of variants below. Adding a variant means adding a
class and one arm to each match.

A command captures whatever prior state its undo needs the first time it
runs: the created record for adds, the deleted snapshot for deletes, the
previous flag for toggles, the previous ordering for reorders.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Literal

from daybook.db.daystore import (
    ChecklistItem,
    DayStore,
    Note,
    RecordNotFoundError,
    utcnow,
)
from daybook.history.config import get_config


logger = logging.getLogger(__name__)


CommandType = Literal[
    "add-note",
    "edit-note",
    "delete-note",
    "add-checklist-item",
    "edit-checklist-item",
    "toggle-checklist-item",
    "delete-checklist-item",
    "reorder-checklist",
    "batch",
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _parse_timestamp(raw: str) -> datetime:
    # Histories written by browsers end in "Z"
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


# =============================================================================
# Base
# =============================================================================

@dataclass(kw_only=True, eq=False)
class Command:
    store: DayStore = field(repr=False)
    date_key: str
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=utcnow)

    type: ClassVar[CommandType]

    async def execute(self) -> None:
        raise NotImplementedError

    async def undo(self) -> None:
        raise NotImplementedError

    def merge(self, predecessor: "Command", window: int | None = None) -> "Command | None":
        """Fuse with the command directly below on the undo stack, if allowed."""
        return merge_commands(predecessor, self, window)

    def serialize(self) -> dict:
        return serialize_command(self)

    @property
    def description(self) -> str:
        return describe_command(self)


# =============================================================================
# Notes
# =============================================================================

@dataclass(kw_only=True, eq=False)
class AddNoteCommand(Command):
    type: ClassVar[CommandType] = "add-note"

    content: str
    note: Note | None = None

    async def execute(self) -> None:
        if self.note is None:
            self.note = await self.store.add_note(self.date_key, self.content)
        else:
            # Redo puts back the same note rather than minting a new id
            await self.store.restore_note(self.date_key, self.note)

    async def undo(self) -> None:
        if self.note is not None:
            await self.store.delete_note(self.date_key, self.note.id)


@dataclass(kw_only=True, eq=False)
class EditNoteCommand(Command):
    type: ClassVar[CommandType] = "edit-note"

    note_id: str
    old_content: str
    new_content: str

    async def execute(self) -> None:
        await self.store.update_note(self.date_key, self.note_id, self.new_content)

    async def undo(self) -> None:
        await self.store.update_note(self.date_key, self.note_id, self.old_content)


@dataclass(kw_only=True, eq=False)
class DeleteNoteCommand(Command):
    type: ClassVar[CommandType] = "delete-note"

    note_id: str
    deleted_note: Note | None = None

    async def execute(self) -> None:
        day = await self.store.get_day_data(self.date_key)
        note = day.find_note(self.note_id) if day else None
        if note is None:
            raise RecordNotFoundError(f"Note {self.note_id} not found on {self.date_key}")
        self.deleted_note = note
        await self.store.delete_note(self.date_key, self.note_id)

    async def undo(self) -> None:
        if self.deleted_note is not None:
            await self.store.restore_note(self.date_key, self.deleted_note)


# =============================================================================
# Checklist
# =============================================================================

@dataclass(kw_only=True, eq=False)
class AddChecklistItemCommand(Command):
    type: ClassVar[CommandType] = "add-checklist-item"

    text: str
    original_date: str | None = None
    item: ChecklistItem | None = None

    async def execute(self) -> None:
        if self.item is None:
            self.item = await self.store.add_checklist_item(
                self.date_key, self.text, original_date=self.original_date
            )
        else:
            await self.store.restore_checklist_item(self.date_key, self.item)

    async def undo(self) -> None:
        if self.item is not None:
            await self.store.delete_checklist_item(self.date_key, self.item.id)


@dataclass(kw_only=True, eq=False)
class EditChecklistItemCommand(Command):
    type: ClassVar[CommandType] = "edit-checklist-item"

    item_id: str
    old_text: str
    new_text: str

    async def execute(self) -> None:
        await self.store.update_checklist_item(self.date_key, self.item_id, text=self.new_text)

    async def undo(self) -> None:
        await self.store.update_checklist_item(self.date_key, self.item_id, text=self.old_text)


@dataclass(kw_only=True, eq=False)
class ToggleChecklistItemCommand(Command):
    type: ClassVar[CommandType] = "toggle-checklist-item"

    item_id: str
    completed_before: bool | None = None

    async def _current(self) -> ChecklistItem:
        day = await self.store.get_day_data(self.date_key)
        item = day.find_item(self.item_id) if day else None
        if item is None:
            raise RecordNotFoundError(
                f"Checklist item {self.item_id} not found on {self.date_key}"
            )
        return item

    async def execute(self) -> None:
        item = await self._current()
        self.completed_before = item.completed
        await self.store.update_checklist_item(
            self.date_key, self.item_id, completed=not item.completed
        )

    async def undo(self) -> None:
        if self.completed_before is None:
            # No captured flag (never executed here): flip whatever is stored
            item = await self._current()
            restored = not item.completed
        else:
            restored = self.completed_before
        await self.store.update_checklist_item(self.date_key, self.item_id, completed=restored)


@dataclass(kw_only=True, eq=False)
class DeleteChecklistItemCommand(Command):
    type: ClassVar[CommandType] = "delete-checklist-item"

    item_id: str
    deleted_item: ChecklistItem | None = None

    async def execute(self) -> None:
        day = await self.store.get_day_data(self.date_key)
        item = day.find_item(self.item_id) if day else None
        if item is None:
            raise RecordNotFoundError(
                f"Checklist item {self.item_id} not found on {self.date_key}"
            )
        self.deleted_item = item
        await self.store.delete_checklist_item(self.date_key, self.item_id)

    async def undo(self) -> None:
        if self.deleted_item is not None:
            await self.store.restore_checklist_item(self.date_key, self.deleted_item)


@dataclass(kw_only=True, eq=False)
class ReorderChecklistCommand(Command):
    type: ClassVar[CommandType] = "reorder-checklist"

    new_order: list[str]
    old_order: list[str] | None = None

    async def execute(self) -> None:
        # A merged reorder arrives with its predecessor's ordering already set
        if self.old_order is None:
            day = await self.store.get_day_data(self.date_key)
            self.old_order = [item.id for item in day.checklist] if day else []
        await self.store.reorder_checklist_items(self.date_key, self.new_order)

    async def undo(self) -> None:
        if self.old_order:
            await self.store.reorder_checklist_items(self.date_key, self.old_order)


# =============================================================================
# Batch
# =============================================================================

@dataclass(kw_only=True, eq=False)
class BatchCommand(Command):
    """Several commands applied and reverted as one history entry."""

    type: ClassVar[CommandType] = "batch"

    commands: list[Command]
    label: str = "Batch"

    async def execute(self) -> None:
        applied: list[Command] = []
        for command in self.commands:
            try:
                await command.execute()
            except Exception:
                await self._compensate(applied, forward=False)
                raise
            applied.append(command)

    async def undo(self) -> None:
        reverted: list[Command] = []
        for command in reversed(self.commands):
            try:
                await command.undo()
            except Exception:
                await self._compensate(reverted, forward=True)
                raise
            reverted.append(command)

    async def _compensate(self, done: list[Command], *, forward: bool) -> None:
        for command in reversed(done):
            try:
                if forward:
                    await command.execute()
                else:
                    await command.undo()
            except Exception:
                logger.exception(
                    "Batch %s: could not compensate %s command %s",
                    self.id,
                    command.type,
                    command.id,
                )


# =============================================================================
# Merging
# =============================================================================

def merge_commands(
    predecessor: Command, current: Command, window: int | None = None
) -> Command | None:
    """Fuse two consecutive commands into one, or return None.

    The result keeps the predecessor's "before" state, the current
    command's "after" state, and the current command's timestamp.
    """
    if predecessor.type != current.type or predecessor.date_key != current.date_key:
        return None

    if window is None:
        window = get_config().window_for(current.type)
    delta_ms = (current.timestamp - predecessor.timestamp).total_seconds() * 1000
    if not 0 <= delta_ms < window:
        return None

    match (predecessor, current):
        case (EditNoteCommand() as prev, EditNoteCommand() as cur) if prev.note_id == cur.note_id:
            return EditNoteCommand(
                store=cur.store,
                date_key=cur.date_key,
                timestamp=cur.timestamp,
                note_id=cur.note_id,
                old_content=prev.old_content,
                new_content=cur.new_content,
            )

        case (EditChecklistItemCommand() as prev, EditChecklistItemCommand() as cur) if (
            prev.item_id == cur.item_id
        ):
            return EditChecklistItemCommand(
                store=cur.store,
                date_key=cur.date_key,
                timestamp=cur.timestamp,
                item_id=cur.item_id,
                old_text=prev.old_text,
                new_text=cur.new_text,
            )

        case (ReorderChecklistCommand() as prev, ReorderChecklistCommand() as cur):
            return ReorderChecklistCommand(
                store=cur.store,
                date_key=cur.date_key,
                timestamp=cur.timestamp,
                new_order=list(cur.new_order),
                old_order=list(prev.old_order) if prev.old_order is not None else None,
            )

        case _:
            return None


# =============================================================================
# Descriptions
# =============================================================================

def describe_command(command: Command) -> str:
    """Human-readable label derived from the command type."""
    match command:
        case AddNoteCommand():
            return "Add note"
        case EditNoteCommand():
            return "Edit note"
        case DeleteNoteCommand():
            return "Delete note"
        case AddChecklistItemCommand():
            return "Add checklist item"
        case EditChecklistItemCommand():
            return "Edit checklist item"
        case ToggleChecklistItemCommand():
            return "Toggle checklist item"
        case DeleteChecklistItemCommand():
            return "Delete checklist item"
        case ReorderChecklistCommand():
            return "Reorder checklist"
        case BatchCommand(label=label):
            return label
        case _:
            return "Action"


# =============================================================================
# Serialization
# =============================================================================

def _payload(command: Command) -> dict:
    match command:
        case AddNoteCommand(content=content, note=note):
            return {"content": content, "note": note.to_dict() if note else None}
        case EditNoteCommand(note_id=note_id, old_content=old, new_content=new):
            return {"noteId": note_id, "oldContent": old, "newContent": new}
        case DeleteNoteCommand(note_id=note_id, deleted_note=note):
            return {"noteId": note_id, "deletedNote": note.to_dict() if note else None}
        case AddChecklistItemCommand(text=text, original_date=original, item=item):
            return {
                "text": text,
                "originalDate": original,
                "item": item.to_dict() if item else None,
            }
        case EditChecklistItemCommand(item_id=item_id, old_text=old, new_text=new):
            return {"itemId": item_id, "oldText": old, "newText": new}
        case ToggleChecklistItemCommand(item_id=item_id, completed_before=before):
            return {"itemId": item_id, "completedBefore": before}
        case DeleteChecklistItemCommand(item_id=item_id, deleted_item=item):
            return {"itemId": item_id, "deletedItem": item.to_dict() if item else None}
        case ReorderChecklistCommand(new_order=new, old_order=old):
            return {"newOrder": list(new), "oldOrder": list(old) if old is not None else None}
        case BatchCommand(commands=commands, label=label):
            return {
                "commands": [serialize_command(c) for c in commands],
                "description": label,
            }
        case _:
            raise TypeError(f"Cannot serialize {type(command).__name__}")


def serialize_command(command: Command) -> dict:
    return {
        "id": command.id,
        "type": command.type,
        "dateKey": command.date_key,
        "timestamp": command.timestamp.isoformat(),
        "data": _payload(command),
    }


def deserialize_command(data: dict, store: DayStore) -> Command:
    """Rebuild a command from its serialized form.

    Raises ValueError for an unknown type and KeyError/TypeError for a
    malformed payload. A batch with any undecodable member fails as a whole.
    """
    common = {
        "store": store,
        "date_key": data["dateKey"],
        "id": data["id"],
        "timestamp": _parse_timestamp(data["timestamp"]),
    }
    payload = data.get("data") or {}

    match data["type"]:
        case "add-note":
            note = payload.get("note")
            return AddNoteCommand(
                **common,
                content=payload["content"],
                note=Note.from_dict(note) if note else None,
            )
        case "edit-note":
            return EditNoteCommand(
                **common,
                note_id=payload["noteId"],
                old_content=payload["oldContent"],
                new_content=payload["newContent"],
            )
        case "delete-note":
            note = payload.get("deletedNote")
            return DeleteNoteCommand(
                **common,
                note_id=payload["noteId"],
                deleted_note=Note.from_dict(note) if note else None,
            )
        case "add-checklist-item":
            item = payload.get("item")
            return AddChecklistItemCommand(
                **common,
                text=payload["text"],
                original_date=payload.get("originalDate"),
                item=ChecklistItem.from_dict(item) if item else None,
            )
        case "edit-checklist-item":
            return EditChecklistItemCommand(
                **common,
                item_id=payload["itemId"],
                old_text=payload["oldText"],
                new_text=payload["newText"],
            )
        case "toggle-checklist-item":
            return ToggleChecklistItemCommand(
                **common,
                item_id=payload["itemId"],
                completed_before=payload.get("completedBefore"),
            )
        case "delete-checklist-item":
            item = payload.get("deletedItem")
            return DeleteChecklistItemCommand(
                **common,
                item_id=payload["itemId"],
                deleted_item=ChecklistItem.from_dict(item) if item else None,
            )
        case "reorder-checklist":
            old = payload.get("oldOrder")
            return ReorderChecklistCommand(
                **common,
                new_order=list(payload["newOrder"]),
                old_order=list(old) if old is not None else None,
            )
        case "batch":
            return BatchCommand(
                **common,
                commands=[deserialize_command(c, store) for c in payload["commands"]],
                label=payload.get("description") or "Batch",
            )
        case unknown:
            raise ValueError(f"Unknown command type: {unknown}")
