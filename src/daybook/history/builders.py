"""Build commands from the current day record.

CLI and TUI both need "move item 3 to position 1" or "carry over what
I didn't finish"; these helpers turn such requests into catalog commands
without executing them.
"""

from __future__ import annotations

from datetime import date, timedelta

from daybook.db.daystore import DayStore
from daybook.history.commands import (
    AddChecklistItemCommand,
    BatchCommand,
    ReorderChecklistCommand,
)


CARRY_OVER_DAYS = 30


def moved(ids: list[str], item_id: str, position: int) -> list[str]:
    """Return ids with item_id moved to a 1-based position (clamped)."""
    order = [i for i in ids if i != item_id]
    index = min(max(position, 1), len(order) + 1) - 1
    order.insert(index, item_id)
    return order


async def move_item_command(
    store: DayStore, date_key: str, item_id: str, position: int
) -> ReorderChecklistCommand | None:
    """Reorder command moving one item, or None if nothing would change."""
    day = await store.get_day_data(date_key)
    if day is None:
        return None
    current = [item.id for item in day.checklist]
    if item_id not in current:
        return None
    new_order = moved(current, item_id, position)
    if new_order == current:
        return None
    return ReorderChecklistCommand(store=store, date_key=date_key, new_order=new_order)


async def carry_over_command(
    store: DayStore, date_key: str, max_days_back: int = CARRY_OVER_DAYS
) -> BatchCommand | None:
    """One batch adding every unchecked item from recent previous days.

    Items already carried into date_key (same original date and text) are
    skipped. Returns None when there is nothing to carry.
    """
    cutoff = (date.fromisoformat(date_key) - timedelta(days=max_days_back)).isoformat()
    target = await store.get_day_data(date_key)
    seen = {
        (item.original_date, item.text)
        for item in (target.checklist if target else [])
        if item.original_date
    }

    commands = []
    for day, items in await store.get_uncompleted_items_before(date_key):
        if day < cutoff:
            continue
        for item in items:
            key = (item.original_date or day, item.text)
            if key in seen:
                continue
            seen.add(key)
            commands.append(
                AddChecklistItemCommand(
                    store=store,
                    date_key=date_key,
                    text=item.text,
                    original_date=key[0],
                )
            )

    if not commands:
        return None
    return BatchCommand(
        store=store,
        date_key=date_key,
        commands=commands,
        label="Carry over unchecked items",
    )
