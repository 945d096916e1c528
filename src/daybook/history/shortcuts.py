"""Keyboard wiring for undo/redo.

Primary modifier is ctrl, or cmd/super on macOS.

    primary+z        undo
    primary+shift+z  redo
    primary+y        redo

Shortcuts are ignored while focus is in a text-editing control, unless
alt is held as well.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from daybook.history.controller import HistoryController


ShortcutAction = Literal["undo", "redo"]

OVERRIDE_MODIFIER = "alt"


def primary_modifiers(platform: str | None = None) -> frozenset[str]:
    platform = platform or sys.platform
    if platform == "darwin":
        return frozenset({"super", "meta", "cmd"})
    return frozenset({"ctrl"})


def parse_key(key: str) -> tuple[frozenset[str], str]:
    """Split a key string like "ctrl+shift+z" into (modifiers, key name)."""
    *mods, name = key.split("+")
    modifiers = {m.lower() for m in mods}
    if len(name) == 1 and name.isalpha() and name.isupper():
        modifiers.add("shift")
    return frozenset(modifiers), name.lower()


def resolve_shortcut(
    key: str, *, in_text_input: bool = False, platform: str | None = None
) -> ShortcutAction | None:
    modifiers, name = parse_key(key)
    if in_text_input and OVERRIDE_MODIFIER not in modifiers:
        return None
    if not modifiers & primary_modifiers(platform):
        return None
    if name == "z":
        return "redo" if "shift" in modifiers else "undo"
    if name == "y":
        return "redo"
    return None


async def handle_shortcut(
    controller: "HistoryController",
    key: str,
    *,
    in_text_input: bool = False,
    platform: str | None = None,
) -> ShortcutAction | None:
    """Run the undo/redo bound to key, if any. Returns the matched action."""
    action = resolve_shortcut(key, in_text_input=in_text_input, platform=platform)
    if action == "undo":
        if controller.can_undo:
            await controller.undo()
    elif action == "redo":
        if controller.can_redo:
            await controller.redo()
    return action
