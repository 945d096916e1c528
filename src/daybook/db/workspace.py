"""Workspace helper.

A Daybook workspace is a directory holding `.daybook/`:

    .daybook/config.yml   storage paths and undo/redo settings
    .daybook/days.db      day records (notes, checklist)
    .daybook/history.db   persisted undo/redo stacks
    .daybook/daybook.log  log output

Used by both CLI and TUI.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import yaml

from daybook.db.daystore import DayStore
from daybook.history.config import DEFAULT_MAX_HISTORY_SIZE, configure, settings_from_mapping
from daybook.history.store import HistoryStore


@dataclass(frozen=True)
class Workspace:
    root_dir: Path
    daybook_dir: Path
    cfg: dict
    days: DayStore
    history: HistoryStore


def default_cfg() -> dict:
    return {
        "storage": {
            "days": "days.db",
            "history": "history.db",
        },
        "history": {
            "max_history_size": DEFAULT_MAX_HISTORY_SIZE,
            "enable_persistence": True,
            "merge_time_window_ms": 1000,
            "enable_optimistic_updates": True,
            "merge_windows_ms": {
                "edit-checklist-item": 1500,
                "reorder-checklist": 500,
            },
        },
        "logging": {
            "level": "INFO",
        },
    }


def load_workspace_cfg(root_dir: Path | None = None) -> tuple[Path, Path, dict]:
    root_dir = (root_dir or Path.cwd()).resolve()
    daybook_dir = root_dir / ".daybook"
    if not daybook_dir.exists():
        raise RuntimeError("Not a Daybook workspace (missing .daybook/). Run `daybook init`.")

    cfg_path = daybook_dir / "config.yml"
    if not cfg_path.exists():
        raise RuntimeError("Invalid Daybook workspace (missing config.yml)")

    cfg = yaml.safe_load(cfg_path.read_text()) or {}
    return root_dir, daybook_dir, cfg


def max_history_override() -> int | None:
    """DAYBOOK_MAX_HISTORY, if set to a positive integer."""
    raw = os.environ.get("DAYBOOK_MAX_HISTORY")
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def configure_logging(daybook_dir: Path, cfg: dict) -> None:
    level = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(
        filename=daybook_dir / "daybook.log",
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def apply_history_settings(cfg: dict) -> None:
    settings = settings_from_mapping(cfg.get("history"))
    override = max_history_override()
    if override is not None:
        settings["max_history_size"] = override
    if settings:
        configure(**settings)


@contextmanager
def open_workspace(root_dir: Path | None = None) -> Iterator[Workspace]:
    root_dir, daybook_dir, cfg = load_workspace_cfg(root_dir)
    configure_logging(daybook_dir, cfg)
    apply_history_settings(cfg)

    storage = cfg.get("storage", {})
    days = DayStore.open(daybook_dir / storage.get("days", "days.db"))
    history = HistoryStore(daybook_dir / storage.get("history", "history.db"))
    try:
        yield Workspace(
            root_dir=root_dir,
            daybook_dir=daybook_dir,
            cfg=cfg,
            days=days,
            history=history,
        )
    finally:
        history.close()
        days.close()
