"""Process-wide undo/redo configuration.

Mutable at runtime through configure(). Managers read the current values
on every operation, so a change applies to the next command.

All time windows are in milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace


DEFAULT_MAX_HISTORY_SIZE = 100
MERGE_TIME_WINDOW = 1000


def _default_merge_windows() -> dict[str, int]:
    return {
        "edit-checklist-item": 1500,
        "reorder-checklist": 500,
    }


@dataclass
class UndoRedoConfig:
    max_history_size: int = DEFAULT_MAX_HISTORY_SIZE
    enable_persistence: bool = True
    merge_time_window: int = MERGE_TIME_WINDOW
    enable_optimistic_updates: bool = True
    # Per-type overrides of merge_time_window
    merge_windows: dict[str, int] = field(default_factory=_default_merge_windows)

    def window_for(self, command_type: str) -> int:
        return self.merge_windows.get(command_type, self.merge_time_window)


_config = UndoRedoConfig()


def configure(**overrides) -> UndoRedoConfig:
    """Update the process-wide configuration. Returns the new config."""
    global _config
    known = {f.name for f in fields(UndoRedoConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown undo/redo settings: {', '.join(sorted(unknown))}")

    overrides = {k: v for k, v in overrides.items() if v is not None}
    if "max_history_size" in overrides and overrides["max_history_size"] < 1:
        raise ValueError("max_history_size must be at least 1")
    if "merge_windows" in overrides:
        overrides["merge_windows"] = {**_config.merge_windows, **overrides["merge_windows"]}

    _config = replace(_config, **overrides)
    return get_config()


def get_config() -> UndoRedoConfig:
    """Return a copy of the current configuration."""
    return replace(_config, merge_windows=dict(_config.merge_windows))


def reset_config() -> None:
    global _config
    _config = UndoRedoConfig()


def settings_from_mapping(section: dict | None) -> dict:
    """Translate the `history:` section of config.yml into configure() kwargs."""
    if not section:
        return {}
    out: dict = {}
    if "max_history_size" in section:
        out["max_history_size"] = int(section["max_history_size"])
    if "enable_persistence" in section:
        out["enable_persistence"] = bool(section["enable_persistence"])
    if "merge_time_window_ms" in section:
        out["merge_time_window"] = int(section["merge_time_window_ms"])
    if "enable_optimistic_updates" in section:
        out["enable_optimistic_updates"] = bool(section["enable_optimistic_updates"])
    if section.get("merge_windows_ms"):
        out["merge_windows"] = {
            str(k): int(v) for k, v in section["merge_windows_ms"].items()
        }
    return out
