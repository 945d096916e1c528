"""Schema migration engine for Daybook.

Applies numbered SQL migration files in order, tracking progress
in a schema_version table. Forward-only, idempotent on re-run.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create schema_version table if it doesn't exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL,
            applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()


def _current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version, or 0."""
    cur = conn.cursor()
    cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version")
    return cur.fetchone()[0]


def _migration_files() -> list[tuple[int, Path]]:
    """Return sorted list of (version, path) for all migration files."""
    if not MIGRATIONS_DIR.exists():
        return []
    files = []
    for p in sorted(MIGRATIONS_DIR.glob("*.sql")):
        # Expected format: 0001_description.sql
        try:
            version = int(p.stem.split("_", 1)[0])
        except (ValueError, IndexError):
            continue
        files.append((version, p))
    return files


def migrate(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations. Returns number of migrations applied."""
    _ensure_version_table(conn)
    current = _current_version(conn)
    applied = 0

    for version, path in _migration_files():
        if version <= current:
            continue
        conn.executescript(path.read_text())
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (version,),
        )
        conn.commit()
        applied += 1

    return applied
