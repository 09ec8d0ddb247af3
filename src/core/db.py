"""SQLite database layer for per-channel state."""

import sqlite3
from pathlib import Path
from typing import Any

_CHANNELS_TABLE = """
CREATE TABLE IF NOT EXISTS channels (
    name                  TEXT    PRIMARY KEY,
    is_enabled            INTEGER NOT NULL DEFAULT 0,
    user_id               TEXT,
    access_token          TEXT,
    facebook_access_token TEXT,
    last_activity_date    TEXT,
    updated_at            TEXT    NOT NULL
);
"""

CHANNEL_COLUMNS = (
    "is_enabled",
    "user_id",
    "access_token",
    "facebook_access_token",
    "last_activity_date",
    "updated_at",
)


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_CHANNELS_TABLE)
    conn.commit()
    return conn


def get_channel(conn: sqlite3.Connection, name: str) -> sqlite3.Row | None:
    """Return the channel row for ``name``, or None if it does not exist."""
    return conn.execute(  # type: ignore[no-any-return]
        "SELECT * FROM channels WHERE name = ?",
        (name,),
    ).fetchone()


def list_channels(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """Return every channel row ordered by name."""
    return conn.execute("SELECT * FROM channels ORDER BY name").fetchall()


def upsert_channel(
    conn: sqlite3.Connection,
    name: str,
    fields: dict[str, Any],
) -> None:
    """Insert a channel row, or update only the given columns if it exists.

    ``fields`` values must already be SQLite-ready (str, int or None).
    Unknown column names raise ValueError.
    """
    unknown = set(fields) - set(CHANNEL_COLUMNS)
    if unknown:
        msg = f"Unknown channel columns: {sorted(unknown)}"
        raise ValueError(msg)

    columns = ["name", *fields]
    placeholders = ", ".join("?" for _ in columns)
    updates = ", ".join(f"{col} = excluded.{col}" for col in fields)
    conflict = f"DO UPDATE SET {updates}" if updates else "DO NOTHING"
    conn.execute(
        f"""
        INSERT INTO channels ({", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT(name) {conflict}
        """,
        (name, *fields.values()),
    )
    conn.commit()
