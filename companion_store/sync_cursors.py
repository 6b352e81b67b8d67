"""Compound (timestamp, key) cursors for the self-heal sync loop."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .schema import format_timestamp, parse_timestamp, utc_now

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Cursor:
    """A sync position; the default is the start of time with an empty key."""

    cursor_ts: datetime = _EPOCH
    cursor_pk: str = ""


@dataclass
class SyncCursorRepo:
    """Reads and writes named sync cursors."""

    conn: sqlite3.Connection = field(repr=False)

    def get(self, name: str) -> Cursor:
        """The cursor stored under ``name``, or the default cursor if none is stored."""
        row = self.conn.execute(
            "SELECT cursor_ts, cursor_pk FROM sync_cursors WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            return Cursor()
        return Cursor(cursor_ts=parse_timestamp(row["cursor_ts"]), cursor_pk=row["cursor_pk"])

    def set(self, name: str, cursor: Cursor) -> None:
        """Store ``cursor`` under ``name``, replacing any previous value."""
        with self.conn:
            self.conn.execute(
                "INSERT INTO sync_cursors (name, cursor_ts, cursor_pk, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT (name) DO UPDATE SET "
                "cursor_ts = excluded.cursor_ts, "
                "cursor_pk = excluded.cursor_pk, "
                "updated_at = excluded.updated_at",
                (
                    name,
                    format_timestamp(cursor.cursor_ts),
                    cursor.cursor_pk,
                    format_timestamp(utc_now()),
                ),
            )