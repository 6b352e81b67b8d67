"""Mirror of wallet-to-user bindings with stale-write protection.

A partial unique index keeps each wallet actively linked to at most one user.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from .schema import format_timestamp, parse_timestamp, utc_now

_NIL_UUID = UUID(int=0)


@dataclass
class WalletLink:
    user_id: UUID
    wallet_pubkey: str
    linked: bool
    source_updated_at: datetime


def _parse_cursor_pk(cursor_pk: str) -> tuple[UUID, str]:
    user_text, sep, pubkey = cursor_pk.partition(":")
    if not sep:
        return _NIL_UUID, ""
    try:
        return UUID(user_text), pubkey
    except ValueError:
        return _NIL_UUID, pubkey


@dataclass
class WalletLinkRepo:
    """Reads and writes wallet links."""

    conn: sqlite3.Connection = field(repr=False)

    def upsert(
        self,
        user_id: UUID,
        wallet_pubkey: str,
        linked: bool,
        source_updated_at: datetime,
    ) -> bool:
        """Apply the link state if it is newer than what is stored.

        Returns True if the row was written, False if dropped as stale.
        Unlinking keeps the row as a tombstone.
        """
        stamp = format_timestamp(source_updated_at)
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO wallet_links "
                "(user_id, wallet_pubkey, linked, linked_at, source_updated_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (user_id, wallet_pubkey) DO UPDATE SET "
                "linked = excluded.linked, "
                "source_updated_at = excluded.source_updated_at, "
                "updated_at = excluded.updated_at "
                "WHERE excluded.source_updated_at > wallet_links.source_updated_at",
                (
                    str(user_id),
                    wallet_pubkey,
                    int(linked),
                    stamp,
                    stamp,
                    format_timestamp(utc_now()),
                ),
            )
        return cursor.rowcount == 1

    def since(self, cursor_ts: datetime, cursor_pk: str, limit: int) -> list[WalletLink]:
        """Rows strictly after the compound cursor, in cursor order.

        ``cursor_pk`` is ``"{user_id}:{wallet_pubkey}"``; an empty string starts
        from the beginning of ``cursor_ts``.
        """
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")
        cur_user, cur_pubkey = _parse_cursor_pk(cursor_pk)
        rows = self.conn.execute(
            "SELECT user_id, wallet_pubkey, linked, source_updated_at FROM wallet_links "
            "WHERE (source_updated_at, user_id, wallet_pubkey) > (?, ?, ?) "
            "ORDER BY source_updated_at ASC, user_id ASC, wallet_pubkey ASC "
            "LIMIT ?",
            (format_timestamp(cursor_ts), str(cur_user), cur_pubkey, limit),
        )
        return [
            WalletLink(
                user_id=UUID(row["user_id"]),
                wallet_pubkey=row["wallet_pubkey"],
                linked=bool(row["linked"]),
                source_updated_at=parse_timestamp(row["source_updated_at"]),
            )
            for row in rows
        ]