"""Mirror of persona ownership records and the ownership gate check."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from .schema import format_timestamp, parse_timestamp, utc_now


@dataclass
class Ownership:
    asset_id: str
    persona_id: str
    owner_wallet: str
    source_updated_at: datetime


@dataclass
class OwnershipRepo:
    """Reads and writes persona ownership and answers who may use a persona."""

    conn: sqlite3.Connection = field(repr=False)

    def upsert(
        self,
        asset_id: str,
        persona_id: str,
        owner_wallet: str,
        source_updated_at: datetime,
    ) -> bool:
        """Apply the ownership record if it is newer than what is stored.

        Returns True if the row was written, False if dropped as stale.
        """
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO persona_ownership "
                "(asset_id, persona_id, owner_wallet, source_updated_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT (asset_id) DO UPDATE SET "
                "persona_id = excluded.persona_id, "
                "owner_wallet = excluded.owner_wallet, "
                "source_updated_at = excluded.source_updated_at, "
                "updated_at = excluded.updated_at "
                "WHERE excluded.source_updated_at > persona_ownership.source_updated_at",
                (
                    asset_id,
                    persona_id,
                    owner_wallet,
                    format_timestamp(source_updated_at),
                    format_timestamp(utc_now()),
                ),
            )
        return cursor.rowcount == 1

    def since(self, cursor_ts: datetime, cursor_pk: str, limit: int) -> list[Ownership]:
        """Rows strictly after the ``(cursor_ts, asset_id)`` cursor, in cursor order."""
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")
        rows = self.conn.execute(
            "SELECT asset_id, persona_id, owner_wallet, source_updated_at "
            "FROM persona_ownership "
            "WHERE (source_updated_at, asset_id) > (?, ?) "
            "ORDER BY source_updated_at ASC, asset_id ASC "
            "LIMIT ?",
            (format_timestamp(cursor_ts), cursor_pk, limit),
        )
        return [
            Ownership(
                asset_id=row["asset_id"],
                persona_id=row["persona_id"],
                owner_wallet=row["owner_wallet"],
                source_updated_at=parse_timestamp(row["source_updated_at"]),
            )
            for row in rows
        ]

    def owns(self, user_id: UUID, asset_id: str) -> bool:
        """True if ``user_id`` has an active link to the wallet owning ``asset_id``."""
        (found,) = self.conn.execute(
            "SELECT EXISTS ("
            " SELECT 1 FROM persona_ownership po"
            " JOIN wallet_links wl ON wl.wallet_pubkey = po.owner_wallet"
            " WHERE po.asset_id = ? AND wl.user_id = ? AND wl.linked = 1"
            ")",
            (asset_id, str(user_id)),
        ).fetchone()
        return bool(found)