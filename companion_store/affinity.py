"""Affinity row persistence and affinity event logging."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from .schema import format_timestamp, parse_timestamp, utc_now


class RelationshipLabel(Enum):
    STRANGER = "stranger"
    ROMANTIC = "romantic"
    FRIEND = "friend"
    FRENEMY = "frenemy"
    SLOW_BURN = "slow_burn"


def label_from_str(s: str | None) -> RelationshipLabel | None:
    """Map stored label text to a label; unknown or missing text gives None."""
    if s is None:
        return None
    try:
        return RelationshipLabel(s)
    except ValueError:
        return None


def label_to_str(label: RelationshipLabel) -> str:
    """The text under which a label is stored."""
    return label.value


@dataclass
class AffinityDeltas:
    """Per-dimension changes recorded with an affinity event."""

    warmth: float = 0.0
    trust: float = 0.0
    intrigue: float = 0.0
    intimacy: float = 0.0
    patience: float = 0.0
    tension: float = 0.0

    def to_dict(self) -> dict[str, float]:
        """The deltas as a JSON-ready mapping."""
        return asdict(self)


@dataclass
class Affinity:
    id: UUID
    session_id: UUID
    user_id: UUID
    instance_id: UUID
    warmth: float
    trust: float
    intrigue: float
    intimacy: float
    patience: float
    tension: float
    ghost_streak: int
    last_ghost_at: datetime | None
    total_ghosts: int
    relationship_label: RelationshipLabel | None
    created_at: datetime
    updated_at: datetime


def _affinity_from_row(row: sqlite3.Row) -> Affinity:
    last_ghost = row["last_ghost_at"]
    return Affinity(
        id=UUID(row["id"]),
        session_id=UUID(row["session_id"]),
        user_id=UUID(row["user_id"]),
        instance_id=UUID(row["instance_id"]),
        warmth=float(row["warmth"]),
        trust=float(row["trust"]),
        intrigue=float(row["intrigue"]),
        intimacy=float(row["intimacy"]),
        patience=float(row["patience"]),
        tension=float(row["tension"]),
        ghost_streak=int(row["ghost_streak"]),
        last_ghost_at=None if last_ghost is None else parse_timestamp(last_ghost),
        total_ghosts=int(row["total_ghosts"]),
        relationship_label=label_from_str(row["relationship_label"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


@dataclass
class AffinityRepo:
    """Reads and writes the per-session affinity vector and its event log."""

    conn: sqlite3.Connection = field(repr=False)

    def load(self, session_id: UUID) -> Affinity | None:
        """The affinity row for ``session_id``, if one exists."""
        row = self.conn.execute(
            "SELECT * FROM companion_affinity WHERE session_id = ?", (str(session_id),)
        ).fetchone()
        return None if row is None else _affinity_from_row(row)

    def load_or_create(self, session_id: UUID, user_id: UUID, instance_id: UUID) -> Affinity:
        """Load the existing row or insert one with default values."""
        existing = self.load(session_id)
        if existing is not None:
            return existing
        now = format_timestamp(utc_now())
        with self.conn:
            self.conn.execute(
                "INSERT INTO companion_affinity "
                "(id, session_id, user_id, instance_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (str(uuid4()), str(session_id), str(user_id), str(instance_id), now, now),
            )
        created = self.load(session_id)
        assert created is not None
        return created

    def save_with_event(
        self,
        affinity: Affinity,
        deltas: AffinityDeltas,
        event_type: str,
        context: Any,
    ) -> None:
        """Persist the affinity vector and label and log one event, atomically."""
        now = utc_now()
        label = affinity.relationship_label
        with self.conn:
            self.conn.execute(
                "UPDATE companion_affinity SET warmth = ?, trust = ?, intrigue = ?, "
                "intimacy = ?, patience = ?, tension = ?, relationship_label = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    affinity.warmth,
                    affinity.trust,
                    affinity.intrigue,
                    affinity.intimacy,
                    affinity.patience,
                    affinity.tension,
                    None if label is None else label_to_str(label),
                    format_timestamp(now),
                    str(affinity.id),
                ),
            )
            self.conn.execute(
                "INSERT INTO companion_affinity_events "
                "(id, affinity_id, event_type, deltas, context, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    str(uuid4()),
                    str(affinity.id),
                    event_type,
                    json.dumps(deltas.to_dict()),
                    json.dumps(context),
                    format_timestamp(now),
                ),
            )
        affinity.updated_at = now

    def record_ghost(self, affinity: Affinity) -> None:
        """Bump the ghost counters, stamp ``last_ghost_at`` and log a ghost event."""
        now = utc_now()
        affinity.ghost_streak += 1
        affinity.total_ghosts += 1
        affinity.last_ghost_at = now
        stamp = format_timestamp(now)
        with self.conn:
            self.conn.execute(
                "UPDATE companion_affinity SET ghost_streak = ?, total_ghosts = ?, "
                "last_ghost_at = ?, updated_at = ? WHERE id = ?",
                (affinity.ghost_streak, affinity.total_ghosts, stamp, stamp, str(affinity.id)),
            )
            self.conn.execute(
                "INSERT INTO companion_affinity_events "
                "(id, affinity_id, event_type, deltas, context, created_at) "
                "VALUES (?, ?, 'ghost', '{}', '{}', ?)",
                (str(uuid4()), str(affinity.id), stamp),
            )

    def count_events(self, affinity_id: UUID) -> int:
        """Number of events logged against ``affinity_id``."""
        (count,) = self.conn.execute(
            "SELECT COUNT(*) FROM companion_affinity_events WHERE affinity_id = ?",
            (str(affinity_id),),
        ).fetchone()
        return int(count)