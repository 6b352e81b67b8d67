"""Embedding-backed companion memory with profile and relationship layers.

Profile rows hold cross-persona facts about a user and carry no instance id.
Relationship rows hold user-and-persona conversational memory and carry the
persona instance id.
"""

from __future__ import annotations

import math
import sqlite3
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from itertools import groupby
from uuid import UUID, uuid4

from .schema import format_timestamp, parse_timestamp, utc_now


class MemoryLayer(Enum):
    PROFILE = "profile"
    RELATIONSHIP = "relationship"


@dataclass
class MemoryRow:
    id: UUID
    session_id: UUID
    user_id: UUID
    instance_id: UUID | None
    content: str
    # Classifier tag such as "fact" or "preference"; None for raw-turn rows.
    category: str | None
    created_at: datetime


def _format_number(value: float) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        text = str(int(value))
        return "-0" if value == 0 and math.copysign(1.0, value) < 0 else text
    return repr(value)


def format_vector(values: Iterable[float]) -> str:
    """Render a vector as bracketed comma-separated text, e.g. ``"[0.1,0.2,0.3]"``."""
    return "[" + ",".join(_format_number(v) for v in values) + "]"


def parse_vector(text: str) -> list[float]:
    """Inverse of :func:`format_vector`."""
    body = text.strip()
    if not (body.startswith("[") and body.endswith("]")):
        raise ValueError(f"malformed vector text: {text!r}")
    body = body[1:-1].strip()
    if not body:
        return []
    return [float(part) for part in body.split(",")]


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """One minus the cosine similarity; NaN when either vector has zero length."""
    if len(a) != len(b):
        raise ValueError(f"different vector dimensions {len(a)} and {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return math.nan
    similarity = max(-1.0, min(1.0, dot / norm))
    return 1.0 - similarity


def _distance_key(distance: float) -> tuple[bool, float]:
    # NaN sorts after every real distance.
    return (math.isnan(distance), 0.0 if math.isnan(distance) else distance)


def _row_to_memory(row: sqlite3.Row) -> MemoryRow:
    instance = row["instance_id"]
    return MemoryRow(
        id=UUID(row["id"]),
        session_id=UUID(row["session_id"]),
        user_id=UUID(row["user_id"]),
        instance_id=None if instance is None else UUID(instance),
        content=row["content"],
        category=row["category"],
        created_at=parse_timestamp(row["created_at"]),
    )


def _check_limit(value: int, name: str) -> None:
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")


@dataclass
class MemoryRepo:
    """Stores memories with embeddings and finds nearest neighbours by cosine distance."""

    conn: sqlite3.Connection = field(repr=False)

    def upsert(
        self,
        layer: MemoryLayer,
        session_id: UUID,
        user_id: UUID,
        instance_id: UUID | None,
        content: str,
        embedding: Sequence[float],
        category: str | None,
    ) -> UUID:
        """Insert a memory row; the profile layer always stores no instance id."""
        resolved_instance = instance_id if layer is MemoryLayer.RELATIONSHIP else None
        memory_id = uuid4()
        with self.conn:
            self.conn.execute(
                "INSERT INTO companion_memories "
                "(id, session_id, user_id, instance_id, content, embedding, category, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    str(memory_id),
                    str(session_id),
                    str(user_id),
                    None if resolved_instance is None else str(resolved_instance),
                    content,
                    format_vector(embedding),
                    category,
                    format_timestamp(utc_now()),
                ),
            )
        return memory_id

    def _ranked(
        self, rows: Iterable[sqlite3.Row], query: Sequence[float]
    ) -> list[sqlite3.Row]:
        scored = [
            (cosine_distance(parse_vector(row["embedding"]), query), row) for row in rows
        ]
        scored.sort(key=lambda pair: _distance_key(pair[0]))
        return [row for _, row in scored]

    def search_profile_grouped(
        self, user_id: UUID, query_embedding: Sequence[float], k_per_category: int
    ) -> list[MemoryRow]:
        """The nearest ``k_per_category`` categorised profile rows in each category.

        Ordered by category, then by distance within the category.
        """
        rows = self.conn.execute(
            "SELECT * FROM companion_memories "
            "WHERE user_id = ? AND instance_id IS NULL AND category IS NOT NULL "
            "ORDER BY category, rowid",
            (str(user_id),),
        ).fetchall()
        result: list[MemoryRow] = []
        for _, group in groupby(rows, key=lambda row: row["category"]):
            ranked = self._ranked(group, query_embedding)
            result.extend(_row_to_memory(row) for row in ranked[: max(k_per_category, 0)])
        return result

    def search(
        self,
        user_id: UUID,
        instance_id: UUID | None,
        query_embedding: Sequence[float],
        k: int,
    ) -> list[MemoryRow]:
        """The ``k`` nearest rows: profile layer when ``instance_id`` is None,
        otherwise the relationship layer for that instance."""
        _check_limit(k, "k")
        if instance_id is None:
            rows = self.conn.execute(
                "SELECT * FROM companion_memories "
                "WHERE user_id = ? AND instance_id IS NULL ORDER BY rowid",
                (str(user_id),),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM companion_memories "
                "WHERE user_id = ? AND instance_id = ? ORDER BY rowid",
                (str(user_id), str(instance_id)),
            ).fetchall()
        ranked = self._ranked(rows, query_embedding)
        return [_row_to_memory(row) for row in ranked[:k]]