"""Companion insight storage, JSON merging and training-level scoring."""

from __future__ import annotations

import json
import math
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from .schema import format_timestamp, parse_timestamp, utc_now

# Per-field weights summing to 1.0.
WEIGHTS: tuple[tuple[str, float], ...] = (
    ("city", 0.05),
    ("occupation", 0.05),
    ("interests", 0.10),
    ("mbti_guess", 0.15),
    ("love_values", 0.15),
    ("emotional_needs", 0.15),
    ("life_rhythm", 0.10),
    ("personality_traits", 0.15),
    ("matching_preferences", 0.10),
)


@dataclass
class CompanionInsightsRow:
    user_id: UUID
    insights: Any
    training_level: float
    updated_at: datetime


def _is_populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return bool(value)
    return True


def compute_training_level(insights: Any) -> float:
    """A score in [0.0, 1.0] from which known fields of ``insights`` are filled in."""
    if not isinstance(insights, dict):
        return 0.0
    score = sum(
        weight
        for name, weight in WEIGHTS
        if name in insights and _is_populated(insights[name])
    )
    return min(math.floor(score * 1000.0 + 0.5) / 1000.0, 1.0)


def merge_objects(base: Any, patch: Any) -> Any:
    """Shallow-merge ``patch`` into ``base`` when both are mappings; else return ``base``."""
    if isinstance(base, dict) and isinstance(patch, dict):
        return {**base, **patch}
    return base


def _row_to_insights(row: sqlite3.Row) -> CompanionInsightsRow:
    return CompanionInsightsRow(
        user_id=UUID(row["user_id"]),
        insights=json.loads(row["insights"]),
        training_level=float(row["training_level"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


@dataclass
class InsightRepo:
    """Reads and merges the structured insight blob kept per user."""

    conn: sqlite3.Connection = field(repr=False)

    def load(self, user_id: UUID) -> CompanionInsightsRow | None:
        """The stored insights for ``user_id``, if any."""
        row = self.conn.execute(
            "SELECT * FROM companion_insights WHERE user_id = ?", (str(user_id),)
        ).fetchone()
        return None if row is None else _row_to_insights(row)

    def merge(self, user_id: UUID, new_facts: Any) -> CompanionInsightsRow:
        """Merge ``new_facts`` in, recompute the training level and store the result."""
        existing = self.load(user_id)
        merged = new_facts if existing is None else merge_objects(existing.insights, new_facts)
        level = compute_training_level(merged)
        with self.conn:
            self.conn.execute(
                "INSERT INTO companion_insights (user_id, insights, training_level, updated_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT (user_id) DO UPDATE SET "
                "insights = excluded.insights, "
                "training_level = excluded.training_level, "
                "updated_at = excluded.updated_at",
                (str(user_id), json.dumps(merged), level, format_timestamp(utc_now())),
            )
        stored = self.load(user_id)
        assert stored is not None
        return stored