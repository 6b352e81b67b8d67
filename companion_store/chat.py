"""Chat session and message persistence."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from .schema import format_timestamp, parse_timestamp, utc_now


@dataclass
class ChatSession:
    id: UUID
    user_id: UUID
    instance_id: UUID | None
    lead_score: float
    is_converted: bool
    last_active_at: datetime
    metadata: Any
    # Set after a classification pass; None means still eligible for the next sweep.
    classified_at: datetime | None
    # Claim sentinel set when a sweeper picks the session up.
    classification_claimed_at: datetime | None
    created_at: datetime


@dataclass
class ChatMessage:
    id: UUID
    session_id: UUID
    role: str
    content: str
    extracted_facts: Any | None
    sent_at: datetime


def _opt_uuid(value: str | None) -> UUID | None:
    return None if value is None else UUID(value)


def _opt_str(value: UUID | None) -> str | None:
    return None if value is None else str(value)


def _opt_ts(value: str | None) -> datetime | None:
    return None if value is None else parse_timestamp(value)


def _session_from_row(row: sqlite3.Row) -> ChatSession:
    return ChatSession(
        id=UUID(row["id"]),
        user_id=UUID(row["user_id"]),
        instance_id=_opt_uuid(row["instance_id"]),
        lead_score=float(row["lead_score"]),
        is_converted=bool(row["is_converted"]),
        last_active_at=parse_timestamp(row["last_active_at"]),
        metadata=json.loads(row["metadata"]),
        classified_at=_opt_ts(row["classified_at"]),
        classification_claimed_at=_opt_ts(row["classification_claimed_at"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def _message_from_row(row: sqlite3.Row) -> ChatMessage:
    facts = row["extracted_facts"]
    return ChatMessage(
        id=UUID(row["id"]),
        session_id=UUID(row["session_id"]),
        role=row["role"],
        content=row["content"],
        extracted_facts=None if facts is None else json.loads(facts),
        sent_at=parse_timestamp(row["sent_at"]),
    )


@dataclass
class ChatRepo:
    """Reads and writes chat sessions and their messages."""

    conn: sqlite3.Connection = field(repr=False)

    def create_session(self, user_id: UUID, instance_id: UUID | None) -> ChatSession:
        """Create a new session for ``user_id`` and ``instance_id`` with empty metadata."""
        return self.create_session_with_metadata(user_id, instance_id, {})

    def create_session_with_metadata(
        self, user_id: UUID, instance_id: UUID | None, metadata: Any
    ) -> ChatSession:
        """Create a session whose metadata column is seeded with ``metadata``."""
        session_id = uuid4()
        now = format_timestamp(utc_now())
        with self.conn:
            self.conn.execute(
                "INSERT INTO chat_sessions "
                "(id, user_id, instance_id, metadata, last_active_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (str(session_id), str(user_id), _opt_str(instance_id),
                 json.dumps(metadata), now, now),
            )
        session = self.get_session(session_id)
        assert session is not None
        return session

    def get_session(self, session_id: UUID) -> ChatSession | None:
        """Look up a session by id."""
        row = self.conn.execute(
            "SELECT * FROM chat_sessions WHERE id = ?", (str(session_id),)
        ).fetchone()
        return None if row is None else _session_from_row(row)

    def create_or_resume(self, user_id: UUID, instance_id: UUID | None) -> ChatSession:
        """Resume the most recently active session for the pair, or create one."""
        row = self.conn.execute(
            "SELECT * FROM chat_sessions "
            "WHERE user_id = ? AND instance_id IS ? "
            "ORDER BY last_active_at DESC, rowid DESC LIMIT 1",
            (str(user_id), _opt_str(instance_id)),
        ).fetchone()
        if row is None:
            return self.create_session(user_id, instance_id)
        existing = _session_from_row(row)
        with self.conn:
            self.conn.execute(
                "UPDATE chat_sessions SET last_active_at = ? WHERE id = ?",
                (format_timestamp(utc_now()), str(existing.id)),
            )
        return existing

    def append_message(self, session_id: UUID, role: str, content: str) -> UUID:
        """Add a message to a session and bump the session's activity time."""
        message_id = uuid4()
        now = format_timestamp(utc_now())
        with self.conn:
            self.conn.execute(
                "INSERT INTO chat_messages (id, session_id, role, content, sent_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (str(message_id), str(session_id), role, content, now),
            )
            self.conn.execute(
                "UPDATE chat_sessions SET last_active_at = ? WHERE id = ?",
                (now, str(session_id)),
            )
        return message_id

    def history(self, session_id: UUID, limit: int, offset: int) -> list[ChatMessage]:
        """The most recent ``limit`` messages after skipping ``offset``, oldest first."""
        rows = self.conn.execute(
            "SELECT * FROM chat_messages WHERE session_id = ? "
            "ORDER BY sent_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (str(session_id), limit, offset),
        ).fetchall()
        return [_message_from_row(row) for row in reversed(rows)]

    def list_sessions(self, user_id: UUID) -> list[ChatSession]:
        """All of a user's sessions, most recently active first."""
        rows = self.conn.execute(
            "SELECT * FROM chat_sessions WHERE user_id = ? "
            "ORDER BY last_active_at DESC, rowid DESC",
            (str(user_id),),
        )
        return [_session_from_row(row) for row in rows]