"""SQLite connection handling, table definitions and timestamp helpers."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Same fixed-width text as format_timestamp, so stored values sort correctly.
_NOW_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%f000Z', 'now'))"

# A random version-4 UUID in canonical text form.
_UUID_DEFAULT = (
    "(lower(hex(randomblob(4)) || '-' || hex(randomblob(2)) || '-4' || "
    "substr(hex(randomblob(2)), 2) || '-' || "
    "substr('89ab', 1 + (random() & 3), 1) || substr(hex(randomblob(2)), 2) || '-' || "
    "hex(randomblob(6))))"
)

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS chat_sessions (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    user_id TEXT NOT NULL,
    instance_id TEXT,
    lead_score REAL NOT NULL DEFAULT 0.0,
    is_converted INTEGER NOT NULL DEFAULT 0,
    last_active_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT},
    metadata TEXT NOT NULL DEFAULT '{{}}',
    classified_at TEXT,
    classification_claimed_at TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);
CREATE INDEX IF NOT EXISTS chat_sessions_user_idx
    ON chat_sessions (user_id, last_active_at);

CREATE TABLE IF NOT EXISTS chat_messages (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    session_id TEXT NOT NULL REFERENCES chat_sessions (id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    extracted_facts TEXT,
    sent_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);
CREATE INDEX IF NOT EXISTS chat_messages_session_idx
    ON chat_messages (session_id, sent_at);

CREATE TABLE IF NOT EXISTS companion_affinity (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    session_id TEXT NOT NULL UNIQUE REFERENCES chat_sessions (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    instance_id TEXT NOT NULL,
    warmth REAL NOT NULL DEFAULT 0.3,
    trust REAL NOT NULL DEFAULT 0.3,
    intrigue REAL NOT NULL DEFAULT 0.5,
    intimacy REAL NOT NULL DEFAULT 0.0,
    patience REAL NOT NULL DEFAULT 0.5,
    tension REAL NOT NULL DEFAULT 0.0,
    ghost_streak INTEGER NOT NULL DEFAULT 0,
    last_ghost_at TEXT,
    total_ghosts INTEGER NOT NULL DEFAULT 0,
    relationship_label TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT},
    updated_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);

CREATE TABLE IF NOT EXISTS companion_affinity_events (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    affinity_id TEXT NOT NULL REFERENCES companion_affinity (id) ON DELETE CASCADE,
    event_type TEXT NOT NULL,
    deltas TEXT NOT NULL DEFAULT '{{}}',
    context TEXT NOT NULL DEFAULT '{{}}',
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);

CREATE TABLE IF NOT EXISTS companion_insights (
    user_id TEXT PRIMARY KEY,
    insights TEXT NOT NULL DEFAULT '{{}}',
    training_level REAL NOT NULL DEFAULT 0.0,
    updated_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);

CREATE TABLE IF NOT EXISTS companion_memories (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    session_id TEXT NOT NULL REFERENCES chat_sessions (id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    instance_id TEXT,
    content TEXT NOT NULL,
    embedding TEXT NOT NULL,
    category TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);
CREATE INDEX IF NOT EXISTS companion_memories_user_idx
    ON companion_memories (user_id, instance_id);

CREATE TABLE IF NOT EXISTS persona_genomes (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    name TEXT NOT NULL,
    system_prompt TEXT NOT NULL,
    tip_personality TEXT,
    avatar_url TEXT,
    art_metadata TEXT NOT NULL DEFAULT '{{}}',
    is_active INTEGER NOT NULL DEFAULT 1,
    asset_id TEXT,
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);
CREATE UNIQUE INDEX IF NOT EXISTS persona_genomes_asset_idx
    ON persona_genomes (asset_id) WHERE asset_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS persona_instances (
    id TEXT PRIMARY KEY DEFAULT {_UUID_DEFAULT},
    genome_id TEXT NOT NULL REFERENCES persona_genomes (id),
    owner_uid TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);

CREATE TABLE IF NOT EXISTS wallet_links (
    user_id TEXT NOT NULL,
    wallet_pubkey TEXT NOT NULL,
    linked INTEGER NOT NULL,
    linked_at TEXT,
    source_updated_at TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT},
    PRIMARY KEY (user_id, wallet_pubkey)
);
CREATE UNIQUE INDEX IF NOT EXISTS wallet_links_active_idx
    ON wallet_links (wallet_pubkey) WHERE linked = 1;

CREATE TABLE IF NOT EXISTS persona_ownership (
    asset_id TEXT PRIMARY KEY,
    persona_id TEXT NOT NULL,
    owner_wallet TEXT NOT NULL,
    source_updated_at TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);

CREATE TABLE IF NOT EXISTS sync_cursors (
    name TEXT PRIMARY KEY,
    cursor_ts TEXT NOT NULL,
    cursor_pk TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT {_NOW_DEFAULT}
);
"""


def _database_path(database_url: str | Path) -> str:
    text = str(database_url)
    for prefix in ("sqlite:///", "sqlite://"):
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    return text or ":memory:"


def connect(database_url: str | Path) -> sqlite3.Connection:
    """Open the database named by ``database_url`` and make sure its tables exist.

    Accepts a plain path, ``":memory:"`` or a ``sqlite:///path`` URL.
    """
    conn = sqlite3.connect(_database_path(database_url), timeout=5.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    create_schema(conn)
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index that is missing. Safe to call repeatedly."""
    conn.executescript(_SCHEMA)
    conn.commit()


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as fixed-width UTC text; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Inverse of :func:`format_timestamp`."""
    return datetime.strptime(text, _TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)