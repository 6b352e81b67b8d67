# companion_store

A small persistence layer for an AI companion engine, built on SQLite and
the Python standard library only. It keeps what a long-running companion
conversation needs:

- **Chat** (`companion_store.chat`) — sessions per user and persona
  instance, and their message history (`ChatRepo`, `ChatSession`,
  `ChatMessage`).
- **Memory** (`companion_store.memory`) — two-layer long-term memory with
  cosine nearest-neighbour search over embeddings (`MemoryRepo`,
  `MemoryLayer`, `MemoryRow`). The *profile* layer holds cross-persona facts
  about the user; the *relationship* layer holds memories tied to one
  persona instance.
- **Affinity** (`companion_store.affinity`) — a per-session vector (warmth,
  trust, intrigue, intimacy, patience, tension) with a relationship label,
  ghosting counters and an event log (`AffinityRepo`, `Affinity`,
  `AffinityDeltas`, `RelationshipLabel`).
- **Insight** (`companion_store.insight`) — structured facts about a user,
  merged incrementally, with a weighted `training_level` in `[0, 1]`
  (`InsightRepo`, `CompanionInsightsRow`, `compute_training_level`,
  `merge_objects`).
- **Personas** (`companion_store.persona`) — persona genomes and their
  instances (`PersonaRepo`, `PersonaGenome`, `PersonaInstance`,
  `CompanionPersona`).
- **Wallets, ownership and sync cursors** (`companion_store.wallets`,
  `companion_store.ownership`, `companion_store.sync_cursors`) — mirrored
  wallet ↔ user links and persona ownership records with stale-write
  protection and cursor-paginated reads (`WalletLinkRepo`, `WalletLink`,
  `OwnershipRepo`, `Ownership`, `SyncCursorRepo`, `Cursor`).
- **Public keys** (`companion_store.pubkey`) — base58 encoding and
  validation of 32-byte Solana public keys (`b58encode`, `b58decode`,
  `validate_solana_pubkey`).

## Getting started

```python
from companion_store.schema import connect
from companion_store.chat import ChatRepo

conn = connect(":memory:")      # or a file path, or "sqlite:///path/to/db"
chat = ChatRepo(conn)
```

`connect` opens the database with foreign keys enabled and rows returned as
`sqlite3.Row`, and creates every missing table and index. `create_schema`
does the same on a connection you opened yourself; it is safe to call
repeatedly. Every repository is a small dataclass holding the connection.

Timestamps are stored as fixed-width UTC text; `schema.format_timestamp`
and `schema.parse_timestamp` convert between that text and timezone-aware
datetimes (naive datetimes are taken as UTC), and `schema.utc_now` gives the
current time. Identifiers are `uuid.UUID` values; JSON columns hold any
JSON-serialisable value.

## Chat history

```python
from uuid import uuid4

session = chat.create_session(user_id=uuid4(), instance_id=uuid4())
chat.append_message(session.id, "user", "hello")
chat.append_message(session.id, "assistant", "hi there")
[m.content for m in chat.history(session.id, 50, 0)]   # ['hello', 'hi there']
```

- `create_session_with_metadata` seeds the session's JSON `metadata`.
- `get_session` returns the session or `None`.
- `append_message` stores a message, bumps the session's `last_active_at`
  and returns the new message id.
- `history(session_id, limit, offset)` pages backwards from the newest
  message and returns the page in chronological order.
- `create_or_resume` returns the most recently active session for the user
  and instance (bumping its activity time), or creates one.
- `list_sessions` returns a user's sessions, most recently active first.

## Memory search

```python
from companion_store.memory import MemoryRepo, MemoryLayer

memory = MemoryRepo(conn)
memory.upsert(MemoryLayer.PROFILE, session.id, session.user_id, None,
              "lives in Shanghai", [0.0, 1.0, 0.0], "fact")
```

- `upsert` inserts a row and returns its id. For `MemoryLayer.PROFILE` the
  instance id is always stored as `None`; for `MemoryLayer.RELATIONSHIP` the
  given instance id is kept. `category` is an optional classifier tag.
- `search(user_id, instance_id, query_embedding, k)` returns the `k` nearest
  rows by cosine distance — from the profile layer when `instance_id` is
  `None`, otherwise from the relationship layer of that instance. A negative
  `k` raises `ValueError`.
- `search_profile_grouped(user_id, query_embedding, k_per_category)` returns
  up to `k_per_category` nearest profile rows for each category, ordered by
  category and then by distance. Rows without a category are left out.

Embeddings are stored as text such as `"[0.1,0.2,0.3]"` (`format_vector`,
`parse_vector`). `cosine_distance` raises `ValueError` for vectors of
different length and gives NaN when either vector is all zeros; such rows
sort after all others. The search compares every candidate row in Python,
so it suits modest numbers of memories per user.

## Affinity

```python
from companion_store.affinity import AffinityRepo, AffinityDeltas, RelationshipLabel

affinity_repo = AffinityRepo(conn)
affinity = affinity_repo.load_or_create(session.id, session.user_id, session.instance_id)
affinity.warmth += 0.1
affinity.relationship_label = RelationshipLabel.FRIEND
affinity_repo.save_with_event(affinity, AffinityDeltas(warmth=0.1), "message", {"source": "chat"})
```

- `load` returns the row for a session or `None`; `load_or_create` inserts
  one with defaults (warmth 0.3, trust 0.3, intrigue 0.5, intimacy 0.0,
  patience 0.5, tension 0.0, no label) when missing.
- `save_with_event` writes the affinity's current values and label and logs
  one event holding the deltas and context as JSON, in one transaction.
- `record_ghost` increments `ghost_streak` and `total_ghosts`, stamps
  `last_ghost_at` on the object and in the database, and logs a `ghost`
  event.
- `count_events(affinity_id)` counts logged events.
- `label_from_str` / `label_to_str` map labels to their stored text
  (`stranger`, `romantic`, `friend`, `frenemy`, `slow_burn`); unknown text
  maps to `None`.

## Insight

```python
from companion_store.insight import InsightRepo, compute_training_level

compute_training_level({"city": "Shanghai", "interests": ["coffee"]})  # 0.15
InsightRepo(conn).merge(session.user_id, {"occupation": "engineer"})
```

`compute_training_level` sums fixed weights for the known fields that are
filled in (not null, empty string, empty list or empty object), rounds to
three decimals and caps at 1.0. `InsightRepo.merge` shallow-merges new facts
into the stored ones (new keys overwrite old ones), recomputes the level and
returns the stored row; `InsightRepo.load` returns the row or `None`.

## Personas

- `PersonaRepo.upsert_genome(name, system_prompt, tip_personality,
  avatar_url, art_metadata, is_active)` inserts a genome by name and returns
  `(id, True)`, or updates the existing one in place and returns
  `(id, False)`.
- `list_active` returns active genomes ordered by name; `get_genome` returns
  one or `None`.
- `create_instance(genome_id, owner_uid)` creates an active instance.
- `load_companion(instance_id)` returns a `CompanionPersona` joining an
  active instance with its genome, or `None` for missing or non-active
  instances.
- `get_asset_id_for_genome` returns the genome's `asset_id` column, or
  `None` when it is unset or the genome is unknown.

## Wallets, ownership and sync cursors

`WalletLinkRepo.upsert` and `OwnershipRepo.upsert` apply a record only if
its `source_updated_at` is newer than the stored one, and return whether it
was applied. Unlinking a wallet (`linked=False`) keeps the row as a
tombstone; a wallet can be actively linked to at most one user.

`OwnershipRepo.owns(user_id, asset_id)` is true only when the user has an
active link to the wallet that currently owns the asset.

Both repositories have `since(cursor_ts, cursor_pk, limit)`, returning rows
strictly after a compound cursor in cursor order. For ownership the key is
the `asset_id`; for wallet links it is `"{user_id}:{wallet_pubkey}"`, and an
empty string starts at the beginning of `cursor_ts`. A negative `limit`
raises `ValueError`. `SyncCursorRepo.get(name)` returns the stored `Cursor`
or the default (the epoch with an empty key); `SyncCursorRepo.set` replaces
it.

## Public keys

```python
from companion_store.pubkey import validate_solana_pubkey, InvalidBase58, WrongLength

validate_solana_pubkey("11111111111111111111111111111111")
# '11111111111111111111111111111111'
```

The canonical re-encoded form is returned. Input with a character outside
the base58 alphabet raises `InvalidBase58`; input that does not decode to
exactly 32 bytes raises `WrongLength` (its `length` attribute holds the
decoded size). Both derive from `PubkeyError`, a `ValueError`.

## What this package does not do

- It has no command, server or HTTP API; it is a library used from Python.
- It does not compute affinity changes: smoothing deltas into the vector
  and choosing a relationship label are left to the caller, which sets the
  values on the `Affinity` before calling `save_with_event`.
- It does not produce embeddings or classify memories; callers pass
  embedding vectors and categories in.
- It has no method for setting a genome's `asset_id`; that column is only
  read.
- Storage is SQLite only.