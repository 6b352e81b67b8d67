"""Persona genome and instance persistence."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from .schema import format_timestamp, utc_now


@dataclass
class PersonaGenome:
    id: UUID
    name: str
    system_prompt: str
    tip_personality: str | None
    avatar_url: str | None
    art_metadata: Any
    is_active: bool


@dataclass
class PersonaInstance:
    id: UUID
    genome_id: UUID
    owner_uid: UUID
    status: str


@dataclass
class CompanionPersona:
    """A persona instance joined with the genome it was made from."""

    instance_id: UUID
    genome: PersonaGenome
    instance: PersonaInstance


_GENOME_COLUMNS = (
    "id, name, system_prompt, tip_personality, avatar_url, art_metadata, is_active"
)


def _genome_from_row(row: sqlite3.Row, id_column: str = "id") -> PersonaGenome:
    return PersonaGenome(
        id=UUID(row[id_column]),
        name=row["name"],
        system_prompt=row["system_prompt"],
        tip_personality=row["tip_personality"],
        avatar_url=row["avatar_url"],
        art_metadata=json.loads(row["art_metadata"]),
        is_active=bool(row["is_active"]),
    )


@dataclass
class PersonaRepo:
    """Reads and writes persona genomes and their instances."""

    conn: sqlite3.Connection = field(repr=False)

    def list_active(self) -> list[PersonaGenome]:
        """Active genomes, ordered by name."""
        rows = self.conn.execute(
            f"SELECT {_GENOME_COLUMNS} FROM persona_genomes "
            "WHERE is_active = 1 ORDER BY name"
        )
        return [_genome_from_row(row) for row in rows]

    def get_genome(self, genome_id: UUID) -> PersonaGenome | None:
        """The genome with ``genome_id``, if it exists."""
        row = self.conn.execute(
            f"SELECT {_GENOME_COLUMNS} FROM persona_genomes WHERE id = ?",
            (str(genome_id),),
        ).fetchone()
        return None if row is None else _genome_from_row(row)

    def load_companion(self, instance_id: UUID) -> CompanionPersona | None:
        """The active instance with ``instance_id`` joined with its genome."""
        row = self.conn.execute(
            "SELECT pi.id AS instance_id, pi.genome_id AS genome_id, "
            "pi.owner_uid AS owner_uid, pi.status AS status, "
            "pg.id AS g_id, pg.name AS name, pg.system_prompt AS system_prompt, "
            "pg.tip_personality AS tip_personality, pg.avatar_url AS avatar_url, "
            "pg.art_metadata AS art_metadata, pg.is_active AS is_active "
            "FROM persona_instances pi "
            "JOIN persona_genomes pg ON pg.id = pi.genome_id "
            "WHERE pi.id = ? AND pi.status = 'active'",
            (str(instance_id),),
        ).fetchone()
        if row is None:
            return None
        instance = PersonaInstance(
            id=UUID(row["instance_id"]),
            genome_id=UUID(row["genome_id"]),
            owner_uid=UUID(row["owner_uid"]),
            status=row["status"],
        )
        return CompanionPersona(
            instance_id=instance.id,
            genome=_genome_from_row(row, id_column="g_id"),
            instance=instance,
        )

    def upsert_genome(
        self,
        name: str,
        system_prompt: str,
        tip_personality: str | None,
        avatar_url: str | None,
        art_metadata: Any,
        is_active: bool,
    ) -> tuple[UUID, bool]:
        """Insert or refresh the genome called ``name``.

        Returns the genome id and True when a new row was inserted, False when
        an existing row was updated in place (its id stays the same).
        """
        values = (system_prompt, tip_personality, avatar_url, json.dumps(art_metadata), int(is_active))
        with self.conn:
            row = self.conn.execute(
                "SELECT id FROM persona_genomes WHERE name = ?", (name,)
            ).fetchone()
            if row is not None:
                genome_id = UUID(row["id"])
                self.conn.execute(
                    "UPDATE persona_genomes SET system_prompt = ?, tip_personality = ?, "
                    "avatar_url = ?, art_metadata = ?, is_active = ? WHERE id = ?",
                    (*values, str(genome_id)),
                )
                return genome_id, False
            genome_id = uuid4()
            self.conn.execute(
                "INSERT INTO persona_genomes "
                "(id, name, system_prompt, tip_personality, avatar_url, art_metadata, "
                "is_active, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (str(genome_id), name, *values, format_timestamp(utc_now())),
            )
        return genome_id, True

    def create_instance(self, genome_id: UUID, owner_uid: UUID) -> UUID:
        """Create an active instance of ``genome_id`` owned by ``owner_uid``."""
        instance_id = uuid4()
        with self.conn:
            self.conn.execute(
                "INSERT INTO persona_instances (id, genome_id, owner_uid, created_at) "
                "VALUES (?, ?, ?, ?)",
                (str(instance_id), str(genome_id), str(owner_uid), format_timestamp(utc_now())),
            )
        return instance_id

    def get_asset_id_for_genome(self, genome_id: UUID) -> str | None:
        """The asset id of an asset-backed genome; None for legacy or unknown genomes."""
        row = self.conn.execute(
            "SELECT asset_id FROM persona_genomes WHERE id = ?", (str(genome_id),)
        ).fetchone()
        return None if row is None else row["asset_id"]