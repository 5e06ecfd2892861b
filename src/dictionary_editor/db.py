"""Database connection, DDL, and low-level CRUD for dictionary-editor."""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dictionary_editor.exceptions import DatabaseError, StaleVersionError

SCHEMA_VERSION = "1.0"

SYSTEM_ACTOR = "system"

# UTC, millisecond precision, assigned by SQLite at write time
NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

# ---------------------------------------------------------------------------
# DDL statements
# ---------------------------------------------------------------------------

_AUDITABLE_COLUMNS = f"""
    created_by TEXT NOT NULL,
    created_date TEXT NOT NULL DEFAULT ({NOW_SQL}),
    last_modified_by TEXT NOT NULL,
    last_modified_date TEXT NOT NULL DEFAULT ({NOW_SQL}),
    version INTEGER NOT NULL DEFAULT 0
"""

_DDL = f"""
-- Meta table
CREATE TABLE IF NOT EXISTS meta (
    key TEXT NOT NULL,
    value TEXT,
    UNIQUE (key)
);

-- Languages
CREATE TABLE IF NOT EXISTS languages (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    code TEXT NOT NULL CHECK( length(code) <= 10 ),
    name TEXT NOT NULL,
    script TEXT NOT NULL,
    transliteration_scheme TEXT,
    enabled BOOLEAN CHECK( enabled IN (0, 1) ) DEFAULT 1 NOT NULL,
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (code)
);

-- Lemmas
CREATE TABLE IF NOT EXISTS lemmas (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    language TEXT NOT NULL REFERENCES languages (code),
    lemma_native TEXT NOT NULL,
    lemma_latin TEXT,
    pos TEXT,
    notes TEXT,
    status TEXT NOT NULL DEFAULT 'DRAFT'
        CHECK( status IN ('DRAFT', 'REVIEW', 'PUBLISHED', 'ARCHIVED') ),
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (language, lemma_native)
);
CREATE INDEX IF NOT EXISTS lemma_language_status_index ON lemmas (language, status);

CREATE TABLE IF NOT EXISTS meanings (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    lemma_id TEXT NOT NULL REFERENCES lemmas (id),
    meaning_language TEXT NOT NULL,
    meaning_text TEXT NOT NULL,
    priority INTEGER NOT NULL DEFAULT 1,
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (lemma_id, meaning_language, priority)
);
CREATE INDEX IF NOT EXISTS meaning_lemma_index ON meanings (lemma_id);

CREATE TABLE IF NOT EXISTS surface_forms (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    lemma_id TEXT NOT NULL REFERENCES lemmas (id),
    form_native TEXT NOT NULL,
    form_latin TEXT,
    form_type TEXT,
    notes TEXT,
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (lemma_id, form_native)
);
CREATE INDEX IF NOT EXISTS surface_form_lemma_index ON surface_forms (lemma_id);

-- Usage sentences
CREATE TABLE IF NOT EXISTS usage_sentences (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    language TEXT NOT NULL REFERENCES languages (code),
    sentence_native TEXT NOT NULL,
    sentence_latin TEXT,
    translation TEXT,
    register TEXT NOT NULL DEFAULT 'neutral',
    explanation TEXT,
    difficulty INTEGER,
    status TEXT NOT NULL DEFAULT 'DRAFT'
        CHECK( status IN ('DRAFT', 'REVIEW', 'PUBLISHED', 'ARCHIVED') ),
    {_AUDITABLE_COLUMNS},
    UNIQUE (id)
);
CREATE INDEX IF NOT EXISTS usage_sentence_language_status_index
    ON usage_sentences (language, status);

-- surface_form_id is deliberately not a foreign key
CREATE TABLE IF NOT EXISTS lemma_sentence_links (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    lemma_id TEXT NOT NULL REFERENCES lemmas (id),
    sentence_id TEXT NOT NULL REFERENCES usage_sentences (id),
    surface_form_id TEXT,
    link_type TEXT NOT NULL DEFAULT 'EXACT',
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (lemma_id, sentence_id)
);
CREATE INDEX IF NOT EXISTS link_lemma_index ON lemma_sentence_links (lemma_id);
CREATE INDEX IF NOT EXISTS link_sentence_index ON lemma_sentence_links (sentence_id);

-- owner_id is polymorphic (lemma or sentence id), so it has no foreign key
CREATE TABLE IF NOT EXISTS pronunciations (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    owner_type TEXT NOT NULL CHECK( owner_type IN ('LEMMA', 'SENTENCE') ),
    owner_id TEXT NOT NULL,
    speaker TEXT,
    region TEXT,
    audio_uri TEXT NOT NULL,
    duration_ms INTEGER,
    {_AUDITABLE_COLUMNS},
    UNIQUE (id),
    UNIQUE (owner_type, owner_id, audio_uri)
);
CREATE INDEX IF NOT EXISTS pronunciation_owner_index ON pronunciations (owner_type, owner_id);

-- Editorial audit trail (append-only)
CREATE TABLE IF NOT EXISTS editorial_audit_events (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    actor TEXT NOT NULL,
    comment TEXT,
    details TEXT,
    event_ts TEXT NOT NULL DEFAULT ({NOW_SQL}),
    UNIQUE (id)
);
CREATE INDEX IF NOT EXISTS audit_entity_index
    ON editorial_audit_events (entity_type, entity_id, event_ts);
CREATE INDEX IF NOT EXISTS audit_event_type_index
    ON editorial_audit_events (event_type, event_ts);
CREATE INDEX IF NOT EXISTS audit_actor_index
    ON editorial_audit_events (actor, event_ts);

CREATE TRIGGER IF NOT EXISTS audit_events_no_update
    BEFORE UPDATE ON editorial_audit_events
    BEGIN SELECT RAISE(ABORT, 'editorial_audit_events is append-only'); END;
CREATE TRIGGER IF NOT EXISTS audit_events_no_delete
    BEFORE DELETE ON editorial_audit_events
    BEGIN SELECT RAISE(ABORT, 'editorial_audit_events is append-only'); END;
"""

# Tables the generic row helpers may touch (names are interpolated into SQL)
CONTENT_TABLES = frozenset({
    "languages",
    "lemmas",
    "meanings",
    "surface_forms",
    "usage_sentences",
    "lemma_sentence_links",
    "pronunciations",
})


def connect(db_path: str | Path = ":memory:") -> sqlite3.Connection:
    """Open a database connection with editor PRAGMA settings."""
    db_path_str = str(db_path)
    conn = sqlite3.connect(db_path_str)
    conn.execute("PRAGMA foreign_keys = ON")
    if db_path_str != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize all tables if they don't exist. Set schema version."""
    conn.executescript(_DDL)
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
        (SCHEMA_VERSION,),
    )
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) "
        f"VALUES ('created_at', {NOW_SQL})",
    )
    conn.commit()


def check_schema_version(conn: sqlite3.Connection) -> None:
    """Verify the database schema version is compatible."""
    try:
        row = conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        # meta table doesn't exist - uninitialized DB
        return
    if row is None:
        return
    version = row[0]
    if version != SCHEMA_VERSION:
        raise DatabaseError(
            f"Incompatible schema version: {version} "
            f"(expected {SCHEMA_VERSION})"
        )


def new_id() -> str:
    """Return a fresh opaque entity identifier."""
    return str(uuid.uuid4())


def actor_or_system(actor: str | None) -> str:
    """Return *actor* stripped, or the system identity when blank."""
    if actor is None or not actor.strip():
        return SYSTEM_ACTOR
    return actor.strip()


def _check_table(table: str) -> None:
    if table not in CONTENT_TABLES:
        raise ValueError(f"Unknown table: {table!r}")


# ---------------------------------------------------------------------------
# Generic row helpers
# ---------------------------------------------------------------------------

def get_row(conn: sqlite3.Connection, table: str, entity_id: str) -> sqlite3.Row | None:
    """Get a full row by its entity ID, or None."""
    _check_table(table)
    return conn.execute(
        f"SELECT rowid, * FROM {table} WHERE id = ?",
        (entity_id,),
    ).fetchone()


def exists(
    conn: sqlite3.Connection,
    table: str,
    where: Mapping[str, Any],
    *,
    exclude_id: str | None = None,
) -> bool:
    """Check whether a row matching every column in *where* exists.

    ``exclude_id`` skips the row being updated so an entity never
    conflicts with its own prior state.
    """
    _check_table(table)
    clauses = [f"{col} = ?" for col in where]
    params: list[Any] = list(where.values())
    if exclude_id is not None:
        clauses.append("id != ?")
        params.append(exclude_id)
    sql = f"SELECT 1 FROM {table} WHERE {' AND '.join(clauses)} LIMIT 1"
    return conn.execute(sql, params).fetchone() is not None


def count_rows(conn: sqlite3.Connection, table: str, where: Mapping[str, Any]) -> int:
    """Count rows matching every column in *where*."""
    _check_table(table)
    clauses = " AND ".join(f"{col} = ?" for col in where)
    return conn.execute(
        f"SELECT COUNT(*) FROM {table} WHERE {clauses}",
        list(where.values()),
    ).fetchone()[0]


def insert_row(
    conn: sqlite3.Connection,
    table: str,
    values: Mapping[str, Any],
    actor: str | None,
) -> str:
    """Insert a new row with a generated ID and return the ID.

    Timestamps and the initial version come from column defaults.
    """
    _check_table(table)
    entity_id = new_id()
    who = actor_or_system(actor)
    columns = ["id", *values, "created_by", "last_modified_by"]
    params = [entity_id, *values.values(), who, who]
    placeholders = ", ".join("?" for _ in columns)
    conn.execute(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
        params,
    )
    return entity_id


def update_row(
    conn: sqlite3.Connection,
    table: str,
    entity_id: str,
    version: int,
    values: Mapping[str, Any],
    actor: str | None,
) -> None:
    """Apply *values* to a row if it is still at *version*.

    Bumps the version and the modification stamp. Raises
    :class:`StaleVersionError` when another write got there first.
    """
    _check_table(table)
    assignments = [f"{col} = ?" for col in values]
    assignments.append("last_modified_by = ?")
    assignments.append(f"last_modified_date = {NOW_SQL}")
    assignments.append("version = version + 1")
    params = [*values.values(), actor_or_system(actor), entity_id, version]
    cur = conn.execute(
        f"UPDATE {table} SET {', '.join(assignments)} "
        "WHERE id = ? AND version = ?",
        params,
    )
    if cur.rowcount == 0:
        raise StaleVersionError(
            f"{table} row {entity_id!r} was modified concurrently "
            f"(expected version {version})"
        )


def delete_row(conn: sqlite3.Connection, table: str, entity_id: str) -> None:
    """Delete a row by its entity ID."""
    _check_table(table)
    conn.execute(f"DELETE FROM {table} WHERE id = ?", (entity_id,))


def select_rows(
    conn: sqlite3.Connection,
    table: str,
    where: Mapping[str, Any],
    order_by: str,
) -> list[sqlite3.Row]:
    """Select full rows matching every column in *where*, in *order_by* order."""
    _check_table(table)
    sql = f"SELECT rowid, * FROM {table}"
    if where:
        sql += " WHERE " + " AND ".join(f"{col} = ?" for col in where)
    sql += f" ORDER BY {order_by}"
    return conn.execute(sql, list(where.values())).fetchall()
