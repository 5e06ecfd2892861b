"""Append-only editorial audit log for dictionary-editor."""

from __future__ import annotations

import datetime
import json
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from dictionary_editor import db as _db
from dictionary_editor.exceptions import ValidationError
from dictionary_editor.models import AuditEvent, Page
from dictionary_editor.normalize import optional_text, require_text

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

_SELECT = (
    "SELECT rowid, id, entity_type, entity_id, event_type, actor, comment, "
    "details, event_ts FROM editorial_audit_events"
)
_NEWEST_FIRST = "ORDER BY event_ts DESC, rowid DESC"


@dataclass(frozen=True, slots=True)
class SerializedDetails:
    """Outcome of serializing an audit payload: text on success, error otherwise."""

    text: str | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def serialize_details(details: Any) -> SerializedDetails:
    """Serialize *details* to JSON text without raising.

    Strings are taken as already-serialized payloads and passed through.
    """
    if details is None:
        return SerializedDetails(None)
    if isinstance(details, str):
        return SerializedDetails(details)
    try:
        return SerializedDetails(json.dumps(details, ensure_ascii=False))
    except (TypeError, ValueError, RecursionError) as e:
        return SerializedDetails(None, error=str(e))


def fallback_details(error: str | None) -> str:
    """Build the payload stored in place of an unserializable one."""
    return '{"auditSerializationError":"' + _escape(error) + '"}'


def _escape(message: str | None) -> str:
    if message is None:
        return ""
    return json.dumps(message)[1:-1]


def record(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: str,
    event_type: str,
    actor: str | None = None,
    comment: str | None = None,
    details: Any = None,
) -> AuditEvent:
    """Append one audit event. Always inserts, never updates.

    A blank actor is recorded as ``"system"``. If *details* cannot be
    serialized, a fallback payload carrying the error message is stored
    instead and the write still happens.
    """
    entity_type = require_text(entity_type, "entity_type")
    entity_id = require_text(entity_id, "entity_id")
    event_type = require_text(event_type, "event_type")

    serialized = serialize_details(details)
    if serialized.ok:
        payload = optional_text(serialized.text)
    else:
        logger.warning(
            "Audit details for %s %s (%s) could not be serialized: %s",
            entity_type, entity_id, event_type, serialized.error,
        )
        payload = fallback_details(serialized.error)

    event_id = _db.new_id()
    conn.execute(
        "INSERT INTO editorial_audit_events "
        "(id, entity_type, entity_id, event_type, actor, comment, details) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            event_id,
            entity_type,
            entity_id,
            event_type,
            _db.actor_or_system(actor),
            optional_text(comment),
            payload,
        ),
    )
    logger.debug("Recorded %s for %s %s", event_type, entity_type, entity_id)
    row = conn.execute(f"{_SELECT} WHERE id = ?", (event_id,)).fetchone()
    return _row_to_event(row)


# ---------------------------------------------------------------------------
# Queries (all newest first)
# ---------------------------------------------------------------------------

def timeline(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: str,
    *,
    page: int = 0,
    size: int = DEFAULT_PAGE_SIZE,
) -> Page[AuditEvent]:
    """Events recorded for one entity."""
    return _paged(
        conn,
        "entity_type = ? AND entity_id = ?",
        [require_text(entity_type, "entity_type"), require_text(entity_id, "entity_id")],
        page,
        size,
    )


def latest(
    conn: sqlite3.Connection,
    entity_type: str,
    entity_id: str,
) -> AuditEvent | None:
    """Most recent event for one entity, or None."""
    row = conn.execute(
        f"{_SELECT} WHERE entity_type = ? AND entity_id = ? {_NEWEST_FIRST} LIMIT 1",
        (require_text(entity_type, "entity_type"), require_text(entity_id, "entity_id")),
    ).fetchone()
    return _row_to_event(row) if row is not None else None


def activity_by_event_type(
    conn: sqlite3.Connection,
    event_type: str,
    from_utc: datetime.datetime,
    to_utc: datetime.datetime,
    *,
    page: int = 0,
    size: int = DEFAULT_PAGE_SIZE,
) -> Page[AuditEvent]:
    """Events of one type inside an inclusive time window."""
    return _paged(
        conn,
        "event_type = ? AND event_ts BETWEEN ? AND ?",
        [
            require_text(event_type, "event_type"),
            format_timestamp(from_utc, "from_utc"),
            format_timestamp(to_utc, "to_utc"),
        ],
        page,
        size,
    )


def activity_by_actor(
    conn: sqlite3.Connection,
    actor: str,
    from_utc: datetime.datetime,
    to_utc: datetime.datetime,
    *,
    page: int = 0,
    size: int = DEFAULT_PAGE_SIZE,
) -> Page[AuditEvent]:
    """Events attributed to one actor inside an inclusive time window."""
    return _paged(
        conn,
        "actor = ? AND event_ts BETWEEN ? AND ?",
        [
            require_text(actor, "actor"),
            format_timestamp(from_utc, "from_utc"),
            format_timestamp(to_utc, "to_utc"),
        ],
        page,
        size,
    )


def format_timestamp(value: datetime.datetime | None, field: str) -> str:
    """Render a datetime in the stored UTC format. Naive values are UTC."""
    if value is None:
        raise ValidationError(f"{field} must be provided")
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    try:
        value = value.astimezone(datetime.timezone.utc)
    except OverflowError as e:
        raise ValidationError(f"{field} is out of range: {value.isoformat()}") from e
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _paged(
    conn: sqlite3.Connection,
    where: str,
    params: list[str],
    page: int,
    size: int,
) -> Page[AuditEvent]:
    if page < 0:
        raise ValidationError(f"page must be >= 0, got {page}")
    if size < 1:
        raise ValidationError(f"size must be >= 1, got {size}")
    total = conn.execute(
        f"SELECT COUNT(*) FROM editorial_audit_events WHERE {where}", params
    ).fetchone()[0]
    rows = conn.execute(
        f"{_SELECT} WHERE {where} {_NEWEST_FIRST} LIMIT ? OFFSET ?",
        [*params, size, page * size],
    ).fetchall()
    return Page(
        items=tuple(_row_to_event(r) for r in rows),
        page=page,
        size=size,
        total=total,
    )


def _row_to_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        id=row["id"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        event_type=row["event_type"],
        actor=row["actor"],
        comment=row["comment"],
        details=row["details"],
        event_ts=row["event_ts"],
    )
