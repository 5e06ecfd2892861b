"""Language registry: the enabled-language gate for all content writes."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from dictionary_editor import audit as _audit
from dictionary_editor import db as _db
from dictionary_editor.exceptions import (
    ConflictError,
    EntityNotFoundError,
    ValidationError,
)
from dictionary_editor.models import EntityType, LanguageModel
from dictionary_editor.normalize import check_version, optional_text, require_text

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 10

_ENTITY = EntityType.LANGUAGE.value


def normalize_code(code: str | None) -> str | None:
    """Trim and lowercase a language code; blank becomes None."""
    if code is None or not code.strip():
        return None
    return code.strip().lower()


class LanguageRegistry:
    """Lookup and administration of languages.

    Mutating methods do not open their own transaction; the editor wraps
    them together with the audit write.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def is_enabled(self, code: str | None) -> bool:
        """True only for a known, enabled language. Never raises."""
        if not isinstance(code, str):
            return False
        normalized = normalize_code(code)
        if normalized is None:
            return False
        row = self._row(normalized)
        return row is not None and bool(row["enabled"])

    def get_enabled(self, code: str) -> LanguageModel:
        row = self._row(normalize_code(code))
        if row is None or not row["enabled"]:
            raise EntityNotFoundError(f"Enabled language not found for code: {code!r}")
        return _row_to_language(row)

    def get_by_code(self, code: str) -> LanguageModel:
        """Fetch a language regardless of its enabled flag."""
        row = self._row(normalize_code(code))
        if row is None:
            raise EntityNotFoundError(f"Language not found for code: {code!r}")
        return _row_to_language(row)

    def list_all(self) -> list[LanguageModel]:
        rows = _db.select_rows(self._conn, "languages", {}, "code ASC")
        return [_row_to_language(r) for r in rows]

    def list_enabled(self) -> list[LanguageModel]:
        rows = _db.select_rows(self._conn, "languages", {"enabled": 1}, "code ASC")
        return [_row_to_language(r) for r in rows]

    def require_enabled(self, code: str | None, field: str = "language") -> str:
        """Return the normalized code, or raise ValidationError.

        This is the gate every content-creating or -updating operation
        passes before it writes.
        """
        normalized = normalize_code(code)
        if normalized is None:
            raise ValidationError(f"{field} is required")
        if not self.is_enabled(normalized):
            raise ValidationError(f"Language is not enabled or not found: {normalized!r}")
        return normalized

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create(
        self,
        code: str,
        name: str,
        script: str,
        *,
        transliteration_scheme: str | None = None,
        enabled: bool = True,
        actor: str | None = None,
    ) -> LanguageModel:
        normalized = normalize_code(code)
        if normalized is None:
            raise ValidationError("code must be provided")
        if len(normalized) > MAX_CODE_LENGTH:
            raise ValidationError(
                f"code must be at most {MAX_CODE_LENGTH} characters: {normalized!r}"
            )
        name = require_text(name, "name")
        script = require_text(script, "script")
        if self._row(normalized) is not None:
            raise ConflictError(f"Language already exists for code: {normalized!r}")

        try:
            _db.insert_row(
                self._conn,
                "languages",
                {
                    "code": normalized,
                    "name": name,
                    "script": script,
                    "transliteration_scheme": optional_text(transliteration_scheme),
                    "enabled": 1 if enabled else 0,
                },
                actor,
            )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Language already exists for code: {normalized!r}"
            ) from e

        _audit.record(
            self._conn, _ENTITY, normalized, "LANGUAGE_CREATED", actor,
            details={
                "name": name,
                "script": script,
                "transliterationScheme": optional_text(transliteration_scheme),
                "enabled": bool(enabled),
            },
        )
        logger.debug("Created language %s", normalized)
        return self.get_by_code(normalized)

    def update(
        self,
        code: str,
        *,
        name: str | None = None,
        script: str | None = None,
        transliteration_scheme: str | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> LanguageModel:
        existing = self.get_by_code(code)
        check_version("Language", existing.code, existing.version, expected_version)

        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = require_text(name, "name")
        if script is not None:
            updates["script"] = require_text(script, "script")
        if transliteration_scheme is not None:
            updates["transliteration_scheme"] = optional_text(transliteration_scheme)

        _db.update_row(
            self._conn, "languages", existing.id, existing.version, updates, actor
        )
        saved = self.get_by_code(existing.code)
        _audit.record(
            self._conn, _ENTITY, saved.code, "LANGUAGE_UPDATED", actor,
            details={"before": _snapshot(existing), "after": _snapshot(saved)},
        )
        return saved

    def set_enabled(
        self, code: str, enabled: bool, actor: str | None = None
    ) -> LanguageModel:
        existing = self.get_by_code(code)
        _db.update_row(
            self._conn, "languages", existing.id, existing.version,
            {"enabled": 1 if enabled else 0}, actor,
        )
        event = "LANGUAGE_ENABLED" if enabled else "LANGUAGE_DISABLED"
        _audit.record(
            self._conn, _ENTITY, existing.code, event, actor,
            details={"from": existing.enabled, "to": bool(enabled)},
        )
        return self.get_by_code(existing.code)

    def _row(self, code: str | None) -> sqlite3.Row | None:
        if code is None:
            return None
        return self._conn.execute(
            "SELECT rowid, * FROM languages WHERE code = ?", (code,)
        ).fetchone()


def _snapshot(lang: LanguageModel) -> dict[str, Any]:
    return {
        "name": lang.name,
        "script": lang.script,
        "transliterationScheme": lang.transliteration_scheme,
    }


def _row_to_language(row: sqlite3.Row) -> LanguageModel:
    return LanguageModel(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        script=row["script"],
        transliteration_scheme=row["transliteration_scheme"],
        enabled=bool(row["enabled"]),
        created_by=row["created_by"],
        created_date=row["created_date"],
        last_modified_by=row["last_modified_by"],
        last_modified_date=row["last_modified_date"],
        version=row["version"],
    )
