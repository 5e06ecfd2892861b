"""DictionaryEditor: main entry point for the dictionary-editor library."""

from __future__ import annotations

import datetime
import functools
import logging
import sqlite3
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, NamedTuple, TypeVar

from dictionary_editor import audit as _audit
from dictionary_editor import db as _db
from dictionary_editor.exceptions import ConflictError, EntityNotFoundError
from dictionary_editor.languages import LanguageRegistry
from dictionary_editor.models import (
    AuditEvent,
    EditorialStatus,
    EntityType,
    LanguageModel,
    LemmaModel,
    LemmaSentenceLinkModel,
    LinkType,
    MeaningModel,
    OwnerType,
    Page,
    PronunciationModel,
    SurfaceFormModel,
    UsageSentenceModel,
)
from dictionary_editor.normalize import (
    check_version,
    optional_int,
    optional_text,
    require_int,
    require_text,
)
from dictionary_editor.workflow import require_transition, unarchive_target

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])

DEFAULT_REGISTER = "neutral"

_LEMMA = EntityType.LEMMA.value
_SENTENCE = EntityType.USAGE_SENTENCE.value
_MEANING = EntityType.MEANING.value
_SURFACE_FORM = EntityType.SURFACE_FORM.value
_LINK = EntityType.LEMMA_SENTENCE_LINK.value
_PRONUNCIATION = EntityType.PRONUNCIATION.value

_NEWEST_FIRST = "created_date DESC, rowid DESC"


class _Owner(NamedTuple):
    """Where a pronunciation owner lives, how it is labelled and read publicly."""

    table: str
    label: str
    published_getter: str


_OWNERS: dict[OwnerType, _Owner] = {
    OwnerType.LEMMA: _Owner("lemmas", "Lemma", "get_published_lemma"),
    OwnerType.SENTENCE: _Owner("usage_sentences", "UsageSentence", "get_published_sentence"),
}


def _modifies_db(method: _F) -> _F:
    """Decorator: wraps mutation methods in a transaction (unless in batch)."""

    @functools.wraps(method)
    def wrapper(self: DictionaryEditor, *args: Any, **kwargs: Any) -> Any:
        if self._in_batch:
            return method(self, *args, **kwargs)
        with self._conn:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class DictionaryEditor:
    """Editorial API for a multilingual dictionary.

    Every mutating call validates, writes and appends its audit event in
    one transaction; a failure anywhere rolls back all three.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._conn = _db.connect(db_path)
        _db.check_schema_version(self._conn)
        _db.init_db(self._conn)
        self._in_batch = False
        self._batch_depth = 0
        self.languages = LanguageRegistry(self._conn)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> DictionaryEditor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Batch context manager
    # ------------------------------------------------------------------

    @contextmanager
    def batch(self) -> Generator[None, None, None]:
        """Group multiple mutations into a single transaction."""
        self._batch_depth += 1
        if self._batch_depth == 1:
            self._in_batch = True
            self._conn.execute("BEGIN")
        try:
            yield
        except BaseException:
            if self._batch_depth == 1:
                self._conn.rollback()
                self._in_batch = False
            self._batch_depth -= 1
            raise
        else:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._conn.commit()
                self._in_batch = False

    # ------------------------------------------------------------------
    # Languages
    # ------------------------------------------------------------------

    @_modifies_db
    def create_language(
        self,
        code: str,
        name: str,
        script: str,
        *,
        transliteration_scheme: str | None = None,
        enabled: bool = True,
        actor: str | None = None,
    ) -> LanguageModel:
        return self.languages.create(
            code, name, script,
            transliteration_scheme=transliteration_scheme,
            enabled=enabled,
            actor=actor,
        )

    @_modifies_db
    def update_language(
        self,
        code: str,
        *,
        name: str | None = None,
        script: str | None = None,
        transliteration_scheme: str | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> LanguageModel:
        return self.languages.update(
            code,
            name=name,
            script=script,
            transliteration_scheme=transliteration_scheme,
            actor=actor,
            expected_version=expected_version,
        )

    @_modifies_db
    def set_language_enabled(
        self, code: str, enabled: bool, actor: str | None = None
    ) -> LanguageModel:
        return self.languages.set_enabled(code, enabled, actor)

    def is_language_enabled(self, code: str | None) -> bool:
        return self.languages.is_enabled(code)

    def get_language(self, code: str) -> LanguageModel:
        return self.languages.get_by_code(code)

    def get_enabled_language(self, code: str) -> LanguageModel:
        return self.languages.get_enabled(code)

    def list_languages(self) -> list[LanguageModel]:
        return self.languages.list_all()

    def list_enabled_languages(self) -> list[LanguageModel]:
        return self.languages.list_enabled()

    # ------------------------------------------------------------------
    # Lemmas
    # ------------------------------------------------------------------

    def get_lemma(self, lemma_id: str) -> LemmaModel:
        return _row_to_lemma(self._lemma_row(lemma_id))

    def list_lemmas(
        self,
        language: str,
        status: EditorialStatus | str | None = None,
    ) -> list[LemmaModel]:
        """Lemmas of an enabled language, any status unless one is given."""
        where: dict[str, Any] = {"language": self.languages.require_enabled(language)}
        if status is not None:
            where["status"] = EditorialStatus.parse(status, "status").value
        rows = _db.select_rows(self._conn, "lemmas", where, "lemma_native ASC, rowid ASC")
        return [_row_to_lemma(r) for r in rows]

    @_modifies_db
    def create_lemma(
        self,
        language: str,
        lemma_native: str,
        *,
        lemma_latin: str | None = None,
        pos: str | None = None,
        notes: str | None = None,
        status: EditorialStatus | str | None = None,
        actor: str | None = None,
    ) -> LemmaModel:
        language = self.languages.require_enabled(language)
        lemma_native = require_text(lemma_native, "lemma_native")
        initial = (
            EditorialStatus.DRAFT if status is None
            else EditorialStatus.parse(status, "status")
        )
        self._check_unique(
            "lemmas",
            {"language": language, "lemma_native": lemma_native},
            f"Lemma already exists for language={language} lemma_native={lemma_native}",
        )
        lemma_id = self._insert(
            "lemmas",
            {
                "language": language,
                "lemma_native": lemma_native,
                "lemma_latin": optional_text(lemma_latin),
                "pos": optional_text(pos),
                "notes": optional_text(notes),
                "status": initial.value,
            },
            actor,
            f"Lemma already exists for language={language} lemma_native={lemma_native}",
        )
        saved = self.get_lemma(lemma_id)
        _audit.record(
            self._conn, _LEMMA, saved.id, "LEMMA_CREATED", actor,
            details={
                "language": saved.language,
                "lemmaNative": saved.lemma_native,
                "status": saved.status.value,
            },
        )
        return saved

    @_modifies_db
    def update_lemma(
        self,
        lemma_id: str,
        *,
        language: str | None = None,
        lemma_native: str | None = None,
        lemma_latin: str | None = None,
        pos: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> LemmaModel:
        """Partially update a lemma. ``None`` leaves a field unchanged.

        A blank string clears an optional field. Changing the language or
        the native spelling re-checks uniqueness against other lemmas.
        """
        existing = self.get_lemma(lemma_id)
        check_version("Lemma", lemma_id, existing.version, expected_version)

        new_language = self.languages.require_enabled(
            language if language is not None else existing.language
        )
        new_native = (
            require_text(lemma_native, "lemma_native")
            if lemma_native is not None else existing.lemma_native
        )
        if (new_language, new_native) != (existing.language, existing.lemma_native):
            self._check_unique(
                "lemmas",
                {"language": new_language, "lemma_native": new_native},
                f"Lemma already exists for language={new_language} "
                f"lemma_native={new_native}",
                exclude_id=lemma_id,
            )

        updates: dict[str, Any] = {"language": new_language, "lemma_native": new_native}
        if lemma_latin is not None:
            updates["lemma_latin"] = optional_text(lemma_latin)
        if pos is not None:
            updates["pos"] = optional_text(pos)
        if notes is not None:
            updates["notes"] = optional_text(notes)

        self._update(
            "lemmas", existing.id, existing.version, updates, actor,
            f"Lemma already exists for language={new_language} "
            f"lemma_native={new_native}",
        )
        saved = self.get_lemma(lemma_id)
        _audit.record(
            self._conn, _LEMMA, saved.id, "LEMMA_UPDATED", actor,
            details={"before": _lemma_snapshot(existing), "after": _lemma_snapshot(saved)},
        )
        return saved

    @_modifies_db
    def set_lemma_status(
        self,
        lemma_id: str,
        status: EditorialStatus | str,
        actor: str | None = None,
        *,
        comment: str | None = None,
    ) -> LemmaModel:
        existing = self.get_lemma(lemma_id)
        target = EditorialStatus.parse(status, "status")
        self._change_status("lemmas", _LEMMA, existing, target, actor, comment)
        return self.get_lemma(lemma_id)

    def archive_lemma(
        self, lemma_id: str, actor: str | None = None, *, comment: str | None = None
    ) -> LemmaModel:
        return self.set_lemma_status(
            lemma_id, EditorialStatus.ARCHIVED, actor, comment=comment
        )

    def unarchive_lemma(
        self,
        lemma_id: str,
        target: EditorialStatus | str | None = None,
        actor: str | None = None,
        *,
        comment: str | None = None,
    ) -> LemmaModel:
        """Move a lemma out of ARCHIVED (to REVIEW unless *target* says otherwise)."""
        return self.set_lemma_status(
            lemma_id, unarchive_target(target), actor, comment=comment
        )

    @_modifies_db
    def delete_lemma(
        self, lemma_id: str, actor: str | None = None, *, cascade: bool = False
    ) -> None:
        """Delete a lemma.

        A lemma that still has meanings, surface forms, sentence links or
        pronunciations is only deleted with ``cascade=True``; each dependent
        is then removed (and audited) on its own first.
        """
        existing = self.get_lemma(lemma_id)
        dependents = {
            "meanings": _db.select_rows(
                self._conn, "meanings", {"lemma_id": lemma_id}, "rowid ASC"
            ),
            "surface forms": _db.select_rows(
                self._conn, "surface_forms", {"lemma_id": lemma_id}, "rowid ASC"
            ),
            "sentence links": _db.select_rows(
                self._conn, "lemma_sentence_links", {"lemma_id": lemma_id}, "rowid ASC"
            ),
            "pronunciations": _db.select_rows(
                self._conn, "pronunciations",
                {"owner_type": OwnerType.LEMMA.value, "owner_id": lemma_id},
                "rowid ASC",
            ),
        }
        self._guard_dependents("Lemma", lemma_id, dependents, cascade)
        if cascade:
            for row in dependents["meanings"]:
                self._delete_meaning(row["id"], actor)
            for row in dependents["surface forms"]:
                self._delete_surface_form(row["id"], actor)
            for row in dependents["sentence links"]:
                self._delete_link(row["id"], actor)
            for row in dependents["pronunciations"]:
                self._delete_pronunciation(row["id"], actor)

        _db.delete_row(self._conn, "lemmas", lemma_id)
        _audit.record(
            self._conn, _LEMMA, lemma_id, "LEMMA_DELETED", actor,
            details={
                "language": existing.language,
                "lemmaNative": existing.lemma_native,
                "status": existing.status.value,
            },
        )

    def get_published_lemma(self, lemma_id: str) -> LemmaModel:
        """Fetch a lemma for public display; unpublished reads as missing."""
        lemma = self._find_lemma(lemma_id)
        if lemma is None or lemma.status is not EditorialStatus.PUBLISHED:
            raise EntityNotFoundError(_not_found("Lemma", lemma_id))
        return lemma

    def list_published_lemmas(self, language: str) -> list[LemmaModel]:
        return self.list_lemmas(language, EditorialStatus.PUBLISHED)

    # ------------------------------------------------------------------
    # Usage sentences
    # ------------------------------------------------------------------

    def get_sentence(self, sentence_id: str) -> UsageSentenceModel:
        row = self._required_row("usage_sentences", "UsageSentence", sentence_id)
        return _row_to_sentence(row)

    def list_sentences(
        self,
        language: str,
        status: EditorialStatus | str | None = None,
    ) -> list[UsageSentenceModel]:
        where: dict[str, Any] = {"language": self.languages.require_enabled(language)}
        if status is not None:
            where["status"] = EditorialStatus.parse(status, "status").value
        rows = _db.select_rows(
            self._conn, "usage_sentences", where, "sentence_native ASC, rowid ASC"
        )
        return [_row_to_sentence(r) for r in rows]

    @_modifies_db
    def create_sentence(
        self,
        language: str,
        sentence_native: str,
        *,
        sentence_latin: str | None = None,
        translation: str | None = None,
        register: str | None = None,
        explanation: str | None = None,
        difficulty: int | None = None,
        status: EditorialStatus | str | None = None,
        actor: str | None = None,
    ) -> UsageSentenceModel:
        language = self.languages.require_enabled(language)
        initial = (
            EditorialStatus.DRAFT if status is None
            else EditorialStatus.parse(status, "status")
        )
        sentence_id = _db.insert_row(
            self._conn,
            "usage_sentences",
            {
                "language": language,
                "sentence_native": require_text(sentence_native, "sentence_native"),
                "sentence_latin": optional_text(sentence_latin),
                "translation": optional_text(translation),
                "register": _register(register),
                "explanation": optional_text(explanation),
                "difficulty": optional_int(difficulty, "difficulty"),
                "status": initial.value,
            },
            actor,
        )
        saved = self.get_sentence(sentence_id)
        _audit.record(
            self._conn, _SENTENCE, saved.id, "USAGE_SENTENCE_CREATED", actor,
            details={
                "language": saved.language,
                "register": saved.register,
                "difficulty": saved.difficulty,
                "status": saved.status.value,
            },
        )
        return saved

    @_modifies_db
    def update_sentence(
        self,
        sentence_id: str,
        *,
        language: str | None = None,
        sentence_native: str | None = None,
        sentence_latin: str | None = None,
        translation: str | None = None,
        register: str | None = None,
        explanation: str | None = None,
        difficulty: int | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> UsageSentenceModel:
        existing = self.get_sentence(sentence_id)
        check_version("UsageSentence", sentence_id, existing.version, expected_version)

        updates: dict[str, Any] = {
            "language": self.languages.require_enabled(
                language if language is not None else existing.language
            ),
        }
        if sentence_native is not None:
            updates["sentence_native"] = require_text(sentence_native, "sentence_native")
        if sentence_latin is not None:
            updates["sentence_latin"] = optional_text(sentence_latin)
        if translation is not None:
            updates["translation"] = optional_text(translation)
        if register is not None:
            updates["register"] = _register(register)
        if explanation is not None:
            updates["explanation"] = optional_text(explanation)
        if difficulty is not None:
            updates["difficulty"] = require_int(difficulty, "difficulty")

        _db.update_row(
            self._conn, "usage_sentences", existing.id, existing.version, updates, actor
        )
        saved = self.get_sentence(sentence_id)
        _audit.record(
            self._conn, _SENTENCE, saved.id, "USAGE_SENTENCE_UPDATED", actor,
            details={
                "before": _sentence_snapshot(existing),
                "after": _sentence_snapshot(saved),
            },
        )
        return saved

    @_modifies_db
    def set_sentence_status(
        self,
        sentence_id: str,
        status: EditorialStatus | str,
        actor: str | None = None,
        *,
        comment: str | None = None,
    ) -> UsageSentenceModel:
        existing = self.get_sentence(sentence_id)
        target = EditorialStatus.parse(status, "status")
        self._change_status("usage_sentences", _SENTENCE, existing, target, actor, comment)
        return self.get_sentence(sentence_id)

    def archive_sentence(
        self, sentence_id: str, actor: str | None = None, *, comment: str | None = None
    ) -> UsageSentenceModel:
        return self.set_sentence_status(
            sentence_id, EditorialStatus.ARCHIVED, actor, comment=comment
        )

    def unarchive_sentence(
        self,
        sentence_id: str,
        target: EditorialStatus | str | None = None,
        actor: str | None = None,
        *,
        comment: str | None = None,
    ) -> UsageSentenceModel:
        return self.set_sentence_status(
            sentence_id, unarchive_target(target), actor, comment=comment
        )

    @_modifies_db
    def delete_sentence(
        self, sentence_id: str, actor: str | None = None, *, cascade: bool = False
    ) -> None:
        existing = self.get_sentence(sentence_id)
        dependents = {
            "lemma links": _db.select_rows(
                self._conn, "lemma_sentence_links",
                {"sentence_id": sentence_id}, "rowid ASC",
            ),
            "pronunciations": _db.select_rows(
                self._conn, "pronunciations",
                {"owner_type": OwnerType.SENTENCE.value, "owner_id": sentence_id},
                "rowid ASC",
            ),
        }
        self._guard_dependents("UsageSentence", sentence_id, dependents, cascade)
        if cascade:
            for row in dependents["lemma links"]:
                self._delete_link(row["id"], actor)
            for row in dependents["pronunciations"]:
                self._delete_pronunciation(row["id"], actor)

        _db.delete_row(self._conn, "usage_sentences", sentence_id)
        _audit.record(
            self._conn, _SENTENCE, sentence_id, "USAGE_SENTENCE_DELETED", actor,
            details={
                "language": existing.language,
                "register": existing.register,
                "status": existing.status.value,
            },
        )

    def get_published_sentence(self, sentence_id: str) -> UsageSentenceModel:
        row = _db.get_row(self._conn, "usage_sentences", sentence_id)
        if row is None or row["status"] != EditorialStatus.PUBLISHED.value:
            raise EntityNotFoundError(_not_found("UsageSentence", sentence_id))
        return _row_to_sentence(row)

    def list_published_sentences(self, language: str) -> list[UsageSentenceModel]:
        return self.list_sentences(language, EditorialStatus.PUBLISHED)

    # ------------------------------------------------------------------
    # Meanings
    # ------------------------------------------------------------------

    def get_meaning(self, meaning_id: str) -> MeaningModel:
        return _row_to_meaning(self._required_row("meanings", "Meaning", meaning_id))

    def list_meanings(self, lemma_id: str) -> list[MeaningModel]:
        """Meanings of a lemma, highest priority (lowest number) first."""
        rows = _db.select_rows(
            self._conn, "meanings",
            {"lemma_id": require_text(lemma_id, "lemma_id")},
            "priority ASC, id ASC",
        )
        return [_row_to_meaning(r) for r in rows]

    @_modifies_db
    def create_meaning(
        self,
        lemma_id: str,
        meaning_language: str,
        meaning_text: str,
        priority: int,
        *,
        actor: str | None = None,
    ) -> MeaningModel:
        lemma = self.get_lemma(require_text(lemma_id, "lemma_id"))
        self.languages.require_enabled(lemma.language)
        meaning_language = require_text(meaning_language, "meaning_language").lower()
        meaning_text = require_text(meaning_text, "meaning_text")
        priority = require_int(priority, "priority")

        conflict = (
            f"Meaning already exists for lemma_id={lemma.id} "
            f"meaning_language={meaning_language} priority={priority}"
        )
        key = {"lemma_id": lemma.id, "meaning_language": meaning_language, "priority": priority}
        self._check_unique("meanings", key, conflict)
        meaning_id = self._insert(
            "meanings", {**key, "meaning_text": meaning_text}, actor, conflict
        )
        saved = self.get_meaning(meaning_id)
        _audit.record(
            self._conn, _MEANING, saved.id, "MEANING_CREATED", actor,
            details={
                "lemmaId": saved.lemma_id,
                "meaningLanguage": saved.meaning_language,
                "priority": saved.priority,
            },
        )
        return saved

    @_modifies_db
    def update_meaning(
        self,
        meaning_id: str,
        *,
        meaning_language: str | None = None,
        meaning_text: str | None = None,
        priority: int | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> MeaningModel:
        existing = self.get_meaning(meaning_id)
        check_version("Meaning", meaning_id, existing.version, expected_version)
        self.languages.require_enabled(self.get_lemma(existing.lemma_id).language)

        new_language = (
            require_text(meaning_language, "meaning_language").lower()
            if meaning_language is not None else existing.meaning_language
        )
        new_priority = (
            require_int(priority, "priority") if priority is not None else existing.priority
        )
        conflict = (
            f"Another meaning already exists for lemma_id={existing.lemma_id} "
            f"meaning_language={new_language} priority={new_priority}"
        )
        if (new_language, new_priority) != (existing.meaning_language, existing.priority):
            self._check_unique(
                "meanings",
                {
                    "lemma_id": existing.lemma_id,
                    "meaning_language": new_language,
                    "priority": new_priority,
                },
                conflict,
                exclude_id=meaning_id,
            )

        updates: dict[str, Any] = {
            "meaning_language": new_language,
            "priority": new_priority,
        }
        if meaning_text is not None:
            updates["meaning_text"] = require_text(meaning_text, "meaning_text")

        self._update("meanings", existing.id, existing.version, updates, actor, conflict)
        saved = self.get_meaning(meaning_id)
        _audit.record(
            self._conn, _MEANING, saved.id, "MEANING_UPDATED", actor,
            details={
                "lemmaId": saved.lemma_id,
                "before": _meaning_snapshot(existing),
                "after": _meaning_snapshot(saved),
            },
        )
        return saved

    @_modifies_db
    def delete_meaning(self, meaning_id: str, actor: str | None = None) -> None:
        self._delete_meaning(meaning_id, actor)

    def list_public_meanings(self, lemma_id: str) -> list[MeaningModel]:
        """Meanings of a published lemma."""
        return self.list_meanings(self.get_published_lemma(lemma_id).id)

    # ------------------------------------------------------------------
    # Surface forms
    # ------------------------------------------------------------------

    def get_surface_form(self, surface_form_id: str) -> SurfaceFormModel:
        row = self._required_row("surface_forms", "SurfaceForm", surface_form_id)
        return _row_to_surface_form(row)

    def list_surface_forms(self, lemma_id: str) -> list[SurfaceFormModel]:
        rows = _db.select_rows(
            self._conn, "surface_forms",
            {"lemma_id": require_text(lemma_id, "lemma_id")},
            "form_native ASC, id ASC",
        )
        return [_row_to_surface_form(r) for r in rows]

    @_modifies_db
    def create_surface_form(
        self,
        lemma_id: str,
        form_native: str,
        *,
        form_latin: str | None = None,
        form_type: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> SurfaceFormModel:
        lemma = self.get_lemma(require_text(lemma_id, "lemma_id"))
        self.languages.require_enabled(lemma.language)
        form_native = require_text(form_native, "form_native")

        conflict = (
            f"SurfaceForm already exists for lemma_id={lemma.id} "
            f"form_native={form_native}"
        )
        self._check_unique(
            "surface_forms", {"lemma_id": lemma.id, "form_native": form_native}, conflict
        )
        surface_form_id = self._insert(
            "surface_forms",
            {
                "lemma_id": lemma.id,
                "form_native": form_native,
                "form_latin": optional_text(form_latin),
                "form_type": optional_text(form_type),
                "notes": optional_text(notes),
            },
            actor,
            conflict,
        )
        saved = self.get_surface_form(surface_form_id)
        _audit.record(
            self._conn, _SURFACE_FORM, saved.id, "SURFACE_FORM_CREATED", actor,
            details={
                "lemmaId": saved.lemma_id,
                "formNative": saved.form_native,
                "formType": saved.form_type,
            },
        )
        return saved

    @_modifies_db
    def update_surface_form(
        self,
        surface_form_id: str,
        *,
        form_native: str | None = None,
        form_latin: str | None = None,
        form_type: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> SurfaceFormModel:
        existing = self.get_surface_form(surface_form_id)
        check_version("SurfaceForm", surface_form_id, existing.version, expected_version)
        self.languages.require_enabled(self.get_lemma(existing.lemma_id).language)

        updates: dict[str, Any] = {}
        conflict = "SurfaceForm already exists"
        if form_native is not None:
            new_native = require_text(form_native, "form_native")
            conflict = (
                f"SurfaceForm already exists for lemma_id={existing.lemma_id} "
                f"form_native={new_native}"
            )
            if new_native != existing.form_native:
                self._check_unique(
                    "surface_forms",
                    {"lemma_id": existing.lemma_id, "form_native": new_native},
                    conflict,
                    exclude_id=surface_form_id,
                )
            updates["form_native"] = new_native
        if form_latin is not None:
            updates["form_latin"] = optional_text(form_latin)
        if form_type is not None:
            updates["form_type"] = optional_text(form_type)
        if notes is not None:
            updates["notes"] = optional_text(notes)

        self._update(
            "surface_forms", existing.id, existing.version, updates, actor, conflict
        )
        saved = self.get_surface_form(surface_form_id)
        _audit.record(
            self._conn, _SURFACE_FORM, saved.id, "SURFACE_FORM_UPDATED", actor,
            details={
                "lemmaId": saved.lemma_id,
                "before": _surface_form_snapshot(existing),
                "after": _surface_form_snapshot(saved),
            },
        )
        return saved

    @_modifies_db
    def delete_surface_form(self, surface_form_id: str, actor: str | None = None) -> None:
        self._delete_surface_form(surface_form_id, actor)

    def list_public_surface_forms(self, lemma_id: str) -> list[SurfaceFormModel]:
        return self.list_surface_forms(self.get_published_lemma(lemma_id).id)

    # ------------------------------------------------------------------
    # Lemma-sentence links
    # ------------------------------------------------------------------

    def get_link(self, link_id: str) -> LemmaSentenceLinkModel:
        row = self._required_row("lemma_sentence_links", "LemmaSentenceLink", link_id)
        return _row_to_link(row)

    def list_links_for_lemma(self, lemma_id: str) -> list[LemmaSentenceLinkModel]:
        rows = _db.select_rows(
            self._conn, "lemma_sentence_links",
            {"lemma_id": require_text(lemma_id, "lemma_id")},
            _NEWEST_FIRST,
        )
        return [_row_to_link(r) for r in rows]

    def list_links_for_sentence(self, sentence_id: str) -> list[LemmaSentenceLinkModel]:
        rows = _db.select_rows(
            self._conn, "lemma_sentence_links",
            {"sentence_id": require_text(sentence_id, "sentence_id")},
            _NEWEST_FIRST,
        )
        return [_row_to_link(r) for r in rows]

    @_modifies_db
    def create_link(
        self,
        lemma_id: str,
        sentence_id: str,
        *,
        surface_form_id: str | None = None,
        link_type: LinkType | str | None = None,
        actor: str | None = None,
    ) -> LemmaSentenceLinkModel:
        """Link a lemma to a usage sentence.

        ``surface_form_id`` is stored as given and never checked.
        """
        lemma_id = require_text(lemma_id, "lemma_id")
        sentence_id = require_text(sentence_id, "sentence_id")
        conflict = (
            f"Link already exists for lemma_id={lemma_id} sentence_id={sentence_id}"
        )
        self._check_unique(
            "lemma_sentence_links",
            {"lemma_id": lemma_id, "sentence_id": sentence_id},
            conflict,
        )
        lemma = self.get_lemma(lemma_id)
        sentence = self.get_sentence(sentence_id)
        self.languages.require_enabled(lemma.language)
        self.languages.require_enabled(sentence.language)

        link_id = self._insert(
            "lemma_sentence_links",
            {
                "lemma_id": lemma_id,
                "sentence_id": sentence_id,
                "surface_form_id": optional_text(surface_form_id),
                "link_type": _link_type(link_type).value,
            },
            actor,
            conflict,
        )
        saved = self.get_link(link_id)
        _audit.record(
            self._conn, _LINK, saved.id, "LEMMA_SENTENCE_LINK_CREATED", actor,
            details=_link_details(saved),
        )
        return saved

    @_modifies_db
    def update_link(
        self,
        link_id: str,
        *,
        surface_form_id: str | None = None,
        link_type: LinkType | str | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> LemmaSentenceLinkModel:
        """Change a link's surface form or type; its endpoints are fixed."""
        existing = self.get_link(link_id)
        check_version("LemmaSentenceLink", link_id, existing.version, expected_version)
        self.languages.require_enabled(self.get_lemma(existing.lemma_id).language)
        self.languages.require_enabled(self.get_sentence(existing.sentence_id).language)

        updates: dict[str, Any] = {}
        if surface_form_id is not None:
            updates["surface_form_id"] = optional_text(surface_form_id)
        if link_type is not None:
            updates["link_type"] = _link_type(link_type).value

        _db.update_row(
            self._conn, "lemma_sentence_links", existing.id, existing.version,
            updates, actor,
        )
        saved = self.get_link(link_id)
        _audit.record(
            self._conn, _LINK, saved.id, "LEMMA_SENTENCE_LINK_UPDATED", actor,
            details={
                "lemmaId": saved.lemma_id,
                "sentenceId": saved.sentence_id,
                "before": {
                    "surfaceFormId": existing.surface_form_id,
                    "linkType": existing.link_type.value,
                },
                "after": {
                    "surfaceFormId": saved.surface_form_id,
                    "linkType": saved.link_type.value,
                },
            },
        )
        return saved

    @_modifies_db
    def delete_link(self, link_id: str, actor: str | None = None) -> None:
        self._delete_link(link_id, actor)

    def list_public_links_for_lemma(self, lemma_id: str) -> list[LemmaSentenceLinkModel]:
        """Links of a published lemma to sentences that are published too."""
        lemma = self.get_published_lemma(lemma_id)
        rows = self._conn.execute(
            "SELECT l.rowid, l.* FROM lemma_sentence_links l "
            "JOIN usage_sentences s ON s.id = l.sentence_id "
            "WHERE l.lemma_id = ? AND s.status = ? "
            "ORDER BY l.created_date DESC, l.rowid DESC",
            (lemma.id, EditorialStatus.PUBLISHED.value),
        ).fetchall()
        return [_row_to_link(r) for r in rows]

    # ------------------------------------------------------------------
    # Pronunciations
    # ------------------------------------------------------------------

    def get_pronunciation(self, pronunciation_id: str) -> PronunciationModel:
        row = self._required_row("pronunciations", "Pronunciation", pronunciation_id)
        return _row_to_pronunciation(row)

    def list_pronunciations(
        self, owner_type: OwnerType | str, owner_id: str
    ) -> list[PronunciationModel]:
        rows = _db.select_rows(
            self._conn, "pronunciations",
            {
                "owner_type": OwnerType.parse(owner_type, "owner_type").value,
                "owner_id": require_text(owner_id, "owner_id"),
            },
            _NEWEST_FIRST,
        )
        return [_row_to_pronunciation(r) for r in rows]

    @_modifies_db
    def create_pronunciation(
        self,
        owner_type: OwnerType | str,
        owner_id: str,
        audio_uri: str,
        *,
        speaker: str | None = None,
        region: str | None = None,
        duration_ms: int | None = None,
        actor: str | None = None,
    ) -> PronunciationModel:
        """Attach a recording to a lemma or sentence in any status."""
        kind = OwnerType.parse(owner_type, "owner_type")
        owner_id = require_text(owner_id, "owner_id")
        audio_uri = require_text(audio_uri, "audio_uri")
        self.languages.require_enabled(self._owner_language(kind, owner_id))

        conflict = (
            f"Pronunciation already exists for owner_type={kind.value} "
            f"owner_id={owner_id} audio_uri={audio_uri}"
        )
        key = {"owner_type": kind.value, "owner_id": owner_id, "audio_uri": audio_uri}
        self._check_unique("pronunciations", key, conflict)
        pronunciation_id = self._insert(
            "pronunciations",
            {
                **key,
                "speaker": optional_text(speaker),
                "region": optional_text(region),
                "duration_ms": optional_int(duration_ms, "duration_ms"),
            },
            actor,
            conflict,
        )
        saved = self.get_pronunciation(pronunciation_id)
        _audit.record(
            self._conn, _PRONUNCIATION, saved.id, "PRONUNCIATION_CREATED", actor,
            details={
                "ownerType": saved.owner_type.value,
                "ownerId": saved.owner_id,
                "audioUri": saved.audio_uri,
                "speaker": saved.speaker,
                "region": saved.region,
                "durationMs": saved.duration_ms,
            },
        )
        return saved

    @_modifies_db
    def update_pronunciation(
        self,
        pronunciation_id: str,
        *,
        audio_uri: str | None = None,
        speaker: str | None = None,
        region: str | None = None,
        duration_ms: int | None = None,
        actor: str | None = None,
        expected_version: int | None = None,
    ) -> PronunciationModel:
        existing = self.get_pronunciation(pronunciation_id)
        check_version("Pronunciation", pronunciation_id, existing.version, expected_version)
        self.languages.require_enabled(
            self._owner_language(existing.owner_type, existing.owner_id)
        )

        updates: dict[str, Any] = {}
        conflict = "Pronunciation already exists"
        if audio_uri is not None:
            new_uri = require_text(audio_uri, "audio_uri")
            conflict = (
                f"Pronunciation already exists for owner_type={existing.owner_type.value} "
                f"owner_id={existing.owner_id} audio_uri={new_uri}"
            )
            if new_uri != existing.audio_uri:
                self._check_unique(
                    "pronunciations",
                    {
                        "owner_type": existing.owner_type.value,
                        "owner_id": existing.owner_id,
                        "audio_uri": new_uri,
                    },
                    conflict,
                    exclude_id=pronunciation_id,
                )
            updates["audio_uri"] = new_uri
        if speaker is not None:
            updates["speaker"] = optional_text(speaker)
        if region is not None:
            updates["region"] = optional_text(region)
        if duration_ms is not None:
            updates["duration_ms"] = require_int(duration_ms, "duration_ms")

        self._update(
            "pronunciations", existing.id, existing.version, updates, actor, conflict
        )
        saved = self.get_pronunciation(pronunciation_id)
        _audit.record(
            self._conn, _PRONUNCIATION, saved.id, "PRONUNCIATION_UPDATED", actor,
            details={
                "ownerType": saved.owner_type.value,
                "ownerId": saved.owner_id,
                "before": _pronunciation_snapshot(existing),
                "after": _pronunciation_snapshot(saved),
            },
        )
        return saved

    @_modifies_db
    def delete_pronunciation(self, pronunciation_id: str, actor: str | None = None) -> None:
        self._delete_pronunciation(pronunciation_id, actor)

    def list_public_pronunciations(
        self, owner_type: OwnerType | str, owner_id: str
    ) -> list[PronunciationModel]:
        """Recordings of a published owner; unpublished owners read as missing."""
        kind = OwnerType.parse(owner_type, "owner_type")
        owner_id = require_text(owner_id, "owner_id")
        getattr(self, _OWNERS[kind].published_getter)(owner_id)
        return self.list_pronunciations(kind, owner_id)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    @_modifies_db
    def record_audit_event(
        self,
        entity_type: str,
        entity_id: str,
        event_type: str,
        actor: str | None = None,
        comment: str | None = None,
        details: Any = None,
    ) -> AuditEvent:
        """Append a free-form event, e.g. an editorial note on an entity."""
        return _audit.record(
            self._conn, entity_type, entity_id, event_type, actor, comment, details
        )

    def get_timeline(
        self,
        entity_type: str,
        entity_id: str,
        *,
        page: int = 0,
        size: int = _audit.DEFAULT_PAGE_SIZE,
    ) -> Page[AuditEvent]:
        return _audit.timeline(self._conn, entity_type, entity_id, page=page, size=size)

    def get_latest_event(self, entity_type: str, entity_id: str) -> AuditEvent | None:
        return _audit.latest(self._conn, entity_type, entity_id)

    def get_activity_by_event_type(
        self,
        event_type: str,
        from_utc: datetime.datetime,
        to_utc: datetime.datetime,
        *,
        page: int = 0,
        size: int = _audit.DEFAULT_PAGE_SIZE,
    ) -> Page[AuditEvent]:
        return _audit.activity_by_event_type(
            self._conn, event_type, from_utc, to_utc, page=page, size=size
        )

    def get_activity_by_actor(
        self,
        actor: str,
        from_utc: datetime.datetime,
        to_utc: datetime.datetime,
        *,
        page: int = 0,
        size: int = _audit.DEFAULT_PAGE_SIZE,
    ) -> Page[AuditEvent]:
        return _audit.activity_by_actor(
            self._conn, actor, from_utc, to_utc, page=page, size=size
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _required_row(self, table: str, label: str, entity_id: str) -> sqlite3.Row:
        row = _db.get_row(self._conn, table, entity_id)
        if row is None:
            raise EntityNotFoundError(_not_found(label, entity_id))
        return row

    def _lemma_row(self, lemma_id: str) -> sqlite3.Row:
        return self._required_row("lemmas", "Lemma", lemma_id)

    def _find_lemma(self, lemma_id: str) -> LemmaModel | None:
        row = _db.get_row(self._conn, "lemmas", lemma_id)
        return _row_to_lemma(row) if row is not None else None

    def _owner_language(self, kind: OwnerType, owner_id: str) -> str:
        owner = _OWNERS[kind]
        return self._required_row(owner.table, owner.label, owner_id)["language"]

    def _check_unique(
        self,
        table: str,
        key: dict[str, Any],
        message: str,
        *,
        exclude_id: str | None = None,
    ) -> None:
        if _db.exists(self._conn, table, key, exclude_id=exclude_id):
            raise ConflictError(message)

    def _insert(
        self, table: str, values: dict[str, Any], actor: str | None, conflict: str
    ) -> str:
        try:
            return _db.insert_row(self._conn, table, values, actor)
        except sqlite3.IntegrityError as e:
            raise ConflictError(conflict) from e

    def _update(
        self,
        table: str,
        entity_id: str,
        version: int,
        values: dict[str, Any],
        actor: str | None,
        conflict: str,
    ) -> None:
        try:
            _db.update_row(self._conn, table, entity_id, version, values, actor)
        except sqlite3.IntegrityError as e:
            raise ConflictError(conflict) from e

    def _change_status(
        self,
        table: str,
        entity_type: str,
        existing: LemmaModel | UsageSentenceModel,
        target: EditorialStatus,
        actor: str | None,
        comment: str | None,
    ) -> None:
        require_transition(existing.status, target, label=entity_type.lower())
        _db.update_row(
            self._conn, table, existing.id, existing.version,
            {"status": target.value}, actor,
        )
        _audit.record(
            self._conn, entity_type, existing.id, f"{entity_type}_STATUS_CHANGED",
            actor, comment,
            details={"from": existing.status.value, "to": target.value},
        )

    @staticmethod
    def _guard_dependents(
        label: str,
        entity_id: str,
        dependents: dict[str, list[sqlite3.Row]],
        cascade: bool,
    ) -> None:
        if cascade:
            return
        counts = [f"{len(rows)} {kind}" for kind, rows in dependents.items() if rows]
        if counts:
            raise ConflictError(
                f"{label} {entity_id} still has {', '.join(counts)}; "
                "use cascade=True to force deletion"
            )

    def _delete_meaning(self, meaning_id: str, actor: str | None) -> None:
        existing = self.get_meaning(meaning_id)
        _db.delete_row(self._conn, "meanings", meaning_id)
        _audit.record(
            self._conn, _MEANING, meaning_id, "MEANING_DELETED", actor,
            details={
                "lemmaId": existing.lemma_id,
                "meaningLanguage": existing.meaning_language,
                "priority": existing.priority,
            },
        )

    def _delete_surface_form(self, surface_form_id: str, actor: str | None) -> None:
        existing = self.get_surface_form(surface_form_id)
        _db.delete_row(self._conn, "surface_forms", surface_form_id)
        _audit.record(
            self._conn, _SURFACE_FORM, surface_form_id, "SURFACE_FORM_DELETED", actor,
            details={
                "lemmaId": existing.lemma_id,
                "formNative": existing.form_native,
                "formType": existing.form_type,
            },
        )

    def _delete_link(self, link_id: str, actor: str | None) -> None:
        existing = self.get_link(link_id)
        _db.delete_row(self._conn, "lemma_sentence_links", link_id)
        _audit.record(
            self._conn, _LINK, link_id, "LEMMA_SENTENCE_LINK_DELETED", actor,
            details=_link_details(existing),
        )

    def _delete_pronunciation(self, pronunciation_id: str, actor: str | None) -> None:
        existing = self.get_pronunciation(pronunciation_id)
        _db.delete_row(self._conn, "pronunciations", pronunciation_id)
        _audit.record(
            self._conn, _PRONUNCIATION, pronunciation_id, "PRONUNCIATION_DELETED", actor,
            details={
                "ownerType": existing.owner_type.value,
                "ownerId": existing.owner_id,
                "audioUri": existing.audio_uri,
            },
        )
        logger.debug("Deleted pronunciation %s", pronunciation_id)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _not_found(label: str, entity_id: str) -> str:
    # Shared by admin and public reads so unpublished rows look missing.
    return f"{label} not found: {entity_id!r}"


def _register(value: str | None) -> str:
    out = optional_text(value)
    return out.lower() if out is not None else DEFAULT_REGISTER


def _link_type(value: LinkType | str | None) -> LinkType:
    if isinstance(value, LinkType):
        return value
    if value is None or not value.strip():
        return LinkType.EXACT
    return LinkType.parse(value, "link_type")


def _lemma_snapshot(lemma: LemmaModel) -> dict[str, Any]:
    return {
        "language": lemma.language,
        "lemmaNative": lemma.lemma_native,
        "lemmaLatin": lemma.lemma_latin,
        "pos": lemma.pos,
        "notes": lemma.notes,
    }


def _sentence_snapshot(sentence: UsageSentenceModel) -> dict[str, Any]:
    return {
        "language": sentence.language,
        "sentenceNative": sentence.sentence_native,
        "sentenceLatin": sentence.sentence_latin,
        "translation": sentence.translation,
        "register": sentence.register,
        "explanation": sentence.explanation,
        "difficulty": sentence.difficulty,
    }


def _meaning_snapshot(meaning: MeaningModel) -> dict[str, Any]:
    return {
        "meaningLanguage": meaning.meaning_language,
        "meaningText": meaning.meaning_text,
        "priority": meaning.priority,
    }


def _surface_form_snapshot(form: SurfaceFormModel) -> dict[str, Any]:
    return {
        "formNative": form.form_native,
        "formLatin": form.form_latin,
        "formType": form.form_type,
        "notes": form.notes,
    }


def _pronunciation_snapshot(p: PronunciationModel) -> dict[str, Any]:
    return {
        "speaker": p.speaker,
        "region": p.region,
        "audioUri": p.audio_uri,
        "durationMs": p.duration_ms,
    }


def _link_details(link: LemmaSentenceLinkModel) -> dict[str, Any]:
    return {
        "lemmaId": link.lemma_id,
        "sentenceId": link.sentence_id,
        "surfaceFormId": link.surface_form_id,
        "linkType": link.link_type.value,
    }


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

def _auditable(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "created_by": row["created_by"],
        "created_date": row["created_date"],
        "last_modified_by": row["last_modified_by"],
        "last_modified_date": row["last_modified_date"],
        "version": row["version"],
    }


def _row_to_lemma(row: sqlite3.Row) -> LemmaModel:
    return LemmaModel(
        id=row["id"],
        language=row["language"],
        lemma_native=row["lemma_native"],
        lemma_latin=row["lemma_latin"],
        pos=row["pos"],
        notes=row["notes"],
        status=EditorialStatus(row["status"]),
        **_auditable(row),
    )


def _row_to_sentence(row: sqlite3.Row) -> UsageSentenceModel:
    return UsageSentenceModel(
        id=row["id"],
        language=row["language"],
        sentence_native=row["sentence_native"],
        sentence_latin=row["sentence_latin"],
        translation=row["translation"],
        register=row["register"],
        explanation=row["explanation"],
        difficulty=row["difficulty"],
        status=EditorialStatus(row["status"]),
        **_auditable(row),
    )


def _row_to_meaning(row: sqlite3.Row) -> MeaningModel:
    return MeaningModel(
        id=row["id"],
        lemma_id=row["lemma_id"],
        meaning_language=row["meaning_language"],
        meaning_text=row["meaning_text"],
        priority=row["priority"],
        **_auditable(row),
    )


def _row_to_surface_form(row: sqlite3.Row) -> SurfaceFormModel:
    return SurfaceFormModel(
        id=row["id"],
        lemma_id=row["lemma_id"],
        form_native=row["form_native"],
        form_latin=row["form_latin"],
        form_type=row["form_type"],
        notes=row["notes"],
        **_auditable(row),
    )


def _row_to_link(row: sqlite3.Row) -> LemmaSentenceLinkModel:
    return LemmaSentenceLinkModel(
        id=row["id"],
        lemma_id=row["lemma_id"],
        sentence_id=row["sentence_id"],
        surface_form_id=row["surface_form_id"],
        link_type=LinkType(row["link_type"]),
        **_auditable(row),
    )


def _row_to_pronunciation(row: sqlite3.Row) -> PronunciationModel:
    return PronunciationModel(
        id=row["id"],
        owner_type=OwnerType(row["owner_type"]),
        owner_id=row["owner_id"],
        speaker=row["speaker"],
        region=row["region"],
        audio_uri=row["audio_uri"],
        duration_ms=row["duration_ms"],
        **_auditable(row),
    )
