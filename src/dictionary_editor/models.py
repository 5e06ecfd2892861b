"""Domain model dataclasses and enums for dictionary-editor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from dictionary_editor.exceptions import ValidationError

_T = TypeVar("_T")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class _ParsableEnum(str, Enum):
    """String enum that parses case-insensitive, whitespace-padded input."""

    @classmethod
    def parse(cls, value: str | _ParsableEnum | None, field: str):
        if isinstance(value, cls):
            return value
        if value is None or not str(value).strip():
            raise ValidationError(f"{field} must be provided")
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(
                f"Invalid {field}: {value!r} (expected one of {allowed})"
            ) from None


class EditorialStatus(_ParsableEnum):
    """Workflow stage of a lemma or usage sentence."""

    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class LinkType(_ParsableEnum):
    """How a lemma occurs in a linked usage sentence."""

    EXACT = "EXACT"
    INFLECTED = "INFLECTED"
    DERIVED = "DERIVED"
    RELATED = "RELATED"


class OwnerType(_ParsableEnum):
    """Kind of entity a pronunciation recording belongs to."""

    LEMMA = "LEMMA"
    SENTENCE = "SENTENCE"


class EntityType(str, Enum):
    """Entity type tags written to the audit log."""

    LANGUAGE = "LANGUAGE"
    LEMMA = "LEMMA"
    MEANING = "MEANING"
    SURFACE_FORM = "SURFACE_FORM"
    USAGE_SENTENCE = "USAGE_SENTENCE"
    LEMMA_SENTENCE_LINK = "LEMMA_SENTENCE_LINK"
    PRONUNCIATION = "PRONUNCIATION"


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class LanguageModel:
    """A language that content can be written in."""

    id: str
    code: str
    name: str
    script: str
    transliteration_scheme: str | None
    enabled: bool
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class LemmaModel:
    """A dictionary headword in its base form."""

    id: str
    language: str
    lemma_native: str
    lemma_latin: str | None
    pos: str | None
    notes: str | None
    status: EditorialStatus
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class MeaningModel:
    """A gloss of a lemma in another language, ranked by priority."""

    id: str
    lemma_id: str
    meaning_language: str
    meaning_text: str
    priority: int
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class SurfaceFormModel:
    """An inflected or alternate written form of a lemma."""

    id: str
    lemma_id: str
    form_native: str
    form_latin: str | None
    form_type: str | None
    notes: str | None
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class UsageSentenceModel:
    """An example sentence, with its own editorial status."""

    id: str
    language: str
    sentence_native: str
    sentence_latin: str | None
    translation: str | None
    register: str
    explanation: str | None
    difficulty: int | None
    status: EditorialStatus
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class LemmaSentenceLinkModel:
    """Association between a lemma and a usage sentence.

    ``surface_form_id`` is a soft reference: it is never checked against
    the surface form table and may point at a deleted row.
    """

    id: str
    lemma_id: str
    sentence_id: str
    surface_form_id: str | None
    link_type: LinkType
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class PronunciationModel:
    """An audio recording attached to a lemma or a sentence."""

    id: str
    owner_type: OwnerType
    owner_id: str
    speaker: str | None
    region: str | None
    audio_uri: str
    duration_ms: int | None
    created_by: str
    created_date: str
    last_modified_by: str
    last_modified_date: str
    version: int


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single append-only editorial audit entry."""

    id: str
    entity_type: str
    entity_id: str
    event_type: str
    actor: str
    comment: str | None
    details: str | None
    event_ts: str


@dataclass(frozen=True, slots=True)
class Page(Generic[_T]):
    """One page of a newest-first query result."""

    items: tuple[_T, ...]
    page: int
    size: int
    total: int

    @property
    def has_next(self) -> bool:
        return (self.page + 1) * self.size < self.total
