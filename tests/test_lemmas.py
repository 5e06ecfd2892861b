"""Tests for lemma CRUD, status workflow and public reads."""

import json

import pytest

from dictionary_editor import (
    ConflictError,
    DictionaryEditor,
    EditorialStatus,
    EntityNotFoundError,
    InvalidTransitionError,
    StaleVersionError,
    ValidationError,
)
from conftest import event_types, publish_lemma


class TestCreateLemma:

    def test_defaults_to_draft(self, lemma):
        assert lemma.status is EditorialStatus.DRAFT
        assert lemma.language == "mr"
        assert lemma.lemma_native == "नमस्कार"
        assert lemma.version == 0
        assert lemma.created_by == "editor@example.org"

    def test_language_is_normalized(self, editor_with_languages):
        lem = editor_with_languages.create_lemma(" MR ", "पाणी")
        assert lem.language == "mr"

    def test_explicit_initial_status(self, editor_with_languages):
        lem = editor_with_languages.create_lemma("en", "water", status="review")
        assert lem.status is EditorialStatus.REVIEW

    def test_blank_optional_fields_become_none(self, editor_with_languages):
        lem = editor_with_languages.create_lemma("en", "water", pos="  ", notes="")
        assert lem.pos is None
        assert lem.notes is None

    def test_native_required(self, editor_with_languages):
        with pytest.raises(ValidationError):
            editor_with_languages.create_lemma("en", "   ")

    def test_duplicate(self, editor_with_languages, lemma):
        with pytest.raises(ConflictError):
            editor_with_languages.create_lemma("mr", "नमस्कार")

    def test_same_native_other_language(self, editor_with_languages):
        ed = editor_with_languages
        ed.create_lemma("en", "namaste")
        ed.create_lemma("mr", "namaste")

    def test_audit_event(self, editor_with_languages, lemma):
        event = editor_with_languages.get_latest_event("LEMMA", lemma.id)
        assert event.event_type == "LEMMA_CREATED"
        assert json.loads(event.details) == {
            "language": "mr", "lemmaNative": "नमस्कार", "status": "DRAFT",
        }


class TestUpdateLemma:

    def test_partial_update(self, editor_with_languages, lemma):
        updated = editor_with_languages.update_lemma(lemma.id, notes="greeting")
        assert updated.notes == "greeting"
        assert updated.lemma_latin == "namaskār"
        assert updated.version == lemma.version + 1

    def test_blank_clears_optional_field(self, editor_with_languages, lemma):
        updated = editor_with_languages.update_lemma(lemma.id, pos="")
        assert updated.pos is None

    def test_rename_conflict(self, editor_with_languages, lemma):
        ed = editor_with_languages
        other = ed.create_lemma("mr", "पाणी")
        with pytest.raises(ConflictError):
            ed.update_lemma(other.id, lemma_native="नमस्कार")

    def test_unchanged_key_does_not_conflict_with_itself(self, editor_with_languages, lemma):
        editor_with_languages.update_lemma(lemma.id, lemma_native="नमस्कार")

    def test_move_to_disabled_language(self, editor_with_languages, lemma):
        with pytest.raises(ValidationError):
            editor_with_languages.update_lemma(lemma.id, language="sa")

    def test_move_language(self, editor_with_languages, lemma):
        updated = editor_with_languages.update_lemma(lemma.id, language="EN")
        assert updated.language == "en"

    def test_stale_version(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.update_lemma(lemma.id, notes="first", expected_version=0)
        with pytest.raises(StaleVersionError):
            ed.update_lemma(lemma.id, notes="second", expected_version=0)
        assert ed.get_lemma(lemma.id).notes == "first"

    def test_audit_before_after(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.update_lemma(lemma.id, pos="interjection", actor="rev@example.org")
        event = ed.get_latest_event("LEMMA", lemma.id)
        details = json.loads(event.details)
        assert event.event_type == "LEMMA_UPDATED"
        assert event.actor == "rev@example.org"
        assert details["before"]["pos"] == "noun"
        assert details["after"]["pos"] == "interjection"

    def test_missing(self, editor_with_languages):
        with pytest.raises(EntityNotFoundError):
            editor_with_languages.update_lemma("nope", notes="x")


class TestLemmaStatus:

    def test_marathi_greeting_scenario(self, editor_with_languages, lemma):
        ed = editor_with_languages
        assert event_types(ed, "LEMMA", lemma.id) == ["LEMMA_CREATED"]

        with pytest.raises(InvalidTransitionError):
            ed.set_lemma_status(lemma.id, EditorialStatus.PUBLISHED)

        ed.set_lemma_status(lemma.id, EditorialStatus.REVIEW)
        event = ed.get_latest_event("LEMMA", lemma.id)
        assert event.event_type == "LEMMA_STATUS_CHANGED"
        assert json.loads(event.details) == {"from": "DRAFT", "to": "REVIEW"}

        ed.set_lemma_status(lemma.id, EditorialStatus.PUBLISHED)
        assert [l.id for l in ed.list_published_lemmas("mr")] == [lemma.id]
        assert ed.list_lemmas("mr", status=EditorialStatus.DRAFT) == []

    def test_refused_transition_leaves_no_trace(self, editor_with_languages, lemma):
        ed = editor_with_languages
        with pytest.raises(InvalidTransitionError):
            ed.set_lemma_status(lemma.id, "PUBLISHED")
        assert ed.get_lemma(lemma.id).status is EditorialStatus.DRAFT
        assert event_types(ed, "LEMMA", lemma.id) == ["LEMMA_CREATED"]

    def test_archived_cannot_publish(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.archive_lemma(lemma.id)
        with pytest.raises(InvalidTransitionError):
            ed.set_lemma_status(lemma.id, EditorialStatus.PUBLISHED)

    def test_unarchive_defaults_to_review(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.archive_lemma(lemma.id)
        assert ed.unarchive_lemma(lemma.id).status is EditorialStatus.REVIEW

    def test_unarchive_straight_to_published(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.archive_lemma(lemma.id)
        with pytest.raises(InvalidTransitionError):
            ed.unarchive_lemma(lemma.id, EditorialStatus.PUBLISHED)

    def test_unarchive_to_archived(self, editor_with_languages, lemma):
        with pytest.raises(ValidationError):
            editor_with_languages.unarchive_lemma(lemma.id, "ARCHIVED")

    def test_same_state_is_recorded(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.set_lemma_status(lemma.id, "DRAFT")
        assert event_types(ed, "LEMMA", lemma.id)[-1] == "LEMMA_STATUS_CHANGED"

    def test_unknown_status(self, editor_with_languages, lemma):
        with pytest.raises(ValidationError):
            editor_with_languages.set_lemma_status(lemma.id, "LIVE")

    def test_comment_is_kept(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.set_lemma_status(lemma.id, "REVIEW", comment="ready for review")
        assert ed.get_latest_event("LEMMA", lemma.id).comment == "ready for review"


class TestListLemmas:

    def test_ordered_by_native(self, editor_with_languages):
        ed = editor_with_languages
        for word in ("cherry", "apple", "banana"):
            ed.create_lemma("en", word)
        assert [l.lemma_native for l in ed.list_lemmas("en")] == [
            "apple", "banana", "cherry",
        ]

    def test_status_filter(self, editor_with_languages):
        ed = editor_with_languages
        a = ed.create_lemma("en", "apple")
        ed.create_lemma("en", "banana")
        ed.set_lemma_status(a.id, "REVIEW")
        assert [l.id for l in ed.list_lemmas("en", status="review")] == [a.id]


class TestPublicLemma:

    def test_unpublished_reads_as_missing(self, editor_with_languages, lemma):
        ed = editor_with_languages
        with pytest.raises(EntityNotFoundError) as draft:
            ed.get_published_lemma(lemma.id)
        with pytest.raises(EntityNotFoundError) as missing:
            ed.get_published_lemma("does-not-exist")
        assert str(draft.value) == str(missing.value).replace(
            "does-not-exist", lemma.id
        )

    def test_review_reads_as_missing(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.set_lemma_status(lemma.id, "REVIEW")
        with pytest.raises(EntityNotFoundError):
            ed.get_published_lemma(lemma.id)

    def test_published(self, editor_with_languages, lemma):
        ed = editor_with_languages
        publish_lemma(ed, lemma.id)
        assert ed.get_published_lemma(lemma.id).id == lemma.id


class TestDeleteLemma:

    def test_delete(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.delete_lemma(lemma.id, actor="admin@example.org")
        with pytest.raises(EntityNotFoundError):
            ed.get_lemma(lemma.id)
        event = ed.get_latest_event("LEMMA", lemma.id)
        assert event.event_type == "LEMMA_DELETED"
        assert event.actor == "admin@example.org"

    def test_dependents_block_delete(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.create_meaning(lemma.id, "en", "hello", 1)
        with pytest.raises(ConflictError, match="cascade"):
            ed.delete_lemma(lemma.id)
        assert ed.get_lemma(lemma.id).id == lemma.id

    def test_cascade(self, editor_with_languages, lemma, sentence):
        ed = editor_with_languages
        meaning = ed.create_meaning(lemma.id, "en", "hello", 1)
        form = ed.create_surface_form(lemma.id, "नमस्कारा")
        link = ed.create_link(lemma.id, sentence.id)
        pron = ed.create_pronunciation("LEMMA", lemma.id, "s3://audio/namaskar.mp3")

        ed.delete_lemma(lemma.id, cascade=True)

        assert ed.list_meanings(lemma.id) == []
        assert ed.list_surface_forms(lemma.id) == []
        assert ed.list_links_for_sentence(sentence.id) == []
        assert ed.list_pronunciations("LEMMA", lemma.id) == []
        assert ed.get_latest_event("MEANING", meaning.id).event_type == "MEANING_DELETED"
        assert (
            ed.get_latest_event("SURFACE_FORM", form.id).event_type
            == "SURFACE_FORM_DELETED"
        )
        assert (
            ed.get_latest_event("LEMMA_SENTENCE_LINK", link.id).event_type
            == "LEMMA_SENTENCE_LINK_DELETED"
        )
        assert (
            ed.get_latest_event("PRONUNCIATION", pron.id).event_type
            == "PRONUNCIATION_DELETED"
        )
        # the sentence itself survives
        assert ed.get_sentence(sentence.id).id == sentence.id

    def test_audit_survives_delete(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.delete_lemma(lemma.id)
        assert event_types(ed, "LEMMA", lemma.id) == ["LEMMA_CREATED", "LEMMA_DELETED"]


class TestConcurrentWriters:

    def test_racing_create_is_a_conflict(self, tmp_path, monkeypatch):
        path = tmp_path / "dict.db"
        with DictionaryEditor(path) as first, DictionaryEditor(path) as second:
            first.create_language("mr", "Marathi", "Devanagari")
            check_unique = second._check_unique

            def commit_first(*args, **kwargs):
                check_unique(*args, **kwargs)
                first.create_lemma("mr", "पाणी", actor="a@example.org")

            monkeypatch.setattr(second, "_check_unique", commit_first)
            with pytest.raises(ConflictError, match="already exists"):
                second.create_lemma("mr", "पाणी", actor="b@example.org")

            lemmas = first.list_lemmas("mr")
            assert [l.created_by for l in lemmas] == ["a@example.org"]
            assert event_types(first, "LEMMA", lemmas[0].id) == ["LEMMA_CREATED"]
            assert first._conn.execute(
                "SELECT COUNT(*) FROM editorial_audit_events WHERE event_type = ?",
                ("LEMMA_CREATED",),
            ).fetchone()[0] == 1
