"""Tests for surface forms of lemmas."""

import json

import pytest

from dictionary_editor import ConflictError, EntityNotFoundError, ValidationError
from conftest import publish_lemma


class TestSurfaceForms:

    def test_create(self, editor_with_languages, lemma):
        f = editor_with_languages.create_surface_form(
            lemma.id, "नमस्काराने", form_type="instrumental", form_latin="",
        )
        assert f.form_type == "instrumental"
        assert f.form_latin is None

    def test_duplicate(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.create_surface_form(lemma.id, "नमस्कारा")
        with pytest.raises(ConflictError):
            ed.create_surface_form(lemma.id, " नमस्कारा ")

    def test_native_required(self, editor_with_languages, lemma):
        with pytest.raises(ValidationError):
            editor_with_languages.create_surface_form(lemma.id, "")

    def test_unknown_lemma(self, editor_with_languages):
        with pytest.raises(EntityNotFoundError):
            editor_with_languages.create_surface_form("missing", "x")

    def test_lemma_in_disabled_language(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.set_language_enabled("mr", False)
        with pytest.raises(ValidationError):
            ed.create_surface_form(lemma.id, "नमस्कारा")

    def test_ordered_by_form(self, editor_with_languages):
        ed = editor_with_languages
        lem = ed.create_lemma("en", "run")
        for form in ("running", "ran", "runs"):
            ed.create_surface_form(lem.id, form)
        assert [f.form_native for f in ed.list_surface_forms(lem.id)] == [
            "ran", "running", "runs",
        ]

    def test_rename_conflict(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.create_surface_form(lemma.id, "a")
        b = ed.create_surface_form(lemma.id, "b")
        with pytest.raises(ConflictError):
            ed.update_surface_form(b.id, form_native="a")

    def test_update_audit(self, editor_with_languages, lemma):
        ed = editor_with_languages
        f = ed.create_surface_form(lemma.id, "नमस्कारा", notes="oblique")
        ed.update_surface_form(f.id, notes="")
        event = ed.get_latest_event("SURFACE_FORM", f.id)
        details = json.loads(event.details)
        assert event.event_type == "SURFACE_FORM_UPDATED"
        assert details["before"]["notes"] == "oblique"
        assert details["after"]["notes"] is None

    def test_delete(self, editor_with_languages, lemma):
        ed = editor_with_languages
        f = ed.create_surface_form(lemma.id, "नमस्कारा")
        ed.delete_surface_form(f.id)
        with pytest.raises(EntityNotFoundError):
            ed.get_surface_form(f.id)

    def test_public_list(self, editor_with_languages, lemma):
        ed = editor_with_languages
        ed.create_surface_form(lemma.id, "नमस्कारा")
        with pytest.raises(EntityNotFoundError):
            ed.list_public_surface_forms(lemma.id)
        publish_lemma(ed, lemma.id)
        assert len(ed.list_public_surface_forms(lemma.id)) == 1
