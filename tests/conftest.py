"""Shared test fixtures for dictionary-editor."""

import pytest

from dictionary_editor import DictionaryEditor, EditorialStatus


@pytest.fixture
def editor():
    """Create an in-memory editor for testing."""
    with DictionaryEditor(":memory:") as ed:
        yield ed


@pytest.fixture
def editor_with_languages(editor):
    """Editor with Marathi and English enabled, Sanskrit disabled."""
    editor.create_language(
        "mr", "Marathi", "Devanagari", transliteration_scheme="IAST",
    )
    editor.create_language("en", "English", "Latin")
    editor.create_language("sa", "Sanskrit", "Devanagari", enabled=False)
    return editor


@pytest.fixture
def lemma(editor_with_languages):
    """A DRAFT Marathi lemma."""
    return editor_with_languages.create_lemma(
        "mr", "नमस्कार", lemma_latin="namaskār", pos="noun", actor="editor@example.org",
    )


@pytest.fixture
def sentence(editor_with_languages):
    """A DRAFT Marathi usage sentence."""
    return editor_with_languages.create_sentence(
        "mr", "सर्वांना नमस्कार", translation="Greetings to all",
    )


def publish_lemma(ed, lemma_id):
    ed.set_lemma_status(lemma_id, EditorialStatus.REVIEW)
    return ed.set_lemma_status(lemma_id, EditorialStatus.PUBLISHED)


def publish_sentence(ed, sentence_id):
    ed.set_sentence_status(sentence_id, EditorialStatus.REVIEW)
    return ed.set_sentence_status(sentence_id, EditorialStatus.PUBLISHED)


def event_types(ed, entity_type, entity_id):
    """Event types on an entity's timeline, oldest first."""
    page = ed.get_timeline(entity_type, entity_id, size=100)
    return [e.event_type for e in reversed(page.items)]
