import sqlite3

import pytest

from dictionary_editor import DatabaseError, DictionaryEditor, StaleVersionError
from dictionary_editor import db


@pytest.fixture
def db_conn():
    """Create an in-memory database connection for testing."""
    conn = db.connect(":memory:")
    db.init_db(conn)
    db.insert_row(
        conn, "languages", {"code": "mr", "name": "Marathi", "script": "Devanagari"}, None,
    )
    yield conn
    conn.close()


def _lemma(conn, native="नमस्कार"):
    return db.insert_row(
        conn, "lemmas", {"language": "mr", "lemma_native": native}, "editor@example.org",
    )


def test_insert_sets_audit_columns(db_conn):
    """Inserted rows get an id, both actors and version 0."""
    lemma_id = _lemma(db_conn)
    row = db.get_row(db_conn, "lemmas", lemma_id)
    assert row["created_by"] == "editor@example.org"
    assert row["last_modified_by"] == "editor@example.org"
    assert row["version"] == 0
    assert row["status"] == "DRAFT"
    assert row["created_date"].endswith("Z")


def test_blank_actor_is_system(db_conn):
    lemma_id = db.insert_row(
        db_conn, "lemmas", {"language": "mr", "lemma_native": "पाणी"}, "  ",
    )
    assert db.get_row(db_conn, "lemmas", lemma_id)["created_by"] == "system"


def test_update_bumps_version(db_conn):
    lemma_id = _lemma(db_conn)
    db.update_row(db_conn, "lemmas", lemma_id, 0, {"notes": "greeting"}, "rev@example.org")
    row = db.get_row(db_conn, "lemmas", lemma_id)
    assert row["version"] == 1
    assert row["notes"] == "greeting"
    assert row["last_modified_by"] == "rev@example.org"
    assert row["created_by"] == "editor@example.org"


def test_update_with_old_version(db_conn):
    """A write based on a stale read is rejected."""
    lemma_id = _lemma(db_conn)
    db.update_row(db_conn, "lemmas", lemma_id, 0, {"notes": "first"}, None)
    with pytest.raises(StaleVersionError):
        db.update_row(db_conn, "lemmas", lemma_id, 0, {"notes": "second"}, None)


def test_exists_excludes_self(db_conn):
    lemma_id = _lemma(db_conn)
    key = {"language": "mr", "lemma_native": "नमस्कार"}
    assert db.exists(db_conn, "lemmas", key)
    assert not db.exists(db_conn, "lemmas", key, exclude_id=lemma_id)


def test_unique_constraint_backs_the_check(db_conn):
    _lemma(db_conn)
    with pytest.raises(sqlite3.IntegrityError):
        _lemma(db_conn)


def test_foreign_keys_enforced(db_conn):
    with pytest.raises(sqlite3.IntegrityError):
        db.insert_row(db_conn, "lemmas", {"language": "xx", "lemma_native": "a"}, None)


def test_unknown_table(db_conn):
    with pytest.raises(ValueError):
        db.get_row(db_conn, "editorial_audit_events", "x")


def test_count_and_select(db_conn):
    _lemma(db_conn, "b")
    _lemma(db_conn, "a")
    assert db.count_rows(db_conn, "lemmas", {"language": "mr"}) == 2
    rows = db.select_rows(db_conn, "lemmas", {"language": "mr"}, "lemma_native ASC")
    assert [r["lemma_native"] for r in rows] == ["a", "b"]


def test_schema_version_mismatch(tmp_path):
    path = tmp_path / "dict.db"
    DictionaryEditor(path).close()
    conn = sqlite3.connect(path)
    conn.execute("UPDATE meta SET value = '0.1' WHERE key = 'schema_version'")
    conn.commit()
    conn.close()
    with pytest.raises(DatabaseError):
        DictionaryEditor(path)


def test_reopen_file_database(tmp_path):
    path = tmp_path / "dict.db"
    with DictionaryEditor(path) as ed:
        ed.create_language("mr", "Marathi", "Devanagari")
        ed.create_lemma("mr", "नमस्कार")
    with DictionaryEditor(path) as ed:
        assert [l.lemma_native for l in ed.list_lemmas("mr")] == ["नमस्कार"]
