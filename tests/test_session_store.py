"""Tests for upload session stores (in-memory and SQLite backends)."""

import threading
import time

import pytest

from common.types import DocumentType, UploadSession
from server.database import get_db_connection
from server.session_store import (
    InMemorySessionStore,
    SqliteSessionStore,
    create_session_store,
)


def make_session(upload_id, file_name="a.pdf", total_chunks=3, created_at=None, updated_at=None,
                 document_type=DocumentType.THESIS):
    now = time.time()
    return UploadSession(
        upload_id=upload_id,
        file_name=file_name,
        total_chunks=total_chunks,
        document_type=document_type,
        temp_directory=f"/tmp/{upload_id}",
        created_at=created_at if created_at is not None else now,
        updated_at=updated_at if updated_at is not None else now,
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Session store of each backend."""
    if request.param == "memory":
        return InMemorySessionStore()
    return SqliteSessionStore(str(tmp_path / "sessions.db"))


class TestSessionStore:

    def test_create_and_get(self, store):
        store.create(make_session("u1"))

        session = store.get("u1")
        assert session.upload_id == "u1"
        assert session.file_name == "a.pdf"
        assert session.total_chunks == 3
        assert session.document_type is DocumentType.THESIS

    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    def test_find_latest_prefers_newest(self, store):
        store.create(make_session("old", created_at=100.0))
        store.create(make_session("new", created_at=200.0))
        store.create(make_session("other", file_name="b.pdf", created_at=300.0))

        assert store.find_latest("a.pdf", 3).upload_id == "new"

    def test_find_latest_matches_total_chunks(self, store):
        store.create(make_session("three", total_chunks=3, created_at=100.0))
        store.create(make_session("four", total_chunks=4, created_at=200.0))

        assert store.find_latest("a.pdf", 3).upload_id == "three"
        assert store.find_latest("a.pdf", 5) is None

    def test_find_latest_tie_picks_last_created(self, store):
        store.create(make_session("first", created_at=100.0))
        store.create(make_session("second", created_at=100.0))

        assert store.find_latest("a.pdf", 3).upload_id == "second"

    def test_touch_updates_timestamp(self, store):
        store.create(make_session("u1", updated_at=10.0))

        store.touch("u1")

        assert store.get("u1").updated_at > 10.0

    def test_touch_unknown_is_noop(self, store):
        store.touch("missing")
        assert store.get("missing") is None

    def test_delete_returns_removed_session(self, store):
        store.create(make_session("u1"))

        removed = store.delete("u1")

        assert removed.upload_id == "u1"
        assert store.get("u1") is None
        assert store.delete("u1") is None

    def test_clear_returns_count(self, store):
        store.create(make_session("u1"))
        store.create(make_session("u2"))

        assert store.clear() == 2
        assert store.list_sessions() == []

    def test_list_expired(self, store):
        store.create(make_session("stale", updated_at=100.0))
        store.create(make_session("fresh", updated_at=time.time()))

        expired = store.list_expired(cutoff=time.time() - 60)

        assert [s.upload_id for s in expired] == ["stale"]


def test_sqlite_sessions_survive_reopen(tmp_path):
    """A second store on the same file (another worker) sees the same records."""
    db_path = str(tmp_path / "sessions.db")
    SqliteSessionStore(db_path).create(make_session("u1"))

    assert SqliteSessionStore(db_path).get("u1").upload_id == "u1"


def test_sqlite_schema(tmp_path):
    db_path = str(tmp_path / "nested" / "sessions.db")
    SqliteSessionStore(db_path)

    with get_db_connection(db_path) as conn:
        columns = [row["name"] for row in conn.execute("PRAGMA table_info(upload_sessions)")]

    assert columns == [
        "upload_id", "file_name", "total_chunks", "document_type",
        "temp_directory", "created_at", "updated_at",
    ]


def test_sqlite_create_replaces_existing_record(tmp_path):
    store = SqliteSessionStore(str(tmp_path / "sessions.db"))
    store.create(make_session("u1", total_chunks=3))
    store.create(make_session("u1", total_chunks=5))

    assert store.get("u1").total_chunks == 5


def test_memory_store_concurrent_creates():
    store = InMemorySessionStore()

    def worker(offset):
        for i in range(200):
            store.create(make_session(f"u{offset}_{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.list_sessions()) == 1600


def test_create_session_store_factory(tmp_path):
    assert isinstance(create_session_store("memory"), InMemorySessionStore)
    assert isinstance(
        create_session_store("sqlite", str(tmp_path / "s.db")), SqliteSessionStore
    )
    with pytest.raises(ValueError):
        create_session_store("redis")
