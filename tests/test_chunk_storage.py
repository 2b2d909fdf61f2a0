"""Tests for on-disk chunk storage."""

import itertools
import os
from pathlib import Path

import pytest

from server.chunk_storage import ChunkStorage
from server.exceptions import IncompleteUploadError


@pytest.fixture
def storage(tmp_path):
    return ChunkStorage(tmp_path / "temp")


def split(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)] or [b""]


class TestWriteAndRead:

    def test_write_chunk_creates_session_dir(self, storage):
        path = storage.write_chunk("u1", 0, b"hello")

        assert path == str(storage.temp_root / "u1" / "chunk_0")
        assert storage.read_chunk("u1", 0) == b"hello"
        assert storage.chunk_exists("u1", 0)
        assert not storage.chunk_exists("u1", 1)

    def test_rewrite_replaces_previous_copy(self, storage):
        storage.write_chunk("u1", 0, b"first")
        storage.write_chunk("u1", 0, b"second")

        assert storage.read_chunk("u1", 0) == b"second"
        assert os.listdir(storage.session_dir("u1")) == ["chunk_0"]

    def test_exclusive_write_keeps_first_copy(self, storage):
        storage.write_chunk("u1", 0, b"first", overwrite=False)

        with pytest.raises(FileExistsError):
            storage.write_chunk("u1", 0, b"second", overwrite=False)

        assert storage.read_chunk("u1", 0) == b"first"
        assert os.listdir(storage.session_dir("u1")) == ["chunk_0"]

    def test_failed_write_leaves_no_partial_file(self, storage, monkeypatch):
        def fail_midway(self, data):
            with open(self, "wb") as f:
                f.write(data[:2])
            raise OSError("disk full")

        monkeypatch.setattr(Path, "write_bytes", fail_midway)

        with pytest.raises(OSError, match="disk full"):
            storage.write_chunk("u1", 0, b"hello")

        assert os.listdir(storage.session_dir("u1")) == []

    def test_read_missing_chunk_raises(self, storage):
        with pytest.raises(FileNotFoundError):
            storage.read_chunk("u1", 0)

    def test_streaming_read_yields_all_bytes(self, storage):
        data = os.urandom(200_000)
        storage.write_chunk("u1", 0, data)

        pieces = list(storage.read_chunk_streaming("u1", 0, piece_size=65536))

        assert len(pieces) == 4
        assert b"".join(pieces) == data

    def test_list_chunk_indices_ignores_partial_files(self, storage):
        storage.write_chunk("u1", 2, b"c")
        storage.write_chunk("u1", 0, b"a")
        (storage.session_dir("u1") / "chunk_1.1234abcd.part").write_bytes(b"half")

        assert storage.list_chunk_indices("u1") == [0, 2]
        assert storage.missing_indices("u1", 3) == [1]
        assert storage.list_chunk_indices("unknown") == []


class TestAssemble:

    @pytest.mark.parametrize("total_size,chunk_size", [(10, 3), (9, 3), (1, 1), (5, 100)])
    def test_any_write_order_reassembles_source(self, storage, tmp_path, total_size, chunk_size):
        """Every permutation of write order yields the original bytes."""
        source = bytes(range(total_size))
        chunks = split(source, chunk_size)

        for n, order in enumerate(itertools.permutations(range(len(chunks)))):
            upload_id = f"u{n}"
            for index in order:
                storage.write_chunk(upload_id, index, chunks[index])
            destination = tmp_path / "out" / f"{upload_id}.bin"

            size = storage.assemble(upload_id, len(chunks), destination)

            assert destination.read_bytes() == source
            assert size == total_size

    def test_duplicate_writes_reassemble_source(self, storage, tmp_path):
        source = b"abcdefghij"
        chunks = split(source, 4)
        for index in [1, 0, 1, 2, 0, 2]:
            storage.write_chunk("u1", index, chunks[index])

        storage.assemble("u1", 3, tmp_path / "out.bin")

        assert (tmp_path / "out.bin").read_bytes() == source

    def test_empty_chunk_produces_empty_file(self, storage, tmp_path):
        storage.write_chunk("u1", 0, b"")

        size = storage.assemble("u1", 1, tmp_path / "empty.bin")

        assert size == 0
        assert (tmp_path / "empty.bin").read_bytes() == b""

    def test_missing_chunk_leaves_destination_untouched(self, storage, tmp_path):
        destination = tmp_path / "out.bin"
        destination.write_bytes(b"previous")
        storage.write_chunk("u1", 0, b"a")
        storage.write_chunk("u1", 2, b"c")

        with pytest.raises(IncompleteUploadError) as exc_info:
            storage.assemble("u1", 3, destination)

        assert exc_info.value.details == {"missingChunks": [1]}
        assert destination.read_bytes() == b"previous"
        assert sorted(os.listdir(tmp_path)) == ["out.bin", "temp"]

    def test_assemble_replaces_existing_destination(self, storage, tmp_path):
        destination = tmp_path / "docs" / "a.pdf"
        destination.parent.mkdir()
        destination.write_bytes(b"old")
        storage.write_chunk("u1", 0, b"new")

        storage.assemble("u1", 1, destination)

        assert destination.read_bytes() == b"new"
        assert os.listdir(destination.parent) == ["a.pdf"]


class TestRemoval:

    def test_remove_session_dir(self, storage):
        storage.write_chunk("u1", 0, b"a")
        storage.write_chunk("u2", 0, b"b")

        assert storage.remove_session_dir("u1") is True
        assert storage.remove_session_dir("u1") is False
        assert storage.list_session_ids() == ["u2"]

    def test_remove_all(self, storage):
        storage.write_chunk("u1", 0, b"a")

        assert storage.remove_all() is True
        assert not storage.temp_root.exists()
        assert storage.remove_all() is False
        assert storage.list_session_ids() == []
