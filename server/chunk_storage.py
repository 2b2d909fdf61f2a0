"""Manages per-upload chunk files on disk: write, read back, assemble and remove."""

import os
import shutil
import uuid
from pathlib import Path
from typing import Iterator, List

from common.constants import CHUNK_FILE_PREFIX, PARTIAL_FILE_SUFFIX
from common.logging_config import get_logger
from server.exceptions import IncompleteUploadError

logger = get_logger(__name__)

COPY_BUFFER_SIZE = 64 * 1024


class ChunkStorage:
    """
    Temporary chunk area rooted at temp_root.

    Each upload gets its own directory and each chunk its own file, so writes
    for different uploads or different indices never touch the same path.
    """

    def __init__(self, temp_root: Path):
        self.temp_root = Path(temp_root)

    def session_dir(self, upload_id: str) -> Path:
        """
        Get the chunk directory for an upload.

        Args:
            upload_id: Upload identifier

        Returns:
            Path object for the session directory
        """
        return self.temp_root / upload_id

    def chunk_path(self, upload_id: str, chunk_index: int) -> Path:
        return self.session_dir(upload_id) / f"{CHUNK_FILE_PREFIX}{chunk_index}"

    def write_chunk(self, upload_id: str, chunk_index: int, data: bytes, overwrite: bool = True) -> str:
        """
        Write chunk data to disk.

        The payload goes to a temp file first and is then moved into place.
        With overwrite=False the move is a hard link, which fails atomically if
        the chunk already exists.

        Args:
            upload_id: Upload identifier
            chunk_index: Zero-based chunk index
            data: Raw chunk payload
            overwrite: Replace an earlier copy of the same index

        Returns:
            String path to written file

        Raises:
            FileExistsError: If overwrite is False and the chunk is already stored
            OSError: If write operation fails
        """
        directory = self.session_dir(upload_id)
        directory.mkdir(parents=True, exist_ok=True)
        filepath = self.chunk_path(upload_id, chunk_index)
        tmp_path = filepath.with_name(f"{filepath.name}.{uuid.uuid4().hex[:8]}{PARTIAL_FILE_SUFFIX}")
        try:
            tmp_path.write_bytes(data)
            if overwrite:
                os.replace(tmp_path, filepath)
            else:
                os.link(tmp_path, filepath)
        finally:
            tmp_path.unlink(missing_ok=True)
        return str(filepath)

    def chunk_exists(self, upload_id: str, chunk_index: int) -> bool:
        return self.chunk_path(upload_id, chunk_index).exists()

    def read_chunk(self, upload_id: str, chunk_index: int) -> bytes:
        """
        Read an entire chunk from disk.

        Raises:
            FileNotFoundError: If chunk does not exist
        """
        return self.chunk_path(upload_id, chunk_index).read_bytes()

    def read_chunk_streaming(self, upload_id: str, chunk_index: int,
                             piece_size: int = COPY_BUFFER_SIZE) -> Iterator[bytes]:
        """
        Stream chunk data in pieces.

        Yields:
            Chunk data pieces

        Raises:
            FileNotFoundError: If chunk does not exist
        """
        with open(self.chunk_path(upload_id, chunk_index), 'rb') as f:
            while True:
                piece = f.read(piece_size)
                if not piece:
                    break
                yield piece

    def list_chunk_indices(self, upload_id: str) -> List[int]:
        """
        List chunk indices present for an upload, sorted ascending.
        """
        directory = self.session_dir(upload_id)
        if not directory.exists():
            return []

        indices = []
        for filepath in directory.glob(f"{CHUNK_FILE_PREFIX}*"):
            suffix = filepath.name[len(CHUNK_FILE_PREFIX):]
            if suffix.isdigit():
                indices.append(int(suffix))
        return sorted(indices)

    def missing_indices(self, upload_id: str, total_chunks: int) -> List[int]:
        return [i for i in range(total_chunks) if not self.chunk_exists(upload_id, i)]

    def assemble(self, upload_id: str, total_chunks: int, destination: Path) -> int:
        """
        Concatenate chunks 0..total_chunks-1 into destination.

        Data is streamed into a sibling ".part" file which is renamed over the
        destination only after every chunk was copied.

        Args:
            upload_id: Upload identifier
            total_chunks: Number of chunks to read back
            destination: Final artifact path

        Returns:
            Size of the assembled file in bytes

        Raises:
            IncompleteUploadError: If any chunk file is missing
            OSError: If reading or writing fails
        """
        missing = self.missing_indices(upload_id, total_chunks)
        if missing:
            raise IncompleteUploadError(
                f"Cannot assemble upload {upload_id}: missing chunks {missing}",
                details={"missingChunks": missing},
            )

        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial_path = destination.with_name(f".{destination.name}.{uuid.uuid4().hex[:8]}{PARTIAL_FILE_SUFFIX}")

        size = 0
        try:
            with open(partial_path, 'wb') as out:
                for index in range(total_chunks):
                    for piece in self.read_chunk_streaming(upload_id, index):
                        out.write(piece)
                        size += len(piece)
            os.replace(partial_path, destination)
        except FileNotFoundError as e:
            partial_path.unlink(missing_ok=True)
            raise IncompleteUploadError(
                f"Chunk disappeared while assembling upload {upload_id}: {e}"
            )
        except OSError:
            partial_path.unlink(missing_ok=True)
            raise

        logger.debug(f"Assembled {total_chunks} chunks into {destination} ({size} bytes)")
        return size

    def remove_session_dir(self, upload_id: str) -> bool:
        """
        Delete an upload's chunk directory.

        Returns:
            True if a directory was removed, False if it was already absent
        """
        directory = self.session_dir(upload_id)
        try:
            shutil.rmtree(directory)
            return True
        except FileNotFoundError:
            return False

    def remove_all(self) -> bool:
        """
        Delete the whole temp root.

        Returns:
            True if the root existed and was removed
        """
        try:
            shutil.rmtree(self.temp_root)
            return True
        except FileNotFoundError:
            return False

    def list_session_ids(self) -> List[str]:
        """
        List upload ids that currently own a chunk directory.
        """
        if not self.temp_root.exists():
            return []
        return [p.name for p in self.temp_root.iterdir() if p.is_dir()]
