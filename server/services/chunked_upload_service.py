"""Chunk reassembly service: stores incoming chunks and builds the final document."""

import asyncio
import threading
import time
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Set, Tuple

from common.constants import (
    COMPLETED_UPLOADS_REMEMBERED,
    DUPLICATE_POLICIES,
    DUPLICATE_POLICY_OVERWRITE,
    TEMP_DIR_NAME,
)
from common.logging_config import get_logger
from common.types import ChunkInfo, ChunkResult, DocumentType, UploadSession
from server.chunk_storage import ChunkStorage
from server.exceptions import (
    ChunkStorageError,
    DuplicateChunkError,
    IncompleteUploadError,
    InvalidChunkError,
)
from server.session_store import InMemorySessionStore, SessionStore
from server.utils import generate_upload_id, safe_file_name

logger = get_logger(__name__)


class ChunkedUploadService:
    """
    Reassembles documents uploaded as a sequence of chunks.

    Chunk 0 opens a session that fixes the document type and chunk count.
    Every chunk is written to its own file under storage/temp/<upload_id>/,
    and the chunk with index total_chunks - 1 triggers assembly into
    storage/<document_type>/<file_name> followed by cleanup of the session.

    The results of recently completed uploads are remembered so a repeated
    final chunk gets the same answer instead of opening a new session.
    """

    def __init__(
        self,
        storage_root: str = "storage",
        temp_dir: Optional[str] = None,
        session_store: Optional[SessionStore] = None,
        duplicate_policy: str = DUPLICATE_POLICY_OVERWRITE,
    ):
        if duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate chunk policy: {duplicate_policy}")

        self.storage_root = Path(storage_root)
        self.chunk_storage = ChunkStorage(Path(temp_dir) if temp_dir else self.storage_root / TEMP_DIR_NAME)
        self.sessions = session_store or InMemorySessionStore()
        self.duplicate_policy = duplicate_policy

        self._finalizing: Set[str] = set()
        self._completed: "OrderedDict[str, ChunkResult]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def temp_root(self) -> Path:
        return self.chunk_storage.temp_root

    def destination_path(self, document_type: DocumentType, file_name: str) -> Path:
        """Final location of an assembled document."""
        return self.storage_root / document_type.directory_name / file_name

    async def _store(self, method, *args):
        if self.sessions.blocking_io:
            return await asyncio.to_thread(method, *args)
        return method(*args)

    def completed_result(self, upload_id: str) -> Optional[ChunkResult]:
        """Result of a recently assembled upload, or None."""
        with self._lock:
            return self._completed.get(upload_id)

    def _remember_completed(self, result: ChunkResult) -> None:
        with self._lock:
            self._completed[result.file_id] = result
            self._completed.move_to_end(result.file_id)
            while len(self._completed) > COMPLETED_UPLOADS_REMEMBERED:
                self._completed.popitem(last=False)

    async def handle_chunk(self, payload: bytes, info: ChunkInfo) -> ChunkResult:
        """
        Store one chunk and assemble the document when it is the last one.

        Args:
            payload: Raw chunk bytes
            info: Chunk index, chunk count, file name and category

        Returns:
            ChunkResult; file_path and size are set only for the final chunk

        Raises:
            InvalidChunkError: If index/count/file name are invalid
            DuplicateChunkError: If the index was already stored and duplicates are rejected,
                or a non-final chunk arrives for an upload that is already assembled
            IncompleteUploadError: If the final chunk arrives with earlier chunks missing
            ChunkStorageError: If disk I/O fails
        """
        file_name = self._validate(info)

        if not info.is_first and info.file_id:
            completed = self.completed_result(info.file_id)
            if completed is not None:
                return self._repeat_of_completed(completed, info)

        session, recovered = await self._resolve_session(info, file_name)
        upload_id = session.upload_id

        overwrite = self.duplicate_policy == DUPLICATE_POLICY_OVERWRITE
        try:
            await asyncio.to_thread(
                self.chunk_storage.write_chunk, upload_id, info.chunk_index, payload, overwrite
            )
        except FileExistsError:
            raise DuplicateChunkError(
                f"Chunk {info.chunk_index} of upload {upload_id} was already received",
                details={"fileId": upload_id, "chunkIndex": info.chunk_index},
            )
        except OSError as e:
            logger.error(f"Failed to write chunk {info.chunk_index} for upload {upload_id}: {e}")
            raise ChunkStorageError(f"Failed to store chunk: {e}", details=str(e))

        await self._store(self.sessions.touch, upload_id)
        logger.debug(
            f"Stored chunk {info.chunk_index + 1}/{info.total_chunks} "
            f"({len(payload)} bytes) for upload {upload_id}"
        )

        if not info.is_last:
            return ChunkResult(
                file_id=upload_id,
                file_name=file_name,
                document_type=session.document_type,
                is_partial=True,
            )

        return await self._finalize(session, file_name, recovered)

    def _repeat_of_completed(self, completed: ChunkResult, info: ChunkInfo) -> ChunkResult:
        if info.is_last:
            logger.info(f"Final chunk of upload {completed.file_id} repeated after assembly, nothing stored")
            return completed
        raise DuplicateChunkError(
            f"Upload {completed.file_id} is already complete",
            details={"fileId": completed.file_id, "chunkIndex": info.chunk_index},
        )

    async def _finalize(self, session: UploadSession, file_name: str, recovered: bool = False) -> ChunkResult:
        upload_id = session.upload_id

        with self._lock:
            if upload_id in self._finalizing:
                raise DuplicateChunkError(
                    f"Upload {upload_id} is already being assembled",
                    details={"fileId": upload_id},
                )
            self._finalizing.add(upload_id)

        destination = self.destination_path(session.document_type, file_name)

        try:
            size = await asyncio.to_thread(
                self.chunk_storage.assemble, upload_id, session.total_chunks, destination
            )
        except IncompleteUploadError:
            if recovered:
                logger.error(f"Recovered upload {upload_id} is incomplete, discarding its chunks")
                await self._discard(upload_id)
            else:
                logger.error(f"Upload {upload_id} is incomplete, keeping chunks for a retry")
            raise
        except OSError as e:
            logger.error(f"Failed to assemble upload {upload_id}: {e}", exc_info=True)
            raise ChunkStorageError(f"Failed to assemble file: {e}", details=str(e))
        finally:
            with self._lock:
                self._finalizing.discard(upload_id)

        logger.info(
            f"Assembled upload {upload_id}: {session.total_chunks} chunks, "
            f"{size} bytes -> {destination}"
        )

        result = ChunkResult(
            file_id=upload_id,
            file_name=file_name,
            document_type=session.document_type,
            is_partial=False,
            file_path=destination.as_posix(),
            size=size,
        )
        self._remember_completed(result)

        await self._discard(upload_id)
        return result

    async def _discard(self, upload_id: str) -> None:
        try:
            await self.cleanup(upload_id)
        except ChunkStorageError as e:
            logger.warning(f"Cleanup of upload {upload_id} failed: {e}")

    def _validate(self, info: ChunkInfo) -> str:
        if info.total_chunks is None or info.total_chunks < 1:
            raise InvalidChunkError(
                "Invalid chunk information: totalChunks must be at least 1",
                details={"chunkIndex": info.chunk_index, "totalChunks": info.total_chunks},
            )
        if info.chunk_index is None or info.chunk_index < 0 or info.chunk_index >= info.total_chunks:
            raise InvalidChunkError(
                "Invalid chunk information: chunkIndex out of range",
                details={"chunkIndex": info.chunk_index, "totalChunks": info.total_chunks},
            )

        file_name = safe_file_name(info.file_name)
        if not file_name:
            raise InvalidChunkError(
                "Invalid chunk information: fileName is required",
                details={"fileName": info.file_name},
            )
        return file_name

    async def _resolve_session(self, info: ChunkInfo, file_name: str) -> Tuple[UploadSession, bool]:
        """Return the session for a chunk and whether it had to be recovered."""
        if info.is_first:
            return await self._open_session(info, file_name), False

        session = None
        if info.file_id:
            session = await self._store(self.sessions.get, info.file_id)
        if session is None and not info.file_id:
            session = await self._store(self.sessions.find_latest, file_name, info.total_chunks)

        if session is not None:
            if session.total_chunks != info.total_chunks:
                raise InvalidChunkError(
                    f"Invalid chunk information: upload {session.upload_id} "
                    f"expects {session.total_chunks} chunks",
                    details={"fileId": session.upload_id, "totalChunks": info.total_chunks},
                )
            return session, False

        return await self._recover_session(info, file_name), True

    async def _open_session(self, info: ChunkInfo, file_name: str) -> UploadSession:
        document_type = self._normalize_document_type(info.document_type)
        upload_id = generate_upload_id(file_name, info.total_chunks)
        session = UploadSession(
            upload_id=upload_id,
            file_name=file_name,
            total_chunks=info.total_chunks,
            document_type=document_type,
            temp_directory=str(self.chunk_storage.session_dir(upload_id)),
        )
        await self._store(self.sessions.create, session)
        logger.info(
            f"Opened upload session {upload_id} "
            f"[file={file_name} chunks={info.total_chunks} type={document_type.value}]"
        )
        return session

    async def _recover_session(self, info: ChunkInfo, file_name: str) -> UploadSession:
        """
        Re-create a session for a non-first chunk whose session is unknown.

        The category falls back to the default. A client supplied id is kept
        when it is a plain name so chunks already on disk can still be used.
        """
        upload_id = info.file_id
        if not upload_id or safe_file_name(upload_id) != upload_id:
            upload_id = generate_upload_id(file_name, info.total_chunks)

        session = UploadSession(
            upload_id=upload_id,
            file_name=file_name,
            total_chunks=info.total_chunks,
            document_type=DocumentType.default(),
            temp_directory=str(self.chunk_storage.session_dir(upload_id)),
        )
        await self._store(self.sessions.create, session)
        logger.warning(
            f"No session for chunk {info.chunk_index} of {file_name}; "
            f"continuing as {upload_id} with default type {session.document_type.value}"
        )
        return session

    def _normalize_document_type(self, raw: Optional[str]) -> DocumentType:
        document_type = DocumentType.normalize(raw)
        if raw and not DocumentType.is_valid(raw):
            logger.warning(f"Unknown document type '{raw}', using {document_type.value}")
        return document_type

    async def cleanup(self, upload_id: Optional[str] = None) -> None:
        """
        Remove temporary chunk data.

        With an upload_id only that session's directory and record are removed;
        without one the whole temp root is deleted and every session forgotten.
        Already-missing directories count as clean.

        Raises:
            ChunkStorageError: If removal fails for any reason other than absence
        """

        if upload_id is None:
            try:
                await asyncio.to_thread(self.chunk_storage.remove_all)
            except OSError as e:
                logger.error(f"Failed to remove temp root {self.temp_root}: {e}")
                raise ChunkStorageError(f"Cleanup failed: {e}", details=str(e))
            count = await self._store(self.sessions.clear)
            logger.info(f"Cleared temp storage and {count} upload session(s)")
            return

        session = await self._store(self.sessions.get, upload_id)
        directory_id = session.upload_id if session else upload_id
        if not directory_id or safe_file_name(directory_id) != directory_id:
            logger.warning(f"Refusing to clean up suspicious upload id '{upload_id}'")
            return

        try:
            removed = await asyncio.to_thread(self.chunk_storage.remove_session_dir, directory_id)
        except OSError as e:
            logger.error(f"Failed to remove temp directory for upload {upload_id}: {e}")
            raise ChunkStorageError(f"Cleanup failed: {e}", details=str(e))

        await self._store(self.sessions.delete, upload_id)
        if removed or session:
            logger.info(f"Cleaned up upload {upload_id}")
        else:
            logger.debug(f"Nothing to clean up for upload {upload_id}")

    async def sweep_expired(self, max_age_seconds: float) -> int:
        """
        Remove sessions idle for longer than max_age_seconds.

        Temp directories without a session record are removed too once their
        modification time is past the same cutoff.

        Returns:
            Number of sessions/directories removed
        """
        cutoff = time.time() - max_age_seconds
        removed = 0

        for session in await self._store(self.sessions.list_expired, cutoff):
            try:
                await self.cleanup(session.upload_id)
                removed += 1
            except ChunkStorageError as e:
                logger.warning(f"Could not expire upload {session.upload_id}: {e}")

        for upload_id in await asyncio.to_thread(self.chunk_storage.list_session_ids):
            if await self._store(self.sessions.get, upload_id) is not None:
                continue
            directory = self.chunk_storage.session_dir(upload_id)
            try:
                if directory.stat().st_mtime >= cutoff:
                    continue
                await self.cleanup(upload_id)
                removed += 1
            except FileNotFoundError:
                continue
            except ChunkStorageError as e:
                logger.warning(f"Could not remove orphaned chunks {upload_id}: {e}")

        if removed:
            logger.info(f"Expired {removed} abandoned upload(s)")
        return removed
