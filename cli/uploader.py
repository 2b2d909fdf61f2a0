"""Chunked upload client: splits a byte source and sends it chunk by chunk."""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator, Optional, Union

import httpx

from common.constants import CHUNK_SIZE_BYTES, CLEANUP_ENDPOINT, SERVER_PORT, UPLOAD_ENDPOINT
from common.logging_config import get_logger
from common.protocol import (
    FIELD_CATEGORY,
    FIELD_CHUNK_INDEX,
    FIELD_DOCUMENT_TYPE,
    FIELD_FILE,
    FIELD_FILE_ID,
    FIELD_FILE_NAME,
    FIELD_TOTAL_CHUNKS,
    MESSAGE_CLEANUP_SUCCESSFUL,
    ChunkAck,
    CleanupRequest,
    ProtocolError,
    UploadComplete,
    is_final_response,
    parse_chunk_response,
)
from common.types import DocumentType
from cli.utils import ProgressReader

logger = get_logger(__name__)

ABORTED_MESSAGE = "Upload aborted"


class UploadError(Exception):
    """Raised when a chunk upload sequence cannot continue."""

    pass


@dataclass(frozen=True)
class ChunkRange:
    """Half-open byte range [start, end) of the source."""

    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a completed upload, as reported by the final chunk response."""

    file_id: Optional[str]
    file_path: str
    original_name: str
    size: Optional[int]
    document_type: Optional[str]
    timestamp: Optional[str]

    @classmethod
    def from_response(cls, body: dict) -> "UploadResult":
        final = UploadComplete.from_dict(body)
        return cls(
            file_id=final.file_id,
            file_path=final.file_path,
            original_name=final.original_name,
            size=final.size,
            document_type=final.document_type,
            timestamp=final.timestamp,
        )


@dataclass(frozen=True)
class ProgressEvent:
    percent: float
    bytes_sent: int
    chunk_index: int


@dataclass(frozen=True)
class ChunkCompleted:
    chunk_index: int
    total_chunks: int
    response: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UploadSucceeded:
    result: UploadResult


@dataclass(frozen=True)
class UploadFailed:
    message: str
    aborted: bool = False


UploadEvent = Union[ProgressEvent, ChunkCompleted, UploadSucceeded, UploadFailed]


def plan_chunks(total_bytes: int, chunk_size: int = CHUNK_SIZE_BYTES) -> list[ChunkRange]:
    """
    Split [0, total_bytes) into consecutive ranges of chunk_size bytes.

    The last range may be shorter. An empty source still yields one empty
    range so the server produces an (empty) file.

    Args:
        total_bytes: Size of the source in bytes
        chunk_size: Maximum bytes per chunk

    Returns:
        Ordered list of ChunkRange

    Raises:
        ValueError: If chunk_size < 1 or total_bytes < 0
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if total_bytes < 0:
        raise ValueError(f"total_bytes must not be negative, got {total_bytes}")

    if total_bytes == 0:
        return [ChunkRange(index=0, start=0, end=0)]

    return [
        ChunkRange(index=i, start=start, end=min(start + chunk_size, total_bytes))
        for i, start in enumerate(range(0, total_bytes, chunk_size))
    ]


class ChunkedUploader:
    """
    Uploads one byte source as a strictly sequential series of chunk requests.

    Drive it either with iter_events() or with start() and callbacks. One
    instance performs one upload; instances share no state, so several may
    run concurrently in different threads.
    """

    def __init__(
        self,
        source: BinaryIO,
        total_bytes: int,
        file_name: str,
        document_type: str = DocumentType.HELLO.value,
        category: str = "",
        chunk_size: int = CHUNK_SIZE_BYTES,
        base_url: str = f"http://localhost:{SERVER_PORT}",
        endpoint: str = UPLOAD_ENDPOINT,
        cleanup_endpoint: str = CLEANUP_ENDPOINT,
        on_progress: Optional[Callable[[float], Any]] = None,
        on_complete: Optional[Callable[[UploadResult], Any]] = None,
        on_error: Optional[Callable[[str], Any]] = None,
        on_chunk_complete: Optional[Callable[[int, int], Any]] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize uploader.

        Args:
            source: Readable binary stream positioned anywhere (seekable streams are rewound per chunk)
            total_bytes: Number of bytes to send from source
            file_name: Name the server stores the file under
            document_type: Category label; unknown values are filed as HELLO by the server
            category: Free-form label sent with every chunk
            chunk_size: Maximum bytes per chunk request
            base_url: Server base URL (ignored when http_client is given)
            endpoint: Chunk upload path
            cleanup_endpoint: Cleanup path
            on_progress: Called with a percentage in [0, 100]
            on_complete: Called once with the UploadResult after the final chunk
            on_error: Called once with a message on failure or abort
            on_chunk_complete: Called with (chunk_index, total_chunks) after each acknowledged chunk
            http_client: Client to send requests with; one is created (and owned) if omitted
            timeout: Per-request timeout in seconds for the owned client
        """
        self.source = source
        self.total_bytes = total_bytes
        self.file_name = file_name
        self.document_type = document_type
        self.category = category
        self.chunk_size = chunk_size
        self.endpoint = endpoint
        self.cleanup_endpoint = cleanup_endpoint
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_chunk_complete = on_chunk_complete

        self.chunks = plan_chunks(total_bytes, chunk_size)

        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owned_source: Optional[BinaryIO] = None

        self.file_id: Optional[str] = None
        self._aborted = threading.Event()
        self._started = False
        self._bytes_sent = 0
        self._progress_listener: Optional[Callable[[ProgressEvent], None]] = None
        self._pending_progress: list[ProgressEvent] = []

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike], **kwargs) -> "ChunkedUploader":
        """
        Create an uploader for a file on disk.

        The file is opened here and closed by close() (or the context manager).
        file_name defaults to the file's base name.
        """
        file_path = Path(path)
        total_bytes = file_path.stat().st_size
        kwargs.setdefault("file_name", file_path.name)
        source = open(file_path, "rb")
        try:
            uploader = cls(source, total_bytes, **kwargs)
        except Exception:
            source.close()
            raise
        uploader._owned_source = source
        return uploader

    def __enter__(self) -> "ChunkedUploader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the file and HTTP client if this uploader opened them."""
        if self._owned_source is not None:
            self._owned_source.close()
            self._owned_source = None
        if self._owns_client:
            self.client.close()

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    def plan_chunks(self) -> list[ChunkRange]:
        return list(self.chunks)

    def abort(self) -> None:
        """
        Request the upload to stop.

        Safe to call from any thread. A chunk already in flight may still
        complete; no further chunk is sent.
        """
        if not self._aborted.is_set():
            logger.info(f"Abort requested for {self.file_name}")
        self._aborted.set()

    def iter_events(self) -> Iterator[UploadEvent]:
        """
        Run the upload, yielding progress as it happens.

        Yields ProgressEvent and ChunkCompleted items and ends with exactly
        one UploadSucceeded or UploadFailed.
        """
        if self._started:
            raise RuntimeError("Upload already started")
        self._started = True

        total = self.total_chunks
        last_body: dict = {}

        logger.info(
            f"Uploading {self.file_name} [bytes={self.total_bytes} chunks={total} "
            f"chunk_size={self.chunk_size} type={self.document_type}]"
        )

        try:
            for chunk in self.chunks:
                if self._aborted.is_set():
                    raise UploadError(ABORTED_MESSAGE)

                data = self._read_chunk(chunk)
                body = self._send_chunk(chunk, data)
                yield from self._drain_progress()

                if chunk.index == 0:
                    self.file_id = ChunkAck.from_dict(body).file_id or self.file_id

                self._bytes_sent += chunk.size
                logger.debug(f"Chunk {chunk.index + 1}/{total} acknowledged for {self.file_name}")

                yield ChunkCompleted(chunk_index=chunk.index, total_chunks=total, response=body)
                yield ProgressEvent(
                    percent=self._percent(self._bytes_sent),
                    bytes_sent=self._bytes_sent,
                    chunk_index=chunk.index,
                )
                last_body = body

            if self._aborted.is_set():
                raise UploadError(ABORTED_MESSAGE)

            if not is_final_response(last_body):
                raise UploadError("Server did not confirm the assembled file")

            try:
                result = UploadResult.from_response(last_body)
            except ProtocolError:
                raise UploadError("Invalid server response")

        except UploadError as e:
            yield from self._drain_progress()
            aborted = self._aborted.is_set()
            message = ABORTED_MESSAGE if aborted else str(e)
            if aborted:
                logger.info(f"Upload of {self.file_name} aborted")
            else:
                logger.error(f"Upload of {self.file_name} failed: {message}")
            self.cleanup()
            yield UploadFailed(message=message, aborted=aborted)
            return

        logger.info(f"Upload of {self.file_name} complete: {result.file_path}")
        yield UploadSucceeded(result=result)

    def start(self) -> Optional[UploadResult]:
        """
        Run the upload to completion, dispatching the callbacks.

        Transport progress reaches on_progress live, while the request body
        is still being sent.

        Returns:
            UploadResult on success, None on failure or abort
        """
        self._progress_listener = self._notify_progress
        try:
            for event in self.iter_events():
                if isinstance(event, ProgressEvent):
                    self._notify_progress(event)
                elif isinstance(event, ChunkCompleted):
                    if self.on_chunk_complete:
                        self.on_chunk_complete(event.chunk_index, event.total_chunks)
                elif isinstance(event, UploadSucceeded):
                    if self.on_complete:
                        self.on_complete(event.result)
                    return event.result
                elif isinstance(event, UploadFailed):
                    if self.on_error:
                        self.on_error(event.message)
                    return None
        finally:
            self._progress_listener = None
        return None

    def cleanup(self) -> bool:
        """
        Ask the server to discard this upload's temporary chunks.

        Never raises.

        Returns:
            True if the server acknowledged the cleanup
        """
        if not self.file_id:
            logger.debug(f"No fileId for {self.file_name}, nothing to clean up")
            return False

        ok, _ = request_cleanup(self.client, self.file_id, self.cleanup_endpoint)
        return ok

    def _read_chunk(self, chunk: ChunkRange) -> bytes:
        try:
            if self.source.seekable():
                self.source.seek(chunk.start)
            data = self.source.read(chunk.size)
        except (OSError, ValueError) as e:
            raise UploadError(f"Failed to read source: {e}")

        if len(data) != chunk.size:
            raise UploadError(
                f"Source ended early at chunk {chunk.index} "
                f"(expected {chunk.size} bytes, got {len(data)})"
            )
        return data

    def _send_chunk(self, chunk: ChunkRange, data: bytes) -> dict:
        form = {
            FIELD_CHUNK_INDEX: str(chunk.index),
            FIELD_TOTAL_CHUNKS: str(self.total_chunks),
            FIELD_FILE_NAME: self.file_name,
            FIELD_DOCUMENT_TYPE: self.document_type,
            FIELD_CATEGORY: self.category,
        }
        if chunk.index > 0 and self.file_id:
            form[FIELD_FILE_ID] = self.file_id

        body = ProgressReader(data, on_read=lambda position: self._transport_progress(chunk, position))
        files = {FIELD_FILE: (self.file_name, body, "application/octet-stream")}

        try:
            response = self.client.post(self.endpoint, data=form, files=files)
        except httpx.HTTPError as e:
            raise UploadError(f"Network error occurred: {e}")

        if not response.is_success:
            raise UploadError(_error_message(response))

        try:
            return parse_chunk_response(response.content)
        except ProtocolError as e:
            raise UploadError(str(e))

    def _transport_progress(self, chunk: ChunkRange, position: int) -> None:
        sent = chunk.start + min(position, chunk.size)
        event = ProgressEvent(
            percent=self._percent(sent),
            bytes_sent=sent,
            chunk_index=chunk.index,
        )
        if self._progress_listener is not None:
            self._progress_listener(event)
        else:
            self._pending_progress.append(event)

    def _drain_progress(self) -> Iterator[ProgressEvent]:
        pending, self._pending_progress = self._pending_progress, []
        yield from pending

    def _notify_progress(self, event: ProgressEvent) -> None:
        if self.on_progress:
            self.on_progress(event.percent)

    def _percent(self, sent: int) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return max(0.0, min(100.0, sent * 100.0 / self.total_bytes))


def _error_message(response: httpx.Response, prefix: str = "Upload failed") -> str:
    """Prefer the server's error field, fall back to the HTTP reason."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"{prefix}: {response.reason_phrase or response.status_code}"


def request_cleanup(
    client: httpx.Client,
    file_id: str,
    endpoint: str = CLEANUP_ENDPOINT,
) -> tuple[bool, str]:
    """
    POST a cleanup request for file_id.

    Never raises; failures are logged and reported in the returned message.

    Returns:
        Tuple of (acknowledged, message)
    """
    try:
        response = client.post(endpoint, json=CleanupRequest(file_id=file_id).to_dict())
    except httpx.HTTPError as e:
        logger.error(f"Cleanup of {file_id} failed: {e}")
        return False, f"Network error occurred: {e}"

    if response.is_success:
        logger.info(f"Cleaned up temporary chunks of {file_id}")
        try:
            message = response.json().get("message", MESSAGE_CLEANUP_SUCCESSFUL)
        except (ValueError, AttributeError):
            message = MESSAGE_CLEANUP_SUCCESSFUL
        return True, message

    message = _error_message(response, prefix="Cleanup failed")
    logger.warning(f"Cleanup of {file_id} rejected: {response.status_code} {message}")
    return False, message
