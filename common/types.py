"""Shared data type definitions (DocumentType, ChunkInfo, UploadSession, etc.)."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DocumentType(str, Enum):
    """Closed set of document categories an upload can be filed under."""

    THESIS = "THESIS"
    DISSERTATION = "DISSERTATION"
    CONFLUENCE = "CONFLUENCE"
    SYNERGY = "SYNERGY"
    HELLO = "HELLO"

    @classmethod
    def default(cls) -> 'DocumentType':
        return cls.HELLO

    @classmethod
    def is_valid(cls, value: Optional[str]) -> bool:
        """Check a raw string against the category set (case-insensitive)."""
        if not value:
            return False
        return value.strip().upper() in cls.__members__

    @classmethod
    def normalize(cls, value: Optional[str]) -> 'DocumentType':
        """
        Map a raw category string onto the enum.

        Unknown or empty values resolve to the default category instead of
        raising.

        Args:
            value: Raw category string from the client

        Returns:
            Matching DocumentType, or DocumentType.HELLO
        """
        if isinstance(value, cls):
            return value
        if cls.is_valid(value):
            return cls[value.strip().upper()]
        return cls.default()

    @property
    def directory_name(self) -> str:
        return self.value.lower()


@dataclass(frozen=True)
class ChunkInfo:
    """
    Metadata accompanying a single chunk payload.
    """
    chunk_index: int
    total_chunks: int
    file_name: str
    document_type: Optional[str] = None
    file_id: Optional[str] = None

    @property
    def is_first(self) -> bool:
        return self.chunk_index == 0

    @property
    def is_last(self) -> bool:
        return self.chunk_index == self.total_chunks - 1


@dataclass
class UploadSession:
    """
    Server-side record of one in-progress chunked upload.
    """
    upload_id: str
    file_name: str
    total_chunks: int
    document_type: DocumentType
    temp_directory: str
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ChunkResult:
    """
    Outcome of handling one chunk.

    file_path and size are only set once the final chunk has been assembled.
    """
    file_id: str
    file_name: str
    document_type: DocumentType
    is_partial: bool
    file_path: Optional[str] = None
    size: Optional[int] = None
