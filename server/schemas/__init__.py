"""Pydantic schemas for API requests and responses."""

from server.schemas.upload import (
    ChunkAckResponse,
    UploadCompleteResponse,
    CleanupRequest,
    CleanupResponse,
)
from server.schemas.common import ErrorResponse

__all__ = [
    "ChunkAckResponse",
    "UploadCompleteResponse",
    "CleanupRequest",
    "CleanupResponse",
    "ErrorResponse",
]
