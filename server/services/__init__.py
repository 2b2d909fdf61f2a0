"""Service layer for business logic."""

from server.services.chunked_upload_service import ChunkedUploadService

__all__ = [
    "ChunkedUploadService",
]
