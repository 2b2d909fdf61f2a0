"""Service locator for the process-wide upload service."""

from typing import Optional

from server import config
from server.services.chunked_upload_service import ChunkedUploadService
from server.session_store import create_session_store

_upload_service: Optional[ChunkedUploadService] = None


def build_upload_service() -> ChunkedUploadService:
    """Create an upload service from environment configuration"""
    return ChunkedUploadService(
        storage_root=config.STORAGE_ROOT,
        temp_dir=config.TEMP_DIR,
        session_store=create_session_store(config.SESSION_BACKEND, config.DATABASE_PATH),
        duplicate_policy=config.DUPLICATE_CHUNK_POLICY,
    )


def set_upload_service(service: Optional[ChunkedUploadService]):
    """Set global upload service instance"""
    global _upload_service
    _upload_service = service


def get_upload_service() -> ChunkedUploadService:
    """Get global upload service instance, creating it on first use"""
    global _upload_service
    if _upload_service is None:
        _upload_service = build_upload_service()
    return _upload_service
