"""Shared pytest fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from server import config as server_config
from server.main import app
from server.service_locator import set_upload_service
from server.services.chunked_upload_service import ChunkedUploadService


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .docupload directory
    """
    config_dir = tmp_path / '.docupload'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def storage_root(tmp_path):
    """Storage root for one test; the temp area lives under storage/temp."""
    return tmp_path / 'storage'


@pytest.fixture
def upload_service(storage_root):
    """Upload service with in-memory sessions rooted in a temp directory."""
    return ChunkedUploadService(storage_root=str(storage_root))


@pytest.fixture
def api_client(upload_service, monkeypatch):
    """
    FastAPI test client wired to the temp upload service.

    Startup runs inside the context manager, so the session sweeper is
    disabled to keep tests free of background tasks.
    """
    monkeypatch.setattr(server_config, 'SESSION_TTL_SECONDS', 0)
    set_upload_service(upload_service)
    try:
        with TestClient(app) as client:
            yield client
    finally:
        set_upload_service(None)
