"""Configuration management for DocUpload CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.constants import CHUNK_SIZE_BYTES, SERVER_PORT
from common.logging_config import get_logger
from common.types import DocumentType

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.docupload' / 'config.json'


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("DOCUPLOAD_SERVER_HOST", "localhost"),
        "server_port": int(os.environ.get("DOCUPLOAD_SERVER_PORT", str(SERVER_PORT))),
        "timeout": 30,
        "chunk_size": CHUNK_SIZE_BYTES,
        "document_type": DocumentType.default().value,
    }

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.docupload/config.json)
        """
        self.config_path = Path(config_path)
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.docupload' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("config root must be an object")
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (ValueError, OSError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Unreadable config {self.config_path} ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except OSError as e:
                logger.debug(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save config {self.config_path}: {e}")

    def get_base_url(self) -> str:
        """
        Get upload server base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8000")
        """
        host = self.data.get('server_host', 'localhost')
        port = self.data.get('server_port', SERVER_PORT)
        return f"http://{host}:{port}"

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', 30)

    def get_chunk_size(self) -> int:
        """
        Get chunk size in bytes, falling back to the default for invalid values.
        """
        try:
            chunk_size = int(self.data.get('chunk_size', CHUNK_SIZE_BYTES))
        except (TypeError, ValueError):
            return CHUNK_SIZE_BYTES
        return chunk_size if chunk_size > 0 else CHUNK_SIZE_BYTES

    def get_document_type(self) -> str:
        return DocumentType.normalize(self.data.get('document_type')).value
