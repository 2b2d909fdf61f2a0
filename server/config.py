"""Configuration settings for the upload server."""

import os
from common.constants import (
    DEFAULT_STORAGE_ROOT,
    TEMP_DIR_NAME,
    SERVER_PORT,
    DEFAULT_SESSION_TTL_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    DUPLICATE_POLICY_OVERWRITE,
    DEFAULT_MAX_CHUNK_BYTES,
    DEFAULT_MAX_REQUEST_BYTES,
)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


SERVER_HOST = os.environ.get("UPLOAD_SERVER_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("UPLOAD_SERVER_PORT", str(SERVER_PORT)))

STORAGE_ROOT = os.environ.get("UPLOAD_STORAGE_ROOT", DEFAULT_STORAGE_ROOT)

TEMP_DIR = os.environ.get("UPLOAD_TEMP_DIR", os.path.join(STORAGE_ROOT, TEMP_DIR_NAME))

SESSION_BACKEND = os.environ.get("UPLOAD_SESSION_BACKEND", "memory").lower()

DATABASE_PATH = os.environ.get("UPLOAD_SESSION_DB_PATH", os.path.join(STORAGE_ROOT, "sessions.db"))

SESSION_TTL_SECONDS = int(os.environ.get("UPLOAD_SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS)))

SWEEP_INTERVAL_SECONDS = int(os.environ.get("UPLOAD_SWEEP_INTERVAL_SECONDS", str(DEFAULT_SWEEP_INTERVAL_SECONDS)))

DUPLICATE_CHUNK_POLICY = os.environ.get("UPLOAD_DUPLICATE_CHUNK_POLICY", DUPLICATE_POLICY_OVERWRITE).lower()

STRICT_DOCUMENT_TYPE = _env_bool("UPLOAD_STRICT_DOCUMENT_TYPE")

MAX_CHUNK_BYTES = int(os.environ.get("UPLOAD_MAX_CHUNK_BYTES", str(DEFAULT_MAX_CHUNK_BYTES)))

MAX_REQUEST_BYTES = int(os.environ.get("UPLOAD_MAX_REQUEST_BYTES", str(DEFAULT_MAX_REQUEST_BYTES)))
