"""Project-wide constants (chunk size, storage layout, endpoints)."""

CHUNK_SIZE_BYTES: int = 1024 * 1024  # 1 MiB default chunk size

DEFAULT_STORAGE_ROOT: str = "storage"
TEMP_DIR_NAME: str = "temp"
CHUNK_FILE_PREFIX: str = "chunk_"
PARTIAL_FILE_SUFFIX: str = ".part"

SERVER_PORT: int = 8000

UPLOAD_ENDPOINT: str = "/api/upload"
CLEANUP_ENDPOINT: str = "/api/upload/cleanup"

DEFAULT_SESSION_TTL_SECONDS: int = 24 * 3600
DEFAULT_SWEEP_INTERVAL_SECONDS: int = 3600

DUPLICATE_POLICY_OVERWRITE: str = "overwrite"
DUPLICATE_POLICY_REJECT: str = "reject"
DUPLICATE_POLICIES = (DUPLICATE_POLICY_OVERWRITE, DUPLICATE_POLICY_REJECT)

COMPLETED_UPLOADS_REMEMBERED: int = 1024

DEFAULT_MAX_CHUNK_BYTES: int = 500_000_000
DEFAULT_MAX_REQUEST_BYTES: int = 550_000_000
