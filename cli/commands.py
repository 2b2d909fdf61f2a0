"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

import httpx

from common.logging_config import get_logger
from common.types import DocumentType
from cli.config import DEFAULT_CONFIG_PATH, Config
from cli.models import CleanupCommand, TypesCommand, UploadCommand
from cli.uploader import ChunkedUploader, request_cleanup
from cli.utils import finish_progress, format_file_size, write_progress

logger = get_logger(__name__)


_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get or create global Config instance.

    Returns:
        Config loaded from ~/.docupload/config.json
    """
    global _config
    if _config is None:
        logger.debug("Loading CLI configuration")
        _config = Config(DEFAULT_CONFIG_PATH)
    return _config


def handle_upload(
    cmd: UploadCommand,
    config: Optional[Config] = None,
    http_client: Optional[httpx.Client] = None,
    show_progress: bool = True,
) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with path, document type, chunk size and category
        config: Optional Config for dependency injection (testing)
        http_client: Optional httpx.Client for dependency injection (testing)
        show_progress: Draw the progress line on stdout

    Returns:
        Success or error message
    """
    if config is None:
        config = get_config()

    path = Path(cmd.path).expanduser()
    if not path.is_file():
        return f"Error: File not found: {cmd.path}"

    if cmd.document_type:
        document_type = cmd.document_type
    elif cmd.category:
        # Category labels such as "Thesis" name their document type
        document_type = DocumentType.normalize(cmd.category).value
    else:
        document_type = config.get_document_type()
    chunk_size = cmd.chunk_size or config.get_chunk_size()

    notes = []
    if not DocumentType.is_valid(document_type):
        notes.append(
            f"Warning: unknown document type '{document_type}', "
            f"the server will file it as {DocumentType.default().value}"
        )

    errors: list[str] = []
    total_bytes = path.stat().st_size

    def on_progress(percent: float) -> None:
        if show_progress:
            write_progress(path.name, percent, total_bytes)

    logger.info(f"Executing upload command: {path} type={document_type} chunk_size={chunk_size}")

    try:
        uploader = ChunkedUploader.from_path(
            path,
            document_type=document_type,
            category=cmd.category,
            chunk_size=chunk_size,
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            http_client=http_client,
            on_progress=on_progress,
            on_error=errors.append,
        )
    except OSError as e:
        return f"Error: Cannot read {cmd.path}: {e}"

    with uploader:
        try:
            result = uploader.start()
        except KeyboardInterrupt:
            uploader.abort()
            uploader.cleanup()
            result = None
            errors.append("Upload aborted")

    if show_progress:
        finish_progress()

    if result is None:
        reason = errors[-1] if errors else "unknown error"
        notes.append(f"Upload failed: {reason}")
        return "\n".join(notes)

    size = result.size if result.size is not None else total_bytes
    notes.append(
        f"Uploaded {result.original_name} ({format_file_size(size)}) as {result.document_type}\n"
        f"  Path:    {result.file_path}\n"
        f"  File ID: {result.file_id}"
    )
    logger.debug("Upload command completed")
    return "\n".join(notes)


def handle_cleanup(
    cmd: CleanupCommand,
    config: Optional[Config] = None,
    http_client: Optional[httpx.Client] = None,
) -> str:
    """
    Handle 'cleanup' command.

    Args:
        cmd: CleanupCommand with file_id
        config: Optional Config for dependency injection (testing)
        http_client: Optional httpx.Client for dependency injection (testing)

    Returns:
        Success or error message
    """
    if http_client is not None:
        ok, message = request_cleanup(http_client, cmd.file_id)
    else:
        if config is None:
            config = get_config()
        with httpx.Client(base_url=config.get_base_url(), timeout=config.get_timeout()) as client:
            ok, message = request_cleanup(client, cmd.file_id)

    if ok:
        return f"{message}: {cmd.file_id}"
    return f"Error: {message}"


def handle_types(cmd: TypesCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'types' command.

    Returns:
        One document type per line, the configured default marked
    """
    if config is None:
        config = get_config()
    default = config.get_document_type()

    lines = ["Document types:"]
    for document_type in DocumentType:
        marker = " (default)" if document_type.value == default else ""
        lines.append(f"  {document_type.value}{marker}")
    return "\n".join(lines)
