"""Utility helper functions for the upload server."""

import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional


def generate_upload_id(file_name: str, total_chunks: int) -> str:
    """
    Mint a fresh upload identifier.

    The random suffix keeps two uploads of the same file name apart.

    Args:
        file_name: Original file name
        total_chunks: Declared number of chunks

    Returns:
        Identifier of the form "<fileName>_<totalChunks>_<hex>"
    """
    return f"{safe_file_name(file_name)}_{total_chunks}_{uuid.uuid4().hex}"


def get_current_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        Current timestamp as ISO format string
    """
    return datetime.now(timezone.utc).isoformat()


def safe_file_name(file_name: str) -> str:
    """
    Reduce a client supplied name to its last path component.

    Both separators are stripped, so "../../etc/passwd" and "a\\b.pdf"
    become "passwd" and "b.pdf".

    Args:
        file_name: Raw file name from the request

    Returns:
        Bare file name, or an empty string if nothing usable remains
    """
    name = PureWindowsPath(PurePosixPath(file_name or "").name).name
    if name in (".", ".."):
        return ""
    return name.strip()


def parse_int_field(value: Optional[str]) -> Optional[int]:
    """
    Parse an integer form field.

    Args:
        value: Raw form value

    Returns:
        Parsed integer, or None if missing or non-numeric
    """
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None
