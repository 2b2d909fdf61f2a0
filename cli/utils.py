"""Utility functions for CLI operations."""

import io
import sys
from typing import Callable, Optional

from cli.constants import GREEN, RESET


class ProgressReader(io.BytesIO):
    """In-memory chunk body that reports how far the transport has read it."""

    def __init__(self, data: bytes, on_read: Optional[Callable[[int], None]] = None):
        """
        Initialize the progress reader.

        Args:
            data: Chunk bytes to serve
            on_read: Called with the current read position after every read
        """
        super().__init__(data)
        self.on_read = on_read

    def read(self, size: Optional[int] = -1) -> bytes:
        """
        Read bytes and report the new position.

        Args:
            size: Number of bytes to read (-1 reads everything left)

        Returns:
            Bytes read from the buffer
        """
        chunk = super().read(size)
        if chunk and self.on_read is not None:
            self.on_read(self.tell())
        return chunk


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_progress_line(filename: str, percent: float, total_bytes: int) -> str:
    """Single progress line, e.g. "Uploading a.pdf: 1.00 MiB / 2.50 MiB (40.0%)"."""
    sent = int(total_bytes * percent / 100)
    return (
        f"\rUploading {filename}: {format_file_size(sent)} / {format_file_size(total_bytes)} "
        f"({GREEN}{percent:.1f}%{RESET})"
    )


def write_progress(filename: str, percent: float, total_bytes: int) -> None:
    """Redraw the progress line on stdout."""
    sys.stdout.write(format_progress_line(filename, percent, total_bytes))
    sys.stdout.flush()


def finish_progress() -> None:
    """Move past the progress line."""
    sys.stdout.write('\n')
    sys.stdout.flush()
