"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadCommand:
    """Upload a file in chunks."""

    path: str
    document_type: str | None = None
    chunk_size: int | None = None
    category: str = ""
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class CleanupCommand:
    """Discard the temporary chunks of an upload."""

    file_id: str
    command: Literal["cleanup"] = "cleanup"


@dataclass(frozen=True)
class TypesCommand:
    """List document types."""

    command: Literal["types"] = "types"


CommandRequest = UploadCommand | CleanupCommand | TypesCommand
