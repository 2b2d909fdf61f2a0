"""Shared wire protocol for the chunk upload endpoint (field names and response messages)."""

from dataclasses import dataclass
import json

FIELD_FILE = "file"
FIELD_CHUNK_INDEX = "chunkIndex"
FIELD_TOTAL_CHUNKS = "totalChunks"
FIELD_FILE_NAME = "fileName"
FIELD_DOCUMENT_TYPE = "document_type"
FIELD_CATEGORY = "category"
FIELD_FILE_ID = "fileId"

MESSAGE_CHUNK_RECEIVED = "Chunk received"
MESSAGE_UPLOAD_COMPLETE = "File uploaded successfully"
MESSAGE_CLEANUP_SUCCESSFUL = "Cleanup successful"


class ProtocolError(ValueError):
    """Raised when a response body does not match the chunk upload protocol."""
    pass


@dataclass
class ChunkAck:
    """Acknowledgement returned for every non-final chunk."""
    file_id: str
    document_type: str
    is_partial: bool = True
    message: str = MESSAGE_CHUNK_RECEIVED

    def to_dict(self) -> dict:
        return {
            'status': 'success',
            'message': self.message,
            'isPartial': self.is_partial,
            'documentType': self.document_type,
            'fileId': self.file_id,
        }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_dict(cls, obj: dict) -> 'ChunkAck':
        return cls(
            file_id=obj.get('fileId'),
            document_type=obj.get('documentType'),
            is_partial=bool(obj.get('isPartial', True)),
            message=obj.get('message', MESSAGE_CHUNK_RECEIVED),
        )


@dataclass
class UploadComplete:
    """Response returned once the final chunk has been assembled."""
    file_id: str
    file_path: str
    original_name: str
    size: int
    document_type: str
    timestamp: str
    message: str = MESSAGE_UPLOAD_COMPLETE

    def to_dict(self) -> dict:
        return {
            'status': 'success',
            'message': self.message,
            'filePath': self.file_path,
            'originalName': self.original_name,
            'size': self.size,
            'fileId': self.file_id,
            'documentType': self.document_type,
            'timestamp': self.timestamp,
        }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_dict(cls, obj: dict) -> 'UploadComplete':
        try:
            return cls(
                file_id=obj.get('fileId'),
                file_path=obj['filePath'],
                original_name=obj.get('originalName'),
                size=int(obj.get('size', 0)),
                document_type=obj.get('documentType'),
                timestamp=obj.get('timestamp'),
                message=obj.get('message', MESSAGE_UPLOAD_COMPLETE),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed completion response: {e}")


@dataclass
class CleanupRequest:
    """Body of the cleanup endpoint."""
    file_id: str

    def to_dict(self) -> dict:
        return {'fileId': self.file_id}

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')


def parse_chunk_response(body: bytes) -> dict:
    """
    Decode a chunk upload response body.

    Args:
        body: Raw response bytes

    Returns:
        Decoded JSON object

    Raises:
        ProtocolError: If the body is not a JSON object or carries an error
    """
    try:
        obj = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise ProtocolError("Invalid server response")

    if not isinstance(obj, dict):
        raise ProtocolError("Invalid server response")

    if obj.get('error'):
        raise ProtocolError(str(obj['error']))

    return obj


def is_final_response(obj: dict) -> bool:
    """Whether a decoded chunk response describes the finished artifact."""
    return not obj.get('isPartial', False) and 'filePath' in obj
