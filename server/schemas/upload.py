"""Pydantic schemas for the chunk upload and cleanup endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class ChunkAckResponse(BaseModel):
    """Response model for a stored, non-final chunk."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    message: str = "Chunk received"
    is_partial: bool = Field(True, alias="isPartial")
    document_type: str = Field(..., alias="documentType")
    file_id: str = Field(..., alias="fileId")


class UploadCompleteResponse(BaseModel):
    """Response model for the final chunk once the file is assembled."""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    message: str = "File uploaded successfully"
    file_path: str = Field(..., alias="filePath")
    original_name: str = Field(..., alias="originalName")
    size: int
    file_id: str = Field(..., alias="fileId")
    document_type: str = Field(..., alias="documentType")
    timestamp: str


class CleanupRequest(BaseModel):
    """Request model for discarding an upload's temporary chunks."""
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(..., alias="fileId", min_length=1)


class CleanupResponse(BaseModel):
    """Response model for cleanup."""
    message: str = "Cleanup successful"
