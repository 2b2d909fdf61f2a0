"""Chunked upload API routes."""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from common.constants import CLEANUP_ENDPOINT, UPLOAD_ENDPOINT
from common.logging_config import get_logger
from common.protocol import (
    FIELD_CATEGORY,
    FIELD_CHUNK_INDEX,
    FIELD_DOCUMENT_TYPE,
    FIELD_FILE_ID,
    FIELD_FILE_NAME,
    FIELD_TOTAL_CHUNKS,
)
from common.types import ChunkInfo, DocumentType
from server import config
from server.exceptions import (
    InvalidChunkError,
    InvalidDocumentTypeError,
    InvalidRequestError,
    MissingFileError,
    PayloadTooLargeError,
)
from server.schemas.common import ErrorResponse
from server.schemas.upload import (
    ChunkAckResponse,
    CleanupRequest,
    CleanupResponse,
    UploadCompleteResponse,
)
from server.service_locator import get_upload_service
from server.services.chunked_upload_service import ChunkedUploadService
from server.utils import get_current_timestamp, parse_int_field

logger = get_logger(__name__)

router = APIRouter(tags=["Upload"])


@router.post(
    UPLOAD_ENDPOINT,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_chunk(
    request: Request,
    service: ChunkedUploadService = Depends(get_upload_service),
):
    """
    Receive one chunk of a chunked upload.

    Parameters (multipart/form-data):
        - file part: chunk bytes (any field name)
        - chunkIndex: zero-based chunk index (default 0)
        - totalChunks: number of chunks (default 1)
        - fileName: original file name (defaults to the file part's name)
        - document_type: THESIS|DISSERTATION|CONFLUENCE|SYNERGY|HELLO (default HELLO)
        - fileId: upload id returned for chunk 0 (optional for later chunks)

    Returns:
        - Non-final chunk: isPartial, fileId, documentType
        - Final chunk: filePath, originalName, size, fileId, documentType, timestamp

    Raises:
        - 400: Missing file, invalid chunk information or document type
        - 409: Duplicate chunk (reject policy only)
        - 413: Request body or chunk too large
        - 500: Storage failure
    """
    content_length = parse_int_field(request.headers.get("content-length"))
    if content_length is not None and content_length > config.MAX_REQUEST_BYTES:
        raise PayloadTooLargeError(
            "Request too large",
            details={"contentLength": content_length, "maxBytes": config.MAX_REQUEST_BYTES},
        )

    try:
        form = await request.form()
    except Exception as e:
        raise InvalidRequestError("Unable to read request body", details=str(e))

    try:
        return await _handle_chunk_form(form, service)
    finally:
        await form.close()


async def _handle_chunk_form(form, service: ChunkedUploadService) -> JSONResponse:
    upload = next((value for value in form.values() if isinstance(value, UploadFile)), None)
    if upload is None or not upload.filename:
        raise MissingFileError("No file provided")

    if upload.size is not None and upload.size > config.MAX_CHUNK_BYTES:
        raise PayloadTooLargeError(
            "File too large",
            details={"size": upload.size, "maxBytes": config.MAX_CHUNK_BYTES},
        )

    raw_index = form.get(FIELD_CHUNK_INDEX) or "0"
    raw_total = form.get(FIELD_TOTAL_CHUNKS) or "1"
    file_name = form.get(FIELD_FILE_NAME) or upload.filename
    raw_type = form.get(FIELD_DOCUMENT_TYPE) or DocumentType.default().value
    file_id = form.get(FIELD_FILE_ID) or None
    category = form.get(FIELD_CATEGORY) or ""

    chunk_index = parse_int_field(raw_index)
    total_chunks = parse_int_field(raw_total)

    if chunk_index is None or total_chunks is None or chunk_index < 0 or total_chunks < 1:
        raise InvalidChunkError(
            "Invalid chunk information",
            details={
                "chunkIndex": raw_index,
                "totalChunks": raw_total,
                "fileName": file_name,
                "documentType": raw_type,
            },
        )

    if config.STRICT_DOCUMENT_TYPE and not DocumentType.is_valid(raw_type):
        valid = ", ".join(t.value for t in DocumentType)
        raise InvalidDocumentTypeError(f"Invalid document type. Must be one of: {valid}")

    payload = await upload.read()

    logger.debug(
        f"Chunk {chunk_index}/{total_chunks} for {file_name} "
        f"[type={raw_type} category={category or '-'} bytes={len(payload)}]"
    )

    result = await service.handle_chunk(
        payload,
        ChunkInfo(
            chunk_index=chunk_index,
            total_chunks=total_chunks,
            file_name=file_name,
            document_type=raw_type,
            file_id=file_id,
        ),
    )

    if result.is_partial:
        body = ChunkAckResponse(
            document_type=result.document_type.value,
            file_id=result.file_id,
        )
    else:
        body = UploadCompleteResponse(
            file_path=result.file_path,
            original_name=result.file_name,
            size=result.size,
            file_id=result.file_id,
            document_type=result.document_type.value,
            timestamp=get_current_timestamp(),
        )

    return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))


@router.post(
    CLEANUP_ENDPOINT,
    response_model=CleanupResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def cleanup_upload(
    request: Request,
    service: ChunkedUploadService = Depends(get_upload_service),
):
    """
    Discard the temporary chunks of an upload.

    Parameters (JSON):
        - fileId: upload id returned for chunk 0

    Returns:
        - message: "Cleanup successful" (also when nothing was stored)

    Raises:
        - 400: Missing fileId or unreadable body
        - 500: Cleanup failed
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError("No fileId provided", details="Request body is not valid JSON")

    try:
        cleanup_request = CleanupRequest.model_validate(body)
    except ValidationError:
        raise InvalidRequestError("No fileId provided")

    await service.cleanup(cleanup_request.file_id)

    return CleanupResponse()
