"""Entry point for the upload server."""

import os
import time
import uuid

import uvicorn
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from server import config
from server.cleanup_task import ExpiredSessionSweeper
from server.exceptions import (
    UploadException,
    InvalidChunkError,
    MissingFileError,
    InvalidDocumentTypeError,
    InvalidRequestError,
    DuplicateChunkError,
    PayloadTooLargeError,
    IncompleteUploadError,
    ChunkStorageError,
)
from server.routes.upload_routes import router as upload_router
from server.schemas.common import ErrorResponse
from server.service_locator import get_upload_service
from server.services.chunked_upload_service import ChunkedUploadService

logger = setup_logging('server')

app = FastAPI(
    title="Document Upload Server",
    description="Chunked document upload and reassembly service",
    version="1.0.0"
)

sweeper = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Create the upload service and start the session sweeper on application startup.
    """
    global sweeper

    logger.info("Upload server starting up...")

    service = get_upload_service()
    logger.info(
        f"Storage root: {service.storage_root} temp: {service.temp_root} "
        f"sessions: {type(service.sessions).__name__} duplicates: {service.duplicate_policy}"
    )

    sweeper = ExpiredSessionSweeper(
        service,
        interval_seconds=config.SWEEP_INTERVAL_SECONDS,
        max_age_seconds=config.SESSION_TTL_SECONDS,
    )
    await sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Stop background tasks on application shutdown.
    """
    logger.info("Upload server shutting down...")

    if sweeper:
        await sweeper.stop()


def _error_response(exc: UploadException, status_code: int, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=str(exc), details=exc.details, code=code).model_dump()
    )


@app.exception_handler(InvalidChunkError)
async def invalid_chunk_handler(request: Request, exc: InvalidChunkError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid chunk error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_400_BAD_REQUEST, "INVALID_CHUNK")


@app.exception_handler(MissingFileError)
async def missing_file_handler(request: Request, exc: MissingFileError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Missing file error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_400_BAD_REQUEST, "MISSING_FILE")


@app.exception_handler(InvalidDocumentTypeError)
async def invalid_document_type_handler(request: Request, exc: InvalidDocumentTypeError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid document type error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_400_BAD_REQUEST, "INVALID_DOCUMENT_TYPE")


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid request error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST")


@app.exception_handler(DuplicateChunkError)
async def duplicate_chunk_handler(request: Request, exc: DuplicateChunkError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Duplicate chunk error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_409_CONFLICT, "DUPLICATE_CHUNK")


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Payload too large: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, 413, "PAYLOAD_TOO_LARGE")


@app.exception_handler(IncompleteUploadError)
async def incomplete_upload_handler(request: Request, exc: IncompleteUploadError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Incomplete upload error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INCOMPLETE_UPLOAD")


@app.exception_handler(ChunkStorageError)
async def chunk_storage_handler(request: Request, exc: ChunkStorageError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Chunk storage error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR")


@app.exception_handler(UploadException)
async def upload_exception_handler(request: Request, exc: UploadException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Upload exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


app.include_router(upload_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Document Upload Server API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "upload-server"}


@app.get("/ready")
async def ready_check(service: ChunkedUploadService = Depends(get_upload_service)):
    """
    Readiness check endpoint.
    Verifies the storage root can be created and written to.
    """
    try:
        service.storage_root.mkdir(parents=True, exist_ok=True)
        writable = os.access(service.storage_root, os.W_OK)
        storage_status = "ok" if writable else "error: storage root is not writable"
    except OSError as e:
        storage_status = f"error: {str(e)}"

    ready = storage_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "storage": storage_status,
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "server.main:app",
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
    )


if __name__ == "__main__":
    main()
