"""Custom exception classes for the upload server."""


class UploadException(Exception):
    """
    Base exception class for all upload-related errors.
    """

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class InvalidChunkError(UploadException):
    """
    Raised when chunk index or chunk count is missing, non-numeric or out of range.
    """
    pass


class MissingFileError(UploadException):
    """
    Raised when a chunk request carries no file part.
    """
    pass


class InvalidDocumentTypeError(UploadException):
    """
    Raised for an unknown document_type when strict category checking is enabled.
    """
    pass


class InvalidRequestError(UploadException):
    """
    Raised when a request body cannot be read or lacks required fields.
    """
    pass


class PayloadTooLargeError(UploadException):
    """
    Raised when a request body or chunk exceeds the configured size limit.
    """
    pass


class DuplicateChunkError(UploadException):
    """
    Raised when a chunk index is written twice and duplicates are rejected.
    """
    pass


class IncompleteUploadError(UploadException):
    """
    Raised when the final chunk arrives but earlier chunk files are missing.
    """
    pass


class ChunkStorageError(UploadException):
    """
    Raised when reading, writing or removing chunk data on disk fails.
    """
    pass
