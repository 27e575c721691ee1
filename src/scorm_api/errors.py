"""Error types and the handlers that render them as JSON."""

import logging

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ScormApiError(Exception):
    """Base exception carrying the HTTP status and the public error label."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Server error"

    def __init__(self, details: str, error: str | None = None):
        super().__init__(details)
        self.details = details
        if error is not None:
            self.error = error


class UploadTooLargeError(ScormApiError):
    """The request body exceeds the configured size cap."""

    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error = "File too large"


class UploadError(ScormApiError):
    """Malformed multipart data or a failure while writing an upload."""

    error = "Upload error"


class InvalidNameError(ScormApiError):
    """A folder or file name failed normalization."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid name"


class InvalidChunkError(ScormApiError):
    """Chunk metadata such as the index or total count is out of range."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid chunk"


class ChunkSessionError(ScormApiError):
    """A chunk or completion request does not fit the upload session's state."""

    status_code = status.HTTP_409_CONFLICT
    error = "Upload session error"


class StorageError(ScormApiError):
    """The storage backend failed."""


def _error_response(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": details},
    )


async def handle_scorm_api_errors(request: Request, exc: ScormApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.error} on {request.method} {request.url.path}: {exc.details}")
    else:
        logger.warning(f"{exc.error} on {request.method} {request.url.path}: {exc.details}")
    return _error_response(exc.status_code, exc.error, exc.details)


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in errors
    )
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request", details)


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates during the request."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error", str(err))
