import logging
from typing import Optional

from fastapi import (
    APIRouter,
    File,
    Form,
    Request,
    UploadFile,
    status
)
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile

from scorm_api.adapters.storage import DEFAULT_CONTENT_TYPE, BaseStorage
from scorm_api.config.settings import Settings
from scorm_api.errors import (
    ScormApiError,
    StorageError,
    UploadError,
    UploadTooLargeError,
)
from scorm_api.schemas import CompleteUploadResponse, ErrorResponse, MessageResponse
from scorm_api.services.chunked_upload import ChunkedUploadService
from scorm_api.utils.paths import resolve_upload_path

logger = logging.getLogger(__name__)

router = APIRouter()

FOLDER_NAME_FIELD = "folderName"


def _declared_content_type(upload: StarletteUploadFile) -> Optional[str]:
    """Use the client's content type unless it is the generic default."""
    if upload.content_type and upload.content_type != DEFAULT_CONTENT_TYPE:
        return upload.content_type
    return None


@router.post(
    "/upload",
    response_model=MessageResponse,
    responses={
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def upload_folder(request: Request) -> MessageResponse:
    """
    Upload one or more files of a package in a single multipart request.

    Files sent in the ``files`` field go flat into ``folderName``. Files sent
    under path-like field names (``<marker>/<folder>/<sub/dirs>/<file>``)
    keep their directory layout.
    """
    settings: Settings = request.app.state.settings
    storage: BaseStorage = request.app.state.storage

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > settings.max_upload_bytes:
        raise UploadTooLargeError(
            f"Request body of {content_length} bytes exceeds the limit of {settings.max_upload_bytes} bytes"
        )

    try:
        form = await request.form(max_files=settings.max_files)
    except Exception as e:
        raise UploadError(getattr(e, "detail", None) or str(e)) from e

    try:
        folder_name = form.get(FOLDER_NAME_FIELD)
        if isinstance(folder_name, StarletteUploadFile):
            raise UploadError(f"{FOLDER_NAME_FIELD} must be a text field")

        parts = [
            (field_name, value)
            for field_name, value in form.multi_items()
            if isinstance(value, StarletteUploadFile)
        ]
        if not parts:
            raise UploadError("No files were sent")

        total_size = sum(upload.size or 0 for _, upload in parts)
        if total_size > settings.max_upload_bytes:
            raise UploadTooLargeError(
                f"Uploaded files total {total_size} bytes, the limit is {settings.max_upload_bytes} bytes"
            )

        # Every destination is validated before anything is written
        destinations = [
            (resolve_upload_path(field_name, upload.filename, folder_name), upload)
            for field_name, upload in parts
        ]

        for relative_path, upload in destinations:
            try:
                await run_in_threadpool(
                    storage.save_file, relative_path, upload.file, _declared_content_type(upload)
                )
            except ScormApiError as e:
                raise UploadError(e.details) from e
            except Exception as e:
                logger.error(f"Upload error for {relative_path}: {str(e)}")
                raise UploadError(str(e)) from e
    finally:
        await form.close()

    logger.info(f"Files uploaded successfully: {len(destinations)} file(s)")
    return MessageResponse(message="Folder uploaded successfully")


@router.post(
    "/upload-chunk",
    response_model=MessageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def upload_chunk(
    request: Request,
    chunk: UploadFile = File(..., description="Binary content of this chunk"),
    chunk_index: int = Form(..., alias="chunkIndex", description="Zero-based index of this chunk"),
    total_chunks: int = Form(..., alias="totalChunks", description="Number of chunks the file was split into"),
    file_name: str = Form(..., alias="fileName", description="Name of the file being assembled"),
) -> MessageResponse:
    """
    Receive one chunk of a large file.

    Chunks may arrive in any order; a repeated ``chunkIndex`` replaces the
    earlier chunk.
    """
    chunked_uploads: ChunkedUploadService = request.app.state.chunked_uploads
    try:
        await chunked_uploads.receive_chunk(file_name, chunk_index, total_chunks, chunk.file)
    except ScormApiError:
        raise
    except Exception as e:
        logger.error(f"Error storing chunk {chunk_index} of {file_name}: {str(e)}")
        raise UploadError(str(e)) from e
    finally:
        await chunk.close()

    return MessageResponse(message=f"Chunk {chunk_index + 1} of {total_chunks} received")


@router.post(
    "/complete-upload",
    response_model=CompleteUploadResponse,
    responses={
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def complete_upload(
    request: Request,
    file_name: str = Form(..., alias="fileName", description="Name of the file being assembled"),
    folder_name: Optional[str] = Form(None, alias="folderName", description="Optional folder to store the file in"),
) -> CompleteUploadResponse:
    """
    Reassemble the received chunks of a file and store the result.

    If storing fails, the merged file stays on the server's disk.
    """
    storage: BaseStorage = request.app.state.storage
    chunked_uploads: ChunkedUploadService = request.app.state.chunked_uploads

    try:
        stored = await chunked_uploads.complete(file_name, storage, folder_name=folder_name)
    except StorageError as e:
        raise StorageError(e.details, error="Failed to upload file") from e
    except ScormApiError:
        raise
    except Exception as e:
        logger.error(f"Error completing upload of {file_name}: {str(e)}")
        raise StorageError(str(e), error="Failed to upload file") from e

    return CompleteUploadResponse(message="File uploaded successfully", url=stored.url)
