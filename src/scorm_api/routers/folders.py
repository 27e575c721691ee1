import logging
from typing import List

from fastapi import (
    APIRouter,
    Path,
    Request,
    status
)
from starlette.concurrency import run_in_threadpool

from scorm_api.adapters.storage import BaseStorage
from scorm_api.config.settings import Settings
from scorm_api.errors import ScormApiError, StorageError
from scorm_api.schemas import ErrorResponse, FolderEntry, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/folders",
    response_model=List[FolderEntry],
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}},
)
async def list_folders(request: Request) -> List[FolderEntry]:
    """
    List the top-level folders in storage.

    The listing is capped at ``max_list_results`` entries and may therefore
    be truncated for very large stores.
    """
    settings: Settings = request.app.state.settings
    storage: BaseStorage = request.app.state.storage
    try:
        return await run_in_threadpool(storage.list_folders, settings.max_list_results)
    except Exception as e:
        logger.error(f"Error fetching folders: {str(e)}")
        details = e.details if isinstance(e, ScormApiError) else str(e)
        raise StorageError(details, error="Server error") from e


@router.delete(
    "/folders/{folderName}",
    response_model=MessageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
async def delete_folder(
    request: Request,
    folder_name: str = Path(..., alias="folderName", description="Name of the folder to delete"),
) -> MessageResponse:
    """
    Delete a folder and everything in it.

    Deleting a folder that does not exist succeeds.
    """
    storage: BaseStorage = request.app.state.storage
    try:
        await run_in_threadpool(storage.delete_folder, folder_name)
    except StorageError as e:
        logger.error(f"Error deleting folder: {e.details}")
        raise StorageError(e.details, error="Error deleting folder") from e
    except ScormApiError:
        raise
    except Exception as e:
        logger.error(f"Error deleting folder: {str(e)}")
        raise StorageError(str(e), error="Error deleting folder") from e

    return MessageResponse(message=f'Folder "{folder_name}" deleted successfully')
