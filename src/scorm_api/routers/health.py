import logging

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from scorm_api.adapters.storage import BaseStorage
from scorm_api.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint for monitoring API status and storage readiness.
    """
    storage: BaseStorage = request.app.state.storage

    try:
        await run_in_threadpool(storage.check)
    except Exception as e:
        logger.warning(f"Storage health check failed: {str(e)}")
        return HealthResponse(status="degraded", storage_backend=storage.backend_name, ready=False)

    return HealthResponse(status="ok", storage_backend=storage.backend_name, ready=True)
