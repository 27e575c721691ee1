from textwrap import dedent
import logging
from pathlib import Path

import pydantic
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from scorm_api.adapters.storage import BaseStorage, LocalStorage, StorageFactory
from scorm_api.config.settings import Settings, get_settings
from scorm_api.errors import (
    ScormApiError,
    handle_broad_exceptions,
    handle_pydantic_validation_errors,
    handle_scorm_api_errors,
)
from scorm_api.routers.folders import router as folders_router
from scorm_api.routers.health import router as health_router
from scorm_api.routers.uploads import router as uploads_router
from scorm_api.services.chunked_upload import ChunkedUploadService

# Set up logging
logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type"]


def create_app(settings: Settings | None = None, storage: BaseStorage | None = None) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or get_settings()
    storage = storage or StorageFactory.get_storage_handler(settings)

    app = FastAPI(
        title="SCORM Upload API",
        summary="Upload, list and delete SCORM packages",
        version="v1",
        description=dedent(
            """\
        Packages are uploaded either as one multipart request (`POST /upload`)
        or as numbered chunks (`POST /upload-chunk`, then `POST /complete-upload`).

        | Storage backend | Folder links |
        | --- | --- |
        | `local` | `/<folder>/index.html`, served by this app |
        | `s3` | public bucket URL of `<prefix>/<folder>/index.html` |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )

    # Registered before CORS so CORS stays the outermost layer
    app.middleware("http")(handle_broad_exceptions)

    # Only the configured frontend may call the API from a browser
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )
    app.state.settings = settings
    app.state.storage = storage
    app.state.chunked_uploads = ChunkedUploadService(
        temp_dir=Path(settings.temp_dir),
        uploads_dir=Path(settings.uploads_dir),
    )
    logger.info(f"Using {storage.backend_name} storage")

    app.include_router(uploads_router, tags=["uploads"])
    app.include_router(folders_router, tags=["folders"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=ScormApiError,
        handler=handle_scorm_api_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=RequestValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )

    if isinstance(storage, LocalStorage):
        # Mounted last so the API routes above take precedence
        app.mount("/", StaticFiles(directory=storage.root_dir, html=True), name="public")

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)
