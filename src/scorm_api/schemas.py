####################################
# --- Request/response schemas --- #
####################################

from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class StoredFile(BaseModel):
    """A file written to the storage backend."""
    path: str = Field(
        description="Path of the file relative to the storage root.",
        json_schema_extra={"example": "course-101/index.html"},
    )
    filename: str = Field(description="The file's own name.")
    size_bytes: int = Field(description="The size of the file in bytes.")
    content_type: str = Field(description="MIME type the file was stored with.")
    url: str = Field(description="Directly fetchable location of the file.")


class FolderEntry(BaseModel):
    """One top-level folder in storage."""
    name: str = Field(
        description="Last path segment of the folder's storage key.",
        json_schema_extra={"example": "course-101"},
    )
    link: str = Field(
        description="Fetchable URL of the folder's launch page.",
        json_schema_extra={"example": "/course-101/index.html"},
    )


class MessageResponse(BaseModel):
    """Plain confirmation returned by upload, chunk and delete routes."""
    message: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"message": "Folder uploaded successfully"}
        }
    )


class CompleteUploadResponse(BaseModel):
    """Response model for `POST /complete-upload`."""
    message: str
    url: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "File uploaded successfully",
                "url": "https://scorm-packages.s3.us-east-1.amazonaws.com/scorm_files/course.zip",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for `GET /health`."""
    status: str
    storage_backend: str
    ready: bool
