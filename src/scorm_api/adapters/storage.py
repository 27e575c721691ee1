"""
Storage adapter for uploaded SCORM packages.

A folder is the first path segment of everything stored; files below it keep
their relative layout. ``LocalStorage`` writes below a directory that the app
serves statically, ``S3Storage`` writes below a key prefix in a bucket.
"""

import logging
import mimetypes
import os
import shutil
from pathlib import Path
from typing import BinaryIO, List, Optional

import boto3

from scorm_api.config.settings import Settings
from scorm_api.errors import StorageError
from scorm_api.s3.delete_objects import delete_s3_objects_by_prefix
from scorm_api.s3.read_objects import fetch_s3_folder_prefixes
from scorm_api.s3.write_objects import upload_s3_object
from scorm_api.schemas import FolderEntry, StoredFile
from scorm_api.utils.decorators import log_storage_call
from scorm_api.utils.paths import normalize_relative_path, validate_name

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
FOLDER_INDEX_PAGE = "index.html"


def guess_content_type(filename: str) -> str:
    """Detect the MIME type from the file name, falling back to octet-stream."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or DEFAULT_CONTENT_TYPE


def _file_size(fileobj: BinaryIO) -> int:
    position = fileobj.tell()
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(position)
    return size


class BaseStorage:
    """Base class for storage handling (to be extended by specific implementations)"""

    backend_name = "base"

    def save_file(self, relative_path: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> StoredFile:
        raise NotImplementedError

    def list_folders(self, max_results: int) -> List[FolderEntry]:
        raise NotImplementedError

    def delete_folder(self, folder_name: str) -> None:
        raise NotImplementedError

    def public_url(self, relative_path: str) -> str:
        raise NotImplementedError

    def check(self) -> None:
        """Raise if the backend is unusable."""
        raise NotImplementedError

    def save_local_file(self, relative_path: str, local_path: Path, content_type: Optional[str] = None) -> StoredFile:
        """Store a file that already exists on local disk."""
        with open(local_path, "rb") as fileobj:
            return self.save_file(relative_path, fileobj, content_type)

    def folder_link(self, folder_name: str) -> str:
        return self.public_url(f"{folder_name}/{FOLDER_INDEX_PAGE}")


class LocalStorage(BaseStorage):
    """Stores files below a local directory served at the site root."""

    backend_name = "local"

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalStorage initialized at: {self.root_dir}")

    def _resolve(self, relative_path: str) -> Path:
        return self.root_dir / normalize_relative_path(relative_path)

    @log_storage_call("save")
    def save_file(self, relative_path: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> StoredFile:
        relative_path = normalize_relative_path(relative_path)
        dest_path = self._resolve(relative_path)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as dest:
                shutil.copyfileobj(fileobj, dest)
        except OSError as e:
            logger.error(f"Error writing {dest_path}: {str(e)}")
            raise StorageError(f"Failed to write {relative_path}: {e.strerror or str(e)}") from e

        logger.info(f"Stored {relative_path} at {dest_path}")
        return StoredFile(
            path=relative_path,
            filename=dest_path.name,
            size_bytes=dest_path.stat().st_size,
            content_type=content_type or guess_content_type(dest_path.name),
            url=self.public_url(relative_path),
        )

    def list_folders(self, max_results: int) -> List[FolderEntry]:
        try:
            folder_names = sorted(entry.name for entry in self.root_dir.iterdir() if entry.is_dir())
        except OSError as e:
            raise StorageError(f"Failed to read {self.root_dir}: {e.strerror or str(e)}") from e

        return [
            FolderEntry(name=name, link=self.folder_link(name))
            for name in folder_names[:max_results]
        ]

    @log_storage_call("delete folder")
    def delete_folder(self, folder_name: str) -> None:
        folder_path = self._resolve(validate_name(folder_name))
        if not folder_path.exists():
            logger.info(f"Folder {folder_name} does not exist, nothing to delete")
            return
        try:
            shutil.rmtree(folder_path)
        except FileNotFoundError:
            # Removed concurrently; the folder is gone either way
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {folder_name}: {e.strerror or str(e)}") from e
        logger.info(f"Deleted folder {folder_path}")

    def public_url(self, relative_path: str) -> str:
        return f"/{normalize_relative_path(relative_path)}"

    def check(self) -> None:
        if not self.root_dir.is_dir():
            raise StorageError(f"Storage directory {self.root_dir} is missing")


class S3Storage(BaseStorage):
    """Stores files as objects below a key prefix in an S3 bucket."""

    backend_name = "s3"

    def __init__(self, settings: Settings, s3_client=None):
        self.bucket_name = settings.s3_bucket_name
        self.key_prefix = settings.s3_key_prefix
        self.base_url = settings.s3_base_url

        # Create S3 client with settings
        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=settings.aws_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )

        logger.info(f"S3Storage initialized")
        logger.info(f"  Endpoint: {settings.aws_endpoint_url}")
        logger.info(f"  Bucket: {self.bucket_name}")
        logger.info(f"  Prefix: {self.key_prefix}")

    def _object_key(self, relative_path: str) -> str:
        relative_path = normalize_relative_path(relative_path)
        if self.key_prefix:
            return f"{self.key_prefix}/{relative_path}"
        return relative_path

    @property
    def _folders_prefix(self) -> str:
        return f"{self.key_prefix}/" if self.key_prefix else ""

    @log_storage_call("save")
    def save_file(self, relative_path: str, fileobj: BinaryIO, content_type: Optional[str] = None) -> StoredFile:
        relative_path = normalize_relative_path(relative_path)
        object_key = self._object_key(relative_path)
        filename = relative_path.rsplit("/", 1)[-1]
        content_type = content_type or guess_content_type(filename)
        size_bytes = _file_size(fileobj)
        try:
            upload_s3_object(
                bucket_name=self.bucket_name,
                object_key=object_key,
                file_content=fileobj,
                content_type=content_type,
                s3_client=self.s3_client,
            )
        except Exception as e:
            logger.error(f"Error uploading to S3: {str(e)}")
            raise StorageError(str(e)) from e

        logger.info(f"Uploaded {relative_path} to s3://{self.bucket_name}/{object_key}")
        return StoredFile(
            path=relative_path,
            filename=filename,
            size_bytes=size_bytes,
            content_type=content_type,
            url=self.public_url(relative_path),
        )

    def list_folders(self, max_results: int) -> List[FolderEntry]:
        try:
            prefixes = fetch_s3_folder_prefixes(
                bucket_name=self.bucket_name,
                prefix=self._folders_prefix,
                max_folders=max_results,
                s3_client=self.s3_client,
            )
        except Exception as e:
            logger.error(f"Error listing S3 folders: {str(e)}")
            raise StorageError(str(e)) from e

        folders = []
        for prefix in prefixes[:max_results]:
            name = prefix.rstrip("/").split("/")[-1]
            folders.append(FolderEntry(name=name, link=self.folder_link(name)))
        return folders

    @log_storage_call("delete folder")
    def delete_folder(self, folder_name: str) -> None:
        folder_prefix = self._object_key(validate_name(folder_name)) + "/"
        try:
            delete_s3_objects_by_prefix(
                bucket_name=self.bucket_name,
                prefix=folder_prefix,
                s3_client=self.s3_client,
            )
        except Exception as e:
            logger.error(f"Error deleting S3 prefix {folder_prefix}: {str(e)}")
            raise StorageError(str(e)) from e

    def public_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{self._object_key(relative_path)}"

    def check(self) -> None:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except Exception as e:
            raise StorageError(f"Bucket {self.bucket_name} is not reachable: {str(e)}") from e


class StorageFactory:
    """Factory to get the storage handler for the configured backend"""

    @staticmethod
    def get_storage_handler(settings: Settings) -> BaseStorage:
        """Returns the storage handler based on settings.storage_backend"""
        if settings.storage_backend == "s3":
            return S3Storage(settings)
        return LocalStorage(Path(settings.public_dir))
