"""Normalization and validation of names that end up as storage paths."""

from typing import List, Optional

from scorm_api.errors import InvalidNameError

_FORBIDDEN_SEGMENTS = {"", ".", ".."}

# Field name of the flat, many-files-per-request upload form
MULTI_FILE_FIELD = "files"


def split_relative_path(path: str) -> List[str]:
    """Split a slash separated relative path into validated segments.

    Rejects absolute paths, backslashes, NUL bytes and empty, ``.`` or ``..``
    segments.

    :param path: path such as ``course/res/index.html``
    :return: list of segments
    :raises InvalidNameError: if the path is unsafe
    """
    if not isinstance(path, str) or not path:
        raise InvalidNameError("Path must not be empty")
    if "\x00" in path:
        raise InvalidNameError(f"Path contains a NUL byte: {path!r}")
    if "\\" in path:
        raise InvalidNameError(f"Path must use forward slashes: {path!r}")
    if path.startswith("/"):
        raise InvalidNameError(f"Path must be relative: {path!r}")

    segments = path.split("/")
    for segment in segments:
        if segment in _FORBIDDEN_SEGMENTS:
            raise InvalidNameError(f"Path contains an empty or relative segment: {path!r}")
    return segments


def normalize_relative_path(path: str) -> str:
    """Validate ``path`` and return it in canonical slash separated form."""
    return "/".join(split_relative_path(path))


def validate_name(name: str) -> str:
    """Validate a single path segment such as a folder or file name."""
    segments = split_relative_path(name)
    if len(segments) != 1:
        raise InvalidNameError(f"Name must be a single path segment: {name!r}")
    return segments[0]


def resolve_upload_path(field_name: str, filename: Optional[str], folder_name: Optional[str]) -> str:
    """Work out where a multipart file part is stored.

    Parts sent under ``MULTI_FILE_FIELD`` land flat in ``folder_name``. Any
    other field name is read as a relative path whose first segment is a
    marker and is dropped; what remains is kept as nested directories with
    the last segment as the file name. A bare file name left after dropping
    the marker goes under ``folder_name``.

    :param field_name: the multipart field name of the part
    :param filename: the filename the client sent for the part
    :param folder_name: the request's ``folderName`` field, if any
    :return: normalized path relative to the storage root
    """
    if field_name == MULTI_FILE_FIELD:
        if not folder_name:
            raise InvalidNameError(f"folderName is required for files sent as {MULTI_FILE_FIELD!r}")
        # Some browsers send the client side path as the filename
        basename = (filename or "").replace("\\", "/").rsplit("/", 1)[-1]
        return f"{validate_name(folder_name)}/{validate_name(basename)}"

    segments = split_relative_path(field_name)[1:]
    if not segments:
        raise InvalidNameError(f"Field name {field_name!r} has no path below its first segment")
    if len(segments) == 1:
        if not folder_name:
            raise InvalidNameError(f"folderName is required to place {segments[0]!r}")
        segments.insert(0, validate_name(folder_name))
    return "/".join(segments)
