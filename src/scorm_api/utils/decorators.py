"""Logging decorators for storage and chunk reassembly calls."""
import functools
import logging
import time
from pathlib import Path
from typing import Any, Callable, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_storage_call(operation: str) -> Callable[[F], F]:
    """Log a storage backend method with its backend, target and duration.

    The decorated method must take the path or folder name it acts on as its
    first argument after ``self``. If it returns something with a
    ``size_bytes`` attribute (a ``StoredFile``), the byte count is logged too.

    Args:
        operation: Verb used in the log line, e.g. ``"save"`` or ``"delete"``

    Returns:
        Decorator for ``BaseStorage`` methods
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, target: str, *args, **kwargs):
            backend = getattr(self, "backend_name", type(self).__name__)
            start_time = time.monotonic()
            try:
                result = func(self, target, *args, **kwargs)
            except Exception as e:
                duration = time.monotonic() - start_time
                logger.error(f"[{backend}] {operation} {target} failed after {duration:.2f}s: {str(e)}")
                raise

            duration = time.monotonic() - start_time
            size_bytes = getattr(result, "size_bytes", None)
            if size_bytes is None:
                logger.info(f"[{backend}] {operation} {target} in {duration:.2f}s")
            else:
                logger.info(f"[{backend}] {operation} {target} ({size_bytes} bytes) in {duration:.2f}s")
            return result
        return cast(F, wrapper)
    return decorator


def log_reassembly(func: F) -> F:
    """Log how long merging a chunk directory took and how big the result is.

    The decorated function takes ``(chunk_dir, output_path, ...)`` and returns
    the path of the merged file.
    """
    @functools.wraps(func)
    def wrapper(chunk_dir: Path, output_path: Path, *args, **kwargs):
        start_time = time.monotonic()
        try:
            merged_path = func(chunk_dir, output_path, *args, **kwargs)
        except Exception as e:
            duration = time.monotonic() - start_time
            logger.error(f"Reassembly of {Path(chunk_dir).name} failed after {duration:.2f}s: {str(e)}")
            raise

        duration = time.monotonic() - start_time
        size_bytes = Path(merged_path).stat().st_size
        logger.info(f"Reassembled {Path(chunk_dir).name} into {merged_path} ({size_bytes} bytes) in {duration:.2f}s")
        return merged_path
    return cast(F, wrapper)
