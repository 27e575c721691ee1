"""
Chunked upload sessions.

Large files arrive as numbered chunks over several requests. Each chunk is
written to ``<temp_dir>/<fileName>/chunk-<index>``; a completion request
concatenates the chunks in ascending index order into
``<uploads_dir>/<fileName>`` and hands the merged file to the storage backend.

Each file name has one session that moves OPEN -> FINALIZING -> CLOSED.
A per-session lock serializes chunk writes and finalization inside this
process. Late chunks and a second finalize are rejected with
``ChunkSessionError``.
"""

import asyncio
import enum
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from scorm_api.adapters.storage import BaseStorage
from scorm_api.errors import ChunkSessionError, InvalidChunkError
from scorm_api.schemas import StoredFile
from scorm_api.utils.decorators import log_reassembly
from scorm_api.utils.paths import validate_name

logger = logging.getLogger(__name__)

CHUNK_FILE_PREFIX = "chunk-"
COPY_BUFFER_SIZE = 1024 * 1024


class SessionState(str, enum.Enum):
    OPEN = "open"
    FINALIZING = "finalizing"
    CLOSED = "closed"


@dataclass
class ChunkSession:
    file_name: str
    chunk_dir: Path
    total_chunks: Optional[int] = None
    state: SessionState = SessionState.OPEN
    pending_writes: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


def chunk_path(chunk_dir: Path, chunk_index: int) -> Path:
    return chunk_dir / f"{CHUNK_FILE_PREFIX}{chunk_index}"


def parse_chunk_index(filename: str) -> int:
    """Return the numeric index encoded in a chunk file name.

    :raises ChunkSessionError: for anything that is not ``chunk-<digits>``
    """
    suffix = filename[len(CHUNK_FILE_PREFIX):] if filename.startswith(CHUNK_FILE_PREFIX) else ""
    if not suffix.isdigit():
        raise ChunkSessionError(f"Unexpected file in chunk directory: {filename}")
    return int(suffix)


def list_chunks(chunk_dir: Path) -> List[Tuple[int, Path]]:
    """List ``(index, path)`` pairs of a chunk directory sorted by index."""
    if not chunk_dir.is_dir():
        raise ChunkSessionError(f"No chunks found for {chunk_dir.name}")
    # Dot files are partial writes
    chunks = [
        (parse_chunk_index(entry.name), entry)
        for entry in chunk_dir.iterdir()
        if not entry.name.startswith(".")
    ]
    if not chunks:
        raise ChunkSessionError(f"No chunks found for {chunk_dir.name}")
    chunks.sort(key=lambda item: item[0])
    return chunks


def check_contiguous(chunks: List[Tuple[int, Path]], total_chunks: Optional[int]) -> None:
    """Require chunk indices to be exactly ``0..N-1``."""
    indices = [index for index, _ in chunks]
    expected = total_chunks if total_chunks is not None else len(indices)
    missing = sorted(set(range(expected)) - set(indices))
    if missing or len(indices) != expected:
        raise ChunkSessionError(
            f"Upload incomplete: received {len(indices)} of {expected} chunks, missing {missing}"
        )


def write_chunk(chunk_dir: Path, chunk_index: int, fileobj: BinaryIO) -> Path:
    chunk_dir.mkdir(parents=True, exist_ok=True)
    dest = chunk_path(chunk_dir, chunk_index)
    partial = dest.with_name(f".{dest.name}.part")
    try:
        with open(partial, "wb") as out:
            shutil.copyfileobj(fileobj, out, COPY_BUFFER_SIZE)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    # Duplicate indices overwrite the earlier chunk
    partial.replace(dest)
    return dest


def discard_if_empty(chunk_dir: Path) -> bool:
    """Remove ``chunk_dir`` if it holds no chunks.

    :return: True if no chunk directory is left
    """
    if chunk_dir.is_dir():
        if any(chunk_dir.iterdir()):
            return False
        chunk_dir.rmdir()
    return True


@log_reassembly
def assemble_chunks(chunk_dir: Path, output_path: Path, total_chunks: Optional[int] = None) -> Path:
    """Concatenate the chunks of ``chunk_dir`` into ``output_path``.

    Chunks are deleted as they are appended and the emptied directory is
    removed. Nothing is written unless the chunk set is complete.
    """
    chunks = list_chunks(chunk_dir)
    check_contiguous(chunks, total_chunks)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as out:
        for _, path in chunks:
            with open(path, "rb") as chunk:
                shutil.copyfileobj(chunk, out, COPY_BUFFER_SIZE)
            path.unlink()
    chunk_dir.rmdir()
    logger.info(f"Assembled {len(chunks)} chunks into {output_path}")
    return output_path


class ChunkedUploadService:
    """Tracks chunk sessions and reassembles completed uploads."""

    def __init__(self, temp_dir: Path, uploads_dir: Path):
        self.temp_dir = Path(temp_dir)
        self.uploads_dir = Path(uploads_dir)
        self._sessions: Dict[str, ChunkSession] = {}

    def get_session(self, file_name: str) -> Optional[ChunkSession]:
        return self._sessions.get(file_name)

    def _open_session(self, file_name: str) -> ChunkSession:
        session = self._sessions.get(file_name)
        if session is None:
            session = ChunkSession(file_name=file_name, chunk_dir=self.temp_dir / file_name)
            self._sessions[file_name] = session
            logger.info(f"Opened upload session for {file_name}")
        return session

    async def receive_chunk(self, file_name: str, chunk_index: int, total_chunks: int, fileobj: BinaryIO) -> Path:
        """Persist one chunk of ``file_name``."""
        file_name = validate_name(file_name)
        if total_chunks < 1:
            raise InvalidChunkError(f"totalChunks must be at least 1, got {total_chunks}")
        if not 0 <= chunk_index < total_chunks:
            raise InvalidChunkError(f"chunkIndex {chunk_index} is outside 0..{total_chunks - 1}")

        session = self._open_session(file_name)
        if session.state is not SessionState.OPEN:
            raise ChunkSessionError(f"Upload of {file_name} is already being finalized")

        session.pending_writes += 1
        try:
            async with session.lock:
                # State may have changed while waiting for the lock
                if session.state is not SessionState.OPEN:
                    raise ChunkSessionError(f"Upload of {file_name} is already being finalized")
                if session.total_chunks is not None and session.total_chunks != total_chunks:
                    logger.warning(
                        f"totalChunks for {file_name} changed from {session.total_chunks} to {total_chunks}"
                    )
                session.total_chunks = total_chunks
                try:
                    dest = await run_in_threadpool(write_chunk, session.chunk_dir, chunk_index, fileobj)
                except Exception:
                    # Sessions without stored chunks or queued writers are not kept
                    if session.pending_writes == 1 and await run_in_threadpool(discard_if_empty, session.chunk_dir):
                        logger.info(f"Dropped upload session for {file_name}: no chunks stored")
                        self._close(session)
                    raise
        finally:
            session.pending_writes -= 1

        logger.debug(f"Stored chunk {chunk_index + 1}/{total_chunks} of {file_name} at {dest}")
        return dest

    async def complete(self, file_name: str, storage: BaseStorage, folder_name: Optional[str] = None) -> StoredFile:
        """Reassemble ``file_name`` and store it.

        On success the merged file is removed and the session closed. If the
        storage backend fails, the merged file is left in ``uploads_dir``.
        """
        file_name = validate_name(file_name)
        relative_path = f"{validate_name(folder_name)}/{file_name}" if folder_name else file_name

        session = self._sessions.get(file_name)
        if session is None:
            if not (self.temp_dir / file_name).is_dir():
                raise ChunkSessionError(f"No upload in progress for {file_name}")
            # Chunks left by an earlier process
            session = self._open_session(file_name)

        if session.state is not SessionState.OPEN:
            raise ChunkSessionError(f"Upload of {file_name} is already being finalized")

        async with session.lock:
            if session.state is not SessionState.OPEN:
                raise ChunkSessionError(f"Upload of {file_name} is already being finalized")
            session.state = SessionState.FINALIZING

            merged_path = self.uploads_dir / file_name
            try:
                await run_in_threadpool(assemble_chunks, session.chunk_dir, merged_path, session.total_chunks)
            except Exception:
                if session.chunk_dir.is_dir():
                    # Chunks are still there, so the client may send the missing ones
                    session.state = SessionState.OPEN
                else:
                    self._close(session)
                raise

            self._close(session)
            stored = await run_in_threadpool(storage.save_local_file, relative_path, merged_path)
            await run_in_threadpool(merged_path.unlink)

        logger.info(f"Completed upload of {file_name} to {stored.url}")
        return stored

    def _close(self, session: ChunkSession) -> None:
        session.state = SessionState.CLOSED
        if self._sessions.get(session.file_name) is session:
            del self._sessions[session.file_name]
