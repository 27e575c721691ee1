import io
from pathlib import Path

import pytest

from scorm_api.adapters.storage import BaseStorage, LocalStorage
from scorm_api.errors import ChunkSessionError, InvalidChunkError, InvalidNameError, StorageError
from scorm_api.services.chunked_upload import (
    ChunkedUploadService,
    SessionState,
    assemble_chunks,
    parse_chunk_index,
)


class FailingStorage(BaseStorage):
    backend_name = "failing"

    def save_file(self, relative_path, fileobj, content_type=None):
        raise StorageError("Bucket is read-only")


class BrokenStream(io.RawIOBase):
    """Client stream that breaks off mid-request."""

    def readable(self):
        return True

    def readinto(self, buffer):
        raise OSError("connection reset")


@pytest.fixture
def service(tmp_path) -> ChunkedUploadService:
    return ChunkedUploadService(temp_dir=tmp_path / "temp", uploads_dir=tmp_path / "uploads")


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "public")


async def send_chunks(service: ChunkedUploadService, file_name: str, chunks: dict, total_chunks: int):
    for index, content in chunks.items():
        await service.receive_chunk(file_name, index, total_chunks, io.BytesIO(content))


async def test_reassembles_out_of_order_chunks(service, storage):
    await send_chunks(service, "course.zip", {2: b"C", 0: b"A", 1: b"B"}, total_chunks=3)

    stored = await service.complete("course.zip", storage)

    assert (storage.root_dir / "course.zip").read_bytes() == b"ABC"
    assert stored.url == "/course.zip"
    assert not (service.temp_dir / "course.zip").exists()
    assert not (service.uploads_dir / "course.zip").exists()
    assert service.get_session("course.zip") is None


async def test_orders_indices_numerically(service, storage):
    chunks = {i: bytes([65 + i]) for i in reversed(range(12))}
    await send_chunks(service, "big.bin", chunks, total_chunks=12)

    await service.complete("big.bin", storage)

    assert (storage.root_dir / "big.bin").read_bytes() == b"ABCDEFGHIJKL"


async def test_complete_into_folder(service, storage):
    await send_chunks(service, "course.zip", {0: b"zip"}, total_chunks=1)

    stored = await service.complete("course.zip", storage, folder_name="course")

    assert stored.path == "course/course.zip"
    assert (storage.root_dir / "course" / "course.zip").read_bytes() == b"zip"


async def test_duplicate_index_overwrites(service, storage):
    await send_chunks(service, "a.txt", {0: b"old", 1: b"!"}, total_chunks=2)
    await send_chunks(service, "a.txt", {0: b"new"}, total_chunks=2)

    await service.complete("a.txt", storage)

    assert (storage.root_dir / "a.txt").read_bytes() == b"new!"


async def test_complete_without_chunks_fails(service, storage):
    with pytest.raises(ChunkSessionError):
        await service.complete("nothing.zip", storage)
    assert not (service.uploads_dir / "nothing.zip").exists()


async def test_complete_twice_fails_cleanly(service, storage):
    await send_chunks(service, "course.zip", {0: b"A"}, total_chunks=1)
    await service.complete("course.zip", storage)

    with pytest.raises(ChunkSessionError):
        await service.complete("course.zip", storage)
    assert (storage.root_dir / "course.zip").read_bytes() == b"A"


async def test_complete_with_missing_chunk_keeps_session_open(service, storage):
    await send_chunks(service, "course.zip", {0: b"A", 2: b"C"}, total_chunks=3)

    with pytest.raises(ChunkSessionError, match="missing \\[1\\]"):
        await service.complete("course.zip", storage)
    assert not (service.uploads_dir / "course.zip").exists()
    assert service.get_session("course.zip").state is SessionState.OPEN

    await send_chunks(service, "course.zip", {1: b"B"}, total_chunks=3)
    await service.complete("course.zip", storage)
    assert (storage.root_dir / "course.zip").read_bytes() == b"ABC"


async def test_storage_failure_leaves_merged_file(service):
    await send_chunks(service, "course.zip", {1: b"B", 0: b"A"}, total_chunks=2)

    with pytest.raises(StorageError):
        await service.complete("course.zip", FailingStorage())

    assert (service.uploads_dir / "course.zip").read_bytes() == b"AB"
    assert not (service.temp_dir / "course.zip").exists()
    assert service.get_session("course.zip") is None


async def test_interrupted_first_chunk_drops_session(service):
    with pytest.raises(OSError):
        await service.receive_chunk("course.zip", 0, 2, BrokenStream())

    assert service.get_session("course.zip") is None
    assert not (service.temp_dir / "course.zip").exists()


async def test_interrupted_chunk_keeps_session_with_stored_chunks(service, storage):
    await send_chunks(service, "course.zip", {0: b"A"}, total_chunks=2)

    with pytest.raises(OSError):
        await service.receive_chunk("course.zip", 1, 2, BrokenStream())

    session = service.get_session("course.zip")
    assert session.state is SessionState.OPEN
    assert session.pending_writes == 0
    assert sorted(p.name for p in session.chunk_dir.iterdir()) == ["chunk-0"]

    await send_chunks(service, "course.zip", {1: b"B"}, total_chunks=2)
    await service.complete("course.zip", storage)
    assert (storage.root_dir / "course.zip").read_bytes() == b"AB"


async def test_late_chunk_is_rejected_while_finalizing(service):
    await send_chunks(service, "course.zip", {0: b"A"}, total_chunks=2)
    service.get_session("course.zip").state = SessionState.FINALIZING

    with pytest.raises(ChunkSessionError):
        await service.receive_chunk("course.zip", 1, 2, io.BytesIO(b"B"))
    with pytest.raises(ChunkSessionError):
        await service.complete("course.zip", LocalStorage(service.temp_dir.parent / "public"))


async def test_adopts_chunks_left_by_earlier_process(tmp_path, storage):
    chunk_dir = tmp_path / "temp" / "course.zip"
    chunk_dir.mkdir(parents=True)
    (chunk_dir / "chunk-1").write_bytes(b"B")
    (chunk_dir / "chunk-0").write_bytes(b"A")

    service = ChunkedUploadService(temp_dir=tmp_path / "temp", uploads_dir=tmp_path / "uploads")
    await service.complete("course.zip", storage)

    assert (storage.root_dir / "course.zip").read_bytes() == b"AB"


@pytest.mark.parametrize("chunk_index, total_chunks", [(3, 3), (-1, 3), (0, 0)])
async def test_rejects_out_of_range_chunks(service, chunk_index, total_chunks):
    with pytest.raises(InvalidChunkError):
        await service.receive_chunk("course.zip", chunk_index, total_chunks, io.BytesIO(b"x"))


@pytest.mark.parametrize("file_name", ["../evil.zip", "dir/course.zip", ""])
async def test_rejects_unsafe_file_names(service, file_name):
    with pytest.raises(InvalidNameError):
        await service.receive_chunk(file_name, 0, 1, io.BytesIO(b"x"))


def test_parse_chunk_index():
    assert parse_chunk_index("chunk-12") == 12
    for bad in ["chunk-", "chunk-a", "chunk--1", "part-1"]:
        with pytest.raises(ChunkSessionError):
            parse_chunk_index(bad)


def test_assemble_rejects_non_numeric_chunk_files(tmp_path):
    chunk_dir = tmp_path / "course.zip"
    chunk_dir.mkdir()
    (chunk_dir / "chunk-0").write_bytes(b"A")
    (chunk_dir / "chunk-x").write_bytes(b"?")
    output = tmp_path / "out" / "course.zip"

    with pytest.raises(ChunkSessionError):
        assemble_chunks(chunk_dir, output)
    assert not output.exists()
    assert (chunk_dir / "chunk-0").exists()


def test_assemble_rejects_empty_directory(tmp_path: Path):
    chunk_dir = tmp_path / "course.zip"
    chunk_dir.mkdir()

    with pytest.raises(ChunkSessionError):
        assemble_chunks(chunk_dir, tmp_path / "out.zip")
    assert not (tmp_path / "out.zip").exists()
