import io
import logging

import pytest

from scorm_api.adapters.storage import LocalStorage
from scorm_api.errors import StorageError
from scorm_api.services.chunked_upload import assemble_chunks, write_chunk

DECORATORS_LOGGER = "scorm_api.utils.decorators"


def test_storage_call_logs_backend_path_and_size(tmp_path, caplog):
    storage = LocalStorage(tmp_path / "public")
    caplog.set_level(logging.INFO, logger=DECORATORS_LOGGER)

    storage.save_file("course/index.html", io.BytesIO(b"<html></html>"))

    messages = [r.getMessage() for r in caplog.records if r.name == DECORATORS_LOGGER]
    assert any(
        m.startswith("[local] save course/index.html (13 bytes) in ") for m in messages
    ), messages


def test_storage_call_logs_failures_and_reraises(tmp_path, caplog):
    storage = LocalStorage(tmp_path / "public")
    # A file where the folder should be makes the write fail
    (storage.root_dir / "course").write_bytes(b"")
    caplog.set_level(logging.INFO, logger=DECORATORS_LOGGER)

    with pytest.raises(StorageError):
        storage.save_file("course/index.html", io.BytesIO(b""))

    failures = [r for r in caplog.records if r.name == DECORATORS_LOGGER and r.levelno == logging.ERROR]
    assert len(failures) == 1
    assert failures[0].getMessage().startswith("[local] save course/index.html failed after ")


def test_reassembly_logs_merged_size(tmp_path, caplog):
    chunk_dir = tmp_path / "temp" / "course.zip"
    write_chunk(chunk_dir, 0, io.BytesIO(b"abc"))
    write_chunk(chunk_dir, 1, io.BytesIO(b"de"))
    caplog.set_level(logging.INFO, logger=DECORATORS_LOGGER)

    assemble_chunks(chunk_dir, tmp_path / "uploads" / "course.zip", 2)

    messages = [r.getMessage() for r in caplog.records if r.name == DECORATORS_LOGGER]
    assert any("Reassembled course.zip into" in m and "(5 bytes)" in m for m in messages), messages
