import io
import re

import pytest

from tasktracker.errors import ValidationError
from tasktracker.utils.files import (
    BlobStore,
    format_file_size,
    generate_unique_filename,
    is_allowed_file_type,
)


def test_generate_unique_filename_keeps_stem_and_extension():
    name = generate_unique_filename("report.final.pdf")
    assert re.fullmatch(r"report\.final-\d+-[0-9a-f]{16}\.pdf", name)
    assert generate_unique_filename("report.pdf") != generate_unique_filename("report.pdf")


def test_generate_unique_filename_strips_directories():
    assert "/" not in generate_unique_filename("../../etc/passwd")


def test_allowed_types():
    assert is_allowed_file_type("image/png")
    assert is_allowed_file_type("application/pdf")
    assert not is_allowed_file_type("application/x-msdownload")
    assert not is_allowed_file_type(None)


@pytest.mark.parametrize("size,expected", [
    (0, "0 Bytes"),
    (512, "512 Bytes"),
    (1536, "1.5 KB"),
    (10 * 1024 * 1024, "10 MB"),
])
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected


def test_staged_blob_is_kept_on_success(tmp_path):
    store = BlobStore(tmp_path / "blobs")
    with store.staged("a.txt") as path:
        assert store.write(path, io.BytesIO(b"abc"), max_size=10) == 3
    assert store.exists(path)
    assert path.read_bytes() == b"abc"


def test_staged_blob_is_removed_on_failure(tmp_path):
    store = BlobStore(tmp_path)
    with pytest.raises(ValidationError):
        with store.staged("a.txt") as path:
            store.write(path, io.BytesIO(b"x" * 20), max_size=10)
    assert not store.exists(path)

    with pytest.raises(RuntimeError):
        with store.staged("b.txt") as path:
            store.write(path, io.BytesIO(b"ok"), max_size=10)
            raise RuntimeError("database down")
    assert list(tmp_path.iterdir()) == []


def test_delete_tolerates_missing_file(tmp_path):
    store = BlobStore(tmp_path)
    assert store.delete(tmp_path / "missing.bin") is False
