"""Filesystem blob storage for task attachments."""

import logging
import os
import secrets
import time
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from tasktracker.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "text/plain",
    "text/csv",
    # Archives
    "application/zip",
    "application/x-zip-compressed",
})

CHUNK_SIZE = 64 * 1024


def generate_unique_filename(original_filename: str) -> str:
    """``report.pdf`` -> ``report-<epoch millis>-<16 hex chars>.pdf``"""
    name = os.path.basename(original_filename or "") or "upload"
    stem, ext = os.path.splitext(name)
    return f"{stem}-{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


def is_allowed_file_type(mimetype: Optional[str]) -> bool:
    return mimetype in ALLOWED_MIME_TYPES


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


class BlobStore:
    def __init__(self, root):
        self.root = Path(root)

    def ensure_root(self) -> None:
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            logger.info("Created uploads directory: %s", self.root)

    @contextmanager
    def staged(self, original_filename: str) -> Iterator[Path]:
        """Reserve a unique path; the blob is removed if the block raises."""
        self.ensure_root()
        path = self.root / generate_unique_filename(original_filename)
        try:
            yield path
        except BaseException:
            self.delete(path)
            raise

    def write(self, path: Path, stream: BinaryIO, max_size: int) -> int:
        size = 0
        with open(path, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise ValidationError(
                        f"File too large. Maximum size is {format_file_size(max_size)}",
                        errors=[{"field": "file", "message": "File exceeds the maximum allowed size"}],
                    )
                out.write(chunk)
        return size

    def exists(self, path) -> bool:
        return Path(path).is_file()

    def delete(self, path) -> bool:
        """Remove a blob. Missing files and OS errors are logged, never raised."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            logger.warning("Blob %s already missing", path)
            return False
        except OSError:
            logger.exception("Error deleting file %s", path)
            return False
        return True
