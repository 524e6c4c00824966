"""Upload validation and temporary storage for file sources."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ragdesk.errors import UploadRejected

logger = logging.getLogger(__name__)

_COPY_BUFFER = 1024 * 1024


def format_file_size(size: int) -> str:
    """Human-readable size, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def generate_safe_filename(original_name: str, timestamp_ms: int | None = None) -> str:
    """Replace unsafe characters and append a timestamp before the extension."""
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    safe = re.sub(r"[^a-zA-Z0-9.-]", "_", original_name)
    stem, dot, ext = safe.rpartition(".")
    if dot and stem:
        return f"{stem}_{stamp}.{ext}"
    return f"{safe}_{stamp}"


@dataclass(frozen=True)
class SavedUpload:
    path: Path
    original_name: str
    content_type: str
    size: int


class UploadStore:
    """Validates uploads and writes them under *directory*.

    Parameters
    ----------
    directory:
        Where uploads are written; created on demand.
    max_file_size:
        Upper bound in bytes.
    allowed_types:
        Accepted declared MIME types.
    """

    def __init__(self, directory: str | Path, *, max_file_size: int, allowed_types: Sequence[str]) -> None:
        self.directory = Path(directory)
        self.max_file_size = max_file_size
        self.allowed_types = list(allowed_types)

    def validate(self, name: str | None, content_type: str | None, size: int | None = None) -> None:
        if not name:
            raise UploadRejected("File name is required")
        ctype = (content_type or "").split(";", 1)[0].strip().lower()
        if ctype not in self.allowed_types:
            raise UploadRejected(
                f"File type {content_type or '<none>'} is not supported. "
                f"Allowed types: {', '.join(self.allowed_types)}",
                {"content_type": content_type, "file_name": name},
            )
        if size is not None and size > self.max_file_size:
            raise self._too_large(name)

    def _too_large(self, name: str) -> UploadRejected:
        return UploadRejected(
            f"File size exceeds maximum allowed size of {format_file_size(self.max_file_size)}",
            {"file_name": name, "max_file_size": self.max_file_size},
        )

    def save(self, name: str | None, content_type: str | None, stream: BinaryIO, size: int | None = None) -> SavedUpload:
        """Validate and copy *stream* to disk, enforcing the size limit while copying."""
        self.validate(name, content_type, size)
        original = Path(name or "").name
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / generate_safe_filename(original)

        written = 0
        try:
            with open(path, "wb") as fh:
                while block := stream.read(_COPY_BUFFER):
                    written += len(block)
                    if written > self.max_file_size:
                        raise self._too_large(original)
                    fh.write(block)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        logger.info("Received file: %s (%s) → %s", original, format_file_size(written), path)
        ctype = (content_type or "").split(";", 1)[0].strip().lower()
        return SavedUpload(path=path, original_name=original, content_type=ctype, size=written)
