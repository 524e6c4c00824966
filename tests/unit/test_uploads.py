"""Unit tests for upload validation and temporary storage."""

from __future__ import annotations

import io
import re
from pathlib import Path

import pytest

from ragdesk.errors import UploadRejected
from ragdesk.serving.uploads import UploadStore, format_file_size, generate_safe_filename

ALLOWED = ["application/pdf", "text/markdown", "text/plain"]


@pytest.fixture()
def uploads(tmp_path: Path) -> UploadStore:
    return UploadStore(tmp_path / "uploads", max_file_size=1024, allowed_types=ALLOWED)


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (512, "512 B"), (1024, "1 KB"), (1536, "1.5 KB"), (10 * 1024 * 1024, "10 MB")],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected


class TestSafeFilename:
    def test_timestamp_before_extension(self) -> None:
        assert generate_safe_filename("report.pdf", timestamp_ms=42) == "report_42.pdf"

    def test_unsafe_characters_replaced(self) -> None:
        assert generate_safe_filename("my notes (v2).md", timestamp_ms=7) == "my_notes__v2__7.md"

    def test_no_extension(self) -> None:
        assert generate_safe_filename("README", timestamp_ms=1) == "README_1"

    def test_dotfile(self) -> None:
        assert generate_safe_filename(".env", timestamp_ms=1) == ".env_1"

    def test_default_timestamp(self) -> None:
        assert re.fullmatch(r"a_\d{13}\.txt", generate_safe_filename("a.txt"))


class TestUploadStore:
    def test_save_writes_file(self, uploads: UploadStore) -> None:
        saved = uploads.save("notes.md", "text/markdown; charset=utf-8", io.BytesIO(b"# hi"))

        assert saved.path.parent == uploads.directory
        assert saved.path.read_bytes() == b"# hi"
        assert saved.original_name == "notes.md"
        assert saved.content_type == "text/markdown"
        assert saved.size == 4

    def test_path_components_stripped(self, uploads: UploadStore) -> None:
        saved = uploads.save("../../etc/passwd.txt", "text/plain", io.BytesIO(b"x"))
        assert saved.original_name == "passwd.txt"
        assert saved.path.parent == uploads.directory

    @pytest.mark.parametrize("content_type", [None, "", "image/png", "application/zip"])
    def test_disallowed_type(self, uploads: UploadStore, content_type: str | None) -> None:
        with pytest.raises(UploadRejected, match="not supported"):
            uploads.save("file.bin", content_type, io.BytesIO(b"x"))
        assert not uploads.directory.exists()

    def test_missing_name(self, uploads: UploadStore) -> None:
        with pytest.raises(UploadRejected, match="name is required"):
            uploads.save(None, "text/plain", io.BytesIO(b"x"))

    def test_declared_size_over_limit(self, uploads: UploadStore) -> None:
        with pytest.raises(UploadRejected, match="1 KB"):
            uploads.save("big.txt", "text/plain", io.BytesIO(b""), size=2048)

    def test_streamed_size_over_limit_removes_partial(self, uploads: UploadStore) -> None:
        with pytest.raises(UploadRejected) as excinfo:
            uploads.save("big.txt", "text/plain", io.BytesIO(b"x" * 2048))
        assert excinfo.value.details["max_file_size"] == 1024
        assert list(uploads.directory.iterdir()) == []

    def test_exactly_at_limit(self, uploads: UploadStore) -> None:
        assert uploads.save("edge.txt", "text/plain", io.BytesIO(b"x" * 1024)).size == 1024
