"""Data models flowing through the ingestion pipeline."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ragdesk.errors import LoadError, UnsupportedSourceKind

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SourceKind(str, Enum):
    """Recognised source kinds."""

    WEB = "web"
    PDF = "pdf"
    MARKDOWN = "markdown"
    TEXT = "text"


def normalize_url(url: str) -> str:
    """Canonical form of a web source identifier.

    Lower-cases scheme and host, drops default ports and fragments, and
    gives an empty path a trailing ``/``.  Only ``http`` / ``https`` are
    accepted.
    """
    raw = url.strip()
    parts = urlsplit(raw)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise UnsupportedSourceKind(scheme or "<no scheme>", source_id=raw)
    if not parts.hostname:
        raise LoadError(raw, "invalid URL format")

    host = parts.hostname.lower()
    try:
        port = parts.port
    except ValueError as exc:
        raise LoadError(raw, "invalid port") from exc
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        host = f"{host}:{port}"
    return urlunsplit((scheme, host, parts.path or "/", parts.query, ""))


def chunk_record_id(source_id: str, index: int) -> str:
    """Deterministic record id, so re-ingestion overwrites instead of duplicating."""
    digest = hashlib.sha256(source_id.encode("utf-8")).hexdigest()[:16]
    return f"{digest}_{index}"


# ── Source references (what the caller hands to the pipeline) ────────


class WebReference(BaseModel):
    """A remote page to fetch."""

    url: str

    @property
    def source_id(self) -> str:
        return normalize_url(self.url)


class FileReference(BaseModel):
    """A local file with its declared content type.

    ``original_name`` is the name the user uploaded the file under; it
    becomes the stable source identifier, while ``path`` usually points
    at a temporary copy.
    """

    path: Path
    content_type: str = ""
    original_name: str | None = None

    @property
    def source_id(self) -> str:
        return self.original_name or str(self.path)


SourceReference = WebReference | FileReference


# ── Pipeline values ──────────────────────────────────────────────────


@dataclass(frozen=True)
class LoadedSource:
    """Plain text extracted from a source, ready for chunking."""

    source_id: str
    kind: SourceKind
    text: str
    title: str = ""


@dataclass(frozen=True)
class Chunk:
    """Contiguous slice ``text[start:end]`` of a source's normalised text."""

    source_id: str
    index: int
    text: str
    start: int
    end: int

    @property
    def record_id(self) -> str:
        return chunk_record_id(self.source_id, self.index)


class IngestionReceipt(BaseModel):
    """Confirmation returned once every chunk of a source is committed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source_id: str
    chunk_count: int
    kind: SourceKind
