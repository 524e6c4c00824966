"""Source loaders — turn a file or web page into plain text.

Files are dispatched on their declared content type (falling back to
the extension when the type is generic); web pages are fetched with
``requests`` and stripped of markup with BeautifulSoup.  Every failure
surfaces as :class:`~ragdesk.errors.LoadError` or
:class:`~ragdesk.errors.UnsupportedSourceKind`; partial text is never
returned.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from pathlib import Path

import requests
from bs4 import BeautifulSoup
from langchain_community.document_loaders import PyPDFLoader, TextLoader

from ragdesk.errors import LoadError, UnsupportedSourceKind
from ragdesk.ingestion.models import (
    FileReference,
    LoadedSource,
    SourceKind,
    SourceReference,
    WebReference,
)

logger = logging.getLogger(__name__)

CONTENT_TYPE_KINDS: dict[str, SourceKind] = {
    "application/pdf": SourceKind.PDF,
    "text/markdown": SourceKind.MARKDOWN,
    "text/x-markdown": SourceKind.MARKDOWN,
    "text/plain": SourceKind.TEXT,
}

EXTENSION_KINDS: dict[str, SourceKind] = {
    ".pdf": SourceKind.PDF,
    ".md": SourceKind.MARKDOWN,
    ".markdown": SourceKind.MARKDOWN,
    ".txt": SourceKind.TEXT,
}

# Declared types that say nothing about the content; the extension decides.
_GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

_BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe", "form"]

USER_AGENT = "ragdesk/0.1 (+https://github.com/ragdesk)"


def _normalise(text: str) -> str:
    """Unicode NFC, collapse whitespace, strip control chars."""
    text = unicodedata.normalize("NFC", text)
    text = re.sub(r"[^\S\n]+", " ", text)  # collapse spaces (keep \n)
    text = re.sub(r" ?\n ?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)
    return text.strip()


def detect_file_kind(content_type: str, name: str) -> SourceKind:
    """Resolve the kind of a file from its declared type, else its extension."""
    ctype = content_type.split(";", 1)[0].strip().lower()
    if ctype in CONTENT_TYPE_KINDS:
        return CONTENT_TYPE_KINDS[ctype]
    if ctype in _GENERIC_TYPES:
        kind = EXTENSION_KINDS.get(Path(name).suffix.lower())
        if kind is not None:
            return kind
    raise UnsupportedSourceKind(content_type or Path(name).suffix or "<unknown>", source_id=name)


# ── Files ─────────────────────────────────────────────────────────────


def load_pdf(path: str | Path) -> str:
    """Extract the text of every page, one newline between pages."""
    pages = PyPDFLoader(str(path)).load()
    return "\n".join(page.page_content for page in pages)


def load_text_file(path: str | Path) -> str:
    """Read a Markdown or plain-text file verbatim as UTF-8."""
    docs = TextLoader(str(path), encoding="utf-8").load()
    return "".join(doc.page_content for doc in docs)


def load_file(reference: FileReference) -> LoadedSource:
    source_id = reference.source_id
    kind = detect_file_kind(reference.content_type, reference.original_name or reference.path.name)
    if not reference.path.is_file():
        raise LoadError(source_id, f"file not found: {reference.path}")

    try:
        text = load_pdf(reference.path) if kind is SourceKind.PDF else load_text_file(reference.path)
    except Exception as exc:
        raise LoadError(source_id, str(exc) or type(exc).__name__) from exc

    return LoadedSource(source_id=source_id, kind=kind, text=text, title=Path(source_id).name)


# ── Web ───────────────────────────────────────────────────────────────


def _extract_title_html(soup: BeautifulSoup) -> str:
    """Best-effort title from HTML."""
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    h1 = soup.find("h1")
    if h1:
        return h1.get_text(strip=True)
    return ""


def extract_html_text(html: str) -> tuple[str, str]:
    """Return ``(title, primary text)`` of an HTML document.

    Boiler-plate tags are dropped; when the page marks up a ``<main>`` or
    ``<article>`` element only that element's text is kept.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = _extract_title_html(soup)
    for tag in soup(_BOILERPLATE_TAGS):
        tag.decompose()
    root = soup.find("main") or soup.find("article") or soup.body or soup
    return title, _normalise(root.get_text(separator="\n", strip=True))


def load_web_page(reference: WebReference, *, timeout: float = 30.0) -> LoadedSource:
    source_id = reference.source_id
    try:
        resp = requests.get(source_id, headers={"User-Agent": USER_AGENT}, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise LoadError(source_id, str(exc)) from exc

    ctype = resp.headers.get("content-type", "text/html").split(";", 1)[0].strip().lower()
    if "html" in ctype:
        title, text = extract_html_text(resp.text)
    elif ctype.startswith("text/"):
        title, text = "", _normalise(resp.text)
    else:
        raise UnsupportedSourceKind(ctype, source_id=source_id)

    return LoadedSource(source_id=source_id, kind=SourceKind.WEB, text=text, title=title)


# ── Dispatch ──────────────────────────────────────────────────────────


def load(reference: SourceReference, *, timeout: float = 30.0) -> LoadedSource:
    """Load *reference* into plain text.

    Raises
    ------
    UnsupportedSourceKind
        Content type, extension or URL scheme is not recognised.
    LoadError
        I/O or network failure, or the source holds no extractable text.
    """
    if isinstance(reference, WebReference):
        logger.info("Loading web page: %s", reference.url)
        loaded = load_web_page(reference, timeout=timeout)
    else:
        logger.info("Loading file: %s (%s)", reference.source_id, reference.content_type or "?")
        loaded = load_file(reference)

    if not loaded.text.strip():
        raise LoadError(loaded.source_id, "no extractable text")
    logger.info("Loaded %s: %d chars", loaded.source_id, len(loaded.text))
    return loaded
