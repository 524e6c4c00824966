"""FastAPI application exposing the assistant as a REST API.

Routes are plain ``def`` functions so FastAPI runs them on its
threadpool: ingestions of different sources proceed in parallel while
the pipeline serialises work per source.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ragdesk.errors import (
    DimensionMismatch,
    EmbeddingError,
    EmptyQuery,
    GenerationError,
    IngestionInProgress,
    IngestionTimeout,
    LoadError,
    NotInitialized,
    RagDeskError,
    StoreIOError,
    UnsupportedSourceKind,
    UploadRejected,
)
from ragdesk.ingestion import IngestionReceipt
from ragdesk.ingestion.loader import EXTENSION_KINDS
from ragdesk.service import HealthStatus, RagService, SourceItem, build_service
from ragdesk.serving.uploads import UploadStore

if TYPE_CHECKING:
    from ragdesk.config import Settings

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[RagDeskError], int] = {
    EmptyQuery: 400,
    UploadRejected: 400,
    IngestionInProgress: 409,
    UnsupportedSourceKind: 415,
    LoadError: 422,
    GenerationError: 502,
    EmbeddingError: 502,
    NotInitialized: 503,
    IngestionTimeout: 504,
    DimensionMismatch: 500,
    StoreIOError: 500,
}


# ── Request / Response schemas ────────────────────────────────────────
class AddSourceRequest(BaseModel):
    """A web page to ingest."""

    url: str


class QueryRequest(BaseModel):
    """Incoming question from the user."""

    query: str


class QueryResponse(BaseModel):
    """Answer returned by the assistant."""

    answer: str
    sources: list[str] = []
    notice: str | None = None


# ── Dependencies ──────────────────────────────────────────────────────
def get_service(request: Request) -> RagService:
    return request.app.state.service


def get_uploads(request: Request) -> UploadStore:
    return request.app.state.uploads


def _status_for(exc: RagDeskError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


async def _handle_error(request: Request, exc: RagDeskError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc)
    else:
        logger.warning("%s on %s: %s", exc.kind, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content=jsonable_encoder({"error": exc.kind, "message": exc.message, "details": exc.details}),
    )


def create_app(service: RagService | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Parameters
    ----------
    service:
        Pre-built service (tests inject one).  When omitted, the service
        is built from *settings* at startup and closed at shutdown.
    settings:
        Configuration; defaults to :data:`ragdesk.config.settings`.
    """
    if settings is None:
        from ragdesk.config import settings as default_settings

        settings = default_settings
    cfg = settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.service is None
        if owned:
            app.state.service = build_service(cfg)
        logger.info("Application initialized")
        yield
        if owned:
            app.state.service.close()
            app.state.service = None

    app = FastAPI(
        title="ragdesk API",
        version="0.1.0",
        description="Add documents and web pages, then ask questions answered from them.",
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.uploads = UploadStore(
        cfg.uploads_dir, max_file_size=cfg.max_file_size, allowed_types=cfg.allowed_types
    )
    app.add_exception_handler(RagDeskError, _handle_error)

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health", response_model=HealthStatus)
    def health(svc: RagService = Depends(get_service)) -> HealthStatus:
        """Readiness probe."""
        return svc.health()

    @app.post("/add-source", response_model=IngestionReceipt)
    def add_source(body: AddSourceRequest, svc: RagService = Depends(get_service)) -> IngestionReceipt:
        """Fetch a web page and ingest it."""
        return svc.add_web_source(body.url)

    @app.post("/add-file", response_model=IngestionReceipt)
    def add_file(
        file: UploadFile = File(...),
        svc: RagService = Depends(get_service),
        uploads: UploadStore = Depends(get_uploads),
    ) -> IngestionReceipt:
        """Store an uploaded file temporarily and ingest it; the copy is deleted afterwards."""
        saved = uploads.save(file.filename, file.content_type, file.file, size=file.size)
        return svc.add_file_source(saved.path, saved.content_type, saved.original_name)

    @app.get("/sources", response_model=list[SourceItem])
    def sources(svc: RagService = Depends(get_service)) -> list[SourceItem]:
        return svc.list_sources()

    @app.post("/clear-sources")
    def clear_sources(svc: RagService = Depends(get_service)) -> dict[str, str]:
        svc.clear_sources()
        return {"status": "cleared"}

    @app.post("/chat", response_model=QueryResponse)
    def chat(request: QueryRequest, svc: RagService = Depends(get_service)) -> QueryResponse:
        """Answer a question from the ingested sources."""
        result = svc.ask(request.query)
        sources = list(dict.fromkeys(c.source for c in result.citations))
        return QueryResponse(answer=result.answer, sources=sources, notice=result.notice)

    @app.get("/config")
    def client_config() -> dict[str, Any]:
        return {
            "maxFileSize": cfg.max_file_size,
            "maxFileSizeMB": round(cfg.max_file_size / (1024 * 1024)),
            "allowedTypes": cfg.allowed_types,
            "allowedExtensions": sorted(EXTENSION_KINDS),
            "chunkSize": cfg.chunk_size,
            "chunkOverlap": cfg.chunk_overlap,
        }

    return app


app = create_app()
