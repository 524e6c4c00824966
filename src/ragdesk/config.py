"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="API key for the chat-completions endpoint")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud. "
            "Set to e.g. 'https://openrouter.ai/api/v1' or a local vLLM server."
        ),
    )
    llm_temperature: float = 0.0

    # Embedding
    embedding_provider: Literal["huggingface", "openai"] = "huggingface"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_base_url: str = Field(
        default="",
        description="OpenAI-compatible embeddings endpoint (e.g. 'http://localhost:11434/v1' for Ollama)",
    )
    embedding_api_key: str = ""
    embedding_dimensions: int = Field(default=384, gt=0)

    # Vector store
    vector_backend: Literal["sqlite", "chroma"] = "sqlite"
    store_path: str = "./store/vectors.db"

    # Chunking
    chunk_size: int = Field(default=400, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)

    # Retrieval & answering
    retrieval_k: int = Field(default=4, gt=0)
    max_context_chars: int = Field(default=4000, gt=0)
    empty_store_policy: Literal["notice", "reject"] = Field(
        default="notice",
        description=(
            "'notice': answer from the model alone, prefixed with a no-sources notice. "
            "'reject': raise NotInitialized when the store holds no records."
        ),
    )

    # Ingestion
    ingest_timeout_seconds: float | None = Field(default=None, gt=0)
    web_request_timeout: float = 30.0

    # Uploads
    uploads_dir: str = "uploads"
    max_file_size: int = 10 * 1024 * 1024
    allowed_types: list[str] = ["application/pdf", "text/markdown", "text/plain"]

    # Serving
    host: str = "localhost"
    port: int = 3000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_chunking(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self


# Singleton for entry points (CLI, serving). Library code takes explicit arguments.
settings = Settings()
