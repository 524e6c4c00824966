"""Generator adapters — ``(context, question) → answer text``.

Model responses are resolved into a :class:`GenerationResult` with one
required field (the text) and optional metadata, instead of being
probed for whatever fields happen to be present.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from langchain_core.messages import AIMessage
from pydantic import BaseModel, Field

from ragdesk.answering.prompts import build_rag_prompt
from ragdesk.errors import GenerationError

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    """Text produced by the generator plus provider metadata (model, token usage, …)."""

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class Generator(Protocol):
    def generate(self, context: str, question: str) -> GenerationResult: ...


def _message_text(content: Any) -> str:
    """Flatten a chat message's content (string or list of content blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    raise GenerationError(f"Unexpected response content type: {type(content).__name__}")


class ChatGenerator:
    """Generator backed by a LangChain chat model."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    def generate(self, context: str, question: str) -> GenerationResult:
        messages = build_rag_prompt(context, question)
        try:
            response = self._llm.invoke(messages)
        except Exception as exc:
            raise GenerationError(f"Language model call failed: {exc}") from exc

        text = _message_text(response.content)
        if not text.strip():
            raise GenerationError("Language model returned an empty answer")

        metadata: dict[str, Any] = dict(response.response_metadata)
        if isinstance(response, AIMessage) and response.usage_metadata:
            metadata["usage"] = dict(response.usage_metadata)
        return GenerationResult(text=text, metadata=metadata)
