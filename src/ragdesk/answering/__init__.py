"""
Answering — context assembly and generation over retrieved chunks.

Public API
----------
- :class:`RagAssistant` — question → :class:`AnswerResult`.
- :class:`ChatGenerator` — LangChain chat model behind the :class:`Generator` protocol.
- :func:`get_llm` — the configured chat model.
"""

from ragdesk.answering.assistant import NO_SOURCES_NOTICE, AnswerResult, RagAssistant
from ragdesk.answering.context import assemble_context
from ragdesk.answering.generator import ChatGenerator, GenerationResult, Generator
from ragdesk.answering.llm import get_llm

__all__ = [
    "NO_SOURCES_NOTICE",
    "AnswerResult",
    "ChatGenerator",
    "GenerationResult",
    "Generator",
    "RagAssistant",
    "assemble_context",
    "get_llm",
]
