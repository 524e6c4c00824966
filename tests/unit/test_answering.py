"""Unit tests for the answering layer: assistant, generator, prompts."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from ragdesk.answering.assistant import NO_SOURCES_NOTICE, RagAssistant
from ragdesk.answering.generator import ChatGenerator
from ragdesk.answering.llm import get_llm
from ragdesk.answering.prompts import NO_CONTEXT_SYSTEM_PROMPT, SYSTEM_PROMPT, build_rag_prompt
from ragdesk.config import Settings
from ragdesk.errors import EmptyQuery, GenerationError, NotInitialized
from ragdesk.retrieval.retriever import SemanticRetriever


def _assistant(store, embedder, generator, **kwargs) -> RagAssistant:
    retriever = SemanticRetriever(store, embedder, score_threshold=kwargs.pop("score_threshold", None))
    return RagAssistant(retriever, generator, store, **kwargs)


def _seed(store, embedder, texts: list[str], source: str = "handbook.md") -> None:
    for i, text in enumerate(texts):
        store.put(source, i, embedder.embed_query(text), text)


# ── RagAssistant ─────────────────────────────────────────────────────


class TestRagAssistant:
    @pytest.mark.parametrize("question", ["", "   ", "\n\t"])
    def test_empty_question_rejected(self, store, embedder, generator, question: str) -> None:
        with pytest.raises(EmptyQuery, match="Query cannot be empty"):
            _assistant(store, embedder, generator).ask(question)
        assert generator.calls == []

    def test_answer_uses_retrieved_context(self, store, embedder, generator) -> None:
        _seed(store, embedder, ["vacation policy allows twenty days", "parking is behind the office"])

        result = _assistant(store, embedder, generator, k=1).ask("  how many vacation days  ")

        assert result.answer == "The answer."
        assert result.notice is None
        assert result.metadata == {"model": "fake"}
        ((context, question),) = generator.calls
        assert question == "how many vacation days"
        assert context == "vacation policy allows twenty days"
        assert [c.source for c in result.citations] == ["handbook.md"]
        assert result.citations[0].chunk_index == 0

    def test_citations_follow_context_budget(self, store, embedder, generator) -> None:
        _seed(store, embedder, ["alpha " * 30, "alpha beta " * 30])

        result = _assistant(store, embedder, generator, k=2, max_context_chars=200).ask("alpha")

        assert len(result.citations) == 1
        assert len(generator.calls[0][0]) <= 200

    def test_empty_store_notice_policy(self, store, embedder, generator) -> None:
        result = _assistant(store, embedder, generator).ask("anything there?")

        assert result.notice == NO_SOURCES_NOTICE
        assert result.answer == f"{NO_SOURCES_NOTICE}\n\nThe answer."
        assert result.citations == []
        assert generator.calls == [("", "anything there?")]

    def test_empty_store_reject_policy(self, store, embedder, generator) -> None:
        assistant = _assistant(store, embedder, generator, empty_store_policy="reject")
        with pytest.raises(NotInitialized):
            assistant.ask("anything there?")
        assert generator.calls == []

    def test_threshold_miss_answers_without_sources(self, store, embedder, generator) -> None:
        _seed(store, embedder, ["completely unrelated words"])
        assistant = _assistant(store, embedder, generator, score_threshold=1.1)

        result = assistant.ask("question")

        assert result.notice == NO_SOURCES_NOTICE
        assert result.citations == []

    def test_generation_error_propagates(self, store, embedder, make_generator) -> None:
        _seed(store, embedder, ["some text"])
        generator = make_generator(error=GenerationError("model offline"))
        with pytest.raises(GenerationError, match="model offline"):
            _assistant(store, embedder, generator).ask("some question")

    def test_answer_returns_text_only(self, store, embedder, generator) -> None:
        _seed(store, embedder, ["x y z"])
        assert _assistant(store, embedder, generator).answer("x") == "The answer."

    def test_asking_never_writes(self, store, embedder, generator) -> None:
        _seed(store, embedder, ["one", "two"])
        _assistant(store, embedder, generator).ask("one")
        assert store.count() == 2


# ── ChatGenerator ────────────────────────────────────────────────────


class TestChatGenerator:
    def test_generates_from_chat_model(self) -> None:
        llm = FakeListChatModel(responses=["Twenty days."])
        result = ChatGenerator(llm).generate("vacation policy", "how many days?")
        assert result.text == "Twenty days."

    def test_passes_prompt_messages(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="ok")

        ChatGenerator(llm).generate("CTX", "Q?")

        (messages,), _ = llm.invoke.call_args
        assert isinstance(messages[0], SystemMessage)
        assert "CTX" in messages[1].content
        assert "Q?" in messages[1].content

    def test_collects_usage_metadata(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(
            content="ok",
            response_metadata={"model_name": "gpt-4o-mini"},
            usage_metadata={"input_tokens": 10, "output_tokens": 2, "total_tokens": 12},
        )

        result = ChatGenerator(llm).generate("ctx", "q")

        assert result.metadata["model_name"] == "gpt-4o-mini"
        assert result.metadata["usage"]["total_tokens"] == 12

    def test_content_blocks_flattened(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(
            content=[{"type": "text", "text": "Hello "}, {"type": "image_url", "image_url": "x"}, "world"]
        )
        assert ChatGenerator(llm).generate("ctx", "q").text == "Hello world"

    def test_model_failure_wrapped(self) -> None:
        llm = MagicMock()
        llm.invoke.side_effect = TimeoutError("read timed out")
        with pytest.raises(GenerationError, match="read timed out"):
            ChatGenerator(llm).generate("ctx", "q")

    def test_blank_answer_rejected(self) -> None:
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="   ")
        with pytest.raises(GenerationError, match="empty answer"):
            ChatGenerator(llm).generate("ctx", "q")


# ── Prompts ──────────────────────────────────────────────────────────


def test_rag_prompt_contains_context_and_question() -> None:
    system, human = build_rag_prompt("Some context", "What?")
    assert system.content == SYSTEM_PROMPT
    assert isinstance(human, HumanMessage)
    assert "Context:\nSome context" in human.content
    assert "Question: What?" in human.content


def test_prompt_without_context() -> None:
    system, human = build_rag_prompt("", "What?")
    assert system.content == NO_CONTEXT_SYSTEM_PROMPT
    assert human.content == "Question: What?"


def test_get_llm_custom_endpoint() -> None:
    cfg = Settings(
        _env_file=None,
        llm_base_url="http://localhost:8000/v1",
        llm_model_name="llama3",
        llm_temperature=0.2,
    )
    llm = get_llm(cfg)
    assert llm.model_name == "llama3"
    assert llm.temperature == 0.2
    assert llm.openai_api_base == "http://localhost:8000/v1"
    assert llm.openai_api_key.get_secret_value() == "EMPTY"
