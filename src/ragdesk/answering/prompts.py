"""Prompt templates for retrieval-augmented answering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

SYSTEM_PROMPT = """\
You are a helpful assistant that answers questions using the provided context.
If the context does not contain enough information, say so honestly.
Always cite which part of the context supports your answer.
"""

NO_CONTEXT_SYSTEM_PROMPT = """\
You are a helpful assistant. No documents have been added to the knowledge
base yet, so answer from general knowledge and say clearly that the answer
is not backed by any source.
"""


def build_rag_prompt(context: str, question: str) -> list[BaseMessage]:
    """Assemble the prompt messages for a retrieval-augmented generation call.

    Parameters
    ----------
    context:
        Retrieved chunks, already budgeted and joined.  Empty when the
        store holds no sources.
    question:
        The user question.

    Returns
    -------
    list[BaseMessage]
        A list of LangChain message objects ready for ``.invoke()``.
    """
    if not context:
        return [
            SystemMessage(content=NO_CONTEXT_SYSTEM_PROMPT),
            HumanMessage(content=f"Question: {question}"),
        ]
    user_msg = (
        f"Context:\n{context}\n\n"
        f"Question: {question}\n\n"
        "Provide a detailed answer based on the context above."
    )
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=user_msg),
    ]
