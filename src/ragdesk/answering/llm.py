"""Chat model used by :class:`~ragdesk.answering.generator.ChatGenerator`.

The answer step only needs something that speaks the chat-completions
protocol, so ``ChatOpenAI`` is built from :class:`~ragdesk.config.Settings`
and pointed either at OpenAI itself or, when ``llm_base_url`` is set, at a
self-hosted server for fully local answering.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

if TYPE_CHECKING:
    from ragdesk.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings) -> ChatOpenAI:
    """Build the chat model answers are generated with.

    Parameters
    ----------
    settings:
        Supplies the model name and sampling temperature, plus the
        optional base URL and API key.  Local servers usually accept any
        key, so an unset key is sent as ``"EMPTY"`` to them.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": settings.llm_temperature,
    }

    if settings.llm_base_url:
        logger.info("Using LLM endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # ChatOpenAI refuses an empty key.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)
