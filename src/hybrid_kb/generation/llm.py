"""Chat-model initialisation: single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default): set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint**: set ``LLM_BASE_URL`` (e.g. a vLLM
   server exposing ``/v1/chat/completions``); ``ChatOpenAI`` works
   unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.errors import ConfigurationError

logger = logging.getLogger(__name__)


def get_llm(temperature: float = 0.0, cfg: Settings | None = None) -> ChatOpenAI:
    """Return the configured chat model.

    Raises
    ------
    ConfigurationError
        When neither an API key nor a custom base URL is configured.
    """
    cfg = cfg or default_settings
    kwargs: dict = {
        "model": cfg.llm_model_name,
        "temperature": temperature,
    }

    if cfg.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", cfg.llm_base_url)
        kwargs["base_url"] = cfg.llm_base_url
        # Self-hosted servers don't need a real key; LangChain requires a non-empty value.
        kwargs["api_key"] = cfg.openai_api_key or "EMPTY"
    elif cfg.openai_api_key:
        kwargs["api_key"] = cfg.openai_api_key
    else:
        raise ConfigurationError("OPENAI_API_KEY is not set")

    return ChatOpenAI(**kwargs)
