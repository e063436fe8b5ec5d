"""Optional LLM relevance filter applied to the retrieval shortlist."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.generation.prompts import build_judge_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from hybrid_kb.retrieval.models import Candidate

logger = logging.getLogger(__name__)


class RelevanceJudge:
    """Ask a chat model which shortlisted candidates are on-topic.

    Parameters
    ----------
    llm:
        Chat model; built from settings on first use when *None*.
    """

    def __init__(self, llm: BaseChatModel | None = None, *, settings: Settings | None = None) -> None:
        self._llm = llm
        self._cfg = settings or default_settings

    def select(self, query: str, candidates: list[Candidate]) -> list[int] | None:
        """Return the on-topic indices into *candidates*, ascending.

        ``None`` means the reply could not be used (unparseable, or no
        valid index at all); callers then keep the shortlist unfiltered.
        """
        if not candidates:
            return []
        if self._llm is None:
            from hybrid_kb.generation.llm import get_llm

            self._llm = get_llm(temperature=0.0, cfg=self._cfg)

        response = self._llm.invoke(build_judge_prompt(query, candidates))
        parsed = _safe_parse_json(str(response.content))
        if parsed is None:
            return None

        raw = parsed.get("relevant") if isinstance(parsed, dict) else parsed
        if not isinstance(raw, list):
            logger.warning("Relevance judge returned no index list: %.200s", response.content)
            return None
        indices = sorted(
            {i for i in raw if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < len(candidates)}
        )
        return indices or None


def _safe_parse_json(text: str) -> Any:
    """Best-effort JSON parsing; ``None`` when the text is not JSON.

    LLMs occasionally return JSON wrapped in markdown fences.  This helper
    strips the wrapper before parsing.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else 3
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Could not parse judge JSON, skipping filter: %.200s", text)
        return None
