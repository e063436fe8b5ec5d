"""Match a questionnaire's questions against the knowledge base."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.generation.prompts import build_next_steps_prompt
from hybrid_kb.ingestion.chunker import normalize_text
from hybrid_kb.retrieval.models import MatchReport, QuestionMatch

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from hybrid_kb.retrieval.retriever import HybridRetriever

logger = logging.getLogger(__name__)

_LIST_MARKER = re.compile(r"^[-*•\d]+\.")
_LEADING_VERB = re.compile(r"^(?:describe|how)\b", re.IGNORECASE)


def extract_questions(text: str, limit: int = 80) -> list[str]:
    """Pull question-like lines out of free text.

    A line counts when it ends with ``?``, starts with a list marker such
    as ``1.``, or starts with "describe" / "how".  Duplicates are dropped,
    first occurrence wins.
    """
    questions: list[str] = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        if line.endswith("?") or _LIST_MARKER.match(line) or _LEADING_VERB.match(line):
            if line not in questions:
                questions.append(line)
    return questions[:limit]


def match_questions(retriever: HybridRetriever, questions: list[str]) -> MatchReport:
    """Retrieve for every question and split them into answered / unanswered.

    A question is answered when its best candidate is confident (see
    ``settings.contextual_min_score``).
    """
    report = MatchReport()
    for question in questions:
        result = retriever.retrieve(question)
        if result.best is not None and result.confident:
            report.answered.append(QuestionMatch(question=question, best=result.best))
        else:
            report.unanswered.append(question)
    logger.info(
        "Matched %d question(s): %d answered, %d unanswered",
        len(questions), len(report.answered), len(report.unanswered),
    )
    return report


def suggest_next_steps(
    questions: list[str],
    llm: BaseChatModel | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Ask the chat model for follow-up actions on a questionnaire.

    Returns an empty string when there are no questions or the model call
    fails; the match report stays usable without it.

    Raises
    ------
    ConfigurationError
        When no chat model is passed and none is configured.
    """
    if not questions:
        return ""
    cfg = settings or default_settings
    if llm is None:
        from hybrid_kb.generation.llm import get_llm

        llm = get_llm(temperature=cfg.next_steps_temperature, cfg=cfg)
    try:
        response = llm.invoke(build_next_steps_prompt(questions))
    except Exception:
        logger.warning("Next-steps suggestion failed; report has none", exc_info=True)
        return ""
    return normalize_text(str(response.content))
