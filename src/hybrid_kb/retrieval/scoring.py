"""Hybrid scoring: weighted semantic/lexical blend plus heuristic adjustments.

All weights, thresholds, and the off-topic denylist come from
:class:`~hybrid_kb.config.Settings`, so every caller ranks the same way.
"""

from __future__ import annotations

import math
import re

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.ingestion.chunker import normalize_text
from hybrid_kb.ingestion.models import KnowledgeItem
from hybrid_kb.retrieval.models import Candidate

# A line that starts with "-", "*", "•", "1." or "1)".
_STRUCTURE = re.compile(r"(?m)^\s*(?:[-*•]|\d+[.)])\s+\S")


class HybridScorer:
    """Score :class:`KnowledgeItem` objects against a query's raw scores.

    Parameters
    ----------
    semantic_weight / lexical_weight:
        Blend weights.  Both must be positive and sum to 1.
    off_topic_terms:
        Denylist of terms; a whole-word, case-insensitive hit in the
        question or answer applies ``off_topic_penalty``.
    """

    def __init__(
        self,
        *,
        semantic_weight: float | None = None,
        lexical_weight: float | None = None,
        off_topic_terms: list[str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        cfg = settings or default_settings
        self.semantic_weight = cfg.semantic_weight if semantic_weight is None else semantic_weight
        self.lexical_weight = cfg.lexical_weight if lexical_weight is None else lexical_weight
        if self.semantic_weight <= 0 or self.lexical_weight <= 0:
            raise ValueError("semantic and lexical weights must both be positive")
        if not math.isclose(self.semantic_weight + self.lexical_weight, 1.0, abs_tol=1e-6):
            raise ValueError(
                f"weights must sum to 1, got {self.semantic_weight} + {self.lexical_weight}"
            )

        self.min_answer_chars = cfg.min_answer_chars
        self.quality_length_threshold = cfg.quality_length_threshold
        self.quality_length_bonus = cfg.quality_length_bonus
        self.quality_structure_bonus = cfg.quality_structure_bonus
        self.off_topic_penalty = cfg.off_topic_penalty

        terms = cfg.off_topic_terms if off_topic_terms is None else off_topic_terms
        terms = [t.strip() for t in terms if t and t.strip()]
        self._denylist = (
            re.compile(r"\b(?:" + "|".join(re.escape(t) for t in terms) + r")\b", re.IGNORECASE)
            if terms
            else None
        )

    # -- adjustments ----------------------------------------------------------

    def passes_gate(self, item: KnowledgeItem) -> bool:
        """Whether the answer is long enough to be useful context."""
        return len(normalize_text(item.answer)) >= self.min_answer_chars

    def quality_adjustment(self, answer: str) -> float:
        bonus = 0.0
        if len(normalize_text(answer)) > self.quality_length_threshold:
            bonus += self.quality_length_bonus
        if _STRUCTURE.search(answer or ""):
            bonus += self.quality_structure_bonus
        return bonus

    def penalty_adjustment(self, item: KnowledgeItem) -> float:
        if self._denylist is None:
            return 0.0
        if self._denylist.search(f"{item.question} {item.answer}"):
            return self.off_topic_penalty
        return 0.0

    # -- scoring --------------------------------------------------------------

    def blend(self, semantic: float, lexical_normalized: float) -> float:
        return self.semantic_weight * semantic + self.lexical_weight * lexical_normalized

    def score(
        self,
        item: KnowledgeItem,
        semantic: float | None,
        lexical: float | None,
        max_lexical: float,
    ) -> Candidate:
        """Build a scored :class:`Candidate`.

        *lexical* is divided by *max_lexical*, the largest lexical rank in
        the current pool, so unbounded full-text ranks land in ``[0, 1]``.
        """
        lexical_normalized = (lexical or 0.0) / max_lexical if max_lexical > 0 else 0.0
        quality = self.quality_adjustment(item.answer)
        penalty = self.penalty_adjustment(item)
        return Candidate(
            item=item,
            semantic_score=semantic,
            lexical_score=lexical,
            quality_adjustment=quality,
            penalty_adjustment=penalty,
            hybrid_score=self.blend(semantic or 0.0, lexical_normalized) + quality + penalty,
        )
