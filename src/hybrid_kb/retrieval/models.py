"""Query-time models: scored candidates and retrieval results."""

from __future__ import annotations

from pydantic import BaseModel, Field

from hybrid_kb.ingestion.models import KnowledgeItem


class Candidate(BaseModel):
    """A knowledge item scored for one query.  Never persisted.

    Attributes
    ----------
    item:
        The stored question/answer record.
    semantic_score:
        Vector similarity in ``[0, 1]``; ``None`` when the item only came
        from lexical search.
    lexical_score:
        Raw keyword-match rank; ``None`` when the item only came from
        semantic search.
    quality_adjustment:
        Bonus for long or structured answers.
    penalty_adjustment:
        Negative adjustment for off-topic matches.
    hybrid_score:
        Weighted blend of both scores plus the adjustments.
    """

    item: KnowledgeItem
    semantic_score: float | None = None
    lexical_score: float | None = None
    quality_adjustment: float = 0.0
    penalty_adjustment: float = 0.0
    hybrid_score: float = 0.0

    def short_ref(self) -> str:
        """Return a compact ``[source|id]`` reference string."""
        return f"[{self.item.source or 'kb_items'}|{self.item.id}]"


class RetrievalResult(BaseModel):
    """Ranked candidates for one query, best first."""

    query: str
    candidates: list[Candidate] = Field(default_factory=list)
    best: Candidate | None = None
    confident: bool = False

    @property
    def contexts(self) -> list[str]:
        """Answer texts of the candidates, in rank order."""
        return [c.item.answer for c in self.candidates]


class QuestionMatch(BaseModel):
    question: str
    best: Candidate


class MatchReport(BaseModel):
    """Questions split by whether the knowledge base answers them confidently."""

    answered: list[QuestionMatch] = Field(default_factory=list)
    unanswered: list[str] = Field(default_factory=list)
    next_steps: str = ""
