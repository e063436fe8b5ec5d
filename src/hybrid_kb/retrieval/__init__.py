"""
Retrieval: hybrid candidate generation, scoring, and shortlisting.

This module turns a query into a ranked, deduplicated list of knowledge
items so that answer synthesis never needs to know how ranking works.

Public surface
--------------
- :class:`HybridRetriever`: main entry point for retrieval.
- :class:`HybridScorer`: configurable blend of semantic and lexical scores.
- :class:`RelevanceJudge`: optional LLM filter for the shortlist.
- :class:`Candidate`, :class:`RetrievalResult`, :class:`MatchReport`: data models.
- :func:`extract_questions`, :func:`match_questions`: questionnaire matching.
- :func:`suggest_next_steps`: LLM follow-up actions for a questionnaire.
"""

from hybrid_kb.retrieval.judge import RelevanceJudge
from hybrid_kb.retrieval.models import Candidate, MatchReport, QuestionMatch, RetrievalResult
from hybrid_kb.retrieval.report import extract_questions, match_questions, suggest_next_steps
from hybrid_kb.retrieval.retriever import HybridRetriever
from hybrid_kb.retrieval.scoring import HybridScorer

__all__ = [
    "Candidate",
    "HybridRetriever",
    "HybridScorer",
    "MatchReport",
    "QuestionMatch",
    "RelevanceJudge",
    "RetrievalResult",
    "extract_questions",
    "match_questions",
    "suggest_next_steps",
]
