"""Answer synthesis from ranked knowledge-base context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.generation.prompts import INSUFFICIENT_CONTEXT, build_synthesis_prompt
from hybrid_kb.retrieval.models import Candidate

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from hybrid_kb.retrieval.retriever import HybridRetriever
    from hybrid_kb.storage.base import TableStoreBase

logger = logging.getLogger(__name__)


class SynthesisResult(BaseModel):
    answer: str = ""
    insufficient_context: bool = False
    context_count: int = 0


class AnswerResult(BaseModel):
    """Synthesized answer together with the candidates it was built from."""

    query: str
    answer: str = ""
    insufficient_context: bool = False
    candidates: list[Candidate] = Field(default_factory=list)


class AnswerSynthesizer:
    """Compose one answer from ordered context passages.

    Parameters
    ----------
    llm:
        Chat model; built from settings on first use when *None*.
    temperature:
        Sampling temperature (defaults to ``settings.synthesis_temperature``).
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        *,
        temperature: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._cfg = settings or default_settings
        self._llm = llm
        self.temperature = self._cfg.synthesis_temperature if temperature is None else temperature

    def synthesize(
        self,
        query: str,
        contexts: list[str],
        history: list[dict[str, str]] | None = None,
    ) -> SynthesisResult:
        """Answer *query* from *contexts* only.

        Returns ``insufficient_context=True`` without calling the model
        when there is no usable context, or when the model says the
        context does not hold the answer.
        """
        contexts = _fit_contexts(contexts, self._cfg.max_context_chars)
        if not contexts:
            return SynthesisResult(insufficient_context=True)

        if self._llm is None:
            from hybrid_kb.generation.llm import get_llm

            self._llm = get_llm(temperature=self.temperature, cfg=self._cfg)

        response = self._llm.invoke(build_synthesis_prompt(query, contexts, history))
        answer = str(response.content).strip()
        if not answer or INSUFFICIENT_CONTEXT in answer:
            return SynthesisResult(insufficient_context=True, context_count=len(contexts))
        return SynthesisResult(answer=answer, context_count=len(contexts))


def _fit_contexts(contexts: list[str], budget: int) -> list[str]:
    """Drop blank passages and cut the list so the joined text fits *budget*."""
    fitted: list[str] = []
    used = 0
    for text in contexts:
        text = (text or "").strip()
        if not text:
            continue
        room = budget - used
        if room <= 0:
            break
        fitted.append(text[:room])
        used += len(fitted[-1]) + len("\n---\n")
    return fitted


class AnswerService:
    """Retrieve, optionally add raw chunk text, then synthesize.

    Parameters
    ----------
    retriever:
        Hybrid retriever supplying ranked candidates.
    synthesizer:
        Answer synthesizer.
    store:
        When given, chunk text matching the query is appended to the
        context (``settings.chunk_context_limit`` chunks at most).
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        synthesizer: AnswerSynthesizer,
        *,
        store: TableStoreBase | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._cfg = settings or default_settings
        self.retriever = retriever
        self.synthesizer = synthesizer
        self._store = store

    def answer(self, query: str, history: list[dict[str, str]] | None = None) -> AnswerResult:
        retrieval = self.retriever.retrieve(query)
        contexts = retrieval.contexts + self._chunk_context(query)
        synthesis = self.synthesizer.synthesize(query, contexts, history)
        return AnswerResult(
            query=retrieval.query,
            answer=synthesis.answer,
            insufficient_context=synthesis.insufficient_context,
            candidates=retrieval.candidates,
        )

    def _chunk_context(self, query: str) -> list[str]:
        cfg = self._cfg
        if self._store is None or cfg.chunk_context_limit <= 0:
            return []
        try:
            hits = self._store.full_text_search(cfg.chunks_table, "content", query, cfg.chunk_context_limit)
            if not hits:
                return []
            ids = [str(row_id) for row_id, _ in hits]
            rows = {str(r["id"]): r for r in self._store.fetch_by_ids(cfg.chunks_table, ids)}
        except Exception:
            logger.warning("Chunk context lookup failed; answering from items only", exc_info=True)
            return []
        return [rows[i].get("content", "") for i in ids if i in rows]
