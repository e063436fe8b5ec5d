"""Hybrid retriever: semantic + lexical candidates, blended and deduplicated.

This module is the **primary public interface** for retrieval.  Every
sub-step with a safe fallback (semantic search, lexical search, the
relevance judge) degrades instead of failing, so :meth:`HybridRetriever.retrieve`
never raises for store or provider trouble; the worst case is an empty or
lexical-only result.

Usage::

    from hybrid_kb.retrieval.retriever import HybridRetriever
    from hybrid_kb.storage.chroma_store import ChromaTableStore

    retriever = HybridRetriever(ChromaTableStore())
    result = retriever.retrieve("What is your uptime SLA?")
    for c in result.candidates:
        print(c.short_ref(), round(c.hybrid_score, 3), c.item.answer[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.ingestion.chunker import normalize_text
from hybrid_kb.ingestion.models import KnowledgeItem
from hybrid_kb.retrieval.models import Candidate, RetrievalResult
from hybrid_kb.retrieval.scoring import HybridScorer

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from hybrid_kb.retrieval.judge import RelevanceJudge
    from hybrid_kb.storage.base import TableStoreBase

logger = logging.getLogger(__name__)


class HybridRetriever:
    """Rank knowledge items for a query.

    Parameters
    ----------
    store:
        Table store holding items and their question vectors.
    embeddings:
        Embedding client; must be the model used at ingestion.  Built from
        settings on first use when *None*.
    scorer:
        Hybrid scorer; built from settings when *None*.
    judge:
        Optional relevance judge.  When *None*, one is created only if
        ``settings.judge_enabled`` is true.
    """

    def __init__(
        self,
        store: TableStoreBase,
        embeddings: Embeddings | None = None,
        *,
        scorer: HybridScorer | None = None,
        judge: RelevanceJudge | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._cfg = settings or default_settings
        self._store = store
        self._embeddings = embeddings
        self.scorer = scorer or HybridScorer(settings=self._cfg)
        if judge is None and self._cfg.judge_enabled:
            from hybrid_kb.retrieval.judge import RelevanceJudge

            judge = RelevanceJudge(settings=self._cfg)
        self.judge = judge

    # -- public API -----------------------------------------------------------

    def retrieve(self, query: str, k: int | None = None) -> RetrievalResult:
        """Return up to *k* ranked, deduplicated candidates for *query*.

        Parameters
        ----------
        query:
            Natural-language question.
        k:
            Shortlist length (defaults to ``settings.shortlist_size``);
            must be at least 1.
        """
        cfg = self._cfg
        k = cfg.shortlist_size if k is None else k
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        query = normalize_text(query)
        if not query:
            return RetrievalResult(query=query)

        semantic = self.semantic_candidates(query)
        lexical = self.lexical_candidates(query)

        pool_ids = list(dict.fromkeys([*semantic, *lexical]))[: cfg.pool_size]
        if not pool_ids:
            logger.info("No candidates for query %r", query[:80])
            return RetrievalResult(query=query)

        items = self._fetch_items(pool_ids)
        ranked = self.rank(items, semantic, lexical)
        shortlist = self.deduplicate(ranked, k)
        shortlist = self._apply_judge(query, shortlist)

        best = shortlist[0] if shortlist else None
        return RetrievalResult(
            query=query,
            candidates=shortlist,
            best=best,
            confident=best is not None and best.hybrid_score >= cfg.contextual_min_score,
        )

    def semantic_candidates(self, query: str) -> dict[str, float]:
        """``{item_id: similarity}`` from vector search; empty on any failure."""
        try:
            if self._embeddings is None:
                from hybrid_kb.ingestion.embedder import get_embedding_function

                self._embeddings = get_embedding_function(self._cfg)
            vector = self._embeddings.embed_query(query)
            hits = self._store.similarity_search(vector, self._cfg.semantic_top_n)
        except Exception:
            logger.warning("Semantic search failed; continuing lexical-only", exc_info=True)
            return {}

        scores: dict[str, float] = {}
        for item_id, score in hits:
            scores.setdefault(str(item_id), min(1.0, max(0.0, float(score))))
        return scores

    def lexical_candidates(self, query: str) -> dict[str, float]:
        """``{item_id: rank}`` merged over question and answer lookups (max rank wins)."""
        cfg = self._cfg
        scores: dict[str, float] = {}
        for column in ("question", "answer"):
            try:
                hits = self._store.full_text_search(cfg.items_table, column, query, cfg.lexical_limit)
            except Exception:
                logger.warning("Lexical search on %s failed; skipping", column, exc_info=True)
                continue
            for item_id, rank in hits:
                item_id = str(item_id)
                scores[item_id] = max(scores.get(item_id, 0.0), float(rank))
        return scores

    def rank(
        self,
        items: list[KnowledgeItem],
        semantic: dict[str, float],
        lexical: dict[str, float],
    ) -> list[Candidate]:
        """Score *items*, drop short answers, and sort best-first.

        The sort is stable, so equal scores keep the pool order.
        """
        max_lexical = max((lexical.get(it.id, 0.0) for it in items), default=0.0)
        candidates = [
            self.scorer.score(it, semantic.get(it.id), lexical.get(it.id), max_lexical)
            for it in items
            if self.scorer.passes_gate(it)
        ]
        candidates.sort(key=lambda c: c.hybrid_score, reverse=True)
        return candidates

    def deduplicate(self, ranked: list[Candidate], k: int) -> list[Candidate]:
        """Take up to *k* candidates, skipping answers whose leading text repeats.

        Input must be sorted best-first, so the higher-scored copy of a
        near-duplicate pair is the one kept.
        """
        prefix_len = self._cfg.dedup_prefix_chars
        seen: set[str] = set()
        shortlist: list[Candidate] = []
        for candidate in ranked:
            prefix = normalize_text(candidate.item.answer)[:prefix_len]
            if prefix in seen:
                continue
            seen.add(prefix)
            shortlist.append(candidate)
            if len(shortlist) >= k:
                break
        return shortlist

    # -- internals ------------------------------------------------------------

    def _fetch_items(self, ids: list[str]) -> list[KnowledgeItem]:
        try:
            rows = self._store.fetch_by_ids(self._cfg.items_table, ids)
        except Exception:
            logger.warning("Fetching %d candidate item(s) failed", len(ids), exc_info=True)
            return []
        by_id: dict[str, KnowledgeItem] = {}
        for row in rows:
            if not row.get("id"):
                continue
            try:
                by_id[str(row["id"])] = KnowledgeItem.from_row(row)
            except ValidationError:
                logger.warning("Skipping malformed item row %s", row["id"], exc_info=True)
        return [by_id[i] for i in ids if i in by_id]

    def _apply_judge(self, query: str, shortlist: list[Candidate]) -> list[Candidate]:
        if self.judge is None or not shortlist:
            return shortlist
        try:
            indices = self.judge.select(query, shortlist)
        except Exception:
            logger.warning("Relevance judge failed; keeping unfiltered shortlist", exc_info=True)
            return shortlist
        if indices is None:
            return shortlist
        return [shortlist[i] for i in indices]
