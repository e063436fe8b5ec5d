"""Question embedding and vector persistence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.errors import (
    ConfigurationError,
    HybridKBError,
    StoreError,
    TerminalDataError,
    as_store_error,
)
from hybrid_kb.ingestion.models import EmbeddingVector, EmbedResult, KnowledgeItem

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from hybrid_kb.storage.base import TableStoreBase
    from hybrid_kb.storage.writer import BatchWriter

logger = logging.getLogger(__name__)


def get_embedding_function(cfg: Settings | None = None) -> Embeddings:
    """Return the configured embedding client.

    Raises
    ------
    ConfigurationError
        When the OpenAI provider is selected without an API key, or the
        provider name is unknown.
    """
    cfg = cfg or default_settings
    provider = cfg.embedding_provider.lower()
    if provider == "openai":
        if not cfg.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=cfg.embedding_model, api_key=cfg.openai_api_key)
    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=cfg.embedding_model)
    raise ConfigurationError(f"Unknown embedding provider: {cfg.embedding_provider!r}")


def round_vector(vector: list[float], precision: int) -> list[float]:
    return [round(float(v), precision) for v in vector]


def read_batch(
    store: TableStoreBase,
    table: str,
    batch_id: str,
    page_size: int,
) -> list[KnowledgeItem]:
    """Read every item of *batch_id*, one page at a time, until a short page."""
    items: list[KnowledgeItem] = []
    offset = 0
    while True:
        try:
            page = store.select_by_batch(table, batch_id, offset, page_size)
        except StoreError:
            raise
        except Exception as exc:
            raise as_store_error(exc, table=table, operation="select") from exc
        items.extend(KnowledgeItem.from_row(row) for row in page)
        if len(page) < page_size:
            break
        offset += page_size
    return items


class EmbeddingBatcher:
    """Embed the questions of one ingestion batch and persist the vectors.

    Parameters
    ----------
    store:
        Backend the batch's items are read from.
    writer:
        Writer used to upsert the vector rows.
    embeddings:
        LangChain embedding client.  When *None* it is built from settings
        at the start of :meth:`embed_batch`.
    """

    def __init__(
        self,
        store: TableStoreBase,
        writer: BatchWriter,
        embeddings: Embeddings | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._writer = writer
        self._embeddings = embeddings
        self._cfg = settings or default_settings

    @property
    def embeddings(self) -> Embeddings:
        """The embedding client, built on first access."""
        if self._embeddings is None:
            self._embeddings = get_embedding_function(self._cfg)
        return self._embeddings

    def embed_batch(self, batch_id: str) -> EmbedResult:
        """Embed every item of *batch_id*.

        Only the question is embedded; it is the retrieval key.  An empty
        batch is not an error and returns ``count=0``.
        """
        cfg = self._cfg
        _ = self.embeddings  # raises ConfigurationError before any store read

        items = read_batch(self._store, cfg.items_table, batch_id, cfg.read_page_size)
        if not items:
            logger.info("Batch %s has no items to embed", batch_id)
            return EmbedResult(batch_id=batch_id, count=0)

        vectors = self.embed_texts([it.question for it in items])
        rows = [
            EmbeddingVector(
                item_id=item.id,
                batch_id=batch_id,
                vector=round_vector(vector, cfg.embed_round),
            ).to_row()
            for item, vector in zip(items, vectors)
        ]
        self._writer.upsert(cfg.embeddings_table, rows, "item_id", cfg.embed_upsert_batch)
        logger.info("Embedded %d item(s) for batch %s", len(rows), batch_id)
        return EmbedResult(batch_id=batch_id, count=len(rows))

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in fixed-size groups, preserving input order.

        Raises
        ------
        StoreError
            When the embedding service fails (``operation="embed"``);
            network trouble comes back as :class:`TransientIOError`.
        """
        embeddings = self.embeddings
        group_size = self._cfg.embed_batch_size
        vectors: list[list[float]] = []
        for start in range(0, len(texts), group_size):
            group = [text or "" for text in texts[start : start + group_size]]
            try:
                result = embeddings.embed_documents(group)
            except HybridKBError:
                raise
            except Exception as exc:
                raise as_store_error(exc, table=self._cfg.embeddings_table, operation="embed") from exc
            if len(result) != len(group):
                raise TerminalDataError(
                    f"embedding service returned {len(result)} vector(s) for {len(group)} input(s)",
                    operation="embed",
                )
            vectors.extend(result)
            logger.debug("  embedded %d / %d", len(vectors), len(texts))
        return vectors
