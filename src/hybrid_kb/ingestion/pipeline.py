"""Ingestion orchestration: items → chunks → question embeddings.

Usage::

    from hybrid_kb.ingestion.pipeline import IngestionPipeline
    from hybrid_kb.storage.chroma_store import ChromaTableStore

    pipeline = IngestionPipeline(ChromaTableStore())
    result = pipeline.ingest(items)
    print(result.batch_id, result.count, result.chunked, result.embedded)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator
from uuid import NAMESPACE_OID, uuid4, uuid5

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.errors import IngestionError, StoreError
from hybrid_kb.ingestion.chunker import make_chunks
from hybrid_kb.ingestion.embedder import EmbeddingBatcher
from hybrid_kb.ingestion.models import Chunk, EmbedResult, IngestResult, KnowledgeItem
from hybrid_kb.storage.writer import BatchWriter

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from hybrid_kb.storage.base import TableStoreBase

logger = logging.getLogger(__name__)


def chunk_id(item_id: str, ordinal: int) -> str:
    """Stable chunk id, so re-ingesting an item overwrites its chunks."""
    return str(uuid5(NAMESPACE_OID, f"{item_id}:{ordinal}"))


def build_chunks(items: list[KnowledgeItem], size: int, overlap: int) -> list[Chunk]:
    """Chunk ``question + answer`` of every item into chunk records."""
    chunks: list[Chunk] = []
    for item in items:
        for made in make_chunks(item.chunk_base, size, overlap):
            chunks.append(
                Chunk(
                    id=chunk_id(item.id, made.ordinal),
                    item_id=item.id,
                    batch_id=item.batch_id,
                    ordinal=made.ordinal,
                    content=made.content,
                    token_estimate=made.token_estimate,
                )
            )
    return chunks


class IngestionPipeline:
    """Persist a batch of knowledge items, their chunks, and their vectors.

    Parameters
    ----------
    store:
        Destination table store.
    embeddings:
        Optional LangChain embedding client; built from settings otherwise.
    writer:
        Optional pre-configured :class:`BatchWriter`.
    """

    def __init__(
        self,
        store: TableStoreBase,
        embeddings: Embeddings | None = None,
        *,
        writer: BatchWriter | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._cfg = settings or default_settings
        self._store = store
        self._writer = writer or BatchWriter(store, settings=self._cfg)
        self._batcher = EmbeddingBatcher(store, self._writer, embeddings, settings=self._cfg)

    def ingest(self, items: list[KnowledgeItem], batch_id: str | None = None) -> IngestResult:
        """Write *items* under one batch id, chunk them, and embed their questions.

        Raises
        ------
        ConfigurationError
            When no embedding client can be built; nothing is written.
        IngestionError
            When a store write fails; ``stage`` names the failing step.
        """
        cfg = self._cfg
        batch_id = batch_id or str(uuid4())
        if not items:
            return IngestResult(batch_id=batch_id)

        _ = self._batcher.embeddings  # raises ConfigurationError before any write
        items = [item.model_copy(update={"batch_id": batch_id}) for item in items]

        with _stage("items"):
            self._writer.upsert(
                cfg.items_table, [it.to_row() for it in items], "id", cfg.item_upsert_batch
            )

        chunks = build_chunks(items, cfg.chunk_chars, cfg.chunk_overlap)
        with _stage("chunks"):
            self._writer.upsert(
                cfg.chunks_table, [c.to_row() for c in chunks], "id", cfg.chunk_upsert_batch
            )

        with _stage("embeddings"):
            embedded = self._batcher.embed_batch(batch_id)

        logger.info(
            "Ingested batch %s: %d item(s), %d chunk(s), %d embedding(s)",
            batch_id, len(items), len(chunks), embedded.count,
        )
        return IngestResult(
            batch_id=batch_id,
            count=len(items),
            chunked=len(chunks),
            embedded=embedded.count,
        )

    def reembed(self, batch_id: str) -> EmbedResult:
        """Recompute the vectors of an already ingested batch."""
        with _stage("embeddings"):
            return self._batcher.embed_batch(batch_id)


@contextmanager
def _stage(name: str) -> Iterator[None]:
    """Re-raise store failures as :class:`IngestionError` tagged with *name*."""
    try:
        yield
    except StoreError as exc:
        logger.error("Ingestion stage %s failed: %s", name, exc)
        raise IngestionError(name, str(exc)) from exc
