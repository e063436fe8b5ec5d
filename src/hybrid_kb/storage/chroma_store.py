"""Chroma implementation of the table-store abstraction.

Each table lives in its own Chroma collection.  The value of the conflict
key becomes the Chroma record id, so ``upsert`` overwrites instead of
duplicating.  Full rows are kept as JSON documents and their scalar columns
are mirrored into metadata for ``where`` filtering.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import chromadb

from hybrid_kb.config import settings
from hybrid_kb.storage.base import TableStoreBase

logger = logging.getLogger(__name__)

# Chroma needs an embedding on every record; rows of non-vector tables get this one.
_PLACEHOLDER_EMBEDDING = [1.0]
_VECTOR_COLUMN = "embedding"
_SCAN_PAGE = 1000
_NON_WORD = re.compile(r"[^a-z0-9\s]")


def _tokenize(text: str) -> set[str]:
    return set(_NON_WORD.sub(" ", (text or "").lower()).split())


def _flat_metadata(row: dict[str, Any]) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool."""
    return {
        k: v
        for k, v in row.items()
        if k != _VECTOR_COLUMN and isinstance(v, (str, int, float, bool))
    }


class ChromaTableStore(TableStoreBase):
    """Chroma-backed table store.

    Parameters
    ----------
    host / port:
        Chroma server location.
    embeddings_table:
        Collection holding question vectors.
    client:
        Pre-built Chroma client; when *None* an ``HttpClient`` is created.
    """

    def __init__(
        self,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        embeddings_table: str = settings.embeddings_table,
        client: Any = None,
    ) -> None:
        super().__init__(embeddings_table)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collections: dict[str, Any] = {}

    def _collection(self, table: str) -> Any:
        if table not in self._collections:
            self._collections[table] = self._client.get_or_create_collection(
                name=table,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )
        return self._collections[table]

    # -- TableStoreBase overrides ---------------------------------------------

    def upsert(self, table: str, rows: list[dict[str, Any]], conflict_key: str) -> None:
        if not rows:
            return
        ids: list[str] = []
        embeddings: list[list[float]] = []
        documents: list[str] = []
        metadatas: list[dict[str, Any]] = []
        for row in rows:
            if row.get(conflict_key) is None:
                raise ValueError(f"row is missing conflict key {conflict_key!r}")
            ids.append(str(row[conflict_key]))
            embeddings.append(row.get(_VECTOR_COLUMN) or _PLACEHOLDER_EMBEDDING)
            documents.append(
                json.dumps({k: v for k, v in row.items() if k != _VECTOR_COLUMN}, default=str)
            )
            metadatas.append(_flat_metadata(row))

        self._collection(table).upsert(
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=metadatas,
        )
        logger.debug("Upserted %d row(s) into %s", len(ids), table)

    def select_by_batch(
        self,
        table: str,
        batch_id: str,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        result = self._collection(table).get(
            where={"batch_id": batch_id},
            offset=offset,
            limit=limit,
            include=["documents"],
        )
        return [json.loads(doc) for doc in result.get("documents") or []]

    def fetch_by_ids(self, table: str, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        result = self._collection(table).get(ids=list(ids), include=["documents"])
        return [json.loads(doc) for doc in result.get("documents") or []]

    def similarity_search(self, vector: list[float], top_n: int) -> list[tuple[str, float]]:
        results = self._collection(self.embeddings_table).query(
            query_embeddings=[vector],
            n_results=top_n,
            include=["distances"],
        )
        ids = (results.get("ids") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        # Cosine distance lies in [0, 2]; turn it into a [0, 1] similarity.
        return [
            (item_id, min(1.0, max(0.0, 1.0 - dist)))
            for item_id, dist in zip(ids, distances)
        ]

    def full_text_search(
        self,
        table: str,
        column: str,
        query: str,
        limit: int,
    ) -> list[tuple[str, float]]:
        """Rank rows by the share of query tokens present in *column*.

        Chroma has no ranked full-text index, so the collection is scanned
        page by page.
        """
        query_tokens = _tokenize(query)
        if not query_tokens:
            return []

        collection = self._collection(table)
        hits: list[tuple[str, float]] = []
        offset = 0
        while True:
            page = collection.get(offset=offset, limit=_SCAN_PAGE, include=["documents"])
            page_ids = page.get("ids") or []
            for row_id, doc in zip(page_ids, page.get("documents") or []):
                value = json.loads(doc).get(column) or ""
                overlap = len(query_tokens & _tokenize(str(value)))
                if overlap:
                    hits.append((row_id, overlap / len(query_tokens)))
            if len(page_ids) < _SCAN_PAGE:
                break
            offset += _SCAN_PAGE

        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits[:limit]

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def count(self, table: str) -> int:
        return self._collection(table).count()
