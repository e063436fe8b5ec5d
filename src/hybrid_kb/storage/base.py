"""Abstract base class for table-store backends.

The ingestion and retrieval layers only talk to :class:`TableStoreBase`.
Adding a new backend (Postgres, Supabase, …) only requires subclassing it
and implementing the abstract methods.  Backends raise their client's
native exceptions; :func:`hybrid_kb.errors.is_transient` classifies them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TableStoreBase(ABC):
    """Backend-agnostic store of named tables with vector and keyword lookup.

    Parameters
    ----------
    embeddings_table:
        Name of the table whose rows carry the ``embedding`` column that
        :meth:`similarity_search` runs against.
    """

    def __init__(self, embeddings_table: str = "kb_embeddings") -> None:
        self.embeddings_table = embeddings_table

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, table: str, rows: list[dict[str, Any]], conflict_key: str) -> None:
        """Insert *rows*, replacing existing rows with the same *conflict_key* value."""
        ...

    @abstractmethod
    def select_by_batch(
        self,
        table: str,
        batch_id: str,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Return at most *limit* rows of *batch_id* starting at *offset*.

        Callers advance *offset* by the page size until a page shorter
        than *limit* (or an empty one) comes back.
        """
        ...

    @abstractmethod
    def fetch_by_ids(self, table: str, ids: list[str]) -> list[dict[str, Any]]:
        """Return the rows of *table* whose id is in *ids* (any order)."""
        ...

    @abstractmethod
    def similarity_search(self, vector: list[float], top_n: int) -> list[tuple[str, float]]:
        """Return ``(item_id, score)`` pairs, best first.

        Scores are goodness measures normalized to ``[0, 1]``.
        """
        ...

    @abstractmethod
    def full_text_search(
        self,
        table: str,
        column: str,
        query: str,
        limit: int,
    ) -> list[tuple[str, float]]:
        """Return ``(row_id, rank)`` pairs for rows whose *column* matches *query*.

        Ranks are non-negative; higher is better.  Their scale is backend
        specific, so callers normalize before blending.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def count(self, table: str) -> int:
        """Number of rows in *table*.  Optional: raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support count")
