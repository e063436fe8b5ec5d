"""
Storage: table-store facade, Chroma backend, and resilient batch writes.

Public surface
--------------
- :class:`TableStoreBase`: abstract backend (subclass for Postgres, etc.).
- :class:`ChromaTableStore`: default Chroma backend.
- :class:`BatchWriter`: sliced upserts with backoff-and-split retry.
"""

from hybrid_kb.storage.base import TableStoreBase
from hybrid_kb.storage.writer import BatchWriter

__all__ = [
    "BatchWriter",
    "ChromaTableStore",
    "TableStoreBase",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaTableStore to avoid pulling in chromadb at import time."""
    if name == "ChromaTableStore":
        from hybrid_kb.storage.chroma_store import ChromaTableStore

        return ChromaTableStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
