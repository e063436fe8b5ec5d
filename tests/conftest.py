"""Shared pytest configuration and fixtures.

Every unit test runs without Chroma or OpenAI: the store, the embedding
client, and the chat model are replaced by the in-memory fakes below.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage

from hybrid_kb.config import Settings
from hybrid_kb.storage.base import TableStoreBase


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ──────────────────────────────────────────────────────────────


class FakeTableStore(TableStoreBase):
    """In-memory table store with canned search results and failure hooks.

    Attributes
    ----------
    tables:
        ``{table: {key: row}}`` in insertion order.
    fail_upsert:
        Optional ``(table, rows) -> None`` hook that may raise.
    semantic_hits / semantic_error:
        What :meth:`similarity_search` returns or raises.
    lexical_hits / lexical_errors:
        Per-column results or exceptions for :meth:`full_text_search`.
    """

    def __init__(self) -> None:
        super().__init__("kb_embeddings")
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.upsert_calls: list[tuple[str, list[str]]] = []
        self.select_calls: list[tuple[str, str, int, int]] = []
        self.fail_upsert: Callable[[str, list[dict[str, Any]]], None] | None = None
        self.semantic_hits: list[tuple[str, float]] = []
        self.semantic_error: Exception | None = None
        self.lexical_hits: dict[str, list[tuple[str, float]]] = {}
        self.lexical_errors: dict[str, Exception] = {}
        self.fetch_error: Exception | None = None

    def add_items(self, *items: Any) -> None:
        for item in items:
            self.tables.setdefault("kb_items", {})[item.id] = item.to_row()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def upsert(self, table: str, rows: list[dict[str, Any]], conflict_key: str) -> None:
        self.upsert_calls.append((table, [str(r[conflict_key]) for r in rows]))
        if self.fail_upsert is not None:
            self.fail_upsert(table, rows)
        target = self.tables.setdefault(table, {})
        for row in rows:
            target[str(row[conflict_key])] = dict(row)

    def select_by_batch(self, table: str, batch_id: str, offset: int, limit: int) -> list[dict[str, Any]]:
        self.select_calls.append((table, batch_id, offset, limit))
        matching = [r for r in self.rows(table) if r.get("batch_id") == batch_id]
        return matching[offset : offset + limit]

    def fetch_by_ids(self, table: str, ids: list[str]) -> list[dict[str, Any]]:
        if self.fetch_error is not None:
            raise self.fetch_error
        wanted = set(ids)
        return [r for key, r in self.tables.get(table, {}).items() if key in wanted]

    def similarity_search(self, vector: list[float], top_n: int) -> list[tuple[str, float]]:
        if self.semantic_error is not None:
            raise self.semantic_error
        return self.semantic_hits[:top_n]

    def full_text_search(self, table: str, column: str, query: str, limit: int) -> list[tuple[str, float]]:
        key = f"{table}.{column}"
        if key in self.lexical_errors:
            raise self.lexical_errors[key]
        return self.lexical_hits.get(key, [])[:limit]

    def health_check(self) -> bool:
        return True

    def count(self, table: str) -> int:
        return len(self.tables.get(table, {}))


class FakeEmbeddings(Embeddings):
    """Deterministic embeddings with long decimals, recording every call."""

    def __init__(self, query_error: Exception | None = None) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.query_error = query_error

    @staticmethod
    def _vector(text: str) -> list[float]:
        return [len(text) + 0.123456789, 0.987654321, -0.5000004]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        if self.query_error is not None:
            raise self.query_error
        return self._vector(text)


class FakeChatModel:
    """Stand-in chat model returning a canned reply (or raising)."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[list[Any]] = []

    def invoke(self, messages: list[Any]) -> AIMessage:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        retry_backoff_seconds=0.5,
        judge_enabled=False,
        off_topic_terms=[],
    )


@pytest.fixture()
def fake_store() -> FakeTableStore:
    return FakeTableStore()


@pytest.fixture()
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture()
def make_chat() -> Callable[..., FakeChatModel]:
    return FakeChatModel
