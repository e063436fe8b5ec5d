"""Unit tests for the Chroma table store, against a mocked client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from hybrid_kb.storage.chroma_store import ChromaTableStore


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def collection(client) -> MagicMock:
    return client.get_or_create_collection.return_value


@pytest.fixture()
def store(client) -> ChromaTableStore:
    return ChromaTableStore(client=client, embeddings_table="kb_embeddings")


def test_upsert_keys_records_by_conflict_column(store, client, collection) -> None:
    store.upsert(
        "kb_embeddings",
        [{"item_id": "i1", "batch_id": "b1", "embedding": [0.1, 0.2], "created_at": "2024-01-01"}],
        "item_id",
    )

    client.get_or_create_collection.assert_called_once_with(
        name="kb_embeddings", metadata={"hnsw:space": "cosine"}, embedding_function=None
    )
    kwargs = collection.upsert.call_args.kwargs
    assert kwargs["ids"] == ["i1"]
    assert kwargs["embeddings"] == [[0.1, 0.2]]
    assert "embedding" not in json.loads(kwargs["documents"][0])
    assert kwargs["metadatas"] == [{"item_id": "i1", "batch_id": "b1", "created_at": "2024-01-01"}]


def test_upsert_non_vector_rows(store, collection) -> None:
    store.upsert("kb_items", [{"id": "i1", "question": "Q?", "source": None}], "id")

    kwargs = collection.upsert.call_args.kwargs
    assert kwargs["embeddings"] == [[1.0]]
    assert json.loads(kwargs["documents"][0]) == {"id": "i1", "question": "Q?", "source": None}
    assert kwargs["metadatas"] == [{"id": "i1", "question": "Q?"}]


def test_upsert_requires_conflict_key(store) -> None:
    with pytest.raises(ValueError, match="conflict key"):
        store.upsert("kb_items", [{"question": "Q?"}], "id")


def test_collections_are_cached(store, client) -> None:
    store.count("kb_items")
    store.count("kb_items")
    assert client.get_or_create_collection.call_count == 1


def test_select_by_batch(store, collection) -> None:
    collection.get.return_value = {"ids": ["i1"], "documents": [json.dumps({"id": "i1", "batch_id": "b1"})]}

    rows = store.select_by_batch("kb_items", "b1", offset=500, limit=500)

    assert rows == [{"id": "i1", "batch_id": "b1"}]
    collection.get.assert_called_once_with(
        where={"batch_id": "b1"}, offset=500, limit=500, include=["documents"]
    )


def test_fetch_by_ids_skips_empty_lookup(store, collection) -> None:
    assert store.fetch_by_ids("kb_items", []) == []
    collection.get.assert_not_called()


def test_similarity_converts_distance(store, collection) -> None:
    collection.query.return_value = {"ids": [["a", "b", "c"]], "distances": [[0.2, 1.0, 1.7]]}

    hits = store.similarity_search([0.1, 0.2], top_n=3)

    assert hits == [("a", pytest.approx(0.8)), ("b", 0.0), ("c", 0.0)]
    collection.query.assert_called_once_with(
        query_embeddings=[[0.1, 0.2]], n_results=3, include=["distances"]
    )


def test_full_text_search_ranks_token_overlap(store, collection) -> None:
    docs = {
        "i1": {"question": "What is your uptime SLA?"},
        "i2": {"question": "Uptime reports?"},
        "i3": {"question": "Do you encrypt data?"},
    }
    collection.get.return_value = {"ids": list(docs), "documents": [json.dumps(d) for d in docs.values()]}

    hits = store.full_text_search("kb_items", "question", "uptime SLA", limit=10)

    assert hits == [("i1", 1.0), ("i2", 0.5)]


def test_full_text_search_without_tokens(store, collection) -> None:
    assert store.full_text_search("kb_items", "question", "?!", limit=10) == []
    collection.get.assert_not_called()


def test_health_check(store, client) -> None:
    assert store.health_check()
    client.heartbeat.side_effect = ConnectionError("refused")
    assert not store.health_check()
