"""Unit tests for the batch writer's backoff-and-split retry."""

from __future__ import annotations

import pytest

from hybrid_kb.errors import BatchWriteError, TerminalDataError, TransientIOError
from hybrid_kb.storage.writer import BatchWriter


def _rows(n: int) -> list[dict]:
    return [{"id": f"r{i}", "question": f"q{i}"} for i in range(n)]


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def writer(fake_store, sleeps) -> BatchWriter:
    return BatchWriter(fake_store, backoff_seconds=0.5, sleep=sleeps.append)


def test_writes_in_bounded_slices(fake_store, writer, sleeps) -> None:
    written = writer.upsert("kb_items", _rows(7), "id", 3)

    assert written == 7
    assert [len(ids) for _, ids in fake_store.upsert_calls] == [3, 3, 1]
    assert len(fake_store.rows("kb_items")) == 7
    assert sleeps == []


def test_poisoned_row_is_isolated(fake_store, writer, sleeps) -> None:
    """A row that keeps timing out is narrowed down; the other rows land."""

    def fail(table, rows):
        if any(r["id"] == "r7" for r in rows):
            raise TimeoutError("statement timeout")

    fake_store.fail_upsert = fail

    with pytest.raises(BatchWriteError) as info:
        writer.upsert("kb_items", _rows(10), "id", 10)

    assert set(info.value.failures) == {"r7"}
    assert "timeout" in info.value.failures["r7"]
    assert info.value.table == "kb_items"
    assert sorted(fake_store.tables["kb_items"]) == sorted(f"r{i}" for i in range(10) if i != 7)
    # 10 -> 5 + 5, then 5 -> 2 + 3, then 3 -> 1 + 2
    assert sleeps == [0.5, 1.0, 1.5]


def test_transient_failure_that_recovers(fake_store, writer, sleeps) -> None:
    calls = {"n": 0}

    def flaky(table, rows):
        calls["n"] += 1
        if calls["n"] == 1:
            raise TransientIOError("503 Service Unavailable")

    fake_store.fail_upsert = flaky

    assert writer.upsert("kb_items", _rows(4), "id", 4) == 4
    assert sleeps == [0.5]
    assert [len(ids) for _, ids in fake_store.upsert_calls] == [4, 2, 2]


def test_terminal_failure_stops_without_splitting(fake_store, writer, sleeps) -> None:
    def fail(table, rows):
        raise ValueError('null value in column "question" violates not-null constraint')

    fake_store.fail_upsert = fail

    with pytest.raises(TerminalDataError) as info:
        writer.upsert("kb_items", _rows(6), "id", 3)

    assert str(info.value).startswith("kb_items upsert failed: ")
    assert "not-null" in str(info.value)
    assert len(fake_store.upsert_calls) == 1
    assert sleeps == []


def test_terminal_failure_keeps_earlier_slices(fake_store, writer) -> None:
    def fail(table, rows):
        if rows[0]["id"] == "r3":
            raise ValueError("invalid input syntax for type uuid")

    fake_store.fail_upsert = fail

    with pytest.raises(TerminalDataError):
        writer.upsert("kb_items", _rows(6), "id", 3)
    assert sorted(fake_store.tables["kb_items"]) == ["r0", "r1", "r2"]


def test_upsert_is_idempotent(fake_store, writer) -> None:
    rows = _rows(5)
    writer.upsert("kb_items", rows, "id", 2)
    writer.upsert("kb_items", rows, "id", 2)
    assert len(fake_store.rows("kb_items")) == 5


def test_empty_rows_write_nothing(fake_store, writer) -> None:
    assert writer.upsert("kb_items", [], "id", 10) == 0
    assert fake_store.upsert_calls == []


def test_invalid_batch_size(writer) -> None:
    with pytest.raises(ValueError, match="batch_size"):
        writer.upsert("kb_items", _rows(1), "id", 0)


def test_backoff_defaults_to_settings(fake_store, test_settings) -> None:
    assert BatchWriter(fake_store, settings=test_settings).backoff_seconds == test_settings.retry_backoff_seconds
