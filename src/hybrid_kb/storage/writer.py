"""Batched upserts with backoff-and-split retry.

Rows are written in consecutive slices.  When a slice fails transiently it
is halved and each half is retried after a linear backoff, which narrows a
bad record down to a one-row slice in ``O(log2(n))`` splits while the good
rows around it still land.  The split is driven by an explicit stack so
very large batches never hit the recursion limit.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from hybrid_kb.config import Settings, settings as default_settings
from hybrid_kb.errors import BatchWriteError, StoreError, TerminalDataError, is_transient
from hybrid_kb.storage.base import TableStoreBase

logger = logging.getLogger(__name__)


def _message(exc: BaseException) -> str:
    return exc.message if isinstance(exc, StoreError) else str(exc)


class BatchWriter:
    """Write row sets to a :class:`TableStoreBase` in bounded slices.

    Parameters
    ----------
    store:
        Destination backend.
    backoff_seconds:
        Base delay; a slice split at retry depth *n* waits ``n * backoff_seconds``.
    sleep:
        Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        store: TableStoreBase,
        *,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        settings: Settings | None = None,
    ) -> None:
        cfg = settings or default_settings
        self._store = store
        self.backoff_seconds = cfg.retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        self._sleep = sleep

    def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        conflict_key: str,
        batch_size: int,
    ) -> int:
        """Upsert *rows* into *table* and return the number of rows written.

        Raises
        ------
        TerminalDataError
            On the first non-retryable failure.  Slices written before it
            stay written.
        BatchWriteError
            When single rows still fail transiently after splitting.  Every
            other row has been written by then.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if not rows:
            return 0

        written = 0
        failures: dict[Any, str] = {}
        for start in range(0, len(rows), batch_size):
            written += self._write_slice(
                table, rows[start : start + batch_size], conflict_key, failures
            )

        if failures:
            keys = ", ".join(str(k) for k in list(failures)[:5])
            raise BatchWriteError(
                f"{len(failures)} row(s) could not be written after retries ({keys}); "
                f"last error: {list(failures.values())[-1]}",
                table=table,
                failures=failures,
            )
        logger.info("Upserted %d row(s) into %s", written, table)
        return written

    def _write_slice(
        self,
        table: str,
        rows: list[dict[str, Any]],
        conflict_key: str,
        failures: dict[Any, str],
    ) -> int:
        written = 0
        # (rows, attempt) pairs; the last element is processed next.
        pending: list[tuple[list[dict[str, Any]], int]] = [(rows, 0)]
        while pending:
            part, attempt = pending.pop()
            try:
                self._store.upsert(table, part, conflict_key)
            except Exception as exc:
                if not is_transient(exc):
                    raise TerminalDataError(_message(exc), table=table, operation="upsert") from exc
                if len(part) == 1:
                    key = part[0].get(conflict_key)
                    logger.error("%s upsert gave up on row %s: %s", table, key, exc)
                    failures[key] = _message(exc)
                    continue

                attempt += 1
                delay = self.backoff_seconds * attempt
                mid = len(part) // 2
                logger.warning(
                    "%s upsert of %d row(s) failed transiently (%s); retrying as %d + %d after %.2fs",
                    table, len(part), exc, mid, len(part) - mid, delay,
                )
                self._sleep(delay)
                pending.append((part[mid:], attempt))
                pending.append((part[:mid], attempt))
                continue
            written += len(part)
        return written
