"""Exception hierarchy and failure classification.

    HybridKBError
    +-- ConfigurationError   (missing credential / endpoint, never retried)
    +-- StoreError           (carries the table and operation involved)
    |   +-- TransientIOError   (network, timeout, 5xx gateway errors)
    |   +-- TerminalDataError  (schema, auth, malformed payload)
    |   +-- BatchWriteError    (rows still failing after split retries)
    +-- IngestionError       (carries the ingestion stage that failed)

:func:`is_transient` decides whether a raw exception raised by a store
client is worth retrying.
"""

from __future__ import annotations

import re
import socket
from typing import Any

import httpx

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})

_TRANSIENT_MESSAGE = re.compile(
    r"timed? ?out|timeout|connection (?:reset|refused|aborted)|econnreset|"
    r"enotfound|eai_again|getaddrinfo|name or service not known|"
    r"temporary failure in name resolution|fetch failed|network (?:error|is unreachable|unreachable)|"
    r"bad gateway|service unavailable|gateway time-?out|"
    # status codes only count next to an HTTP-ish word, never as a bare number
    r"\b(?:http|status|code|error)\b\W{0,3}50[234]\b",
    re.IGNORECASE,
)


class HybridKBError(Exception):
    """Base exception for all hybrid-kb errors."""


class ConfigurationError(HybridKBError):
    """Raised when a required credential or endpoint is not configured."""


class StoreError(HybridKBError):
    """A table-store operation failed.

    ``str(exc)`` is prefixed with the table name so the failing table is
    visible in logs and API responses, e.g. ``kb_items upsert failed: ...``.
    """

    def __init__(
        self,
        message: str,
        *,
        table: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.message = message
        self.table = table
        self.operation = operation
        super().__init__(message)

    def __str__(self) -> str:
        if self.table:
            return f"{self.table} {self.operation or 'operation'} failed: {self.message}"
        return self.message


class TransientIOError(StoreError):
    """Retryable infrastructure failure."""


class TerminalDataError(StoreError):
    """Non-retryable data, schema or authorisation failure."""


class BatchWriteError(StoreError):
    """Single rows kept failing transiently after the slice was fully split.

    ``failures`` maps each failed conflict-key value to the original
    error message.
    """

    def __init__(self, message: str, *, table: str, failures: dict[Any, str]) -> None:
        super().__init__(message, table=table, operation="upsert")
        self.failures = failures


class IngestionError(HybridKBError):
    """An ingestion stage failed; ``stage`` names it (items, chunks, embeddings)."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(f"ingestion failed at stage '{stage}': {message}")


def _status_code(exc: BaseException) -> int | None:
    code = getattr(exc, "status_code", None)
    if code is None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def is_transient(exc: BaseException) -> bool:
    """Return ``True`` when *exc* looks like a retryable infrastructure failure."""
    if isinstance(exc, TransientIOError):
        return True
    if isinstance(exc, (TerminalDataError, ConfigurationError)):
        return False
    if isinstance(exc, (ConnectionError, TimeoutError, socket.gaierror, httpx.TransportError)):
        return True
    code = _status_code(exc)
    if code is not None:
        return code in TRANSIENT_STATUS_CODES
    return bool(_TRANSIENT_MESSAGE.search(str(exc)))


def as_store_error(exc: BaseException, *, table: str, operation: str) -> StoreError:
    """Wrap a raw client exception in the matching :class:`StoreError` subclass."""
    cls = TransientIOError if is_transient(exc) else TerminalDataError
    return cls(str(exc), table=table, operation=operation)
