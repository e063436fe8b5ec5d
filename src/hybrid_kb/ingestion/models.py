"""Domain models for ingested records and their persisted rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class KnowledgeItem(BaseModel):
    """One normalized question/answer record extracted from a source document.

    Attributes
    ----------
    id:
        Opaque identifier; re-ingesting the same content produces a new id.
    question:
        The retrieval key.  Only this field is embedded.
    answer:
        Answer text, possibly empty for question-only rows.
    source:
        Optional label of the originating file.
    batch_id:
        Groups every item produced by one ingestion call.
    created_at:
        UTC creation timestamp.
    """

    id: str = Field(default_factory=_new_id)
    question: str
    answer: str = ""
    source: str | None = None
    batch_id: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "question": self.question,
            "answer": self.answer,
            "source": self.source,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> KnowledgeItem:
        return cls(
            id=str(row["id"]),
            question=row.get("question") or "",
            answer=row.get("answer") or "",
            source=row.get("source"),
            batch_id=row.get("batch_id") or "",
            created_at=row.get("created_at") or _utcnow(),
        )

    @property
    def chunk_base(self) -> str:
        """Text that gets chunked: question and answer, or the question alone."""
        question = self.question.strip()
        answer = self.answer.strip()
        return f"{question}\n\n{answer}" if answer else question


class Chunk(BaseModel):
    """A fixed-size, overlapping slice of an item's normalized text."""

    id: str = Field(default_factory=_new_id)
    item_id: str
    batch_id: str
    ordinal: int = Field(ge=0)
    content: str
    token_estimate: int = Field(ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "batch_id": self.batch_id,
            "ordinal": self.ordinal,
            "content": self.content,
            "token_estimate": self.token_estimate,
            "created_at": self.created_at.isoformat(),
        }


class EmbeddingVector(BaseModel):
    """Embedding of one item's question; at most one per item."""

    item_id: str
    batch_id: str
    vector: list[float]
    created_at: datetime = Field(default_factory=_utcnow)

    def to_row(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "batch_id": self.batch_id,
            "embedding": self.vector,
            "created_at": self.created_at.isoformat(),
        }


class EmbedResult(BaseModel):
    batch_id: str
    count: int = 0


class IngestResult(BaseModel):
    """Summary returned to callers of :meth:`IngestionPipeline.ingest`."""

    batch_id: str
    count: int = 0
    chunked: int = 0
    embedded: int = 0
