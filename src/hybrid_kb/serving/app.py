"""FastAPI application exposing ingestion, retrieval, and answering."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel, Field

from hybrid_kb.config import settings
from hybrid_kb.errors import ConfigurationError, IngestionError
from hybrid_kb.generation.synthesizer import AnswerResult, AnswerService, AnswerSynthesizer
from hybrid_kb.ingestion.models import IngestResult, KnowledgeItem
from hybrid_kb.ingestion.pipeline import IngestionPipeline
from hybrid_kb.retrieval.models import RetrievalResult
from hybrid_kb.retrieval.retriever import HybridRetriever
from hybrid_kb.storage.base import TableStoreBase

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hybrid KB API",
    version="0.1.0",
    description="Ingest Q/A records and answer questions with hybrid retrieval.",
)


class Services:
    """Wired components shared by the routes."""

    def __init__(
        self,
        store: TableStoreBase,
        embeddings: Embeddings | None = None,
        llm: BaseChatModel | None = None,
    ) -> None:
        self.store = store
        self.pipeline = IngestionPipeline(store, embeddings)
        self.retriever = HybridRetriever(store, embeddings)
        self.answers = AnswerService(self.retriever, AnswerSynthesizer(llm), store=store)


@lru_cache(maxsize=1)
def get_services() -> Services:
    from hybrid_kb.storage.chroma_store import ChromaTableStore

    return Services(ChromaTableStore())


# ── Request / Response schemas ────────────────────────────────────────
class ItemIn(BaseModel):
    question: str
    answer: str = ""
    source: str | None = None


class IngestRequest(BaseModel):
    """Already-extracted Q/A records to store under one batch."""

    items: list[ItemIn]
    batch_id: str | None = None


class QueryRequest(BaseModel):
    query: str
    k: int | None = Field(default=None, ge=1, le=50)
    history: list[dict[str, str]] = Field(default_factory=list)


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@app.get("/stats")
def stats(services: Services = Depends(get_services)) -> dict[str, int]:
    """Row counts of the knowledge-base tables."""
    try:
        return {
            "items": services.store.count(settings.items_table),
            "chunks": services.store.count(settings.chunks_table),
            "embeddings": services.store.count(settings.embeddings_table),
        }
    except Exception as exc:
        logger.exception("Stats lookup failed")
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@app.post("/ingest", response_model=IngestResult)
def ingest(request: IngestRequest, services: Services = Depends(get_services)) -> IngestResult:
    """Store records, chunk them, and embed their questions."""
    items = [
        KnowledgeItem(question=it.question.strip(), answer=it.answer.strip(), source=it.source)
        for it in request.items
        if it.question.strip()
    ]
    if not items:
        raise HTTPException(status_code=400, detail="No parsable Q/A found")
    try:
        return services.pipeline.ingest(items, batch_id=request.batch_id)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except IngestionError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/retrieve", response_model=RetrievalResult)
def retrieve(request: QueryRequest, services: Services = Depends(get_services)) -> RetrievalResult:
    """Rank knowledge items for a query; degraded lookups yield fewer results, not errors."""
    return services.retriever.retrieve(request.query, k=request.k)


@app.post("/answer", response_model=AnswerResult)
def answer(request: QueryRequest, services: Services = Depends(get_services)) -> AnswerResult:
    """Retrieve context and synthesize an answer."""
    try:
        return services.answers.answer(request.query, history=request.history or None)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
