"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible chat API. Leave empty to use "
            "OpenAI cloud."
        ),
    )
    synthesis_temperature: float = 0.2
    next_steps_temperature: float = 0.3
    judge_enabled: bool = Field(
        default=False,
        description="Pass retrieval shortlists through the LLM relevance judge",
    )

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-3-small"
    embed_batch_size: int = 64
    embed_round: int = Field(default=6, description="Decimal digits kept per vector component")

    # Table store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    items_table: str = "kb_items"
    chunks_table: str = "kb_chunks"
    embeddings_table: str = "kb_embeddings"
    item_upsert_batch: int = 300
    chunk_upsert_batch: int = 300
    embed_upsert_batch: int = 150
    read_page_size: int = 500
    retry_backoff_seconds: float = 0.5

    # Chunking
    chunk_chars: int = 1200
    chunk_overlap: int = 200

    # Retrieval
    semantic_top_n: int = 40
    lexical_limit: int = 60
    pool_size: int = 150
    shortlist_size: int = 5
    semantic_weight: float = 0.65
    lexical_weight: float = 0.35
    min_answer_chars: int = 40
    dedup_prefix_chars: int = 200
    quality_length_threshold: int = 300
    quality_length_bonus: float = 0.15
    quality_structure_bonus: float = 0.10
    off_topic_terms: list[str] = Field(
        default_factory=list,
        description="Terms that mark a candidate as off-topic (JSON list in env)",
    )
    off_topic_penalty: float = -0.25
    contextual_min_score: float = 0.42
    max_context_chars: int = 12000
    chunk_context_limit: int = 3

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton: import `settings` wherever needed.
settings = Settings()
