"""
Serving: FastAPI application for the knowledge base.

This module exposes ingestion, retrieval, and answering over HTTP so the
pipeline can run as a standalone container.
"""
