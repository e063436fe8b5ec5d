"""
Ingestion: record loading, chunking, and question embedding.

This module is responsible for the ETL-like pipeline that converts
question/answer records into stored items, overlapping text chunks, and
question vectors, all tagged with one batch id.
"""
