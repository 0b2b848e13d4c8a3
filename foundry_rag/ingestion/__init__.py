"""Ingestion package for batch pipelines.

Contains the file/directory ingestion pipeline and its command-line tools:
- pipeline: hash -> dedupe -> document row -> chunk -> embed -> chunk rows.
- ingest_file / ingest_dir: one file, or every supported file under a directory.
- check_corpus: per-document chunk counts and cleanup of empty documents.
"""
