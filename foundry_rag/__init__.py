"""Retrieval-augmented-generation core: ingestion, embedding, storage and hybrid retrieval.

Submodules overview:
- main: FastAPI application exposing /rag/search.
- bootstrap: Process-start construction and wiring of all components.
- config: Application settings and environment variable loading.
- errors: Exception hierarchy.
- chunking: Token-bounded sliding-window chunker (tiktoken).
- embedding: Embedding client over the OpenAI embeddings API.
- cache: Optional Redis cache of query embeddings.
- scoring: Hybrid ranking constants and reference scoring.
- db: Engine/session helpers and schema initialization (pgvector, ranking functions).
- models: ORM models (documents, doc_chunks, rag_queries).
- schemas: Pydantic retrieval result and API models.
- store: DocumentStore protocol and the PostgreSQL/pgvector implementation.
- memory_store: In-process DocumentStore for tests and local development.
- retrieval: Hybrid and vector-only retriever.
- ingestion: File/directory ingestion pipeline and batch tools.
- obs: OpenTelemetry spans.
"""
