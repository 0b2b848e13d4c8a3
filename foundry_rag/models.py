"""Database ORM models.

Defines the persistent entities of the retrieval subsystem:
- Document: one ingested source, unique per (org_id, sha256) so identical content
  is never stored twice for an organization.
- Chunk: a token-bounded slice of a Document with its pgvector embedding and a
  generated tsvector for full-text ranking.
- RagQuery: an append-only log of search queries for analytics.
"""
import uuid
from datetime import datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    Column,
    Computed,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR, UUID

from foundry_rag.config import settings
from foundry_rag.db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(Base):
    """Source document ingested for retrieval.

    Rows are created once by the ingestion pipeline and never updated.

    Constraints:
        - uq_documents_org_sha256: (org_id, sha256) is unique; the ingestion
          insert relies on it (ON CONFLICT DO NOTHING) to make duplicate
          detection atomic under concurrent ingestion.
    """
    __tablename__ = "documents"

    id = Column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    org_id = Column(UUID(as_uuid=False), nullable=False)
    title = Column(Text, nullable=False)
    source_url = Column(Text, nullable=True)
    source_type = Column(String(32), nullable=False)  # md | txt | html
    mime = Column(String(128), nullable=True)
    sha256 = Column(String(64), nullable=False)
    bytes = Column(Integer, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "sha256", name="uq_documents_org_sha256"),
    )


class Chunk(Base):
    """Vector-embedded document chunk used for retrieval.

    Each row holds:
    - ownership (org_id denormalized for query-time filtering, doc_id)
    - position and text (chunk_index, content, token_count)
    - an embedding vector (pgvector) for ANN search
    - ts, a stored tsvector generated from content for full-text rank

    Indexes:
        - doc_chunks_org / doc_chunks_doc: tenant and document filters
        - doc_chunks_ts_idx: GIN over ts
        - doc_chunks_embedding_hnsw: HNSW with cosine ops over embedding

    Notes:
        The embedding dimension is settings.EMBEDDING_DIM and must match the
        embedding model configured in foundry_rag.config.Settings.
    """
    __tablename__ = "doc_chunks"

    id = Column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    org_id = Column(UUID(as_uuid=False), nullable=False)
    doc_id = Column(UUID(as_uuid=False), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)

    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    token_count = Column(Integer, nullable=False)

    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=True)
    ts = Column(TSVECTOR, Computed("to_tsvector('english', coalesce(content, ''))", persisted=True))
    metadata_ = Column("metadata", JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("doc_chunks_org", "org_id"),
        Index("doc_chunks_doc", "doc_id"),
        Index("doc_chunks_ts_idx", "ts", postgresql_using="gin"),
        Index(
            "doc_chunks_embedding_hnsw",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": 16, "ef_construction": 64},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
    )


class RagQuery(Base):
    """Search query log entry."""
    __tablename__ = "rag_queries"

    id = Column(UUID(as_uuid=False), primary_key=True, default=_new_id)
    org_id = Column(UUID(as_uuid=False), nullable=False)
    query_text = Column(Text, nullable=False)
    top_k = Column(Integer, nullable=False)
    used_hybrid = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
