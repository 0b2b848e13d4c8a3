"""Persistence boundary for documents, chunks and ranking queries.

Defines:
- NewDocument / NewChunk: rows to be written by the ingestion pipeline.
- ChunkMatch: one ranked row from a ranking query.
- CorpusEntry: per-document summary for corpus checks.
- DocumentStore: the protocol the pipeline and retriever depend on.
- PgVectorStore: PostgreSQL + pgvector implementation that delegates ranking to
  the server-side functions created by foundry_rag.db.init_db.

Every SQLAlchemy failure is re-raised as foundry_rag.errors.StoreError.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from sqlalchemy import delete, func, insert, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from foundry_rag.db import session_scope
from foundry_rag.errors import StoreError
from foundry_rag.models import Chunk, Document, RagQuery
from foundry_rag.obs import span
from foundry_rag.schemas import DocumentSummary
from foundry_rag.scoring import vector_literal

logger = logging.getLogger(__name__)


@dataclass
class NewDocument:
    org_id: str
    title: str
    source_url: Optional[str]
    source_type: str
    mime: Optional[str]
    sha256: str
    bytes: int
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NewChunk:
    org_id: str
    doc_id: str
    chunk_index: int
    content: str
    token_count: int
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChunkMatch:
    """A chunk returned by a ranking query, with its score components."""
    chunk_id: str
    doc_id: str
    content: str
    hybrid_score: float
    vec_sim: float
    ft_rank: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CorpusEntry:
    document_id: str
    title: str
    source_type: str
    bytes: Optional[int]
    chunk_count: int
    created_at: Optional[datetime] = None


class DocumentStore(Protocol):
    """Operations the ingestion pipeline and retriever need from a datastore."""

    def ping(self) -> None: ...

    def find_document(self, org_id: str, sha256: str) -> Optional[str]: ...

    def insert_document(self, doc: NewDocument) -> Optional[str]: ...

    def insert_chunks(self, chunks: Sequence[NewChunk]) -> int: ...

    def delete_document(self, document_id: str) -> bool: ...

    def match_hybrid(self, org_id: str, query: str, embedding: List[float], top_k: int) -> List[ChunkMatch]: ...

    def match_vector(self, org_id: str, embedding: List[float], top_k: int) -> List[ChunkMatch]: ...

    def chunk_documents(self, chunk_ids: Sequence[str]) -> Dict[str, DocumentSummary]: ...

    def corpus_summary(self, org_id: str) -> List[CorpusEntry]: ...

    def delete_empty_documents(self, org_id: str) -> List[CorpusEntry]: ...

    def log_query(self, org_id: str, query: str, top_k: int, used_hybrid: bool) -> None: ...


class PgVectorStore:
    """DocumentStore backed by PostgreSQL with pgvector and full-text search.

    Each method runs in its own transaction (session_scope). The duplicate check
    in insert_document is enforced by the (org_id, sha256) unique constraint,
    so two concurrent ingesters of the same content cannot both succeed.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, op: str) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"{op} failed: {exc}", provider_name="postgres") from exc

    def ping(self) -> None:
        """Round-trip a trivial query; raises StoreError if the datastore is unreachable."""
        with self._session("ping") as s:
            s.execute(text("SELECT 1"))

    def find_document(self, org_id: str, sha256: str) -> Optional[str]:
        with self._session("find_document") as s:
            doc_id = s.execute(
                select(Document.id).where(Document.org_id == org_id, Document.sha256 == sha256)
            ).scalar_one_or_none()
        return str(doc_id) if doc_id is not None else None

    def insert_document(self, doc: NewDocument) -> Optional[str]:
        """Insert a document row unless (org_id, sha256) already exists.

        Returns:
            Optional[str]: The new document id, or None when the content is
                already stored for this organization.
        """
        stmt = (
            pg_insert(Document)
            .values(
                org_id=doc.org_id,
                title=doc.title,
                source_url=doc.source_url,
                source_type=doc.source_type,
                mime=doc.mime,
                sha256=doc.sha256,
                bytes=doc.bytes,
                metadata_=doc.metadata,
            )
            .on_conflict_do_nothing(constraint="uq_documents_org_sha256")
            .returning(Document.id)
        )
        with self._session("insert_document") as s:
            doc_id = s.execute(stmt).scalar_one_or_none()
        return str(doc_id) if doc_id is not None else None

    def insert_chunks(self, chunks: Sequence[NewChunk]) -> int:
        """Bulk-insert all chunks of a document in a single statement."""
        if not chunks:
            return 0
        rows = [
            {
                "org_id": c.org_id,
                "doc_id": c.doc_id,
                "chunk_index": c.chunk_index,
                "content": c.content,
                "token_count": c.token_count,
                "embedding": c.embedding,
                "metadata_": c.metadata,
            }
            for c in chunks
        ]
        with self._session("insert_chunks") as s:
            s.execute(insert(Chunk), rows)
        logger.debug("Stored %d chunks for document %s", len(rows), chunks[0].doc_id)
        return len(rows)

    def delete_document(self, document_id: str) -> bool:
        """Delete a document; its chunks go with it (ON DELETE CASCADE)."""
        with self._session("delete_document") as s:
            result = s.execute(delete(Document).where(Document.id == document_id))
        return result.rowcount > 0

    def match_hybrid(self, org_id: str, query: str, embedding: List[float], top_k: int) -> List[ChunkMatch]:
        """Rank an organization's chunks with match_chunks_hybrid."""
        sql = text(
            """
            SELECT chunk_id, doc_id, content, hybrid_score, vec_sim, ft_rank, metadata
            FROM match_chunks_hybrid(CAST(:org_id AS uuid), :query, CAST(:qvec AS vector), :match_count)
            """
        )
        params = {"org_id": org_id, "query": query, "qvec": vector_literal(embedding), "match_count": top_k}
        with span("store.match_hybrid", {"top_k": top_k}), self._session("match_hybrid") as s:
            rows = s.execute(sql, params).mappings().all()
        return [
            ChunkMatch(
                chunk_id=str(r["chunk_id"]),
                doc_id=str(r["doc_id"]),
                content=r["content"],
                hybrid_score=float(r["hybrid_score"]),
                vec_sim=float(r["vec_sim"]),
                ft_rank=float(r["ft_rank"]),
                metadata=r["metadata"] or {},
            )
            for r in rows
        ]

    def match_vector(self, org_id: str, embedding: List[float], top_k: int) -> List[ChunkMatch]:
        """Rank an organization's chunks by cosine similarity only."""
        sql = text(
            """
            SELECT chunk_id, doc_id, content, similarity, metadata
            FROM match_chunks_vector(CAST(:org_id AS uuid), CAST(:qvec AS vector), :match_count)
            """
        )
        params = {"org_id": org_id, "qvec": vector_literal(embedding), "match_count": top_k}
        with span("store.match_vector", {"top_k": top_k}), self._session("match_vector") as s:
            rows = s.execute(sql, params).mappings().all()
        return [
            ChunkMatch(
                chunk_id=str(r["chunk_id"]),
                doc_id=str(r["doc_id"]),
                content=r["content"],
                hybrid_score=float(r["similarity"]),
                vec_sim=float(r["similarity"]),
                ft_rank=0.0,
                metadata=r["metadata"] or {},
            )
            for r in rows
        ]

    def chunk_documents(self, chunk_ids: Sequence[str]) -> Dict[str, DocumentSummary]:
        """Parent-document summaries keyed by chunk id, in one round trip."""
        if not chunk_ids:
            return {}
        sql = text(
            """
            SELECT chunk_id, doc_title, source_url, source_type
            FROM get_chunk_documents(CAST(:chunk_ids AS uuid[]))
            """
        )
        with self._session("chunk_documents") as s:
            rows = s.execute(sql, {"chunk_ids": list(chunk_ids)}).mappings().all()
        return {
            str(r["chunk_id"]): DocumentSummary(
                title=r["doc_title"], source_url=r["source_url"], source_type=r["source_type"]
            )
            for r in rows
        }

    def _corpus_rows(self, s: Session, org_id: str) -> List[CorpusEntry]:
        stmt = (
            select(
                Document.id,
                Document.title,
                Document.source_type,
                Document.bytes,
                Document.created_at,
                func.count(Chunk.id).label("chunk_count"),
            )
            .outerjoin(Chunk, Chunk.doc_id == Document.id)
            .where(Document.org_id == org_id)
            .group_by(Document.id)
            .order_by(Document.created_at, Document.id)
        )
        return [
            CorpusEntry(
                document_id=str(r.id),
                title=r.title,
                source_type=r.source_type,
                bytes=r.bytes,
                chunk_count=int(r.chunk_count),
                created_at=r.created_at,
            )
            for r in s.execute(stmt).all()
        ]

    def corpus_summary(self, org_id: str) -> List[CorpusEntry]:
        with self._session("corpus_summary") as s:
            return self._corpus_rows(s, org_id)

    def delete_empty_documents(self, org_id: str) -> List[CorpusEntry]:
        """Delete an organization's documents that have no chunks; returns what was deleted."""
        with self._session("delete_empty_documents") as s:
            empty = [e for e in self._corpus_rows(s, org_id) if e.chunk_count == 0]
            if empty:
                s.execute(delete(Document).where(Document.id.in_([e.document_id for e in empty])))
        return empty

    def log_query(self, org_id: str, query: str, top_k: int, used_hybrid: bool) -> None:
        with self._session("log_query") as s:
            s.add(RagQuery(org_id=org_id, query_text=query, top_k=top_k, used_hybrid=used_hybrid))
