"""In-process DocumentStore for tests and local development.

Mirrors PgVectorStore's contract without a database:
- documents are unique per (org_id, sha256); a duplicate insert returns None;
- vector ranking uses cosine similarity over the organization's chunks;
- hybrid ranking pre-selects the nearest max(top_k * 5, 50) chunks, scores them
  lexically with BM25+ (rank_bm25) within that pool, and combines both with
  foundry_rag.scoring.hybrid_score. BM25+ keeps IDF positive however small the
  pool, so a term present in half the chunks still ranks.

BM25 scores are scaled so the best match in the pool gets FT_RANK_CEILING,
the value at which the SQL function saturates ts_rank_cd.
"""
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from rank_bm25 import BM25Plus

from foundry_rag.errors import StoreError
from foundry_rag.schemas import DocumentSummary
from foundry_rag.scoring import FT_RANK_CEILING, candidate_pool_size, cosine_similarity, hybrid_score
from foundry_rag.store import ChunkMatch, CorpusEntry, NewChunk, NewDocument


def _tokenize(s: str) -> List[str]:
    """Lowercase alphanumeric tokenization used for BM25."""
    return re.findall(r"[a-z0-9]+", s.lower())


class InMemoryStore:
    """Thread-safe, dict-backed DocumentStore.

    Args:
        dimensions: Required embedding length; inserts with any other length fail
            with StoreError, like a pgvector column of fixed dimension.
    """

    def __init__(self, dimensions: int):
        self.dimensions = dimensions
        self._lock = threading.Lock()
        self._documents: Dict[str, Tuple[NewDocument, datetime]] = {}
        self._by_hash: Dict[Tuple[str, str], str] = {}
        self._chunks: Dict[str, NewChunk] = {}
        self.queries: List[Tuple[str, str, int, bool]] = []

    def ping(self) -> None:
        return None

    def find_document(self, org_id: str, sha256: str) -> Optional[str]:
        with self._lock:
            return self._by_hash.get((org_id, sha256))

    def insert_document(self, doc: NewDocument) -> Optional[str]:
        with self._lock:
            key = (doc.org_id, doc.sha256)
            if key in self._by_hash:
                return None
            doc_id = str(uuid.uuid4())
            self._documents[doc_id] = (doc, datetime.now(timezone.utc))
            self._by_hash[key] = doc_id
            return doc_id

    def insert_chunks(self, chunks: Sequence[NewChunk]) -> int:
        with self._lock:
            for c in chunks:
                if c.doc_id not in self._documents:
                    raise StoreError(f"Chunk references unknown document {c.doc_id}", provider_name="memory")
                if len(c.embedding) != self.dimensions:
                    raise StoreError(
                        f"Expected {self.dimensions} dimensions, got {len(c.embedding)}", provider_name="memory"
                    )
            for c in chunks:
                self._chunks[str(uuid.uuid4())] = c
        return len(chunks)

    def delete_document(self, document_id: str) -> bool:
        with self._lock:
            entry = self._documents.pop(document_id, None)
            if entry is None:
                return False
            doc, _ = entry
            self._by_hash.pop((doc.org_id, doc.sha256), None)
            for cid in [cid for cid, c in self._chunks.items() if c.doc_id == document_id]:
                del self._chunks[cid]
            return True

    def chunk_count(self, document_id: str) -> int:
        with self._lock:
            return sum(1 for c in self._chunks.values() if c.doc_id == document_id)

    def _nearest(self, org_id: str, embedding: List[float], limit: int) -> List[Tuple[str, NewChunk, float]]:
        with self._lock:
            scored = [
                (cid, c, cosine_similarity(embedding, c.embedding))
                for cid, c in self._chunks.items()
                if c.org_id == org_id
            ]
        scored.sort(key=lambda t: (-t[2], t[0]))
        return scored[:limit]

    def match_vector(self, org_id: str, embedding: List[float], top_k: int) -> List[ChunkMatch]:
        return [
            ChunkMatch(
                chunk_id=cid,
                doc_id=c.doc_id,
                content=c.content,
                hybrid_score=sim,
                vec_sim=sim,
                ft_rank=0.0,
                metadata=dict(c.metadata),
            )
            for cid, c, sim in self._nearest(org_id, embedding, top_k)
        ]

    def match_hybrid(self, org_id: str, query: str, embedding: List[float], top_k: int) -> List[ChunkMatch]:
        pool = self._nearest(org_id, embedding, candidate_pool_size(top_k))
        if not pool:
            return []
        docs = [_tokenize(c.content) or [""] for _, c, _ in pool]
        terms = _tokenize(query)
        # BM25Plus credits every document a floor per query term; only chunks
        # containing a term get a lexical rank, as with ts_rank_cd.
        scores = BM25Plus(docs).get_scores(terms)
        raw = [float(s) if set(terms) & set(d) else 0.0 for s, d in zip(scores, docs)]
        top = max(raw)
        ft = [s / top * FT_RANK_CEILING if top > 0 else 0.0 for s in raw]

        matches = [
            ChunkMatch(
                chunk_id=cid,
                doc_id=c.doc_id,
                content=c.content,
                hybrid_score=hybrid_score(sim, rank),
                vec_sim=sim,
                ft_rank=rank,
                metadata=dict(c.metadata),
            )
            for (cid, c, sim), rank in zip(pool, ft)
        ]
        matches.sort(key=lambda m: (-m.hybrid_score, m.chunk_id))
        return matches[:top_k]

    def chunk_documents(self, chunk_ids: Sequence[str]) -> Dict[str, DocumentSummary]:
        out: Dict[str, DocumentSummary] = {}
        with self._lock:
            for cid in chunk_ids:
                chunk = self._chunks.get(cid)
                if chunk is None or chunk.doc_id not in self._documents:
                    continue
                doc, _ = self._documents[chunk.doc_id]
                out[cid] = DocumentSummary(title=doc.title, source_url=doc.source_url, source_type=doc.source_type)
        return out

    def corpus_summary(self, org_id: str) -> List[CorpusEntry]:
        with self._lock:
            counts: Dict[str, int] = {}
            for c in self._chunks.values():
                counts[c.doc_id] = counts.get(c.doc_id, 0) + 1
            entries = [
                CorpusEntry(
                    document_id=doc_id,
                    title=doc.title,
                    source_type=doc.source_type,
                    bytes=doc.bytes,
                    chunk_count=counts.get(doc_id, 0),
                    created_at=created,
                )
                for doc_id, (doc, created) in self._documents.items()
                if doc.org_id == org_id
            ]
        entries.sort(key=lambda e: (e.created_at, e.document_id))
        return entries

    def delete_empty_documents(self, org_id: str) -> List[CorpusEntry]:
        empty = [e for e in self.corpus_summary(org_id) if e.chunk_count == 0]
        for e in empty:
            self.delete_document(e.document_id)
        return empty

    def log_query(self, org_id: str, query: str, top_k: int, used_hybrid: bool) -> None:
        with self._lock:
            self.queries.append((org_id, query, top_k, used_hybrid))
