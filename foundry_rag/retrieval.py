"""Hybrid and vector-only retrieval over an organization's chunks.

This module implements:
- HybridRetriever.retrieve_hybrid: embed the query, rank with the store's hybrid
  operation (0.7 * cosine similarity + 0.3 * clamped full-text rank).
- HybridRetriever.retrieve_vector: same, ranking purely by cosine similarity
  (ft_rank reported as 0), for short or non-prose queries.
- Optional enrichment with parent-document title/source/type through one batched
  lookup keyed by the returned chunk ids.

Ordering is hybrid_score descending; equal scores are broken by chunk_id
ascending so results are reproducible regardless of datastore return order.
At most top_k results are returned.
"""
import logging
from typing import List, Optional

from foundry_rag.embedding import Embedder
from foundry_rag.errors import StoreError
from foundry_rag.obs import span
from foundry_rag.schemas import RetrievalResult
from foundry_rag.store import ChunkMatch, DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 12


class HybridRetriever:
    """Query-time retrieval; stateless apart from its injected collaborators.

    Args:
        embedder: Produces the query embedding.
        store: Runs the ranking queries and document lookups.
        default_top_k: top_k used when a call does not pass one.
        default_org_id: Organization used when a call does not pass one.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: DocumentStore,
        default_top_k: int = DEFAULT_TOP_K,
        default_org_id: Optional[str] = None,
    ):
        self._embedder = embedder
        self._store = store
        self.default_top_k = default_top_k
        self.default_org_id = default_org_id

    def _resolve(self, query: str, org_id: Optional[str], top_k: Optional[int]):
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")
        org = org_id or self.default_org_id
        if not org:
            raise ValueError("org_id is required")
        k = self.default_top_k if top_k is None else top_k
        if k < 1:
            raise ValueError(f"top_k must be >= 1, got {k}")
        return org, k

    def retrieve_hybrid(
        self,
        query: str,
        org_id: Optional[str] = None,
        top_k: Optional[int] = None,
        include_documents: bool = True,
    ) -> List[RetrievalResult]:
        """Retrieve chunks ranked by the combined vector + full-text score.

        Args:
            query: Search text; used both for the embedding and the full-text match.
            org_id: Organization whose chunks are searched.
            top_k: Maximum number of results.
            include_documents: Attach parent-document summaries.

        Returns:
            List[RetrievalResult]: At most top_k results, best first.

        Raises:
            ValueError: On an empty query or top_k < 1.
            EmbeddingError: If the query cannot be embedded.
            StoreError: If the ranking query fails.
        """
        org, k = self._resolve(query, org_id, top_k)
        with span("retrieve.hybrid", {"org_id": org, "top_k": k}):
            qvec = self._embedder.embed_query(query)
            matches = self._store.match_hybrid(org, query, qvec, k)
            return self._finalize(matches, k, include_documents)

    def retrieve_vector(
        self,
        query: str,
        org_id: Optional[str] = None,
        top_k: Optional[int] = None,
        include_documents: bool = True,
    ) -> List[RetrievalResult]:
        """Retrieve chunks ranked by cosine similarity alone (ft_rank is 0)."""
        org, k = self._resolve(query, org_id, top_k)
        with span("retrieve.vector", {"org_id": org, "top_k": k}):
            qvec = self._embedder.embed_query(query)
            matches = self._store.match_vector(org, qvec, k)
            return self._finalize(matches, k, include_documents)

    def _finalize(self, matches: List[ChunkMatch], top_k: int, include_documents: bool) -> List[RetrievalResult]:
        ordered = sorted(matches, key=lambda m: (-m.hybrid_score, m.chunk_id))[:top_k]
        results = [
            RetrievalResult(
                chunk_id=m.chunk_id,
                doc_id=m.doc_id,
                content=m.content,
                hybrid_score=m.hybrid_score,
                vec_sim=m.vec_sim,
                ft_rank=m.ft_rank,
                metadata=m.metadata or {},
            )
            for m in ordered
        ]
        if include_documents and results:
            try:
                docs = self._store.chunk_documents([r.chunk_id for r in results])
            except StoreError as exc:
                # Ranking succeeded; return it without document summaries.
                logger.warning("Document lookup failed for %d chunks: %s", len(results), exc)
            else:
                for r in results:
                    r.document = docs.get(r.chunk_id)
        return results
