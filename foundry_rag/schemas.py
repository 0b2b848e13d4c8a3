"""Pydantic models for retrieval results and the search API.

Defines:
- DocumentSummary: Parent-document fields attached to a retrieval result.
- RetrievalResult: One ranked chunk with its score components.
- SearchRequest / SearchResponse: Contract of POST /rag/search.
"""
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentSummary(BaseModel):
    """Denormalized parent-document fields for a chunk.

    Attributes:
        title: Document title (file name unless given explicitly at ingestion).
        source_url: Path or URL the document was read from.
        source_type: File category, e.g. "md", "txt", "html".
    """
    title: str
    source_url: Optional[str] = None
    source_type: str


class RetrievalResult(BaseModel):
    """A ranked chunk returned by the hybrid or vector-only retriever.

    Attributes:
        chunk_id: Chunk identifier.
        doc_id: Parent document identifier.
        content: Chunk text.
        hybrid_score: Ranking score (0.7 * vec_sim + 0.3 * normalized ft_rank;
            equal to vec_sim for vector-only retrieval).
        vec_sim: Cosine similarity component.
        ft_rank: Full-text rank component (0 for vector-only retrieval).
        metadata: Chunk metadata (file_name, source_type, relative_path).
        document: Parent-document summary when requested.
    """
    chunk_id: str
    doc_id: str
    content: str
    hybrid_score: float
    vec_sim: float
    ft_rank: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    document: Optional[DocumentSummary] = None


class SearchRequest(BaseModel):
    """Request body for POST /rag/search."""
    org_id: UUID
    query: str = Field(..., min_length=1, description="Search query")
    top_k: Optional[int] = Field(default=None, ge=1, le=200, description="Maximum results (server default if omitted)")
    mode: Literal["hybrid", "vector"] = "hybrid"
    include_documents: bool = True


class SearchResponse(BaseModel):
    """Response body for POST /rag/search."""
    results: List[RetrievalResult]
    query: str
    org_id: str
    count: int
