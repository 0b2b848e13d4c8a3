"""Hybrid ranking constants and the reference scoring function.

The same constants are rendered into the PostgreSQL ranking function
(foundry_rag.db) and used by the in-process store, so both backends rank
identically:

    hybrid_score = 0.7 * vec_sim + 0.3 * (min(ft_rank, 1.5) / 1.5)

vec_sim is cosine similarity (1 - cosine distance); ft_rank is the lexical
rank, clamped to FT_RANK_CEILING before weighting.
"""
import math
from typing import List, Sequence

VECTOR_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3
FT_RANK_CEILING = 1.5

# Vector pre-selection size before lexical re-scoring: max(top_k * 5, 50)
CANDIDATE_POOL_MULTIPLIER = 5
MIN_CANDIDATE_POOL = 50


def hybrid_score(vec_sim: float, ft_rank: float) -> float:
    """Combine vector similarity and lexical rank into the hybrid score.

    Args:
        vec_sim: Cosine similarity between query and chunk embeddings.
        ft_rank: Lexical relevance of the chunk for the query text.

    Returns:
        float: Weighted score; higher is better.
    """
    lexical = min(max(ft_rank, 0.0), FT_RANK_CEILING) / FT_RANK_CEILING
    return VECTOR_WEIGHT * vec_sim + LEXICAL_WEIGHT * lexical


def candidate_pool_size(top_k: int) -> int:
    """Number of nearest-vector candidates considered for lexical re-scoring."""
    return max(top_k * CANDIDATE_POOL_MULTIPLIER, MIN_CANDIDATE_POOL)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 if either is all zeros."""
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


def vector_literal(vec: List[float]) -> str:
    """Render a vector as a pgvector text literal, e.g. "[0.1,0.2]"."""
    return "[" + ",".join(repr(float(x)) for x in vec) + "]"
