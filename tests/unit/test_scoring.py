"""Unit tests for hybrid scoring constants and helpers."""
import pytest

from foundry_rag.scoring import (
    FT_RANK_CEILING,
    LEXICAL_WEIGHT,
    VECTOR_WEIGHT,
    candidate_pool_size,
    cosine_similarity,
    hybrid_score,
    vector_literal,
)


class TestHybridScore:
    def test_weights_sum_to_one(self):
        assert VECTOR_WEIGHT + LEXICAL_WEIGHT == pytest.approx(1.0)

    def test_vector_only_contribution(self):
        assert hybrid_score(0.5, 0.0) == pytest.approx(0.35)

    def test_full_lexical_match(self):
        assert hybrid_score(1.0, FT_RANK_CEILING) == pytest.approx(1.0)

    def test_lexical_rank_is_clamped(self):
        assert hybrid_score(0.2, 3.0) == pytest.approx(hybrid_score(0.2, FT_RANK_CEILING))
        assert hybrid_score(0.2, -1.0) == pytest.approx(hybrid_score(0.2, 0.0))

    def test_partial_lexical_rank(self):
        assert hybrid_score(0.6, 0.75) == pytest.approx(0.7 * 0.6 + 0.3 * 0.5)


class TestCandidatePool:
    @pytest.mark.parametrize("top_k,expected", [(1, 50), (10, 50), (12, 60), (40, 200)])
    def test_pool_size(self, top_k, expected):
        assert candidate_pool_size(top_k) == expected


class TestVectors:
    def test_cosine_of_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_cosine_of_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_cosine_with_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_vector_literal(self):
        assert vector_literal([0.5, 1, -0.25]) == "[0.5,1.0,-0.25]"
