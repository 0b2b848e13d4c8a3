"""Unit tests for HybridRetriever ranking, bounds and document enrichment."""
from unittest.mock import MagicMock

import pytest

from foundry_rag.embedding import Embedder
from foundry_rag.errors import EmbeddingError, StoreError
from foundry_rag.memory_store import InMemoryStore
from foundry_rag.retrieval import HybridRetriever
from foundry_rag.schemas import DocumentSummary
from foundry_rag.store import ChunkMatch, NewChunk, NewDocument
from tests.conftest import ORG_ID, StubOpenAI

QUERY = "certificate rotation runbook"


def _seed(store, org_id=ORG_ID):
    """Three chunks with hand-picked vectors; only A mentions the query terms."""
    doc_id = store.insert_document(
        NewDocument(
            org_id=org_id,
            title="Operations",
            source_url="/docs/ops.md",
            source_type="md",
            mime="text/markdown",
            sha256="f" * 64,
            bytes=100,
        )
    )
    vectors = {
        "A": ([0.5, 0.866, 0.0, 0.0], "Certificate rotation runbook for the ingress tier."),
        "B": ([0.6, 0.8, 0.0, 0.0], "Quarterly billing export schedule."),
        "C": ([0.55, 0.0, 0.835, 0.0], "Onboarding checklist for new hires."),
    }
    store.insert_chunks(
        [
            NewChunk(
                org_id=org_id,
                doc_id=doc_id,
                chunk_index=i,
                content=content,
                token_count=8,
                embedding=vec,
                metadata={"label": label},
            )
            for i, (label, (vec, content)) in enumerate(vectors.items())
        ]
    )
    return doc_id


@pytest.fixture
def seeded():
    store = InMemoryStore(dimensions=4)
    _seed(store)
    client = StubOpenAI(dim=4, vectors={QUERY: [1.0, 0.0, 0.0, 0.0]})
    embedder = Embedder(client, model="text-embedding-3-small", dimensions=4)
    return HybridRetriever(embedder, store, default_top_k=12, default_org_id=ORG_ID)


def _match(chunk_id, score):
    return ChunkMatch(
        chunk_id=chunk_id, doc_id="d1", content=chunk_id, hybrid_score=score, vec_sim=score, ft_rank=0.0
    )


def _with_store(store):
    return HybridRetriever(MagicMock(spec=Embedder), store, default_org_id=ORG_ID)


class TestHybridVersusVector:
    """A lexical match lifts a chunk above closer vectors in hybrid mode only."""

    def test_hybrid_prefers_lexical_match(self, seeded):
        results = seeded.retrieve_hybrid(QUERY, top_k=3)

        assert [r.metadata["label"] for r in results] == ["A", "B", "C"]
        assert results[0].ft_rank > 0
        assert results[0].vec_sim == pytest.approx(0.5)

    def test_vector_ranks_by_cosine_only(self, seeded):
        results = seeded.retrieve_vector(QUERY, top_k=3)

        assert [r.metadata["label"] for r in results] == ["B", "C", "A"]
        assert all(r.ft_rank == 0 for r in results)
        assert all(r.hybrid_score == pytest.approx(r.vec_sim) for r in results)

    def test_results_carry_document_summary(self, seeded):
        results = seeded.retrieve_hybrid(QUERY, top_k=1)

        assert results[0].document == DocumentSummary(title="Operations", source_url="/docs/ops.md", source_type="md")

    def test_documents_can_be_omitted(self, seeded):
        results = seeded.retrieve_hybrid(QUERY, top_k=2, include_documents=False)
        assert all(r.document is None for r in results)


class TestOrderingAndBounds:
    def test_top_k_is_an_upper_bound(self):
        store = MagicMock()
        store.match_hybrid.return_value = [_match(f"c{i}", 0.1 * i) for i in range(8)]
        store.chunk_documents.return_value = {}

        results = _with_store(store).retrieve_hybrid("q", top_k=3)

        assert [r.chunk_id for r in results] == ["c7", "c6", "c5"]

    def test_equal_scores_break_ties_by_chunk_id(self):
        store = MagicMock()
        store.match_hybrid.return_value = [_match("c3", 0.5), _match("c1", 0.5), _match("c2", 0.9)]
        store.chunk_documents.return_value = {}

        results = _with_store(store).retrieve_hybrid("q", top_k=10)

        assert [r.chunk_id for r in results] == ["c2", "c1", "c3"]

    def test_default_top_k_is_used(self, retriever, store):
        store_mock = MagicMock(wraps=store)
        retriever._store = store_mock
        retriever.retrieve_hybrid("anything")
        assert store_mock.match_hybrid.call_args.args[3] == 12

    def test_empty_corpus_returns_no_results(self, retriever):
        assert retriever.retrieve_hybrid("anything") == []


class TestInvalidInput:
    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query(self, retriever, query):
        with pytest.raises(ValueError):
            retriever.retrieve_hybrid(query)

    def test_non_positive_top_k(self, retriever):
        with pytest.raises(ValueError):
            retriever.retrieve_vector("q", top_k=0)

    def test_missing_org(self, embedder, store):
        with pytest.raises(ValueError):
            HybridRetriever(embedder, store).retrieve_hybrid("q")


class TestFailures:
    def test_embedding_failure_propagates(self):
        store = MagicMock()
        client = StubOpenAI(fail_on="q")
        retriever = HybridRetriever(
            Embedder(client, model="text-embedding-3-small", dimensions=4), store, default_org_id=ORG_ID
        )

        with pytest.raises(EmbeddingError):
            retriever.retrieve_hybrid("q")
        store.match_hybrid.assert_not_called()

    def test_ranking_failure_propagates(self):
        store = MagicMock()
        store.match_hybrid.side_effect = StoreError("timeout", provider_name="postgres")

        with pytest.raises(StoreError):
            _with_store(store).retrieve_hybrid("q")

    def test_document_lookup_failure_keeps_results(self, caplog):
        store = MagicMock()
        store.match_vector.return_value = [_match("c1", 0.9)]
        store.chunk_documents.side_effect = StoreError("lookup failed")

        results = _with_store(store).retrieve_vector("q", top_k=5)

        assert [r.chunk_id for r in results] == ["c1"]
        assert results[0].document is None
        assert "Document lookup failed" in caplog.text
