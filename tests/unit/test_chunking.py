"""Unit tests for the token-bounded sliding-window chunker."""
import logging

import pytest

from foundry_rag.chunking import Chunker, chunk_text, count_tokens, get_encoding

LONG_TEXT = " ".join(
    f"Paragraph {i}: the deployment pipeline rotates certificates and reloads the ingress controller."
    for i in range(40)
)


class TestParameters:
    """Invalid window parameters are rejected before any tokenization."""

    def test_rejects_non_positive_chunk_size(self):
        with pytest.raises(ValueError):
            chunk_text("hello", chunk_tokens=0, overlap_tokens=0)

    def test_rejects_negative_overlap(self):
        with pytest.raises(ValueError):
            chunk_text("hello", chunk_tokens=10, overlap_tokens=-1)

    def test_empty_text_yields_no_chunks(self):
        assert chunk_text("", chunk_tokens=10, overlap_tokens=2) == []


class TestWindows:
    """Windows cover the token stream, overlap by the configured amount, and are bounded."""

    def test_chunks_are_bounded_and_indexed(self):
        chunks = chunk_text(LONG_TEXT, chunk_tokens=50, overlap_tokens=10)

        assert len(chunks) > 1
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(1 <= c.token_count <= 50 for c in chunks)
        assert all(c.token_count == 50 for c in chunks[:-1])
        assert all(c.content for c in chunks)

    def test_consecutive_windows_share_overlap_tokens(self):
        enc = get_encoding()
        chunks = chunk_text(LONG_TEXT, chunk_tokens=50, overlap_tokens=10)

        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start_token - prev.start_token == 40
            assert prev.end_token - nxt.start_token == 10
            shared = enc.decode(enc.encode_ordinary(LONG_TEXT)[nxt.start_token : prev.end_token]).strip()
            assert shared and shared in prev.content and shared in nxt.content

    def test_windows_cover_every_token(self):
        n = count_tokens(LONG_TEXT)
        chunks = chunk_text(LONG_TEXT, chunk_tokens=50, overlap_tokens=10)

        assert chunks[0].start_token == 0
        assert chunks[-1].end_token == n
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start_token <= prev.end_token

    def test_chunking_is_deterministic(self):
        assert chunk_text(LONG_TEXT, 64, 16) == chunk_text(LONG_TEXT, 64, 16)

    def test_short_text_is_a_single_chunk(self):
        chunks = chunk_text("A short note.", chunk_tokens=900, overlap_tokens=150)

        assert len(chunks) == 1
        assert chunks[0].content == "A short note."
        assert chunks[0].token_count == count_tokens("A short note.")

    def test_overlap_not_smaller_than_window_emits_one_chunk(self, caplog):
        with caplog.at_level(logging.WARNING, logger="foundry_rag.chunking"):
            chunks = chunk_text(LONG_TEXT, chunk_tokens=20, overlap_tokens=20)

        assert len(chunks) == 1
        assert chunks[0].token_count == 20
        assert "single chunk" in caplog.text


class TestDocumentSizes:
    """Default production window (900 tokens, 150 overlap) on documents of known size."""

    def test_2400_token_document(self):
        text = "hello" + " hello" * 2399
        assert count_tokens(text) == 2400

        chunks = chunk_text(text, chunk_tokens=900, overlap_tokens=150)

        assert [c.index for c in chunks] == [0, 1, 2]
        assert chunks[0].token_count == 900
        assert chunks[1].token_count == 900
        assert chunks[2].token_count <= 900
        assert chunks[2].end_token == 2400

    def test_last_chunk_may_be_short(self):
        text = "hello" + " hello" * 2099
        assert count_tokens(text) == 2100

        chunks = chunk_text(text, chunk_tokens=900, overlap_tokens=150)

        assert [c.token_count for c in chunks] == [900, 900, 600]


class _BrokenDecoder:
    """Encoding whose decode always fails."""

    def encode_ordinary(self, text):
        return list(range(len(text.split())))

    def decode(self, tokens):
        raise KeyError("unknown token")


class TestDecodeFailure:
    def test_undecodable_window_yields_empty_content(self, caplog):
        with caplog.at_level(logging.WARNING, logger="foundry_rag.chunking"):
            chunks = chunk_text("a b c d e f", chunk_tokens=4, overlap_tokens=1, encoding=_BrokenDecoder())

        assert [c.token_count for c in chunks] == [4, 3]
        assert all(c.content == "" for c in chunks)
        assert "Failed to decode" in caplog.text


class TestChunker:
    def test_chunker_binds_parameters(self):
        chunker = Chunker(chunk_tokens=50, overlap_tokens=10)
        assert chunker.chunk(LONG_TEXT) == chunk_text(LONG_TEXT, 50, 10)

    @pytest.mark.parametrize("chunk_tokens,overlap_tokens", [(0, 0), (-5, 0), (10, -1)])
    def test_invalid_parameters_fail_on_construction(self, chunk_tokens, overlap_tokens):
        with pytest.raises(ValueError):
            Chunker(chunk_tokens=chunk_tokens, overlap_tokens=overlap_tokens)
