"""Token-bounded sliding-window chunking.

Provides:
- get_encoding: Cached tiktoken encoding lookup (cl100k_base by default, the BPE
  used by OpenAI's text-embedding-3 models, so chunk sizes match provider accounting).
- chunk_text: Split text into overlapping windows of at most chunk_tokens tokens.
- count_tokens: Token count of a string under the same encoding.
- Chunker: chunk_text bound to fixed parameters, as used by the ingestion pipeline.

Chunking is pure and deterministic: the same text and parameters always yield
the same chunk sequence.
"""
import functools
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


class TokenEncoding(Protocol):
    """The subset of tiktoken.Encoding used for chunking."""

    def encode_ordinary(self, text: str) -> List[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


@dataclass(frozen=True)
class TextChunk:
    """One window of a document.

    Attributes:
        content: Decoded, whitespace-trimmed window text.
        token_count: Number of tokens in the window (before trimming).
        index: Zero-based position of the window within the document.
        start_token: Offset of the first token of the window in the token stream.
        end_token: Offset one past the last token of the window.
    """
    content: str
    token_count: int
    index: int
    start_token: int
    end_token: int


@functools.lru_cache(maxsize=8)
def get_encoding(name: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    """Return the named tiktoken encoding, loading it once per process."""
    return tiktoken.get_encoding(name)


def _decode_window(encoding: TokenEncoding, tokens: Sequence[int], index: int) -> str:
    try:
        return encoding.decode(tokens)
    except (KeyError, ValueError) as exc:
        logger.warning("Failed to decode token window %d (%d tokens): %s", index, len(tokens), exc)
        return ""


def chunk_text(
    text: str,
    chunk_tokens: int,
    overlap_tokens: int,
    encoding: Optional[TokenEncoding] = None,
) -> List[TextChunk]:
    """Split text into overlapping, token-bounded chunks.

    Args:
        text: Input document text.
        chunk_tokens: Window size in tokens.
        overlap_tokens: Tokens shared between consecutive windows.
        encoding: Tokenizer to use; defaults to the cl100k_base encoding.

    Returns:
        List[TextChunk]: Chunks in left-to-right order with contiguous indices.
            Empty input yields an empty list.

    Raises:
        ValueError: If chunk_tokens < 1 or overlap_tokens < 0.

    Notes:
        The window advances by chunk_tokens - overlap_tokens and stops once it
        reaches the end of the token stream, so only the last chunk may be short.
        When overlap_tokens >= chunk_tokens exactly one chunk is produced.
    """
    if chunk_tokens < 1:
        raise ValueError(f"chunk_tokens must be positive, got {chunk_tokens}")
    if overlap_tokens < 0:
        raise ValueError(f"overlap_tokens must be non-negative, got {overlap_tokens}")
    if not text:
        return []

    enc = encoding if encoding is not None else get_encoding()
    tokens = enc.encode_ordinary(text)
    if not tokens:
        return []

    step = chunk_tokens - overlap_tokens
    if step <= 0:
        logger.warning(
            "overlap_tokens (%d) >= chunk_tokens (%d); emitting a single chunk", overlap_tokens, chunk_tokens
        )

    chunks: List[TextChunk] = []
    start = 0
    n = len(tokens)
    while start < n:
        end = min(n, start + chunk_tokens)
        window = tokens[start:end]
        chunks.append(
            TextChunk(
                content=_decode_window(enc, window, len(chunks)).strip(),
                token_count=len(window),
                index=len(chunks),
                start_token=start,
                end_token=end,
            )
        )
        if end == n or step <= 0:
            break
        start += step
    return chunks


def count_tokens(text: str, encoding: Optional[TokenEncoding] = None) -> int:
    """Number of tokens text encodes to."""
    enc = encoding if encoding is not None else get_encoding()
    return len(enc.encode_ordinary(text))


class Chunker:
    """chunk_text with fixed window parameters and encoding.

    Raises:
        ValueError: On construction, if chunk_tokens < 1 or overlap_tokens < 0.
    """

    def __init__(self, chunk_tokens: int, overlap_tokens: int, encoding: Optional[TokenEncoding] = None):
        if chunk_tokens < 1:
            raise ValueError(f"chunk_tokens must be positive, got {chunk_tokens}")
        if overlap_tokens < 0:
            raise ValueError(f"overlap_tokens must be non-negative, got {overlap_tokens}")
        self.chunk_tokens = chunk_tokens
        self.overlap_tokens = overlap_tokens
        self._encoding = encoding

    @classmethod
    def from_settings(cls, settings) -> "Chunker":
        return cls(
            chunk_tokens=settings.CHUNK_TOKENS,
            overlap_tokens=settings.CHUNK_OVERLAP,
            encoding=get_encoding(settings.TOKENIZER_ENCODING),
        )

    def chunk(self, text: str) -> List[TextChunk]:
        return chunk_text(text, self.chunk_tokens, self.overlap_tokens, encoding=self._encoding)
