"""File and directory ingestion.

Per file: read bytes -> SHA-256 -> skip if (org_id, hash) exists -> insert the
document row -> chunk -> embed in bounded sub-batches -> insert all chunks in
one write.

Directory ingestion walks a tree (skipping hidden and dependency-manager
directories), filters by an extension allow-list, and keeps going past
per-file failures, returning aggregate counts.

Re-ingesting identical bytes for the same organization is a no-op ("skipped").
If a file fails after its document row was written, the row is deleted again
so the content can be retried later.
"""
import enum
import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, List, Optional, Union

from foundry_rag.chunking import Chunker, TextChunk
from foundry_rag.embedding import Embedder
from foundry_rag.errors import IngestionError, RagError
from foundry_rag.obs import span
from foundry_rag.store import DocumentStore, NewChunk, NewDocument

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".md", ".txt", ".html"})
SKIP_DIRS = frozenset({"node_modules", "bower_components", "vendor", "__pycache__", "site-packages"})
DEFAULT_EMBED_BATCH_SIZE = 100

MIME_TYPES = {
    "md": "text/markdown",
    "txt": "text/plain",
    "html": "text/html",
}


class IngestOutcome(str, enum.Enum):
    INGESTED = "ingested"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"


@dataclass
class IngestResult:
    """Outcome of ingesting one file."""
    outcome: IngestOutcome
    path: str
    document_id: Optional[str] = None
    chunk_count: int = 0


@dataclass
class IngestionStats:
    """Aggregate counts of a directory ingestion run."""
    total: int = 0
    ingested: int = 0
    skipped: int = 0
    unsupported: int = 0
    errors: int = 0
    chunks: int = 0

    def record(self, result: IngestResult) -> None:
        if result.outcome is IngestOutcome.INGESTED:
            self.ingested += 1
            self.chunks += result.chunk_count
        elif result.outcome is IngestOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.unsupported += 1


def sha256_hex(data: bytes) -> str:
    """Hex SHA-256 of the exact bytes."""
    return hashlib.sha256(data).hexdigest()


def source_type_for(path: Path) -> str:
    """File category from the extension ("md", "txt", ...); "txt" when there is none."""
    return path.suffix.lower().lstrip(".") or "txt"


def walk_files(root: Path) -> Iterator[Path]:
    """Yield every file under root in sorted order, pruning hidden and dependency directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS)
        for name in sorted(filenames):
            yield Path(dirpath) / name


class IngestionPipeline:
    """Ingests files into a DocumentStore.

    Args:
        store: Persistence for documents and chunks.
        embedder: Embeds chunk texts.
        chunker: Splits document text into token windows.
        embed_batch_size: Chunks per embedding request.
        max_workers: Files ingested concurrently by ingest_directory; 1 is sequential.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: Embedder,
        chunker: Chunker,
        embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        max_workers: int = 1,
    ):
        self._store = store
        self._embedder = embedder
        self._chunker = chunker
        self._embed_batch_size = max(1, embed_batch_size)
        self._max_workers = max(1, max_workers)

    @classmethod
    def from_settings(cls, settings, store: DocumentStore, embedder: Embedder) -> "IngestionPipeline":
        return cls(
            store=store,
            embedder=embedder,
            chunker=Chunker.from_settings(settings),
            embed_batch_size=settings.EMBED_BATCH_SIZE,
            max_workers=settings.INGEST_MAX_WORKERS,
        )

    def ingest_file(
        self,
        path: Union[str, Path],
        org_id: str,
        title: Optional[str] = None,
        root: Optional[Union[str, Path]] = None,
    ) -> IngestResult:
        """Ingest a single UTF-8 text file.

        Args:
            path: File to read.
            org_id: Owning organization.
            title: Document title; defaults to the file name.
            root: Base for the relative_path chunk metadata; defaults to the
                current working directory.

        Returns:
            IngestResult: ingested (with document id and chunk count), skipped
                (same content already stored for org_id) or unsupported (not UTF-8).

        Raises:
            OSError: If the file cannot be read.
            IngestionError: If chunking, embedding or storage fails; the cause is chained.
        """
        path = Path(path)
        raw = path.read_bytes()
        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.info("Unsupported (not UTF-8): %s", path)
            return IngestResult(IngestOutcome.UNSUPPORTED, str(path))

        digest = sha256_hex(raw)
        with span("ingest.file", {"path": str(path), "org_id": org_id}):
            try:
                if self._store.find_document(org_id, digest):
                    logger.info("Skip %s (duplicate, sha256=%s...)", path.name, digest[:8])
                    return IngestResult(IngestOutcome.SKIPPED, str(path))

                stype = source_type_for(path)
                doc_id = self._store.insert_document(
                    NewDocument(
                        org_id=org_id,
                        title=title or path.name,
                        source_url=str(path),
                        source_type=stype,
                        mime=MIME_TYPES.get(stype, f"text/{stype}"),
                        sha256=digest,
                        bytes=len(raw),
                    )
                )
            except RagError as exc:
                raise IngestionError(f"Failed to register {path}: {exc}", path=str(path)) from exc

            if doc_id is None:
                # Lost a race with a concurrent ingester of the same content.
                logger.info("Skip %s (duplicate on insert)", path.name)
                return IngestResult(IngestOutcome.SKIPPED, str(path))

            try:
                count = self._store_chunks(doc_id, org_id, path, stype, content, root)
            except RagError as exc:
                self._discard(doc_id, path)
                raise IngestionError(f"Failed to ingest {path}: {exc}", path=str(path)) from exc
            except Exception:
                self._discard(doc_id, path)
                raise

        if count == 0:
            logger.warning("%s produced no chunks; document %s is stored without chunks", path.name, doc_id)
        else:
            logger.info("OK %s (%d chunks, document %s)", path.name, count, doc_id)
        return IngestResult(IngestOutcome.INGESTED, str(path), document_id=doc_id, chunk_count=count)

    def _store_chunks(
        self,
        doc_id: str,
        org_id: str,
        path: Path,
        source_type: str,
        content: str,
        root: Optional[Union[str, Path]],
    ) -> int:
        pieces = self._drop_blank(self._chunker.chunk(content), path)
        if not pieces:
            return 0

        base = Path(root) if root is not None else Path.cwd()
        try:
            relative_path = os.path.relpath(path, base)
        except ValueError:
            # Different drive on Windows
            relative_path = str(path)
        metadata = {"file_name": path.name, "source_type": source_type, "relative_path": relative_path}

        vectors: List[List[float]] = []
        tokens_used = 0
        n_batches = (len(pieces) + self._embed_batch_size - 1) // self._embed_batch_size
        for b, start in enumerate(range(0, len(pieces), self._embed_batch_size), start=1):
            batch = pieces[start : start + self._embed_batch_size]
            logger.debug("Embedding batch %d/%d for %s", b, n_batches, path.name)
            result = self._embedder.embed_batch_with_usage([p.content for p in batch])
            vectors.extend(result.vectors)
            tokens_used += result.total_tokens

        rows = [
            NewChunk(
                org_id=org_id,
                doc_id=doc_id,
                chunk_index=p.index,
                content=p.content,
                token_count=p.token_count,
                embedding=vec,
                metadata=dict(metadata),
            )
            for p, vec in zip(pieces, vectors)
        ]
        self._store.insert_chunks(rows)
        logger.debug("Embedded %d chunks of %s using %d provider tokens", len(rows), path.name, tokens_used)
        return len(rows)

    @staticmethod
    def _drop_blank(pieces: List[TextChunk], path: Path) -> List[TextChunk]:
        """Remove windows with no text (whitespace-only or undecodable), re-indexing the rest."""
        kept = [p for p in pieces if p.content.strip()]
        if len(kept) != len(pieces):
            logger.warning("Dropped %d empty chunk(s) of %s", len(pieces) - len(kept), path.name)
        return [replace(p, index=i) for i, p in enumerate(kept)]

    def _discard(self, doc_id: str, path: Path) -> None:
        try:
            self._store.delete_document(doc_id)
        except RagError as exc:
            logger.error("Could not remove partial document %s for %s: %s", doc_id, path, exc)

    def ingest_directory(self, root: Union[str, Path], org_id: str) -> IngestionStats:
        """Ingest every supported file under root.

        Args:
            root: Directory to walk.
            org_id: Owning organization.

        Returns:
            IngestionStats: total files seen and per-outcome counts. Files with
                unsupported extensions or non-UTF-8 content count as unsupported;
                files whose ingestion raised count as errors.
        """
        root = Path(root)
        stats = IngestionStats()
        candidates: List[Path] = []
        for path in walk_files(root):
            stats.total += 1
            if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
                logger.info("Skip %s (unsupported: %s)", path.name, path.suffix or "no extension")
                stats.unsupported += 1
                continue
            candidates.append(path)

        if self._max_workers == 1:
            for path in candidates:
                self._ingest_counted(path, org_id, root, stats)
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                futures = {pool.submit(self.ingest_file, p, org_id, None, root): p for p in candidates}
                for fut in as_completed(futures):
                    path = futures[fut]
                    try:
                        stats.record(fut.result())
                    except (RagError, OSError) as exc:
                        logger.error("Error %s: %s", path, exc)
                        stats.errors += 1
        return stats

    def _ingest_counted(self, path: Path, org_id: str, root: Path, stats: IngestionStats) -> None:
        try:
            stats.record(self.ingest_file(path, org_id, root=root))
        except (RagError, OSError) as exc:
            logger.error("Error %s: %s", path, exc)
            stats.errors += 1
