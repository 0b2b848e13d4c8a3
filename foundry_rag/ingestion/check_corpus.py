"""Corpus check for an organization.

Lists every document with its type, size and chunk count, and optionally
deletes documents that have no chunks (e.g. empty files) so they can be
ingested again.

Usage:
  python -m foundry_rag.ingestion.check_corpus --org <org-uuid> [--clean-empty]
"""
import argparse
import logging
import sys
from typing import List, Optional

from foundry_rag.config import Settings
from foundry_rag.errors import StoreError
from foundry_rag.ingestion.common import add_common_args, configure_logging, services_or_exit
from foundry_rag.store import CorpusEntry, DocumentStore

logger = logging.getLogger(__name__)


def format_report(entries: List[CorpusEntry]) -> str:
    """Human-readable per-document listing with totals."""
    if not entries:
        return "No documents found. Run ingestion first."
    lines = [f"Documents: {len(entries)}"]
    for i, e in enumerate(entries, start=1):
        lines.append(f"  {i}. {e.title} ({e.source_type}, {e.bytes or 0} bytes): {e.chunk_count} chunks")
    total_chunks = sum(e.chunk_count for e in entries)
    empty = sum(1 for e in entries if e.chunk_count == 0)
    lines.append(f"Chunks: {total_chunks} | documents without chunks: {empty}")
    return "\n".join(lines)


def check_corpus(store: DocumentStore, org_id: str, clean_empty: bool = False) -> List[CorpusEntry]:
    """Return the organization's corpus summary, after optionally deleting empty documents."""
    if clean_empty:
        removed = store.delete_empty_documents(org_id)
        for e in removed:
            logger.info("Deleted empty document %s (%s)", e.document_id, e.title)
        logger.info("Deleted %d empty document(s)", len(removed))
    return store.corpus_summary(org_id)


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    parser = argparse.ArgumentParser(description="Summarize documents and chunks stored for an organization.")
    parser.add_argument("--clean-empty", action="store_true", help="Delete documents that have no chunks")
    add_common_args(parser, settings)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    services = services_or_exit(settings)
    try:
        entries = check_corpus(services.store, args.org, clean_empty=args.clean_empty)
    except StoreError as exc:
        logger.error("Corpus check failed: %s", exc)
        return 1
    finally:
        services.close()

    print(format_report(entries))
    return 0


if __name__ == "__main__":
    sys.exit(main())
