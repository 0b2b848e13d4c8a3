"""Single-file ingestor.

Reads one UTF-8 text file, and unless identical content is already stored for
the organization, records the document, chunks it, embeds the chunks and
stores them.

Usage:
  python -m foundry_rag.ingestion.ingest_file --file docs/overview.md --org <org-uuid> [--title "Overview"]

Exit status: 0 when ingested or skipped as a duplicate, 1 when the file could
not be ingested, 2 on configuration errors.
"""
import argparse
import logging
import sys
from typing import List, Optional

from foundry_rag.config import Settings
from foundry_rag.errors import RagError
from foundry_rag.ingestion.common import add_common_args, configure_logging, services_or_exit
from foundry_rag.ingestion.pipeline import IngestOutcome

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    parser = argparse.ArgumentParser(description="Ingest a single text file into the RAG corpus.")
    parser.add_argument("--file", required=True, help="Path of the file to ingest")
    parser.add_argument("--title", default=None, help="Document title (default: file name)")
    add_common_args(parser, settings)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    logger.info("Starting ingestion for %s (org=%s)", args.file, args.org)

    services = services_or_exit(settings)
    try:
        result = services.pipeline.ingest_file(args.file, args.org, title=args.title)
    except (RagError, OSError) as exc:
        logger.error("Ingestion failed for %s: %s", args.file, exc)
        return 1
    finally:
        services.close()

    if result.outcome is IngestOutcome.INGESTED:
        logger.info("Completed: document=%s chunks=%d", result.document_id, result.chunk_count)
    elif result.outcome is IngestOutcome.SKIPPED:
        logger.info("Document already exists for org %s; nothing to do", args.org)
    else:
        logger.warning("%s is not a UTF-8 text file; nothing ingested", args.file)
    print(f"[INGEST] {args.file} -> {result.outcome.value} ({result.chunk_count} chunks)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
