"""Directory ingestor.

Recursively ingests every .md, .txt and .html file under a root directory,
skipping hidden and dependency-manager directories. Per-file failures are
counted and logged; they do not stop the run or change the exit status.

Usage:
  python -m foundry_rag.ingestion.ingest_dir --root ../../docs --org <org-uuid> [--workers 4]
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from foundry_rag.config import Settings
from foundry_rag.ingestion.common import add_common_args, configure_logging, services_or_exit
from foundry_rag.ingestion.pipeline import SUPPORTED_EXTENSIONS

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    parser = argparse.ArgumentParser(description="Ingest all supported files under a directory.")
    parser.add_argument("--root", required=True, help="Directory to ingest")
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.INGEST_MAX_WORKERS,
        help="Files ingested in parallel (default: %(default)s)",
    )
    add_common_args(parser, settings)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    root = Path(args.root)
    if not root.is_dir():
        logger.error("Not a directory: %s", root)
        return 2
    logger.info("Root: %s | org: %s | supported: %s", root, args.org, ", ".join(sorted(SUPPORTED_EXTENSIONS)))

    settings.INGEST_MAX_WORKERS = max(1, args.workers)
    services = services_or_exit(settings)
    try:
        stats = services.pipeline.ingest_directory(root, args.org)
    finally:
        services.close()

    logger.info("=== Summary ===")
    logger.info("Total files found: %d", stats.total)
    logger.info("Successfully ingested: %d (%d chunks)", stats.ingested, stats.chunks)
    logger.info("Skipped (duplicate): %d", stats.skipped)
    logger.info("Skipped (unsupported): %d", stats.unsupported)
    logger.info("Errors: %d", stats.errors)
    print(
        f"[INGEST-DIR] {root} -> total={stats.total} ingested={stats.ingested} skipped={stats.skipped} "
        f"unsupported={stats.unsupported} errors={stats.errors}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
