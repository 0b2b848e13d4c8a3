"""Shared plumbing for the ingestion command-line tools.

- add_common_args: --org and --log-level flags.
- configure_logging: Root logger setup used by every tool.
- services_or_exit: build_services, exiting with status 2 on configuration errors.
"""
import argparse
import logging
import sys
import uuid

from foundry_rag.bootstrap import Services, build_services
from foundry_rag.config import Settings
from foundry_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def org_id_arg(value: str) -> str:
    """argparse type: canonical UUID string."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a valid organization id (UUID): {value!r}")


def add_common_args(parser: argparse.ArgumentParser, settings: Settings) -> None:
    parser.add_argument(
        "--org",
        type=org_id_arg,
        default=settings.DEFAULT_ORG_ID,
        help=f"Organization id (default: {settings.DEFAULT_ORG_ID})",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def services_or_exit(settings: Settings) -> Services:
    """Build services with schema initialization; exit(2) on configuration errors."""
    try:
        return build_services(settings, init_schema=True)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(EXIT_CONFIG_ERROR)
