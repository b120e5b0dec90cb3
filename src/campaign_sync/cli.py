"""Campaign sync command-line entry point.

Usage:
    campaign-sync                          # Sync using environment / .env config
    campaign-sync --mock-api --mock-db     # Offline run against the in-process mock
    campaign-sync --page-limit 50          # Larger pages

Exit codes:
    0   sync completed (individual campaign failures included)
    1   fatal error (bad config, database unreachable, pagination failure)
    130 interrupted by user
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

import httpx
from pydantic import ValidationError

from .__version__ import __version__
from .config import SyncConfig, get_config
from .connectors.ad_platform.client import AdPlatformClient
from .logging_config import configure_logging
from .models import SyncOutcome
from .storage import CampaignSink, build_sink
from .sync import CampaignSyncEngine

logger = logging.getLogger("campaign_sync.cli")

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="campaign-sync",
        description="Sync Ad Platform campaigns into the local database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration:
  Set credentials and connection settings in the environment or .env:
    AD_PLATFORM_API_URL=http://localhost:3001
    API_USERNAME=user@example.com
    API_PASSWORD=your_password
    DB_HOST=localhost  DB_PORT=5432  DB_NAME=mixoads  DB_USER=postgres  DB_PASSWORD=...
    USE_MOCK_API=true / USE_MOCK_DB=true for offline runs
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--mock-api",
        action="store_true",
        help="Serve the API from the in-process mock (USE_MOCK_API)",
    )
    parser.add_argument(
        "--mock-db",
        action="store_true",
        help="Store campaigns in memory instead of Postgres (USE_MOCK_DB)",
    )
    parser.add_argument(
        "--page-limit",
        type=int,
        metavar="N",
        help="Campaigns requested per page (PAGE_LIMIT)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Override LOG_FORMAT",
    )
    return parser


def load_config(args: argparse.Namespace) -> SyncConfig:
    """Load configuration, applying command-line overrides on top of the environment."""
    overrides: dict[str, Any] = {}
    if args.mock_api:
        overrides["use_mock_api"] = True
    if args.mock_db:
        overrides["use_mock_db"] = True
    if args.page_limit is not None:
        overrides["page_limit"] = args.page_limit
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format

    if not overrides:
        return get_config()
    return SyncConfig(**overrides)


async def run_sync(
    config: SyncConfig,
    transport: httpx.AsyncBaseTransport | None = None,
    sink: CampaignSink | None = None,
) -> SyncOutcome:
    """Build client and sink from config and run one sync."""
    async with AdPlatformClient.from_config(config, transport=transport) as client:
        engine = CampaignSyncEngine(client, sink or build_sink(config), config)
        return await engine.run()


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ValidationError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    configure_logging(config.log_level, config.log_format)

    try:
        asyncio.run(run_sync(config))
    except KeyboardInterrupt:
        logger.warning("sync_interrupted")
        print("\nSync interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(
            "application_failed",
            extra={"error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        return EXIT_FAILURE

    logger.info("application_finished")
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
