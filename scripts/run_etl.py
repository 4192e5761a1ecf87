"""
Script to run the catalog ingestion pipeline once, or on a schedule
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import create_engine, create_session_maker
from core.exceptions import SetupError
from core.logging import setup_logging
from ingestion.runner import run_catalog_etl
from ingestion.scheduler import ETLScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Ingest the HTB catalog into PostgreSQL")
    parser.add_argument(
        "--max-module-id",
        type=int,
        default=None,
        help=f"Highest module id to probe (default: {settings.SCRAPER_MAX_MODULE_ID})"
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help=f"Pause after each upstream call in milliseconds (default: {settings.SCRAPER_DELAY_MS})"
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help=f"Keep running and ingest every {settings.SCRAPER_INTERVAL_HOURS} hours"
    )
    return parser.parse_args(argv)


async def run_etl(max_module_id: int = None, delay_ms: int = None) -> int:
    """Run the pipeline once. Returns the process exit status."""
    engine = create_engine()
    session_maker = create_session_maker(engine)

    try:
        stats = await run_catalog_etl(session_maker, max_module_id=max_module_id, delay_ms=delay_ms)
        logger.info(f"Run statistics: {stats.to_dict()}")
        return 0
    except SetupError as e:
        logger.error(f"Run aborted: {e}", extra={"error_context": e.to_dict()})
        return 1
    finally:
        await engine.dispose()


async def run_scheduled(max_module_id: int = None, delay_ms: int = None):
    scheduler = ETLScheduler(max_module_id=max_module_id, delay_ms=delay_ms)
    # The first run fires immediately as a scheduled job
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main(argv=None):
    args = parse_args(argv)
    setup_logging()

    if args.schedule:
        try:
            asyncio.run(run_scheduled(args.max_module_id, args.delay_ms))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        return

    sys.exit(asyncio.run(run_etl(args.max_module_id, args.delay_ms)))


if __name__ == "__main__":
    main()
