#!/usr/bin/env python3
"""
Check a module-vulnerability mappings file against the stored catalog.

Prints totals, valid mappings and coverage. Exits 1 if the file is invalid
or references a module or vulnerability that does not exist.

Usage:
    python scripts/validate_mappings.py [path/to/mappings.json]
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
from core.exceptions import ETLException
from core.logging import setup_logging
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.mappings import load_mappings, validate_mappings

logger = logging.getLogger(__name__)


async def validate(file_path: str) -> int:
    mappings = load_mappings(file_path)

    engine = create_engine()
    try:
        async with create_session_maker(engine)() as session:
            loader = PostgresLoader(session)
            module_ids = await loader.all_module_ids()
            vulnerability_ids = await loader.all_vulnerability_ids()
    finally:
        await engine.dispose()

    report = validate_mappings(mappings, module_ids, vulnerability_ids)

    for line in report.summary_lines():
        print(line)

    if not report.is_valid:
        print("\nInvalid references:")
        for problem in report.errors:
            print(f"  - {problem}")
        return 1

    print("\nAll mappings are valid")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "file",
        nargs="?",
        default=settings.MODULE_VULNERABILITY_MAPPINGS_FILE,
        help="Mappings file (default: MODULE_VULNERABILITY_MAPPINGS_FILE)"
    )
    args = parser.parse_args(argv)
    setup_logging()

    if not args.file:
        print("No mappings file given and MODULE_VULNERABILITY_MAPPINGS_FILE is not set")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(validate(args.file)))
    except ETLException as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
