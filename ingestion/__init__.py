"""
Catalog ingestion pipeline components.

This package contains everything that moves data from the two upstream
providers into the relational catalog:

Modules:
    runner: ETL orchestrator that runs the five stages in order
    scheduler: APScheduler integration for periodic runs
    mappings: Curated module-vulnerability mappings (load and validate)

Subpackages:
    extractors: HTTP client for the catalog and lab providers
    transformers: Label normalization and machine deduplication
    loaders: PostgreSQL sink with idempotent upserts and insert-or-ignore edges

Architecture:
    Stages are strictly sequential with one outstanding request at a time:

    1. Modules & machines - scan module ids, upsert modules, units, machines
    2. Exams - fetch the exam list, upsert each exam
    3. Module-machine edges
    4. Machine tags - vulnerabilities, languages, areas of interest
    5. Module-exam edges

    Each item is processed independently; a failed item is logged and
    counted and never stops the run.

Usage:
    from ingestion.extractors.htb_client import HTBHttpClient
    from ingestion.loaders.postgres_loader import PostgresLoader
    from ingestion.runner import ETLRunner

Example:
    async with session_maker() as session:
        async with HTBHttpClient(settings.HTB_COOKIE, settings.HTB_BEARER) as client:
            runner = ETLRunner(client, PostgresLoader(session))
            stats = await runner.run()

    print(f"Processed {stats.modules_processed} modules")

Error Handling:
    All components raise exceptions from core.exceptions. Only SetupError,
    raised before stage 1, aborts a run.
"""

__all__ = [
    "ETLRunner",
    "RunStats",
    "ItemOutcome",
    "HTBHttpClient",
    "CatalogNormalizer",
    "MachineDeduplicator",
    "PostgresLoader",
]
