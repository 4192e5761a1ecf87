import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import create_engine, create_session_maker
from core.exceptions import SetupError
from ingestion.runner import run_catalog_etl

logger = logging.getLogger(__name__)


class ETLScheduler:
    def __init__(self, interval_hours: int = None, max_module_id: int = None, delay_ms: int = None):
        self.scheduler = AsyncIOScheduler()
        self.engine = create_engine()
        self.SessionLocal = create_session_maker(self.engine)
        self.interval_hours = interval_hours or settings.SCRAPER_INTERVAL_HOURS
        self.max_module_id = max_module_id
        self.delay_ms = delay_ms

    async def run_etl_job(self):
        """Job to run the catalog pipeline"""
        logger.info("Scheduler: Starting catalog ingestion job")
        try:
            stats = await run_catalog_etl(
                self.SessionLocal,
                max_module_id=self.max_module_id,
                delay_ms=self.delay_ms
            )
            logger.info(
                f"Scheduler: Job finished with {stats.errors_encountered} errors "
                f"in {stats.duration_seconds:.1f}s"
            )
        except SetupError as e:
            logger.error(f"Scheduler: Run aborted - {e}", extra={"error_context": e.to_dict()})
        except Exception as e:
            logger.error(f"Scheduler: Catalog ingestion job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id="catalog_etl_job",
            replace_existing=True,
            max_instances=1,  # Runs must never overlap, including the first
            coalesce=True,
            next_run_time=datetime.now()
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (every {self.interval_hours}h)")

    async def stop(self):
        self.scheduler.shutdown()
        await self.engine.dispose()
        logger.info("ETL Scheduler stopped")
