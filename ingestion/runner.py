# ============================================================================
# File: ingestion/runner.py
# Description: Catalog ETL orchestrator with per-item failure isolation
# ============================================================================
"""
ETL Runner - Orchestrates the five catalog ingestion stages.

Stages run strictly one after another, one outstanding request at a time:

1. Modules & machines  - scan module ids 1..ceiling, upsert modules and their
                         units, collect related machines, then fetch and upsert
                         each distinct machine once
2. Exams               - fetch the exam list once and upsert each exam
3. Module-machine edges - write every (machine, module) pair seen in stage 1
4. Machine tags        - for every stored machine, fetch tags; upsert all
                         vulnerabilities, then write vulnerability, language
                         and area-of-interest edges
5. Module-exam edges   - for every stored exam, write its required modules

An optional post-stage attaches curated module-vulnerability mappings.

Every unit of work (one module, one machine, one exam's module list, one
machine's tag fetch, one edge) is isolated: a failure is logged and counted
and the loop moves on. Only a SetupError raised by the preflight aborts a run.
"""

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.config import settings
from core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    ETLException,
    ExtractionError,
    MappingFileError,
)
from ingestion.extractors.htb_client import HTBHttpClient
from ingestion.loaders.postgres_loader import PostgresLoader
from ingestion.mappings import load_mappings, validate_mappings
from ingestion.transformers.deduplicator import MachineDeduplicator
from ingestion.transformers.normalizer import CatalogNormalizer
from schemas.upstream import ExamData, MachineTag, RelatedMachine
import logging

logger = logging.getLogger(__name__)

# Tag categories reported by the lab provider
TAG_VULNERABILITY = "Vulnerability"
TAG_AREA_OF_INTEREST = "Area of Interest"
TAG_LANGUAGE = "Language"

EDGE_TABLES = (
    "machine_modules",
    "module_exams",
    "machine_vulnerabilities",
    "machine_languages",
    "machine_areas_of_interest",
    "module_vulnerabilities",
)


class ItemOutcome(str, enum.Enum):
    """Result of one isolated unit of work"""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RunStats:
    """Counters reported at the end of a run"""

    modules_processed: int = 0
    units_processed: int = 0
    machines_processed: int = 0
    exams_processed: int = 0
    vulnerabilities_processed: int = 0
    edges_written: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(EDGE_TABLES, 0))
    modules_not_found: int = 0
    errors_encountered: int = 0
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.utcnow()
        return (end - self.started_at).total_seconds()

    def finish(self):
        self.finished_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modules_processed": self.modules_processed,
            "units_processed": self.units_processed,
            "machines_processed": self.machines_processed,
            "exams_processed": self.exams_processed,
            "vulnerabilities_processed": self.vulnerabilities_processed,
            "edges_written": dict(self.edges_written),
            "modules_not_found": self.modules_not_found,
            "errors_encountered": self.errors_encountered,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 2),
        }

    def summary_lines(self) -> List[str]:
        lines = [
            "Catalog ingestion summary",
            f"  Modules processed:         {self.modules_processed}",
            f"  Units processed:           {self.units_processed}",
            f"  Machines processed:        {self.machines_processed}",
            f"  Exams processed:           {self.exams_processed}",
            f"  Vulnerabilities processed: {self.vulnerabilities_processed}",
            f"  Modules not found:         {self.modules_not_found}",
        ]
        lines.extend(
            f"  Edges {table + ':':<27}{count}" for table, count in self.edges_written.items()
        )
        lines.append(f"  Errors encountered:        {self.errors_encountered}")
        lines.append(f"  Duration:                  {self.duration_seconds:.1f}s")
        return lines


@dataclass
class PipelineState:
    """
    Accumulators that live for one run and cross stage boundaries.

    machines and machine_module_pairs are filled by stage 1 and read by
    stage 1 (profile fetch) and stage 3. vulnerabilities and machine_tags
    are filled and drained within stage 4.
    """

    machines: MachineDeduplicator = field(default_factory=MachineDeduplicator)
    machine_module_pairs: List[Tuple[int, int]] = field(default_factory=list)
    vulnerabilities: Dict[int, str] = field(default_factory=dict)
    machine_tags: List[Tuple[int, List[MachineTag]]] = field(default_factory=list)


class ETLRunner:
    """
    Catalog ETL Orchestrator

    Responsibilities:
    - Verify configuration and connectivity before any work starts
    - Run the five stages in order
    - Isolate per-item failures and count them
    - Pace external calls with a fixed delay
    """

    def __init__(
        self,
        client: HTBHttpClient,
        loader: PostgresLoader,
        normalizer: Optional[CatalogNormalizer] = None,
        max_module_id: Optional[int] = None,
        delay_ms: Optional[int] = None,
        populate_module_vulnerabilities: Optional[bool] = None,
        mappings_file: Optional[str] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.client = client
        self.loader = loader
        self.normalizer = normalizer or CatalogNormalizer()
        self.max_module_id = max_module_id if max_module_id is not None else settings.SCRAPER_MAX_MODULE_ID
        self.delay_ms = delay_ms if delay_ms is not None else settings.SCRAPER_DELAY_MS
        self.populate_module_vulnerabilities = (
            populate_module_vulnerabilities
            if populate_module_vulnerabilities is not None
            else settings.POPULATE_MODULE_VULNERABILITIES
        )
        self.mappings_file = mappings_file or settings.MODULE_VULNERABILITY_MAPPINGS_FILE
        self._sleep = sleep
        self.stats = RunStats()

    # ==========================================================================
    # Entry points
    # ==========================================================================

    async def preflight(self):
        """
        Fail fast before stage 1.

        Raises:
            ConfigurationError: Missing credentials or invalid settings
            ConnectivityError: Database unreachable, or both providers unreachable
        """
        problems = []
        if not self.client.cookie:
            problems.append("HTB_COOKIE is not set")
        if not self.client.bearer:
            problems.append("HTB_BEARER is not set")
        if self.max_module_id < 1:
            problems.append(f"max_module_id must be >= 1 (got {self.max_module_id})")
        if self.delay_ms < 0:
            problems.append(f"delay_ms must be >= 0 (got {self.delay_ms})")
        if problems:
            raise ConfigurationError("Invalid configuration", context={"problems": problems})

        await self.loader.ping()

        reachable = await self.client.check_connectivity()
        if not any(reachable.values()):
            raise ConnectivityError(
                "No upstream provider is reachable",
                context={"providers": reachable}
            )
        for provider, ok in reachable.items():
            if not ok:
                logger.warning(f"Provider {provider} is unreachable, its stages will record errors")

    async def run(self) -> RunStats:
        """
        Run preflight and all stages.

        Returns:
            Statistics for the run

        Raises:
            SetupError: Raised by preflight; no stage has run
        """
        self.stats = RunStats()
        logger.info(
            f"Starting catalog ingestion (max_module_id={self.max_module_id}, "
            f"delay_ms={self.delay_ms})"
        )

        await self.preflight()

        state = PipelineState()

        logger.info("Stage 1/5: modules and machines")
        await self.scrape_modules_and_machines(state)

        logger.info("Stage 2/5: exams")
        await self.scrape_exams()

        logger.info("Stage 3/5: module-machine relationships")
        await self.write_machine_module_edges(state)

        logger.info("Stage 4/5: machine tags")
        await self.scrape_machine_tags(state)

        logger.info("Stage 5/5: module-exam relationships")
        await self.scrape_exam_modules()

        if self.populate_module_vulnerabilities:
            logger.info("Post-stage: module-vulnerability mappings")
            await self.apply_module_vulnerability_mappings()

        self.stats.finish()
        for line in self.stats.summary_lines():
            logger.info(line)

        return self.stats

    # ==========================================================================
    # Plumbing
    # ==========================================================================

    async def _pause(self):
        await self._sleep(self.delay_ms / 1000)

    async def _guard(self, description: str, work: Awaitable[Any]) -> Any:
        """
        Await one unit of work. Any failure is logged, counted, and
        returned as ItemOutcome.FAILED instead of propagating.
        """
        try:
            return await work
        except ETLException as e:
            self.stats.errors_encountered += 1
            logger.error(
                f"Failed {description}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
        except Exception as e:
            self.stats.errors_encountered += 1
            logger.exception(f"Unexpected error in {description}: {e}")
        return ItemOutcome.FAILED

    async def _write_edge(self, table: str, write: Awaitable[Any]) -> ItemOutcome:
        await write
        self.stats.edges_written[table] += 1
        return ItemOutcome.SUCCESS

    # ==========================================================================
    # Stage 1: modules and machines
    # ==========================================================================

    async def scrape_modules_and_machines(self, state: PipelineState) -> PipelineState:
        for module_id in range(1, self.max_module_id + 1):
            outcome = await self._guard(f"module {module_id}", self._process_module(module_id, state))
            if outcome == ItemOutcome.SKIPPED:
                self.stats.modules_not_found += 1
            await self._pause()

        logger.info(
            f"Found {len(state.machines)} unique machines "
            f"({state.machines.sightings} references across modules)"
        )

        for machine in state.machines:
            await self._guard(f"machine {machine.name}", self._process_machine(machine))
            await self._pause()

        return state

    async def _process_module(self, module_id: int, state: PipelineState) -> ItemOutcome:
        data = await self.client.fetch_module(module_id)
        if data is None:
            return ItemOutcome.SKIPPED

        module = self.normalizer.module(data)
        await self.loader.upsert_module(module)
        self.stats.modules_processed += 1

        for machine in data.related_machines:
            state.machines.add(machine)
            state.machine_module_pairs.append((machine.id, module.id))

        units = self.normalizer.units(data.sections, module.id)
        self.stats.units_processed += await self.loader.upsert_units(units)
        return ItemOutcome.SUCCESS

    async def _process_machine(self, reference: RelatedMachine) -> ItemOutcome:
        profile = await self.client.fetch_machine_profile(reference.name)
        if profile is None:
            raise ExtractionError(
                f"No profile data for machine {reference.name}",
                context={"machine_id": reference.id, "machine_name": reference.name}
            )

        machine = self.normalizer.machine(reference, profile)
        await self.loader.upsert_machine(machine)
        self.stats.machines_processed += 1
        return ItemOutcome.SUCCESS

    # ==========================================================================
    # Stage 2: exams
    # ==========================================================================

    async def scrape_exams(self):
        exams = await self._guard("exam list", self.client.fetch_exams())
        if exams is ItemOutcome.FAILED:
            return

        logger.info(f"Found {len(exams)} exams")
        for exam in exams:
            await self._guard(f"exam {exam.id}", self._process_exam(exam))

    async def _process_exam(self, data: ExamData) -> ItemOutcome:
        await self.loader.upsert_exam(self.normalizer.exam(data))
        self.stats.exams_processed += 1
        return ItemOutcome.SUCCESS

    # ==========================================================================
    # Stage 3: module-machine edges
    # ==========================================================================

    async def write_machine_module_edges(self, state: PipelineState):
        pairs = list(dict.fromkeys(state.machine_module_pairs))
        logger.info(f"Writing {len(pairs)} machine-module relationships")

        for machine_id, module_id in pairs:
            await self._guard(
                f"machine-module edge ({machine_id}, {module_id})",
                self._write_edge(
                    "machine_modules", self.loader.insert_machine_module(machine_id, module_id)
                )
            )

    # ==========================================================================
    # Stage 4: machine tags
    # ==========================================================================

    async def scrape_machine_tags(self, state: PipelineState):
        machine_ids = await self._guard("machine id list", self.loader.all_machine_ids())
        if machine_ids is ItemOutcome.FAILED:
            return

        logger.info(f"Fetching tags for {len(machine_ids)} machines")
        for machine_id in machine_ids:
            tags = await self._guard(f"tags for machine {machine_id}", self.client.fetch_machine_tags(machine_id))
            if tags is not ItemOutcome.FAILED and tags:
                for tag in tags:
                    if tag.category == TAG_VULNERABILITY:
                        state.vulnerabilities[tag.id] = tag.name
                state.machine_tags.append((machine_id, tags))
            await self._pause()

        # Vulnerabilities must exist before any edge references them
        stored = set()
        for vulnerability_id, name in state.vulnerabilities.items():
            outcome = await self._guard(
                f"vulnerability {vulnerability_id}",
                self._process_vulnerability(vulnerability_id, name)
            )
            if outcome == ItemOutcome.SUCCESS:
                stored.add(vulnerability_id)

        for machine_id, tags in state.machine_tags:
            await self._write_tag_edges(machine_id, tags, stored)

    async def _process_vulnerability(self, vulnerability_id: int, name: str) -> ItemOutcome:
        await self.loader.upsert_vulnerability(self.normalizer.vulnerability(vulnerability_id, name))
        self.stats.vulnerabilities_processed += 1
        return ItemOutcome.SUCCESS

    async def _write_tag_edges(self, machine_id: int, tags: List[MachineTag], stored_vulnerabilities):
        for tag in tags:
            if tag.category == TAG_VULNERABILITY:
                if tag.id not in stored_vulnerabilities:
                    logger.warning(
                        f"Skipping vulnerability edge ({machine_id}, {tag.id}): "
                        f"vulnerability was not stored"
                    )
                    continue
                table = "machine_vulnerabilities"
                write = self.loader.insert_machine_vulnerability(machine_id, tag.id)
            elif tag.category == TAG_AREA_OF_INTEREST:
                table = "machine_areas_of_interest"
                write = self.loader.insert_machine_area_of_interest(machine_id, tag.name)
            elif tag.category == TAG_LANGUAGE:
                table = "machine_languages"
                write = self.loader.insert_machine_language(machine_id, tag.name)
            else:
                logger.warning(
                    f"Ignoring tag {tag.id} ({tag.name}) on machine {machine_id}: "
                    f"unknown category {tag.category!r}"
                )
                continue

            await self._guard(f"{table} edge for machine {machine_id}", self._write_edge(table, write))

    # ==========================================================================
    # Stage 5: module-exam edges
    # ==========================================================================

    async def scrape_exam_modules(self):
        exam_ids = await self._guard("exam id list", self.loader.all_exam_ids())
        if exam_ids is ItemOutcome.FAILED:
            return

        logger.info(f"Fetching required modules for {len(exam_ids)} exams")
        for exam_id in exam_ids:
            modules = await self._guard(f"modules for exam {exam_id}", self.client.fetch_exam_modules(exam_id))
            if modules is not ItemOutcome.FAILED:
                for module in modules:
                    await self._guard(
                        f"module-exam edge ({module.id}, {exam_id})",
                        self._write_edge("module_exams", self.loader.insert_module_exam(module.id, exam_id))
                    )
            await self._pause()

    # ==========================================================================
    # Post-stage: module-vulnerability mappings
    # ==========================================================================

    async def apply_module_vulnerability_mappings(self):
        if not self.mappings_file:
            logger.warning("Module-vulnerability mappings enabled but no mappings file is configured")
            return

        try:
            mappings = load_mappings(self.mappings_file)
        except MappingFileError as e:
            self.stats.errors_encountered += 1
            logger.error(f"Skipping mappings: {e.message}", extra={"error_context": e.to_dict()})
            return

        module_ids = await self._guard("module id list", self.loader.all_module_ids())
        vulnerability_ids = await self._guard("vulnerability id list", self.loader.all_vulnerability_ids())
        if ItemOutcome.FAILED in (module_ids, vulnerability_ids):
            return

        report = validate_mappings(mappings, module_ids, vulnerability_ids)
        for problem in report.errors:
            self.stats.errors_encountered += 1
            logger.error(f"Invalid mapping: {problem}")

        for module_id, vulnerability_id in report.pairs():
            await self._guard(
                f"module-vulnerability edge ({module_id}, {vulnerability_id})",
                self._write_edge(
                    "module_vulnerabilities",
                    self.loader.insert_module_vulnerability(module_id, vulnerability_id)
                )
            )


async def run_catalog_etl(
    session_maker,
    max_module_id: Optional[int] = None,
    delay_ms: Optional[int] = None
) -> RunStats:
    """
    Run the pipeline once with credentials from settings.

    Raises:
        SetupError: Preflight failed
    """
    async with session_maker() as session:
        async with HTBHttpClient(settings.HTB_COOKIE, settings.HTB_BEARER) as client:
            runner = ETLRunner(
                client=client,
                loader=PostgresLoader(session),
                max_module_id=max_module_id,
                delay_ms=delay_ms
            )
            return await runner.run()
