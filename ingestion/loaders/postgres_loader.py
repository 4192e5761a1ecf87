"""
Load normalized catalog records into PostgreSQL with upsert logic (idempotency)
"""

from typing import Any, Dict, List, Sequence, Type
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from core.exceptions import ConnectivityError, DatabaseError, LoadError, UpsertError
from models import (
    Exam,
    Machine,
    MachineAreaOfInterest,
    MachineLanguage,
    MachineModule,
    MachineVulnerability,
    Module,
    ModuleExam,
    ModuleVulnerability,
    Unit,
    Vulnerability,
)
from schemas.normalized import (
    ExamCreate,
    MachineCreate,
    ModuleCreate,
    UnitCreate,
    VulnerabilityCreate,
)
import logging

logger = logging.getLogger(__name__)


class PostgresLoader:
    """
    Relational sink for the catalog schema. The only component that writes.

    Ensures:
    - Primary records are keyed by the upstream id and upserted
      (INSERT ... ON CONFLICT DO UPDATE of every mutable column)
    - Edges are insert-or-ignore (INSERT ... ON CONFLICT DO NOTHING)
    - Every write commits on its own, so a failed write rolls back only itself
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ==========================================================================
    # Write plumbing
    # ==========================================================================

    @staticmethod
    def _upsert_statement(model: Type, rows: Sequence[Dict[str, Any]], key_columns: Sequence[str]):
        stmt = insert(model).values(list(rows))
        mutable = [column for column in rows[0] if column not in key_columns]
        return stmt.on_conflict_do_update(
            index_elements=list(key_columns),
            set_={column: stmt.excluded[column] for column in mutable}
        )

    @staticmethod
    def _edge_statement(model: Type, **values):
        return insert(model).values(**values).on_conflict_do_nothing()

    async def _execute(self, stmt, error_cls: Type[LoadError], context: Dict[str, Any]):
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise error_cls(
                f"Write to {context.get('table_name')} failed",
                context=context,
                original_exception=e
            )

    async def _select_ids(self, column) -> List[int]:
        table_name = column.class_.__tablename__
        try:
            result = await self.db.execute(select(column).order_by(column))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(
                f"Failed to read ids from {table_name}",
                context={"operation": "SELECT", "table_name": table_name},
                original_exception=e
            )

    # ==========================================================================
    # Primary records
    # ==========================================================================

    async def upsert_module(self, module: ModuleCreate):
        stmt = self._upsert_statement(Module, [module.dict()], ["id"])
        await self._execute(stmt, UpsertError, {"table_name": "modules", "record_id": module.id})
        logger.info(f"Module {module.id} ({module.name}) upserted")

    async def upsert_units(self, units: List[UnitCreate]) -> int:
        """
        Upsert all units of one module in a single statement.

        A repeated (id, module_id) keeps only its last occurrence; PostgreSQL
        rejects an ON CONFLICT DO UPDATE that touches the same row twice.
        """
        if not units:
            return 0

        rows = list({(unit.id, unit.module_id): unit.dict() for unit in units}.values())
        stmt = self._upsert_statement(Unit, rows, ["id", "module_id"])
        await self._execute(
            stmt,
            UpsertError,
            {"table_name": "units", "record_id": units[0].module_id, "unit_count": len(rows)}
        )
        logger.debug(f"Upserted {len(rows)} units for module {units[0].module_id}")
        return len(rows)

    async def upsert_machine(self, machine: MachineCreate):
        stmt = self._upsert_statement(Machine, [machine.dict()], ["id"])
        await self._execute(stmt, UpsertError, {"table_name": "machines", "record_id": machine.id})
        logger.info(f"Machine {machine.id} ({machine.name}) upserted")

    async def upsert_exam(self, exam: ExamCreate):
        stmt = self._upsert_statement(Exam, [exam.dict()], ["id"])
        await self._execute(stmt, UpsertError, {"table_name": "exams", "record_id": exam.id})
        logger.info(f"Exam {exam.id} ({exam.name}) upserted")

    async def upsert_vulnerability(self, vulnerability: VulnerabilityCreate):
        stmt = self._upsert_statement(Vulnerability, [vulnerability.dict()], ["id"])
        await self._execute(
            stmt, UpsertError, {"table_name": "vulnerabilities", "record_id": vulnerability.id}
        )

    # ==========================================================================
    # Edges
    # ==========================================================================

    async def insert_machine_module(self, machine_id: int, module_id: int):
        await self._execute(
            self._edge_statement(MachineModule, machine_id=machine_id, module_id=module_id),
            DatabaseError,
            {"operation": "INSERT", "table_name": "machine_modules",
             "machine_id": machine_id, "module_id": module_id}
        )

    async def insert_module_exam(self, module_id: int, exam_id: int):
        await self._execute(
            self._edge_statement(ModuleExam, module_id=module_id, exam_id=exam_id),
            DatabaseError,
            {"operation": "INSERT", "table_name": "module_exams",
             "module_id": module_id, "exam_id": exam_id}
        )

    async def insert_machine_vulnerability(self, machine_id: int, vulnerability_id: int):
        await self._execute(
            self._edge_statement(
                MachineVulnerability, machine_id=machine_id, vulnerability_id=vulnerability_id
            ),
            DatabaseError,
            {"operation": "INSERT", "table_name": "machine_vulnerabilities",
             "machine_id": machine_id, "vulnerability_id": vulnerability_id}
        )

    async def insert_machine_language(self, machine_id: int, language: str):
        await self._execute(
            self._edge_statement(MachineLanguage, machine_id=machine_id, language=language),
            DatabaseError,
            {"operation": "INSERT", "table_name": "machine_languages",
             "machine_id": machine_id, "language": language}
        )

    async def insert_machine_area_of_interest(self, machine_id: int, area_of_interest: str):
        await self._execute(
            self._edge_statement(
                MachineAreaOfInterest, machine_id=machine_id, area_of_interest=area_of_interest
            ),
            DatabaseError,
            {"operation": "INSERT", "table_name": "machine_areas_of_interest",
             "machine_id": machine_id, "area_of_interest": area_of_interest}
        )

    async def insert_module_vulnerability(self, module_id: int, vulnerability_id: int):
        await self._execute(
            self._edge_statement(
                ModuleVulnerability, module_id=module_id, vulnerability_id=vulnerability_id
            ),
            DatabaseError,
            {"operation": "INSERT", "table_name": "module_vulnerabilities",
             "module_id": module_id, "vulnerability_id": vulnerability_id}
        )

    # ==========================================================================
    # Read helpers (drive later stages only)
    # ==========================================================================

    async def all_machine_ids(self) -> List[int]:
        return await self._select_ids(Machine.id)

    async def all_exam_ids(self) -> List[int]:
        return await self._select_ids(Exam.id)

    async def all_module_ids(self) -> List[int]:
        return await self._select_ids(Module.id)

    async def all_vulnerability_ids(self) -> List[int]:
        return await self._select_ids(Vulnerability.id)

    async def ping(self):
        """Raise ConnectivityError unless the database answers SELECT 1"""
        try:
            await self.db.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise ConnectivityError(
                "Database connection failed",
                context={"operation": "SELECT 1"},
                original_exception=e
            )
