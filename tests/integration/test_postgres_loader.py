# ============================================================================
# File: tests/integration/test_postgres_loader.py
# ============================================================================
"""
PostgresLoader against a real PostgreSQL database.

Skipped when TEST_DATABASE_URL is unreachable.
"""

import pytest
from sqlalchemy import func, select

from core.exceptions import DatabaseError
from ingestion.loaders.postgres_loader import PostgresLoader
from models import Machine, MachineModule, MachineVulnerability, Module, Unit
from schemas.normalized import MachineCreate, ModuleCreate, UnitCreate, VulnerabilityCreate


def module_record(name="Web Requests", difficulty="Easy"):
    return ModuleCreate(id=17, name=name, description="HTTP", difficulty=difficulty, url="https://academy.test/17")


def machine_record(synopsis="First"):
    return MachineCreate(
        id=5, name="alpha", synopsis=synopsis, difficulty="Insane", os="Other",
        url="https://labs.test/machines/alpha"
    )


async def count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_upsert_overwrites_mutable_columns(db_session):
    loader = PostgresLoader(db_session)

    await loader.upsert_module(module_record())
    await loader.upsert_module(module_record(name="HTTP Requests", difficulty="Medium"))

    module = (await db_session.execute(select(Module).where(Module.id == 17))).scalar_one()
    assert module.name == "HTTP Requests"
    assert module.difficulty.value == "Medium"
    assert await count(db_session, Module) == 1


@pytest.mark.asyncio
async def test_units_keyed_by_id_and_module(db_session):
    loader = PostgresLoader(db_session)
    await loader.upsert_module(module_record())

    units = [UnitCreate(id=1, module_id=17, sequence_order=1, name="Intro", type="Interactive")]
    await loader.upsert_units(units)
    await loader.upsert_units(units)

    assert await count(db_session, Unit) == 1


@pytest.mark.asyncio
async def test_edges_are_insert_or_ignore(db_session):
    loader = PostgresLoader(db_session)
    await loader.upsert_module(module_record())
    await loader.upsert_machine(machine_record())

    await loader.insert_machine_module(5, 17)
    await loader.insert_machine_module(5, 17)

    assert await count(db_session, MachineModule) == 1
    assert await loader.all_machine_ids() == [5]


@pytest.mark.asyncio
async def test_edge_to_missing_endpoint_fails_and_session_recovers(db_session):
    loader = PostgresLoader(db_session)
    await loader.upsert_machine(machine_record())

    with pytest.raises(DatabaseError):
        await loader.insert_machine_vulnerability(5, 404)

    # The failed write was rolled back; the next one goes through
    await loader.upsert_vulnerability(VulnerabilityCreate(id=404, name="Path Traversal"))
    await loader.insert_machine_vulnerability(5, 404)

    assert await count(db_session, MachineVulnerability) == 1
    assert await loader.all_vulnerability_ids() == [404]


@pytest.mark.asyncio
async def test_machine_enums_store_display_values(db_session):
    loader = PostgresLoader(db_session)
    await loader.upsert_machine(machine_record())
    await loader.upsert_machine(machine_record(synopsis="Second"))

    machine = (await db_session.execute(select(Machine))).scalar_one()
    assert machine.synopsis == "Second"
    assert machine.os.value == "Other"
    assert machine.difficulty.value == "Insane"


@pytest.mark.asyncio
async def test_ping(db_session):
    await PostgresLoader(db_session).ping()
