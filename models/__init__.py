"""
SQLAlchemy ORM models for the catalog schema.

Models:
    base: Base declarative class and the closed enumerations
    module: Module and Unit
    machine: Machine
    exam: Exam
    vulnerability: Vulnerability
    relationships: Edge tables (machine_modules, module_exams,
        machine_vulnerabilities, machine_languages,
        machine_areas_of_interest, module_vulnerabilities)

Database Schema:
    Every primary record is keyed by the upstream provider's integer id.
    The pipeline never generates surrogate keys. Edge tables use composite
    primary keys over their two columns.

Usage:
    from models import Module, Machine, MachineModule
    from models.base import ModuleDifficulty, OperatingSystem
"""

from models.base import (
    Base,
    ModuleDifficulty,
    MachineDifficulty,
    OperatingSystem,
    UnitType,
)
from models.module import Module, Unit
from models.machine import Machine
from models.exam import Exam
from models.vulnerability import Vulnerability
from models.relationships import (
    MachineModule,
    ModuleExam,
    MachineVulnerability,
    MachineLanguage,
    MachineAreaOfInterest,
    ModuleVulnerability,
)

__all__ = [
    "Base",
    "ModuleDifficulty",
    "MachineDifficulty",
    "OperatingSystem",
    "UnitType",
    "Module",
    "Unit",
    "Machine",
    "Exam",
    "Vulnerability",
    "MachineModule",
    "ModuleExam",
    "MachineVulnerability",
    "MachineLanguage",
    "MachineAreaOfInterest",
    "ModuleVulnerability",
]
