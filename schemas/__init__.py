"""
Pydantic schemas for data validation.

Schemas:
    upstream: Payload shapes returned by the catalog and lab providers
    normalized: Validated insert records for the relational sink

Usage:
    from schemas.upstream import ModuleData, RelatedMachine, MachineTag
    from schemas.normalized import ModuleCreate, MachineCreate

Validation:
    Upstream payloads that do not validate are reported as malformed by the
    HTTP client. Insert records enforce the closed enumerations and column
    lengths of the schema before anything reaches the database.
"""

__all__ = [
    "ModuleData",
    "ModuleSection",
    "RelatedMachine",
    "MachineInfo",
    "MachineTag",
    "ExamData",
    "ExamModule",
    "ModuleCreate",
    "UnitCreate",
    "MachineCreate",
    "ExamCreate",
    "VulnerabilityCreate",
]
