"""
Map upstream catalog records onto validated insert records.

Free-form upstream labels (difficulty, operating system, unit type) are mapped
onto the closed enumerations of the schema. Each mapping is total: unseen
labels fall back to a fixed default, so whatever the provider sends, the
stored value is always a member of the enumeration.
"""

from typing import List, Optional, Union
from pydantic import ValidationError as PydanticValidationError
import enum
from core.config import settings
from core.exceptions import NormalizationError
from models.base import ModuleDifficulty, MachineDifficulty, OperatingSystem, UnitType
from schemas.normalized import (
    ExamCreate,
    MachineCreate,
    ModuleCreate,
    UnitCreate,
    VulnerabilityCreate,
)
from schemas.upstream import (
    ExamData,
    MachineInfo,
    ModuleData,
    ModuleSection,
    RelatedMachine,
)
import logging

logger = logging.getLogger(__name__)


class DifficultyDomain(str, enum.Enum):
    """Which difficulty scale a label belongs to"""
    MODULE = "module"
    MACHINE = "machine"


# Keyword order matters: the first keyword contained in the label wins
_MODULE_DIFFICULTY_KEYWORDS = [
    ("medium", ModuleDifficulty.MEDIUM),
    ("hard", ModuleDifficulty.HARD),
]

_MACHINE_DIFFICULTY_KEYWORDS = [
    ("medium", MachineDifficulty.MEDIUM),
    ("hard", MachineDifficulty.HARD),
    ("insane", MachineDifficulty.INSANE),
]

_OS_KEYWORDS = [
    ("windows", OperatingSystem.WINDOWS),
    ("linux", OperatingSystem.LINUX),
    ("android", OperatingSystem.ANDROID),
    ("solaris", OperatingSystem.SOLARIS),
    ("openbsd", OperatingSystem.OPENBSD),
    ("freebsd", OperatingSystem.FREEBSD),
]


def normalize_difficulty(
    raw: Optional[str],
    domain: DifficultyDomain = DifficultyDomain.MACHINE
) -> Union[ModuleDifficulty, MachineDifficulty]:
    """
    Case-insensitive keyword match of a difficulty label.

    >>> normalize_difficulty("Beginner", DifficultyDomain.MODULE)
    <ModuleDifficulty.EASY: 'Easy'>
    """
    if domain == DifficultyDomain.MODULE:
        keywords, default = _MODULE_DIFFICULTY_KEYWORDS, ModuleDifficulty.EASY
    else:
        keywords, default = _MACHINE_DIFFICULTY_KEYWORDS, MachineDifficulty.EASY

    label = (raw or "").lower()
    for keyword, value in keywords:
        if keyword in label:
            return value
    return default


def normalize_os(raw: Optional[str]) -> OperatingSystem:
    """Case-insensitive keyword match of an OS label, Other when unknown"""
    label = (raw or "").lower()
    for keyword, value in _OS_KEYWORDS:
        if keyword in label:
            return value
    return OperatingSystem.OTHER


def normalize_unit_type(raw: Optional[str]) -> UnitType:
    """Only an exact (case-insensitive) "interactive" is Interactive"""
    if (raw or "").strip().lower() == "interactive":
        return UnitType.INTERACTIVE
    return UnitType.ARTICLE


def machine_url(name: str, template: Optional[str] = None) -> str:
    """Canonical machine URL, derived deterministically from the name"""
    return (template or settings.MACHINE_URL_TEMPLATE).format(name=name)


class CatalogNormalizer:
    """
    Normalize upstream records into insert records.

    Handles:
    - Enumeration mapping with fallbacks
    - URL synthesis for machines
    - Validation of the resulting record
    """

    def __init__(self, machine_url_template: Optional[str] = None):
        self.machine_url_template = machine_url_template or settings.MACHINE_URL_TEMPLATE

    def module(self, data: ModuleData) -> ModuleCreate:
        return self._build(
            ModuleCreate,
            "module",
            data.id,
            id=data.id,
            name=data.name,
            description=data.description,
            difficulty=normalize_difficulty(
                data.difficulty.title if data.difficulty else None,
                DifficultyDomain.MODULE
            ),
            url=(data.url.absolute if data.url else None) or "",
            image=data.avatar or data.logo,
        )

    def units(self, sections: List[ModuleSection], module_id: int) -> List[UnitCreate]:
        return [
            self._build(
                UnitCreate,
                "unit",
                section.id,
                id=section.id,
                module_id=module_id,
                sequence_order=section.page,
                name=section.title,
                type=normalize_unit_type(section.type),
            )
            for section in sections
        ]

    def machine(self, reference: RelatedMachine, profile: MachineInfo) -> MachineCreate:
        """
        Identity, difficulty, OS and logo come from the module's machine
        reference; only the synopsis comes from the profile.
        """
        return self._build(
            MachineCreate,
            "machine",
            reference.id,
            id=reference.id,
            name=reference.name,
            synopsis=profile.synopsis,
            difficulty=normalize_difficulty(reference.difficulty, DifficultyDomain.MACHINE),
            os=normalize_os(reference.os),
            url=machine_url(reference.name, self.machine_url_template),
            image=reference.logo,
        )

    def exam(self, data: ExamData) -> ExamCreate:
        return self._build(ExamCreate, "exam", data.id, id=data.id, name=data.name, logo=data.logo)

    def vulnerability(self, vulnerability_id: int, name: str) -> VulnerabilityCreate:
        return self._build(
            VulnerabilityCreate, "vulnerability", vulnerability_id, id=vulnerability_id, name=name
        )

    @staticmethod
    def _build(schema, entity: str, record_id, **fields):
        try:
            return schema(**fields)
        except PydanticValidationError as e:
            raise NormalizationError(
                f"Invalid {entity} record",
                context={"entity": entity, "record_id": record_id, "field_errors": e.errors()},
                original_exception=e
            )
