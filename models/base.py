from sqlalchemy import Enum
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class ModuleDifficulty(str, enum.Enum):
    """Learning module difficulty"""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class MachineDifficulty(str, enum.Enum):
    """Practice machine difficulty"""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    INSANE = "Insane"


class OperatingSystem(str, enum.Enum):
    """Practice machine operating system"""
    WINDOWS = "Windows"
    LINUX = "Linux"
    ANDROID = "Android"
    SOLARIS = "Solaris"
    OPENBSD = "OpenBSD"
    FREEBSD = "FreeBSD"
    OTHER = "Other"


class UnitType(str, enum.Enum):
    """Module unit (section) type"""
    ARTICLE = "Article"
    INTERACTIVE = "Interactive"


def enum_column_type(enum_cls, name: str) -> Enum:
    """Native enum type storing the display values ("Easy"), not member names"""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )
