"""
Pydantic schemas for normalized insert records with validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from models.base import ModuleDifficulty, MachineDifficulty, OperatingSystem, UnitType


def _clean_text(v):
    if v is None:
        return v
    return v.strip()


def _empty_to_none(v):
    if v is None:
        return None
    v = v.strip()
    return v or None


class ModuleCreate(BaseModel):
    """Insert record for the modules table"""

    id: int = Field(..., ge=0)
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    difficulty: ModuleDifficulty
    url: str = Field("", max_length=500)
    image: Optional[str] = Field(None, max_length=500)

    @validator("name")
    def clean_name(cls, v):
        return _clean_text(v)

    @validator("image", pre=True)
    def clean_image(cls, v):
        return _empty_to_none(v)

    class Config:
        use_enum_values = True


class UnitCreate(BaseModel):
    """Insert record for the units table"""

    id: int = Field(..., ge=0)
    module_id: int = Field(..., ge=0)
    sequence_order: Optional[int] = None
    name: Optional[str] = Field(None, max_length=255)
    type: UnitType

    @validator("name")
    def clean_name(cls, v):
        return _clean_text(v)

    class Config:
        use_enum_values = True


class MachineCreate(BaseModel):
    """Insert record for the machines table"""

    id: int = Field(..., ge=0)
    name: str = Field(..., min_length=1, max_length=255)
    synopsis: Optional[str] = None
    difficulty: MachineDifficulty
    os: OperatingSystem
    url: str = Field(..., max_length=500)
    image: Optional[str] = Field(None, max_length=500)

    @validator("image", pre=True)
    def clean_image(cls, v):
        return _empty_to_none(v)

    class Config:
        use_enum_values = True


class ExamCreate(BaseModel):
    """Insert record for the exams table"""

    id: int = Field(..., ge=0)
    name: str = Field(..., max_length=255)
    logo: Optional[str] = Field(None, max_length=500)

    @validator("logo", pre=True)
    def clean_logo(cls, v):
        return _empty_to_none(v)


class VulnerabilityCreate(BaseModel):
    """Insert record for the vulnerabilities table"""

    id: int = Field(..., ge=0)
    name: str = Field(..., max_length=255)
