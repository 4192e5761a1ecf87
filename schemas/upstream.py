"""
Pydantic models for upstream provider payloads.

Only the fields the pipeline reads are declared; anything else in the
provider JSON is ignored. A payload that fails validation is treated as
malformed by the HTTP client.
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Union


# ============================================================================
# Catalog (Academy) provider
# ============================================================================

class ModuleSection(BaseModel):
    """A module section, stored as a unit"""
    id: int
    title: Optional[str] = None
    page: Optional[int] = None
    type: Optional[str] = None


class ModuleDifficultyRef(BaseModel):
    title: Optional[str] = None
    value: Optional[Union[str, int]] = None


class ModuleUrl(BaseModel):
    absolute: Optional[str] = None
    relative: Optional[str] = None


class RelatedMachine(BaseModel):
    """Machine reference embedded in a module's "related" block"""
    id: int
    name: str
    os: Optional[str] = None
    difficulty: Optional[str] = None
    logo: Optional[str] = None


class ModuleRelated(BaseModel):
    machines: List[RelatedMachine] = Field(default_factory=list)

    @validator("machines", pre=True)
    def none_to_empty(cls, v):
        return v or []


class ModuleData(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    difficulty: Optional[ModuleDifficultyRef] = None
    url: Optional[ModuleUrl] = None
    avatar: Optional[str] = None
    logo: Optional[str] = None
    sections: List[ModuleSection] = Field(default_factory=list)
    related: Optional[ModuleRelated] = None

    @validator("sections", pre=True)
    def none_to_empty(cls, v):
        return v or []

    @property
    def related_machines(self) -> List[RelatedMachine]:
        return self.related.machines if self.related else []


class ModuleApiResponse(BaseModel):
    data: ModuleData


class ExamData(BaseModel):
    id: int
    name: str
    logo: Optional[str] = None


class ExamsApiResponse(BaseModel):
    data: List[ExamData] = Field(default_factory=list)

    @validator("data", pre=True)
    def none_to_empty(cls, v):
        return v or []


class ExamModule(BaseModel):
    """Module required by an exam"""
    id: int
    name: Optional[str] = None
    description: Optional[str] = None


class ExamModulesData(BaseModel):
    modules: List[ExamModule] = Field(default_factory=list)

    @validator("modules", pre=True)
    def none_to_empty(cls, v):
        return v or []


class ExamModulesApiResponse(BaseModel):
    data: Optional[ExamModulesData] = None

    @property
    def modules(self) -> List[ExamModule]:
        return self.data.modules if self.data else []


# ============================================================================
# Lab provider
# ============================================================================

class MachineInfo(BaseModel):
    """Machine profile; only the synopsis is used for the stored record"""
    id: Optional[int] = None
    name: Optional[str] = None
    os: Optional[str] = None
    difficulty: Optional[Union[str, int]] = None
    synopsis: Optional[str] = None
    avatar: Optional[str] = None
    logo: Optional[str] = None


class MachineProfileApiResponse(BaseModel):
    info: MachineInfo


class MachineTag(BaseModel):
    id: int
    name: str
    category: str


class MachineTagsApiResponse(BaseModel):
    info: List[MachineTag] = Field(default_factory=list)

    @validator("info", pre=True)
    def none_to_empty(cls, v):
        return v or []
