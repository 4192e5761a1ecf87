"""
Many-to-many edge tables.

Edges have no identity beyond their composite key. The pipeline writes them
insert-or-ignore and never updates them.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Index
from models.base import Base


class MachineModule(Base):
    __tablename__ = "machine_modules"

    machine_id = Column(Integer, ForeignKey("machines.id"), primary_key=True)
    module_id = Column(Integer, ForeignKey("modules.id"), primary_key=True)

    __table_args__ = (
        Index("idx_machine_modules_module", "module_id"),
    )


class ModuleExam(Base):
    __tablename__ = "module_exams"

    module_id = Column(Integer, ForeignKey("modules.id"), primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id"), primary_key=True)

    __table_args__ = (
        Index("idx_module_exams_exam", "exam_id"),
    )


class MachineVulnerability(Base):
    __tablename__ = "machine_vulnerabilities"

    machine_id = Column(Integer, ForeignKey("machines.id"), primary_key=True)
    vulnerability_id = Column(Integer, ForeignKey("vulnerabilities.id"), primary_key=True)

    __table_args__ = (
        Index("idx_machine_vulnerabilities_vulnerability", "vulnerability_id"),
    )


class MachineLanguage(Base):
    """Free-text language label attached to a machine"""
    __tablename__ = "machine_languages"

    machine_id = Column(Integer, ForeignKey("machines.id"), primary_key=True)
    language = Column(String(255), primary_key=True)


class MachineAreaOfInterest(Base):
    """Free-text area-of-interest label attached to a machine"""
    __tablename__ = "machine_areas_of_interest"

    machine_id = Column(Integer, ForeignKey("machines.id"), primary_key=True)
    area_of_interest = Column(String(255), primary_key=True)


class ModuleVulnerability(Base):
    """Curated module-to-vulnerability mapping, loaded from a mappings file"""
    __tablename__ = "module_vulnerabilities"

    module_id = Column(Integer, ForeignKey("modules.id"), primary_key=True)
    vulnerability_id = Column(Integer, ForeignKey("vulnerabilities.id"), primary_key=True)

    __table_args__ = (
        Index("idx_module_vulnerabilities_vulnerability", "vulnerability_id"),
    )
