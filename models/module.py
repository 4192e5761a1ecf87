from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.base import Base, ModuleDifficulty, UnitType, enum_column_type


class Module(Base):
    """
    Learning module from the catalog (Academy) provider.

    Keyed by the provider's own integer id. Upserted whenever the provider
    returns a record for that id; never deleted by the pipeline.
    """
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    difficulty = Column(enum_column_type(ModuleDifficulty, "module_difficulty"), nullable=True)
    url = Column(String(500), nullable=True)
    image = Column(String(500), nullable=True)

    units = relationship("Unit", back_populates="module", order_by="Unit.sequence_order")


class Unit(Base):
    """
    A section of a module. Unique on (id, module_id); sequence_order defines
    display order within the module.
    """
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, autoincrement=False)
    module_id = Column(Integer, ForeignKey("modules.id"), primary_key=True)
    sequence_order = Column(Integer, nullable=True)
    name = Column(String(255), nullable=True)
    type = Column(enum_column_type(UnitType, "unit_type"), nullable=True)

    module = relationship("Module", back_populates="units")

    __table_args__ = (
        Index("idx_units_module", "module_id"),
    )
