from sqlalchemy import Column, Integer, String, Text
from models.base import Base, MachineDifficulty, OperatingSystem, enum_column_type


class Machine(Base):
    """
    Practice machine from the lab provider.

    Discovered through the "related machines" of modules and written once per
    run no matter how many modules reference it. The url is synthesized from
    the machine name.
    """
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)
    synopsis = Column(Text, nullable=True)
    difficulty = Column(enum_column_type(MachineDifficulty, "machine_difficulty"), nullable=True)
    os = Column(enum_column_type(OperatingSystem, "machine_os"), nullable=True)
    url = Column(String(500), nullable=True)
    image = Column(String(500), nullable=True)
