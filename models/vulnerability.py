from sqlalchemy import Column, Integer, String
from models.base import Base


class Vulnerability(Base):
    """
    Vulnerability taxonomy label, discovered through machine tags.
    Not owned by any single machine or module.
    """
    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)
