from sqlalchemy import Column, Integer, String
from models.base import Base


class Exam(Base):
    """Certification exam from the catalog provider"""
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)
    logo = Column(String(500), nullable=True)
