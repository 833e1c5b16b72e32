"""Department and service model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from backend.database import Base


class Department(Base):
    """Represents a government department offering services."""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class Service(Base):
    """Represents a bookable service run by a department."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, default=30)
