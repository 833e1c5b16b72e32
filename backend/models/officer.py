"""Officer model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from backend.database import Base


class Officer(Base):
    """Represents a department officer who handles appointments."""
    __tablename__ = "officers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    position = Column(String)
