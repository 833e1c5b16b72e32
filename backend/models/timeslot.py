"""Timeslot model definitions."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Time
from backend.database import Base


class Timeslot(Base):
    """Represents a dated, capacity-bounded window of a service.

    ``slots_available`` is only ever written through
    ``TimeslotRepository.conditional_update_slots_available``.
    """
    __tablename__ = "timeslots"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_timeslots_capacity_positive"),
        CheckConstraint(
            "slots_available >= 0 AND slots_available <= capacity",
            name="ck_timeslots_slots_available_bounds",
        ),
    )

    id = Column(Integer, primary_key=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time)
    capacity = Column(Integer, nullable=False)
    slots_available = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.slot_date, self.start_time)
