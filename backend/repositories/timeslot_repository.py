"""Timeslot persistence, including the conditional update the slot ledger is built on."""

from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.models.timeslot import Timeslot


@dataclass(frozen=True)
class TimeslotSnapshot:
    """Point-in-time copy of the capacity columns of one timeslot."""

    id: int
    service_id: int
    slot_date: date
    start_time: time
    capacity: int
    slots_available: int

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.slot_date, self.start_time)


class TimeslotRepository:
    def __init__(self, db: Session):
        self.db = db

    def read(self, timeslot_id: int) -> TimeslotSnapshot | None:
        # Column select so repeated reads bypass the session identity map.
        row = self.db.execute(
            select(
                Timeslot.id,
                Timeslot.service_id,
                Timeslot.slot_date,
                Timeslot.start_time,
                Timeslot.capacity,
                Timeslot.slots_available,
            ).where(Timeslot.id == timeslot_id)
        ).first()
        if row is None:
            return None
        return TimeslotSnapshot(**row._mapping)

    def conditional_update_slots_available(self, timeslot_id: int, expected: int, new_value: int) -> int:
        """Set ``slots_available`` to ``new_value`` only if it still equals ``expected``.

        Returns the number of rows affected; 0 means another writer got there first.
        """
        result = self.db.execute(
            update(Timeslot)
            .where(Timeslot.id == timeslot_id, Timeslot.slots_available == expected)
            .values(slots_available=new_value, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount

    def find_available(self, service_id: int, now: datetime, slot_date: date | None = None) -> list[Timeslot]:
        query = self.db.query(Timeslot).filter(
            Timeslot.service_id == service_id,
            Timeslot.slots_available > 0,
            Timeslot.slot_date >= now.date(),
        )
        if slot_date is not None:
            query = query.filter(Timeslot.slot_date == slot_date)

        timeslots = query.order_by(Timeslot.slot_date.asc(), Timeslot.start_time.asc()).all()
        return [timeslot for timeslot in timeslots if timeslot.starts_at > now]

    def find_all(self, service_id: int | None = None) -> list[Timeslot]:
        query = self.db.query(Timeslot)
        if service_id is not None:
            query = query.filter(Timeslot.service_id == service_id)
        return query.all()
