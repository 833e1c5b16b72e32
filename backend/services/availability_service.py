"""Read-only views over timeslot capacity."""

from datetime import date, datetime

from sqlalchemy.orm import Session

from backend.repositories.timeslot_repository import TimeslotRepository


def get_available_slots(
    db: Session,
    service_id: int,
    slot_date: date | None = None,
    now: datetime | None = None,
) -> list[dict]:
    now = now or datetime.now()
    timeslots = TimeslotRepository(db).find_available(service_id, now, slot_date)

    return [
        {
            'id': timeslot.id,
            'service_id': timeslot.service_id,
            'slot_date': timeslot.slot_date,
            'start_time': timeslot.start_time,
            'end_time': timeslot.end_time,
            'capacity': timeslot.capacity,
            'slots_available': timeslot.slots_available,
            'is_available': timeslot.slots_available > 0,
            'availability_percentage': round(timeslot.slots_available / timeslot.capacity * 100),
        }
        for timeslot in timeslots
    ]


def get_booking_stats(db: Session, service_id: int | None = None) -> dict:
    timeslots = TimeslotRepository(db).find_all(service_id)

    total_slots = sum(timeslot.capacity for timeslot in timeslots)
    available_slots = sum(timeslot.slots_available for timeslot in timeslots)
    booked_slots = total_slots - available_slots
    utilization_rate = round(booked_slots / total_slots * 100) if total_slots > 0 else 0

    return {
        'total_slots': total_slots,
        'booked_slots': booked_slots,
        'available_slots': available_slots,
        'utilization_rate': utilization_rate,
    }
