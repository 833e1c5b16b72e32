from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db
from backend.services.availability_service import get_available_slots, get_booking_stats
from backend.services.slot_ledger import SlotLedger, TimeslotNotFoundError

router = APIRouter(tags=['timeslots'])


class AvailableTimeslotResponse(BaseModel):
    id: int
    service_id: int
    slot_date: date
    start_time: time
    end_time: time | None = None
    capacity: int
    slots_available: int
    is_available: bool
    availability_percentage: int


class BookingStatsResponse(BaseModel):
    total_slots: int
    booked_slots: int
    available_slots: int
    utilization_rate: int


class TimeslotStatsResponse(BaseModel):
    total_capacity: int
    booked_slots: int
    available_slots: int
    utilization_rate: float


@router.get('/available', response_model=list[AvailableTimeslotResponse])
def list_available_timeslots(
    service_id: int = Query(...),
    slot_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_available_slots(db, service_id, slot_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/stats', response_model=BookingStatsResponse)
def booking_stats(
    service_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_booking_stats(db, service_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{timeslot_id}/stats', response_model=TimeslotStatsResponse)
def timeslot_stats(timeslot_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return SlotLedger(db).get_timeslot_stats(timeslot_id)
    except TimeslotNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Timeslot not found.',
        ) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
