from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db
from backend.services.booking_coordinator import BookingCoordinator
from backend.services.booking_result import BookingErrorCode, BookingResult

router = APIRouter(tags=['appointments'])

MAX_CANCELLATION_REASON_LENGTH = 500

ERROR_STATUS_CODES = {
    BookingErrorCode.SLOT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    BookingErrorCode.PAST_TIMESLOT: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.CONCURRENCY_ERROR: status.HTTP_409_CONFLICT,
    BookingErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.SERVICE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.TIMESLOT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.TIMESLOT_SERVICE_MISMATCH: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    BookingErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    BookingErrorCode.INVALID_STATUS: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.OFFICER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.UNKNOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class BookAppointmentRequest(BaseModel):
    user_id: int
    service_id: int
    timeslot_id: int
    officer_id: int | None = None


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_CANCELLATION_REASON_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def normalize_status(cls, value: str) -> str:
        return value.strip().lower()


class AssignOfficerRequest(BaseModel):
    officer_id: int


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    service_id: int
    timeslot_id: int
    officer_id: int | None = None
    booking_no: int
    booking_reference: str
    status: str
    qr_code: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    appointment: AppointmentResponse
    booking_reference: str


def raise_for_failure(result: BookingResult) -> None:
    if result.success:
        return

    raise HTTPException(
        status_code=ERROR_STATUS_CODES.get(result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={'error_code': result.error_code.value, 'message': result.message},
    )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(data: BookAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        result = BookingCoordinator(db).book_appointment(
            user_id=data.user_id,
            service_id=data.service_id,
            timeslot_id=data.timeslot_id,
            officer_id=data.officer_id,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    raise_for_failure(result)
    return BookingResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        booking_reference=result.booking_reference,
    )


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    reason = data.reason if data else None
    try:
        result = BookingCoordinator(db).cancel_appointment(appointment_id, reason)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    raise_for_failure(result)
    return result.appointment


@router.put('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = BookingCoordinator(db).update_status(appointment_id, data.status)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    raise_for_failure(result)
    return result.appointment


@router.put('/{appointment_id}/officer', response_model=AppointmentResponse)
def assign_officer(
    appointment_id: int,
    data: AssignOfficerRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = BookingCoordinator(db).assign_officer(appointment_id, data.officer_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    raise_for_failure(result)
    return result.appointment
