"""Structured outcome of booking, cancellation and status operations."""

from dataclasses import dataclass
from enum import Enum

from backend.models.appointment import Appointment


class BookingErrorCode(str, Enum):
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    PAST_TIMESLOT = "PAST_TIMESLOT"
    CONCURRENCY_ERROR = "CONCURRENCY_ERROR"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SERVICE_NOT_FOUND = "SERVICE_NOT_FOUND"
    TIMESLOT_NOT_FOUND = "TIMESLOT_NOT_FOUND"
    TIMESLOT_SERVICE_MISMATCH = "TIMESLOT_SERVICE_MISMATCH"
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INVALID_STATUS = "INVALID_STATUS"
    OFFICER_NOT_FOUND = "OFFICER_NOT_FOUND"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class BookingResult:
    success: bool
    appointment: Appointment | None = None
    booking_reference: str | None = None
    error_code: BookingErrorCode | None = None
    message: str | None = None
    # Set when a failure left capacity and appointment records out of step.
    critical: bool = False

    @classmethod
    def ok(cls, appointment: Appointment, booking_reference: str | None = None) -> 'BookingResult':
        return cls(
            success=True,
            appointment=appointment,
            booking_reference=booking_reference or appointment.booking_reference,
        )

    @classmethod
    def fail(cls, error_code: BookingErrorCode, message: str, critical: bool = False) -> 'BookingResult':
        return cls(success=False, error_code=error_code, message=message, critical=critical)
