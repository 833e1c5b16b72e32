"""Read-only checks run before any capacity is touched."""

from sqlalchemy.orm import Session

from backend.repositories.appointment_repository import AppointmentRepository
from backend.repositories.directory_repository import ServiceRepository, UserRepository
from backend.repositories.timeslot_repository import TimeslotRepository
from backend.services.booking_result import BookingErrorCode, BookingResult


class BookingValidator:
    """Short-circuits on the first failing check.

    Passing validation does not guarantee a slot: two requests can both pass
    here and then compete in the slot ledger, which is the actual enforcement
    point.
    """

    def __init__(self, db: Session):
        self.users = UserRepository(db)
        self.services = ServiceRepository(db)
        self.timeslots = TimeslotRepository(db)
        self.appointments = AppointmentRepository(db)

    def validate(self, user_id: int, service_id: int, timeslot_id: int) -> BookingResult | None:
        if not self.users.exists(user_id):
            return BookingResult.fail(BookingErrorCode.USER_NOT_FOUND, 'User not found.')

        if not self.services.exists(service_id):
            return BookingResult.fail(BookingErrorCode.SERVICE_NOT_FOUND, 'Service not found.')

        timeslot = self.timeslots.read(timeslot_id)
        if timeslot is None:
            return BookingResult.fail(BookingErrorCode.TIMESLOT_NOT_FOUND, 'Timeslot not found.')

        if timeslot.service_id != service_id:
            return BookingResult.fail(
                BookingErrorCode.TIMESLOT_SERVICE_MISMATCH,
                'Timeslot does not belong to the selected service.',
            )

        if self.appointments.find_non_cancelled_by_user_and_timeslot(user_id, timeslot_id) is not None:
            return BookingResult.fail(
                BookingErrorCode.DUPLICATE_BOOKING,
                'You already have an appointment for this timeslot.',
            )

        return None
