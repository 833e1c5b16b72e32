"""Booking and cancellation as compensating sequences over the slot ledger.

Every appointment that is created is paired with exactly one earlier
successful ``reserve`` on its timeslot, and every move into ``cancelled`` is
paired with exactly one ``release``. Reserve and create are separate
commits, so a failed create is undone by releasing the unit it reserved.
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, Appointment, AppointmentStatus
from backend.repositories.appointment_repository import AppointmentRepository, generate_booking_reference
from backend.repositories.directory_repository import OfficerRepository, ServiceRepository
from backend.services.booking_result import BookingErrorCode, BookingResult
from backend.services.booking_validator import BookingValidator
from backend.services.slot_ledger import (
    ConcurrencyExhaustedError,
    PastTimeslotError,
    SlotLedger,
    SlotLedgerError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)

STATUS_CHOICES = ', '.join(status.value for status in AppointmentStatus)


class BookingCoordinator:
    def __init__(
        self,
        db: Session,
        *,
        ledger: SlotLedger | None = None,
        validator: BookingValidator | None = None,
        clock: Callable[[], datetime] = datetime.now,
        auto_assign_officer: bool | None = None,
    ):
        self.db = db
        self.clock = clock
        self.ledger = ledger or SlotLedger(db, clock=clock)
        self.validator = validator or BookingValidator(db)
        self.appointments = AppointmentRepository(db)
        self.services = ServiceRepository(db)
        self.officers = OfficerRepository(db)
        self.auto_assign_officer = (
            config.AUTO_ASSIGN_OFFICER if auto_assign_officer is None else auto_assign_officer
        )

    def book_appointment(
        self,
        user_id: int,
        service_id: int,
        timeslot_id: int,
        officer_id: int | None = None,
    ) -> BookingResult:
        logger.info('Starting appointment booking for user %s, timeslot %s', user_id, timeslot_id)

        failure = self.validator.validate(user_id, service_id, timeslot_id)
        if failure is not None:
            logger.info('Booking rejected for user %s: %s', user_id, failure.error_code.value)
            return failure

        try:
            self.ledger.reserve(timeslot_id)
        except SlotUnavailableError:
            return BookingResult.fail(
                BookingErrorCode.SLOT_UNAVAILABLE,
                'This timeslot is fully booked. Please select another time.',
            )
        except PastTimeslotError:
            return BookingResult.fail(
                BookingErrorCode.PAST_TIMESLOT,
                'Cannot book appointments for past timeslots.',
            )
        except ConcurrencyExhaustedError:
            logger.warning('Gave up reserving timeslot %s for user %s under contention', timeslot_id, user_id)
            return BookingResult.fail(
                BookingErrorCode.CONCURRENCY_ERROR,
                'This timeslot was just booked by another user. Please select another time.',
            )
        except SlotLedgerError as exc:
            logger.warning('Timeslot %s could not be reserved: %s', timeslot_id, exc.message)
            return BookingResult.fail(
                BookingErrorCode.UNKNOWN_ERROR,
                'Failed to book timeslot. Please try again.',
            )

        # One unit is now held; anything failing before the appointment row
        # is committed must give it back. Nothing after the commit may.
        booking_reference = generate_booking_reference(self.clock())
        try:
            booking_no = self.appointments.get_next_booking_number()
            appointment = self.appointments.create(
                user_id=user_id,
                service_id=service_id,
                timeslot_id=timeslot_id,
                officer_id=officer_id,
                booking_no=booking_no,
                booking_reference=booking_reference,
                status=AppointmentStatus.PENDING.value,
                qr_code=f'Booking: {booking_reference}',
            )
        except Exception:
            logger.exception('Appointment creation failed, releasing slot on timeslot %s', timeslot_id)
            self.db.rollback()
            if not self._compensate_reservation(timeslot_id):
                return BookingResult.fail(
                    BookingErrorCode.UNKNOWN_ERROR,
                    'Failed to create appointment. Please contact support.',
                    critical=True,
                )
            return BookingResult.fail(
                BookingErrorCode.UNKNOWN_ERROR,
                'Failed to create appointment. Please try again.',
            )

        try:
            self.appointments.reload(appointment)
        except Exception:
            # The row and its unit are committed together; a failed read-back
            # leaves the instance expired and it loads lazily on next access.
            self.db.rollback()
            logger.warning('Appointment %s committed but could not be reloaded', booking_reference, exc_info=True)

        logger.info('Appointment created with booking reference %s', booking_reference)

        if officer_id is None and self.auto_assign_officer:
            appointment = self._assign_least_loaded_officer(appointment, booking_reference)

        return BookingResult.ok(appointment, booking_reference)

    def cancel_appointment(self, appointment_id: int, reason: str | None = None) -> BookingResult:
        logger.info('Cancelling appointment %s', appointment_id)

        appointment = self.appointments.find_by_id(appointment_id)
        if appointment is None:
            return BookingResult.fail(BookingErrorCode.NOT_FOUND, 'Appointment not found.')

        current_status = self._current_status(appointment)
        if current_status is None:
            return BookingResult.fail(
                BookingErrorCode.UNKNOWN_ERROR,
                f'Appointment has unrecognised status: {appointment.status}',
            )

        if current_status in TERMINAL_STATUSES:
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATE,
                f'Cannot cancel appointment with status: {current_status.value}',
            )

        timeslot_id = appointment.timeslot_id
        cancelled = self.appointments.update_status(
            appointment_id,
            AppointmentStatus.CANCELLED,
            expected_status=current_status,
            cancellation_reason=reason,
        )
        if cancelled is None:
            # Lost to a concurrent status change; whoever won owns the release.
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATE,
                'Appointment status changed while cancelling. Please reload and try again.',
            )

        try:
            self.ledger.release(timeslot_id)
        except (SlotLedgerError, SQLAlchemyError):
            self.db.rollback()
            logger.error(
                'CANCELLATION_RELEASE_FAILED: appointment %s is cancelled but timeslot %s capacity '
                'was not returned; manual reconciliation required',
                appointment_id,
                timeslot_id,
                exc_info=True,
            )

        return BookingResult.ok(cancelled)

    def update_status(self, appointment_id: int, new_status: str) -> BookingResult:
        try:
            target = AppointmentStatus(new_status)
        except ValueError:
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATUS,
                f'Invalid status. Must be one of: {STATUS_CHOICES}',
            )

        if target is AppointmentStatus.CANCELLED:
            return self.cancel_appointment(appointment_id)

        appointment = self.appointments.find_by_id(appointment_id)
        if appointment is None:
            return BookingResult.fail(BookingErrorCode.NOT_FOUND, 'Appointment not found.')

        current_status = self._current_status(appointment)
        if current_status is None or target not in ALLOWED_TRANSITIONS[current_status]:
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATE,
                f'Cannot change appointment status from {appointment.status} to {target.value}',
            )

        updated = self.appointments.update_status(appointment_id, target, expected_status=current_status)
        if updated is None:
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATE,
                'Appointment status changed concurrently. Please reload and try again.',
            )

        logger.info('Appointment %s moved from %s to %s', appointment_id, current_status.value, target.value)
        return BookingResult.ok(updated)

    def assign_officer(self, appointment_id: int, officer_id: int) -> BookingResult:
        appointment = self.appointments.find_by_id(appointment_id)
        if appointment is None:
            return BookingResult.fail(BookingErrorCode.NOT_FOUND, 'Appointment not found.')

        if appointment.status in {status.value for status in TERMINAL_STATUSES}:
            return BookingResult.fail(
                BookingErrorCode.INVALID_STATE,
                f'Cannot assign an officer to appointment with status: {appointment.status}',
            )

        if self.officers.find_by_id(officer_id) is None:
            return BookingResult.fail(BookingErrorCode.OFFICER_NOT_FOUND, 'Officer not found.')

        return BookingResult.ok(self.appointments.assign_officer(appointment_id, officer_id))

    def _compensate_reservation(self, timeslot_id: int) -> bool:
        try:
            self.ledger.release(timeslot_id)
        except (SlotLedgerError, SQLAlchemyError):
            self.db.rollback()
            logger.critical(
                'BOOKING_COMPENSATION_FAILED: timeslot %s is one unit short with no matching appointment; '
                'manual reconciliation required',
                timeslot_id,
                exc_info=True,
            )
            return False

        logger.info('Slot on timeslot %s released after failed appointment creation', timeslot_id)
        return True

    def _assign_least_loaded_officer(self, appointment: Appointment, booking_reference: str) -> Appointment:
        """Best effort: a failure here leaves the appointment unassigned."""
        try:
            department_id = self.services.get_department_id(appointment.service_id)
            if department_id is None:
                return appointment

            selected = None
            lowest_pending = None
            for officer in self.officers.find_by_department(department_id):
                pending = self.appointments.count_pending_by_officer(officer.id)
                if lowest_pending is None or pending < lowest_pending:
                    selected = officer
                    lowest_pending = pending

            if selected is None:
                return appointment

            assigned = self.appointments.assign_officer(appointment.id, selected.id)
            logger.info('Appointment %s auto-assigned to officer %s', appointment.id, selected.id)
            return assigned or appointment
        except Exception:
            self.db.rollback()
            logger.warning('Officer auto-assignment failed for booking %s', booking_reference, exc_info=True)
            return appointment

    @staticmethod
    def _current_status(appointment: Appointment) -> AppointmentStatus | None:
        try:
            return AppointmentStatus(appointment.status)
        except ValueError:
            return None
