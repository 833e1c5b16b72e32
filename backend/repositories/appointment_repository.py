"""Appointment persistence."""

import secrets
import string
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.appointment import Appointment, AppointmentStatus

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
REFERENCE_SUFFIX_LENGTH = 4


def generate_booking_reference(now: datetime | None = None) -> str:
    """Human-facing code such as ``GV2610194K7Q``: prefix, YYMMDD, 4 random base-36 characters."""
    now = now or datetime.now()
    suffix = ''.join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_SUFFIX_LENGTH))
    return f"{config.BOOKING_REFERENCE_PREFIX}{now:%y%m%d}{suffix}"


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, appointment_id: int) -> Appointment | None:
        return self.db.get(Appointment, appointment_id)

    def find_non_cancelled_by_user_and_timeslot(self, user_id: int, timeslot_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.user_id == user_id,
            Appointment.timeslot_id == timeslot_id,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        ).first()

    def get_next_booking_number(self) -> int:
        """Display number only: ``max + 1`` is not reserved, so concurrent bookings can share one.

        ``booking_reference`` is the unique handle for an appointment.
        """
        last_booking_no = self.db.scalar(select(func.max(Appointment.booking_no)))
        return (last_booking_no or 0) + 1

    def create(self, **appointment_data) -> Appointment:
        """Insert and commit. The returned instance is expired; call ``reload`` to fetch it."""
        appointment = Appointment(**appointment_data)
        try:
            self.db.add(appointment)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return appointment

    def reload(self, appointment: Appointment) -> Appointment:
        self.db.refresh(appointment)
        return appointment

    def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        *,
        expected_status: AppointmentStatus | None = None,
        cancellation_reason: str | None = None,
    ) -> Appointment | None:
        """Write ``status``, optionally only if the row is still in ``expected_status``.

        Returns None when no row was updated.
        """
        values = {'status': status.value, 'updated_at': datetime.now()}
        if cancellation_reason is not None:
            values['cancellation_reason'] = cancellation_reason

        statement = update(Appointment).where(Appointment.id == appointment_id)
        if expected_status is not None:
            statement = statement.where(Appointment.status == expected_status.value)

        try:
            result = self.db.execute(statement.values(**values).execution_options(synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if result.rowcount == 0:
            return None

        appointment = self.find_by_id(appointment_id)
        self.db.refresh(appointment)
        return appointment

    def assign_officer(self, appointment_id: int, officer_id: int) -> Appointment | None:
        appointment = self.find_by_id(appointment_id)
        if appointment is None:
            return None

        appointment.officer_id = officer_id
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(appointment)
        return appointment

    def count_pending_by_officer(self, officer_id: int) -> int:
        return self.db.scalar(
            select(func.count()).select_from(Appointment).where(
                Appointment.officer_id == officer_id,
                Appointment.status == AppointmentStatus.PENDING.value,
            )
        )
