import os
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402,F401
from backend.models.department import Department, Service  # noqa: E402
from backend.models.officer import Officer  # noqa: E402
from backend.models.timeslot import Timeslot  # noqa: E402
from backend.models.user import User  # noqa: E402
from backend.repositories.timeslot_repository import TimeslotRepository  # noqa: E402

USER_COUNT = 8


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "booking.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@dataclass
class Directory:
    department_id: int
    service_id: int
    other_service_id: int
    user_ids: list[int]
    officer_ids: list[int]


@pytest.fixture
def directory(db: Session) -> Directory:
    department = Department(name='Registration')
    other_department = Department(name='Motor Traffic')
    db.add_all([department, other_department])
    db.flush()

    service = Service(department_id=department.id, name='Passport renewal', duration_minutes=30)
    other_service = Service(department_id=other_department.id, name='Licence renewal', duration_minutes=30)
    users = [
        User(email=f'citizen{index}@example.lk', first_name='Citizen', last_name=str(index), role='citizen')
        for index in range(USER_COUNT)
    ]
    officer_users = [
        User(email=f'officer{index}@gov.lk', first_name='Officer', last_name=str(index), role='officer')
        for index in range(2)
    ]
    db.add_all([service, other_service, *users, *officer_users])
    db.flush()

    officers = [
        Officer(user_id=officer_user.id, department_id=department.id, position='Clerk')
        for officer_user in officer_users
    ]
    db.add_all(officers)
    db.commit()

    return Directory(
        department_id=department.id,
        service_id=service.id,
        other_service_id=other_service.id,
        user_ids=[user.id for user in users],
        officer_ids=[officer.id for officer in officers],
    )


@pytest.fixture
def make_timeslot(db: Session, directory: Directory):
    def _make_timeslot(
        capacity: int = 1,
        slots_available: int | None = None,
        starts_at: datetime | None = None,
        service_id: int | None = None,
    ) -> int:
        starts_at = starts_at or datetime.combine(date.today() + timedelta(days=7), time(10, 0))
        timeslot = Timeslot(
            service_id=service_id or directory.service_id,
            slot_date=starts_at.date(),
            start_time=starts_at.time(),
            end_time=(starts_at + timedelta(minutes=30)).time(),
            capacity=capacity,
            slots_available=capacity if slots_available is None else slots_available,
        )
        db.add(timeslot)
        db.commit()
        return timeslot.id

    return _make_timeslot


@pytest.fixture
def read_slots(session_factory):
    """Read slots_available through a fresh session."""
    def _read_slots(timeslot_id: int) -> int:
        session = session_factory()
        try:
            return TimeslotRepository(session).read(timeslot_id).slots_available
        finally:
            session.close()

    return _read_slots


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()

