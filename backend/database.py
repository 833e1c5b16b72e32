from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Request handlers and booking workers run on separate threads.
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_timeslot_schema_checked = False
_appointment_schema_checked = False


def ensure_timeslot_schema() -> None:
    global _timeslot_schema_checked

    if _timeslot_schema_checked:
        return

    with _schema_lock:
        if _timeslot_schema_checked:
            return

        inspector = inspect(engine)

        if 'timeslots' not in inspector.get_table_names():
            _timeslot_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('timeslots')}
        migration_steps = [
            ('end_time', 'ALTER TABLE timeslots ADD COLUMN end_time TIME'),
            ('created_at', 'ALTER TABLE timeslots ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE timeslots ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_timeslots_service_date ON timeslots(service_id, slot_date, start_time)')
            )

        _timeslot_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('qr_code', 'ALTER TABLE appointments ADD COLUMN qr_code VARCHAR'),
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_user_timeslot ON appointments(user_id, timeslot_id)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_officer_status ON appointments(officer_id, status)')
            )

        _appointment_schema_checked = True
