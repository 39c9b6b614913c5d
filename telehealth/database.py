from threading import Lock

from fastapi import HTTPException, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from telehealth.core import config

DATABASE_URL = config.DATABASE_URL

connect_args = {'check_same_thread': False} if DATABASE_URL.startswith('sqlite') else {}
engine = create_engine(DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_schema_lock = Lock()
_doctor_schema_checked = False
_appointment_schema_checked = False


def ensure_doctor_schema() -> None:
    global _doctor_schema_checked

    if _doctor_schema_checked:
        return

    with _schema_lock:
        if _doctor_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctors' not in inspector.get_table_names():
            _doctor_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctors')}
        migration_steps = [
            ('available_days', 'ALTER TABLE doctors ADD COLUMN available_days JSON'),
            ('verification_status', "ALTER TABLE doctors ADD COLUMN verification_status VARCHAR DEFAULT 'pending'"),
            ('updated_at', 'ALTER TABLE doctors ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_doctors_verification ON doctors(verification_status)')
            )

        _doctor_schema_checked = True


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

        # older bookings stored only a start time; end_time stays NULL for them
        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('end_time', 'ALTER TABLE appointments ADD COLUMN end_time VARCHAR'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, date)')
            )

        _appointment_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
