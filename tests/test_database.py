import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

from telehealth import database


@pytest.fixture
def legacy_engine(tmp_path, monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(f'sqlite:///{tmp_path / "legacy.db"}')
    with engine.begin() as connection:
        connection.execute(text(
            'CREATE TABLE doctors (id INTEGER PRIMARY KEY, user_id INTEGER, name VARCHAR, selected_time_slots JSON)'
        ))
        connection.execute(text(
            'CREATE TABLE appointments (id INTEGER PRIMARY KEY, patient_id INTEGER, doctor_id INTEGER, '
            'date VARCHAR, start_time VARCHAR, status VARCHAR)'
        ))

    monkeypatch.setattr(database, 'engine', engine)
    monkeypatch.setattr(database, '_doctor_schema_checked', False)
    monkeypatch.setattr(database, '_appointment_schema_checked', False)
    yield engine
    engine.dispose()


def test_ensure_schema_adds_missing_columns_and_indexes(legacy_engine) -> None:
    database.ensure_database_ready()

    inspector = inspect(legacy_engine)
    doctor_columns = {column['name'] for column in inspector.get_columns('doctors')}
    appointment_columns = {column['name'] for column in inspector.get_columns('appointments')}
    appointment_indexes = {index['name'] for index in inspector.get_indexes('appointments')}

    assert {'available_days', 'verification_status', 'updated_at'} <= doctor_columns
    assert {'end_time', 'notes'} <= appointment_columns
    assert 'idx_appointments_doctor_date' in appointment_indexes
    assert database._doctor_schema_checked is True
    assert database._appointment_schema_checked is True


def test_ensure_schema_is_idempotent(legacy_engine) -> None:
    database.ensure_database_ready()
    database._doctor_schema_checked = False
    database._appointment_schema_checked = False

    database.ensure_database_ready()


def test_ensure_database_ready_maps_database_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> None:
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(database, 'ensure_doctor_schema', fail)

    with pytest.raises(HTTPException) as exception_info:
        database.ensure_database_ready()

    assert exception_info.value.status_code == 503
