import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from telehealth.database import Base  # noqa: E402
from telehealth.models.appointment import Appointment  # noqa: E402
from telehealth.models.doctor import DoctorProfile  # noqa: E402
from telehealth.models.user import User  # noqa: E402

TABLES = [User.__table__, DoctorProfile.__table__, Appointment.__table__]


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def make_user(db_session):
    def _make_user(email: str, role: str) -> User:
        user = User(email=email, full_name=email.split('@')[0], role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user
