import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import sessionmaker

from telehealth.auth import dependencies, jwt_handler
from telehealth.auth.dependencies import ensure_role, get_current_user
from telehealth.routes.auth_routes import me


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


@pytest.fixture
def session_factory(db_session, monkeypatch: pytest.MonkeyPatch):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())
    monkeypatch.setattr(dependencies, 'SessionLocal', factory)
    return factory


def test_access_token_round_trip_includes_role() -> None:
    token = jwt_handler.create_access_token('doctor@example.com', role='doctor')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'doctor@example.com'
    assert payload['role'] == 'doctor'
    assert payload['exp'] > payload['iat']


def test_get_current_user_resolves_token_subject(session_factory, make_user) -> None:
    user = make_user('doctor@example.com', 'doctor')
    token = jwt_handler.create_access_token('Doctor@Example.com')

    current_user = get_current_user(_credentials(token))

    assert current_user.id == user.id
    assert me(current_user=current_user) is current_user


def test_get_current_user_rejects_invalid_token(session_factory) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials('not-a-token'))

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_unknown_user(session_factory) -> None:
    token = jwt_handler.create_access_token('ghost@example.com')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials(token))

    assert exception_info.value.detail == 'User not found'


def test_ensure_role(make_user) -> None:
    patient = make_user('patient@example.com', 'patient')

    ensure_role(patient, 'patient', 'admin')

    with pytest.raises(HTTPException) as exception_info:
        ensure_role(patient, 'admin', detail='Admins only.')

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Admins only.'


def test_get_current_user_accepts_matching_role_claim(session_factory, make_user) -> None:
    user = make_user('doctor@example.com', 'doctor')
    token = jwt_handler.create_access_token('doctor@example.com', role='doctor')

    assert get_current_user(_credentials(token)).id == user.id


def test_get_current_user_rejects_stale_role_claim(session_factory, make_user) -> None:
    make_user('patient@example.com', 'patient')
    token = jwt_handler.create_access_token('patient@example.com', role='admin')

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_credentials(token))

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Token role does not match user'
