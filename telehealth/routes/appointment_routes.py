import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import ensure_role, get_current_user
from telehealth.database import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready, get_db
from telehealth.models.appointment import Appointment
from telehealth.models.doctor import DoctorProfile
from telehealth.models.user import ADMIN_ROLE, DOCTOR_ROLE, PATIENT_ROLE, User
from telehealth.routes.doctor_routes import get_doctor_or_404, get_doctor_profile_for_user
from telehealth.scheduling.slots import format_clock, parse_clock, weekday_name
from telehealth.scheduling.windows import (
    DATE_FORMAT,
    WindowState,
    check_appointment_window,
    effective_status,
    find_booking_conflict,
    is_upcoming,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

PENDING_STATUS = 'pending'
CONFIRMED_STATUS = 'confirmed'
REJECTED_STATUS = 'rejected'
CANCELLED_STATUS = 'cancelled'
CANCELLABLE_STATUSES = {PENDING_STATUS, CONFIRMED_STATUS}
MAX_APPOINTMENT_NOTES_LENGTH = 600


def current_time() -> datetime:
    return datetime.now()


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    date: date
    start_time: str
    notes: str | None = None

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        try:
            return format_clock(parse_clock(value))
        except (TypeError, ValueError) as exc:
            raise ValueError('Start time must use the 24-hour HH:MM format.') from exc

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    date: str
    start_time: str
    end_time: str | None = None
    status: str
    notes: str | None = None


class AppointmentWindowResponse(BaseModel):
    appointment_id: int
    state: WindowState
    is_open: bool
    message: str
    status: str
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    seconds_remaining: int | None = None


def to_appointment_response(appointment: Appointment, now: datetime) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        date=appointment.date,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        status=effective_status(now, appointment),
        notes=appointment.notes,
    )


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def is_participant(db: Session, appointment: Appointment, user: User) -> bool:
    if user.role == ADMIN_ROLE or appointment.patient_id == user.id:
        return True
    if user.role != DOCTOR_ROLE:
        return False
    doctor = db.query(DoctorProfile).filter(DoctorProfile.user_id == user.id).first()
    return doctor is not None and doctor.id == appointment.doctor_id


def get_owned_pending_appointment(db: Session, appointment_id: int, user: User) -> Appointment:
    ensure_role(user, DOCTOR_ROLE, detail='Only doctors can respond to appointment requests.')

    doctor = get_doctor_profile_for_user(db, user)
    appointment = get_appointment_or_404(db, appointment_id)

    if appointment.doctor_id != doctor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the booked doctor can respond to this appointment.',
        )

    if appointment.status != PENDING_STATUS:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Appointment is already {appointment.status}.',
        )

    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, PATIENT_ROLE, detail='Only patients can book appointments.')
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(db, data.doctor_id)
        if not doctor.is_verified:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This doctor is not accepting appointments yet.',
            )

        day = weekday_name(data.date)
        slot = next(
            (
                selected for selected in doctor.selected_slots()
                if selected.day == day and selected.start_time == data.start_time
            ),
            None,
        )
        if slot is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'The doctor does not offer a {data.start_time} slot on {day}s.',
            )

        appointment_date = data.date.strftime(DATE_FORMAT)
        now = current_time()
        if datetime.combine(data.date, slot.start) <= now:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Appointments must be scheduled in the future.',
            )

        booked = db.query(Appointment).filter(
            Appointment.doctor_id == doctor.id,
            Appointment.date == appointment_date,
        ).all()
        if find_booking_conflict(booked, appointment_date, slot.start_time, slot.end_time):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This time is already booked.',
            )

        appointment = Appointment(
            patient_id=current_user.id,
            doctor_id=doctor.id,
            date=appointment_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=PENDING_STATUS,
            notes=data.notes,
            created_at=now,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        return to_appointment_response(appointment, now)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_my_appointments(
    include_past: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if current_user.role == DOCTOR_ROLE:
            doctor = get_doctor_profile_for_user(db, current_user)
            query = query.filter(Appointment.doctor_id == doctor.id)
        elif current_user.role != ADMIN_ROLE:
            query = query.filter(Appointment.patient_id == current_user.id)

        appointments = query.order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()

        now = current_time()
        if not include_past:
            appointments = [
                appointment for appointment in appointments
                if is_upcoming(now, appointment) or check_appointment_window(now, appointment).is_open
            ]

        return [to_appointment_response(appointment, now) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_pending_appointment(db, appointment_id, current_user)
        appointment.status = CONFIRMED_STATUS
        db.commit()
        db.refresh(appointment)

        logger.info('Appointment %s confirmed', appointment.id)
        return to_appointment_response(appointment, current_time())
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/reject', response_model=AppointmentResponse)
def reject_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_owned_pending_appointment(db, appointment_id, current_user)
        appointment.status = REJECTED_STATUS
        db.commit()
        db.refresh(appointment)

        logger.info('Appointment %s rejected', appointment.id)
        return to_appointment_response(appointment, current_time())
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, PATIENT_ROLE, detail='Only patients can cancel their own appointments.')
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)

        if appointment.patient_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the patient who booked this appointment can cancel it.',
            )

        if appointment.status not in CANCELLABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Appointment is already {appointment.status}.',
            )

        appointment.status = CANCELLED_STATUS
        db.commit()
        db.refresh(appointment)

        return to_appointment_response(appointment, current_time())
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{appointment_id}/window', response_model=AppointmentWindowResponse)
def get_appointment_window(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(db, appointment_id)
        if not is_participant(db, appointment, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the appointment participants can join this session.',
            )

        now = current_time()
        check = check_appointment_window(now, appointment)

        return AppointmentWindowResponse(
            appointment_id=appointment.id,
            state=check.state,
            is_open=check.is_open,
            message=check.message,
            status=effective_status(now, appointment),
            starts_at=check.starts_at,
            ends_at=check.ends_at,
            seconds_remaining=check.seconds_remaining,
        )
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
