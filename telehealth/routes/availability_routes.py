import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import ensure_role, get_current_user
from telehealth.core import config
from telehealth.database import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready, get_db
from telehealth.models.doctor import DoctorProfile
from telehealth.models.user import DOCTOR_ROLE, User
from telehealth.routes.doctor_routes import get_doctor_or_404, get_doctor_profile_for_user
from telehealth.scheduling.conflicts import build_slot_set, toggle_slot
from telehealth.scheduling.slots import (
    DAYS_OF_WEEK,
    TimeSlot,
    generate_time_slots,
    generate_weekly_slots,
    normalize_day,
)

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class AvailabilityResponse(BaseModel):
    doctor_id: int
    selected_time_slots: list[TimeSlot] = Field(default_factory=list, alias='selectedTimeSlots')
    available_days: list[str] = Field(default_factory=list, alias='availableDays')

    class Config:
        populate_by_name = True


class ToggleSlotResponse(AvailabilityResponse):
    action: str


class ReplaceAvailabilityRequest(BaseModel):
    selected_time_slots: list[TimeSlot] = Field(alias='selectedTimeSlots')

    class Config:
        populate_by_name = True


def to_availability_response(doctor: DoctorProfile) -> AvailabilityResponse:
    return AvailabilityResponse(
        doctor_id=doctor.id,
        selected_time_slots=doctor.selected_slots(),
        available_days=doctor.available_days or [],
    )


@router.get('/slots', response_model=dict[str, list[TimeSlot]])
def list_weekly_slots(
    start_hour: int = Query(default=config.SLOT_START_HOUR, ge=0, le=24),
    end_hour: int = Query(default=config.SLOT_END_HOUR, ge=0, le=24),
    interval_minutes: int = Query(default=config.SLOT_INTERVAL_MINUTES, ge=1, le=60),
):
    return generate_weekly_slots(start_hour, end_hour, interval_minutes)


@router.get('/slots/{day}', response_model=list[TimeSlot])
def list_day_slots(
    day: str,
    start_hour: int = Query(default=config.SLOT_START_HOUR, ge=0, le=24),
    end_hour: int = Query(default=config.SLOT_END_HOUR, ge=0, le=24),
    interval_minutes: int = Query(default=config.SLOT_INTERVAL_MINUTES, ge=1, le=60),
):
    try:
        normalized_day = normalize_day(day)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'Day must be one of: {", ".join(DAYS_OF_WEEK)}.',
        ) from exc

    return generate_time_slots(normalized_day, start_hour, end_hour, interval_minutes)


@router.get('/doctors/{doctor_id}', response_model=AvailabilityResponse)
def get_doctor_availability(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_availability_response(get_doctor_or_404(db, doctor_id))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/doctors/me/toggle', response_model=ToggleSlotResponse)
def toggle_my_slot(
    data: TimeSlot,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, DOCTOR_ROLE, detail='Only doctors can edit availability.')
    ensure_database_ready()

    try:
        doctor = get_doctor_profile_for_user(db, current_user)
        result = toggle_slot(doctor.selected_slots(), data)

        if result.conflict is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=result.conflict.message,
            )

        doctor.set_selected_slots(result.slots)
        db.commit()
        db.refresh(doctor)

        logger.info('Doctor %s %s slot %s', doctor.id, result.action, data.id)
        return ToggleSlotResponse(
            doctor_id=doctor.id,
            selected_time_slots=doctor.selected_slots(),
            available_days=doctor.available_days or [],
            action=result.action,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/doctors/me', response_model=AvailabilityResponse)
def replace_my_availability(
    data: ReplaceAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, DOCTOR_ROLE, detail='Only doctors can edit availability.')

    slots, conflict = build_slot_set(data.selected_time_slots)
    if conflict is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict.message,
        )

    ensure_database_ready()

    try:
        doctor = get_doctor_profile_for_user(db, current_user)
        doctor.set_selected_slots(slots)
        db.commit()
        db.refresh(doctor)

        return to_availability_response(doctor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
