import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from telehealth.auth.dependencies import ensure_role, get_current_user
from telehealth.database import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready, get_db
from telehealth.models.doctor import APPROVED_VERIFICATION, PENDING_VERIFICATION, DoctorProfile
from telehealth.models.user import ADMIN_ROLE, DOCTOR_ROLE, User
from telehealth.scheduling.conflicts import build_slot_set
from telehealth.scheduling.slots import TimeSlot

router = APIRouter(tags=['doctors'])

logger = logging.getLogger(__name__)

LICENSE_NUMBER_PATTERN = re.compile(r'^NMC-\d{6,}$')
MAX_BIOGRAPHY_LENGTH = 2000


class CreateDoctorProfileRequest(BaseModel):
    name: str
    email: str
    specialization: str
    education: str | None = None
    experience_years: int = Field(default=0, ge=0)
    license_number: str
    biography: str | None = None
    languages: list[str] = Field(default_factory=list)
    selected_time_slots: list[TimeSlot] = Field(default_factory=list, alias='selectedTimeSlots')

    class Config:
        populate_by_name = True

    @field_validator('name', 'specialization')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email address is required.')
        return normalized

    @field_validator('license_number')
    @classmethod
    def validate_license_number(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not LICENSE_NUMBER_PATTERN.match(normalized):
            raise ValueError("License must start with 'NMC-' followed by 6+ digits.")
        return normalized

    @field_validator('biography')
    @classmethod
    def validate_biography(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_BIOGRAPHY_LENGTH:
            raise ValueError(f'Biography must be {MAX_BIOGRAPHY_LENGTH} characters or fewer.')

        return normalized


class DoctorResponse(BaseModel):
    id: int
    name: str
    email: str
    specialization: str
    education: str | None = None
    experience_years: int = 0
    license_number: str
    biography: str | None = None
    languages: list[str] = Field(default_factory=list)
    verification_status: str
    selected_time_slots: list[TimeSlot] = Field(default_factory=list, alias='selectedTimeSlots')
    available_days: list[str] = Field(default_factory=list, alias='availableDays')

    class Config:
        populate_by_name = True


def to_doctor_response(doctor: DoctorProfile) -> DoctorResponse:
    return DoctorResponse(
        id=doctor.id,
        name=doctor.name,
        email=doctor.email,
        specialization=doctor.specialization,
        education=doctor.education,
        experience_years=doctor.experience_years or 0,
        license_number=doctor.license_number,
        biography=doctor.biography,
        languages=doctor.languages or [],
        verification_status=doctor.verification_status or PENDING_VERIFICATION,
        selected_time_slots=doctor.selected_slots(),
        available_days=doctor.available_days or [],
    )


def get_doctor_profile_for_user(db: Session, user: User) -> DoctorProfile:
    doctor = db.query(DoctorProfile).filter(DoctorProfile.user_id == user.id).first()
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor profile not found. Complete profile setup first.',
        )
    return doctor


def get_doctor_or_404(db: Session, doctor_id: int) -> DoctorProfile:
    doctor = db.query(DoctorProfile).filter(DoctorProfile.id == doctor_id).first()
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )
    return doctor


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor_profile(
    data: CreateDoctorProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, DOCTOR_ROLE, detail='Only doctors can create a doctor profile.')

    slots, conflict = build_slot_set(data.selected_time_slots)
    if conflict is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict.message,
        )

    ensure_database_ready()

    try:
        existing = db.query(DoctorProfile).filter(DoctorProfile.user_id == current_user.id).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Profile already exists for this user.',
            )

        now = datetime.now()
        doctor = DoctorProfile(
            user_id=current_user.id,
            name=data.name,
            email=data.email,
            specialization=data.specialization,
            education=data.education,
            experience_years=data.experience_years,
            license_number=data.license_number,
            biography=data.biography,
            languages=data.languages,
            verification_status=PENDING_VERIFICATION,
            created_at=now,
        )
        doctor.set_selected_slots(slots)

        db.add(doctor)
        db.commit()
        db.refresh(doctor)

        logger.info('Doctor profile %s submitted for verification', doctor.id)
        return to_doctor_response(doctor)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Profile already exists for this user.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('', response_model=list[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctors = db.query(DoctorProfile).filter(
            DoctorProfile.verification_status == APPROVED_VERIFICATION,
        ).order_by(DoctorProfile.name.asc()).all()

        return [to_doctor_response(doctor) for doctor in doctors]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/pending', response_model=list[DoctorResponse])
def list_pending_doctors(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, ADMIN_ROLE, detail='Only admins can review doctor registrations.')
    ensure_database_ready()

    try:
        doctors = db.query(DoctorProfile).filter(
            DoctorProfile.verification_status == PENDING_VERIFICATION,
        ).order_by(DoctorProfile.created_at.asc()).all()

        return [to_doctor_response(doctor) for doctor in doctors]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_doctor_response(get_doctor_or_404(db, doctor_id))
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('/{doctor_id}/approve', response_model=DoctorResponse)
def approve_doctor(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, ADMIN_ROLE, detail='Only admins can approve doctors.')
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(db, doctor_id)
        if doctor.verification_status != PENDING_VERIFICATION:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Doctor is not awaiting verification.',
            )

        doctor.verification_status = APPROVED_VERIFICATION
        doctor.updated_at = datetime.now()
        db.commit()
        db.refresh(doctor)

        logger.info('Doctor profile %s approved by user %s', doctor.id, current_user.id)
        return to_doctor_response(doctor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.delete('/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def reject_doctor(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_role(current_user, ADMIN_ROLE, detail='Only admins can reject doctors.')
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(db, doctor_id)
        if doctor.verification_status != PENDING_VERIFICATION:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Only pending registrations can be rejected.',
            )

        db.delete(doctor)
        db.commit()

        logger.info('Doctor profile %s rejected and removed by user %s', doctor_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc
