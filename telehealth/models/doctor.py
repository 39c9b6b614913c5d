"""Doctor profile model definitions."""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from telehealth.database import Base
from telehealth.scheduling.conflicts import derive_available_days
from telehealth.scheduling.slots import TimeSlot

PENDING_VERIFICATION = "pending"
APPROVED_VERIFICATION = "approved"


class DoctorProfile(Base):
    """Represents a doctor's profile and weekly bookable availability."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True)
    name = Column(String)
    email = Column(String)
    specialization = Column(String)
    education = Column(String, nullable=True)
    experience_years = Column(Integer, default=0)
    license_number = Column(String)
    biography = Column(String, nullable=True)
    languages = Column(JSON, default=list)
    verification_status = Column(String, default=PENDING_VERIFICATION)
    selected_time_slots = Column(JSON, default=list)
    available_days = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == APPROVED_VERIFICATION

    def selected_slots(self) -> list[TimeSlot]:
        return [TimeSlot.model_validate(slot) for slot in self.selected_time_slots or []]

    def set_selected_slots(self, slots: Iterable[TimeSlot]) -> None:
        """Store the slot set; ``available_days`` is always recomputed from it."""
        slots = list(slots)
        self.selected_time_slots = [slot.model_dump(by_alias=True) for slot in slots]
        self.available_days = derive_available_days(slots)
        self.updated_at = datetime.now()
