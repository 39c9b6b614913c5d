"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, ForeignKey, String
from telehealth.database import Base


class Appointment(Base):
    """Represents a patient's booking of one of a doctor's slots."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), index=True)
    date = Column(String(10))  # YYYY-MM-DD
    start_time = Column(String(5))  # HH:MM
    end_time = Column(String(5), nullable=True)
    status = Column(String, default="pending")
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    def __repr__(self) -> str:
        return (
            f"Appointment(id={self.id!r}, doctor_id={self.doctor_id!r}, date={self.date!r}, "
            f"start_time={self.start_time!r}, end_time={self.end_time!r}, status={self.status!r})"
        )
