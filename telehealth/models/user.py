"""User model definitions."""

from sqlalchemy import Column, Integer, String
from telehealth.database import Base

PATIENT_ROLE = "patient"
DOCTOR_ROLE = "doctor"
ADMIN_ROLE = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String)  # patient/doctor/admin
