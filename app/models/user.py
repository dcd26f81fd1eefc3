import re
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import validates

from app.database import Base


class UserRole(str, Enum):
    user = "user"
    doctor = "doctor"
    admin = "admin"


class DocumentVerification(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AvailabilityStatus(str, Enum):
    busy = "Busy"
    in_opd = "In OPD"
    in_surgery = "In Surgery"
    in_vacation = "In Vacation"
    call_or_online_only = "Available for Call or Online Consultation Only"
    do_not_disturb = "Don't disturb"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_mobile(mobile: str | None) -> str:
    return re.sub(r"[\s\-()]+", "", mobile or "")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Registration fields
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    mobile = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    role = Column(String, default=UserRole.user.value, nullable=False)
    profile_image = Column(String, nullable=True)

    # Verification flags; "verified" is only ever written by _sync_verified
    email_verified = Column(Boolean, default=False, nullable=False)
    mobile_verified = Column(Boolean, default=False, nullable=False)
    _verified = Column("verified", Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)

    # Doctor profile
    clinic_address = Column(String, nullable=True)
    hospital_address = Column(String, nullable=True)
    opd_timing = Column(String, nullable=True)
    opd_days = Column(JSON, nullable=True)
    surgery_timing = Column(String, nullable=True)
    surgery_days = Column(JSON, nullable=True)
    availability_status = Column(String, nullable=True)

    # Doctor documents (opaque storage references) + one review status
    government_id_doc = Column(String, nullable=True)
    medical_certificate_doc = Column(String, nullable=True)
    degree_certificate_doc = Column(String, nullable=True)
    document_verification = Column(String, nullable=True)
    document_reject_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @validates("email_verified", "mobile_verified")
    def _sync_verified(self, key, value):
        value = bool(value)
        other = self.mobile_verified if key == "email_verified" else self.email_verified
        self._verified = value and bool(other)
        return value

    @property
    def verified(self) -> bool:
        return bool(self._verified)

    @property
    def work_schedule(self) -> dict:
        return {
            "opd_timing": self.opd_timing,
            "opd_days": self.opd_days or [],
            "surgery_timing": self.surgery_timing,
            "surgery_days": self.surgery_days or [],
        }

    @property
    def documents(self) -> dict:
        return {
            "government_id": self.government_id_doc,
            "medical_certificate": self.medical_certificate_doc,
            "degree_certificate": self.degree_certificate_doc,
        }
