from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base


class ReferralStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String, nullable=False)
    mobile = Column(String, nullable=False)
    address = Column(Text, default="", nullable=False)
    problem = Column(Text, nullable=False)
    diagnosis = Column(Text, default="", nullable=False)
    prescription = Column(Text, default="", nullable=False)
    visit_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    past_visits = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    doctor = relationship("User", backref="patients")
    referrals = relationship("PatientReferral", back_populates="patient", cascade="all, delete-orphan")


class PatientReferral(Base):
    __tablename__ = "patient_referrals"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    from_doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    to_doctor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    status = Column(String, default=ReferralStatus.pending.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="referrals")
    from_doctor = relationship("User", foreign_keys=[from_doctor_id])
    to_doctor = relationship("User", foreign_keys=[to_doctor_id])
