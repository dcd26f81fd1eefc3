from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.database import Base


class OtpPurpose(str, Enum):
    email_verification = "email_verification"
    forgot_password = "forgot_password"


class OtpCode(Base):
    """One outstanding code per (subject, purpose); subject is an email or a mobile."""

    __tablename__ = "otp_codes"
    __table_args__ = (
        UniqueConstraint("email", "purpose", name="uq_otp_email_purpose"),
        UniqueConstraint("mobile", "purpose", name="uq_otp_mobile_purpose"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=True, index=True)
    mobile = Column(String, nullable=True, index=True)
    purpose = Column(String, nullable=False, default=OtpPurpose.email_verification.value)
    code = Column(String, nullable=False)
    expire_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
