from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import AvailabilityStatus, DocumentVerification, UserRole

MIN_PASSWORD_LENGTH = 6


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    mobile: str
    date_of_birth: date
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    role: UserRole = UserRole.user

    @field_validator("name", "mobile")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        return _not_blank(value)


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: str

    @field_validator("otp")
    @classmethod
    def validate_otp(cls, value: str) -> str:
        return _not_blank(value)


class VerifyMobileRequest(BaseModel):
    id_token: str

    @field_validator("id_token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        return _not_blank(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: UserRole


class EmailOnlyRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class WorkSchedule(BaseModel):
    opd_timing: str | None = None
    opd_days: list[str] | None = None
    surgery_timing: str | None = None
    surgery_days: list[str] | None = None


class ProfileUpdate(BaseModel):
    name: str | None = None
    date_of_birth: date | None = None
    clinic_address: str | None = None
    hospital_address: str | None = None
    work_schedule: WorkSchedule | None = None


class AvailabilityUpdate(BaseModel):
    availability_status: AvailabilityStatus


class DocumentSubmission(BaseModel):
    government_id: str
    medical_certificate: str
    degree_certificate: str

    @field_validator("government_id", "medical_certificate", "degree_certificate")
    @classmethod
    def validate_reference(cls, value: str) -> str:
        return _not_blank(value)


class DocumentReview(BaseModel):
    doctor_id: int
    verification_status: DocumentVerification
    reject_reason: str | None = None

    @field_validator("verification_status")
    @classmethod
    def validate_decision(cls, value: DocumentVerification) -> DocumentVerification:
        if value == DocumentVerification.pending:
            raise ValueError("verification_status must be either 'approved' or 'rejected'")
        return value


class BlockUpdate(BaseModel):
    blocked: bool


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    mobile: str
    date_of_birth: date | None
    role: UserRole
    profile_image: str | None
    email_verified: bool
    mobile_verified: bool
    verified: bool
    is_blocked: bool
    clinic_address: str | None
    hospital_address: str | None
    work_schedule: WorkSchedule
    availability_status: str | None
    document_verification: DocumentVerification | None
    document_reject_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class DoctorSummary(BaseModel):
    id: int
    name: str
    email: EmailStr
    availability_status: str | None

    model_config = {"from_attributes": True}
