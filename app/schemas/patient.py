from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from app.models.patient import ReferralStatus


class GenderEnum(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class PastVisit(BaseModel):
    date: datetime | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    notes: str | None = None


class PatientCreate(BaseModel):
    name: str = Field(min_length=1)
    age: int = Field(ge=0, le=150)
    gender: GenderEnum
    mobile: str = Field(min_length=1)
    address: str = ""
    problem: str = Field(min_length=1)
    diagnosis: str = ""
    prescription: str = ""


class PatientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    age: int | None = Field(default=None, ge=0, le=150)
    gender: GenderEnum | None = None
    mobile: str | None = None
    address: str | None = None
    problem: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    visit_date: datetime | None = None
    past_visits: list[PastVisit] | None = None

    # Omitting a field leaves it as is; an explicit null cannot clear a required column
    @field_validator("*")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class PatientResponse(BaseModel):
    id: int
    doctor_id: int
    name: str
    age: int
    gender: GenderEnum
    mobile: str
    address: str
    problem: str
    diagnosis: str
    prescription: str
    visit_date: datetime
    past_visits: list[PastVisit]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReferralCreate(BaseModel):
    patient_id: int
    to_doctor_id: int
    reason: str | None = None


class ReferralStatusUpdate(BaseModel):
    status: ReferralStatus


class ReferralResponse(BaseModel):
    id: int
    patient_id: int
    from_doctor_id: int
    to_doctor_id: int
    reason: str | None
    status: ReferralStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
