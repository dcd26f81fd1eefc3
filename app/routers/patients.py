from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.patient import Patient
from app.models.user import User
from app.schemas.patient import PatientCreate, PatientResponse, PatientUpdate
from app.services.auth_middleware import get_current_doctor
from app.utils.errors import ForbiddenError, NotFoundError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/patients", tags=["Patients"], dependencies=[Depends(get_current_doctor)])


def get_owned_patient(db: Session, patient_id: int, doctor: User) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if not patient:
        raise NotFoundError("Patient not found")
    if patient.doctor_id != doctor.id:
        raise ForbiddenError()
    return patient


@router.post("")
def add_patient(
    body: PatientCreate,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patient = Patient(doctor_id=current_doctor.id, past_visits=[], **body.model_dump(mode="json"))
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return create_response(
            message="Patient added successfully",
            data=PatientResponse.model_validate(patient).model_dump(),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("")
def list_patients(
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patients = (
            db.query(Patient)
            .filter(Patient.doctor_id == current_doctor.id)
            .order_by(Patient.visit_date.desc(), Patient.id.desc())
            .all()
        )
        payload = [PatientResponse.model_validate(patient).model_dump() for patient in patients]
        return create_response(
            message="Patients fetched successfully",
            data={"count": len(payload), "patients": payload},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/{patient_id}")
def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patient = get_owned_patient(db, patient_id, current_doctor)
        return create_response(
            message="Patient fetched successfully",
            data=PatientResponse.model_validate(patient).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{patient_id}")
def update_patient(
    patient_id: int,
    body: PatientUpdate,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patient = get_owned_patient(db, patient_id, current_doctor)
        for field, value in body.model_dump(mode="json", exclude_unset=True).items():
            if field == "visit_date":
                value = body.visit_date
            setattr(patient, field, value)
        db.commit()
        db.refresh(patient)
        return create_response(
            message="Patient updated successfully",
            data=PatientResponse.model_validate(patient).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patient = get_owned_patient(db, patient_id, current_doctor)
        db.delete(patient)
        db.commit()
        return create_response(
            message="Patient deleted successfully",
            data={"deleted": True, "id": patient_id},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
