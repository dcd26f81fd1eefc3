from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import DocumentVerification, User, UserRole
from app.schemas.user import AvailabilityUpdate, DocumentSubmission, DoctorSummary, UserResponse
from app.services.auth_middleware import get_current_doctor, get_current_user
from app.utils.errors import ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.get("")
def list_doctors(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        doctors = (
            db.query(User)
            .filter(User.role == UserRole.doctor.value)
            .order_by(User.name.asc())
            .all()
        )
        payload = [DoctorSummary.model_validate(doctor).model_dump() for doctor in doctors]
        return create_response(
            message="Doctors fetched successfully",
            data={"count": len(payload), "doctors": payload},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/availability")
def update_availability(
    body: AvailabilityUpdate,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        current_doctor.availability_status = body.availability_status.value
        db.commit()
        db.refresh(current_doctor)
        return create_response(
            message="Availability updated",
            data=DoctorSummary.model_validate(current_doctor).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/documents")
def submit_documents(
    body: DocumentSubmission,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        if current_doctor.document_verification == DocumentVerification.pending.value:
            raise ValidationError(
                "Your previous documents are still pending review. Please wait for admin approval."
            )
        if current_doctor.document_verification == DocumentVerification.approved.value:
            raise ValidationError("Your documents are already approved. No need to upload again.")

        current_doctor.government_id_doc = body.government_id
        current_doctor.medical_certificate_doc = body.medical_certificate
        current_doctor.degree_certificate_doc = body.degree_certificate
        current_doctor.document_verification = DocumentVerification.pending.value
        current_doctor.document_reject_reason = None
        db.commit()
        db.refresh(current_doctor)

        return create_response(
            message="Documents uploaded successfully. Waiting for admin approval.",
            data=UserResponse.model_validate(current_doctor).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
