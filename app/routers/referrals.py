from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.patient import PatientReferral
from app.models.user import User, UserRole
from app.routers.patients import get_owned_patient
from app.schemas.patient import ReferralCreate, ReferralResponse, ReferralStatusUpdate
from app.services.auth_middleware import get_current_doctor
from app.utils.errors import ForbiddenError, NotFoundError, ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/referrals", tags=["Referrals"], dependencies=[Depends(get_current_doctor)])


def _referral_payload(referral: PatientReferral) -> dict:
    payload = ReferralResponse.model_validate(referral).model_dump()
    payload["patient"] = {"id": referral.patient.id, "name": referral.patient.name}
    payload["from_doctor"] = {"id": referral.from_doctor.id, "name": referral.from_doctor.name}
    payload["to_doctor"] = {"id": referral.to_doctor.id, "name": referral.to_doctor.name}
    return payload


@router.post("")
def refer_patient(
    body: ReferralCreate,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        patient = get_owned_patient(db, body.patient_id, current_doctor)
        if body.to_doctor_id == current_doctor.id:
            raise ValidationError("Cannot refer a patient to yourself")
        to_doctor = (
            db.query(User)
            .filter(User.id == body.to_doctor_id, User.role == UserRole.doctor.value)
            .first()
        )
        if not to_doctor:
            raise NotFoundError("Doctor not found")

        referral = PatientReferral(
            patient_id=patient.id,
            from_doctor_id=current_doctor.id,
            to_doctor_id=to_doctor.id,
            reason=body.reason,
        )
        db.add(referral)
        db.commit()
        db.refresh(referral)
        return create_response(
            message="Patient referred successfully",
            data=_referral_payload(referral),
            status_code=status.HTTP_201_CREATED,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/sent")
def list_sent_referrals(
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        referrals = (
            db.query(PatientReferral)
            .filter(PatientReferral.from_doctor_id == current_doctor.id)
            .order_by(PatientReferral.created_at.desc())
            .all()
        )
        return create_response(
            message="Sent referrals fetched successfully",
            data=[_referral_payload(referral) for referral in referrals],
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/received")
def list_received_referrals(
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        referrals = (
            db.query(PatientReferral)
            .filter(PatientReferral.to_doctor_id == current_doctor.id)
            .order_by(PatientReferral.created_at.desc())
            .all()
        )
        return create_response(
            message="Received referrals fetched successfully",
            data=[_referral_payload(referral) for referral in referrals],
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/{referral_id}/status")
def update_referral_status(
    referral_id: int,
    body: ReferralStatusUpdate,
    db: Session = Depends(get_db),
    current_doctor: User = Depends(get_current_doctor),
):
    try:
        referral = db.query(PatientReferral).filter(PatientReferral.id == referral_id).first()
        if not referral:
            raise NotFoundError("Referral not found")
        # Only the receiving doctor decides on a referral
        if referral.to_doctor_id != current_doctor.id:
            raise ForbiddenError("Not authorized")

        referral.status = body.status.value
        db.commit()
        db.refresh(referral)
        return create_response(
            message="Referral status updated",
            data=_referral_payload(referral),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
