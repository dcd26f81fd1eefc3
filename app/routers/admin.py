import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import DocumentVerification, User, UserRole
from app.schemas.user import BlockUpdate, DocumentReview, UserResponse
from app.services.auth_middleware import get_current_admin
from app.services.email_services import Notifier, get_notifier
from app.services.verification_service import deliver
from app.utils.errors import NotFoundError, ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/admin", tags=["Admin"])
logger = logging.getLogger(__name__)

APPROVED_TEMPLATE = """Dear Dr. {name},

We are pleased to inform you that your submitted documents have been successfully verified and approved.

You can now access all features available to verified doctors on our platform.

Best regards,
Admin Team
"""

REJECTED_TEMPLATE = """Dear Dr. {name},

We regret to inform you that your submitted documents have not been approved due to the following reason:

{reason}

Kindly review the requirements and re-submit the correct documents at your earliest convenience.

Best regards,
Admin Team
"""


@router.put("/verify-doctor-documents")
def verify_doctor_documents(
    body: DocumentReview,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_admin: User = Depends(get_current_admin),
):
    try:
        doctor = db.query(User).filter(User.id == body.doctor_id).first()
        if not doctor:
            raise NotFoundError("Doctor user not found.")
        if doctor.role != UserRole.doctor.value:
            raise ValidationError("User is not a doctor.")

        if body.verification_status == DocumentVerification.rejected:
            reason = (body.reject_reason or "").strip()
            if not reason:
                raise ValidationError("reject_reason is required when rejecting documents.")
            subject = "Document Verification - Action Required"
            message = REJECTED_TEMPLATE.format(name=doctor.name, reason=reason)
        else:
            reason = None
            subject = "Document Verification Successful"
            message = APPROVED_TEMPLATE.format(name=doctor.name)

        # Decision is only persisted once the doctor has been notified
        deliver(notifier, doctor.email, subject, message)

        doctor.document_verification = body.verification_status.value
        doctor.document_reject_reason = reason
        db.commit()
        db.refresh(doctor)
        logger.info(
            "Admin %s marked documents of doctor %s as %s",
            current_admin.id,
            doctor.id,
            doctor.document_verification,
        )

        return create_response(
            message=f"Documents {body.verification_status.value} successfully.",
            data=UserResponse.model_validate(doctor).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/users/{user_id}/block")
def set_user_blocked(
    user_id: int,
    body: BlockUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError()
        if user.id == current_admin.id:
            raise ValidationError("Admins cannot block their own account")

        user.is_blocked = body.blocked
        db.commit()
        db.refresh(user)

        return create_response(
            message="User blocked" if user.is_blocked else "User unblocked",
            data=UserResponse.model_validate(user).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
