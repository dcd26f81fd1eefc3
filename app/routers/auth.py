import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.user import (
    EmailOnlyRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
    VerifyMobileRequest,
)
from app.services.auth_middleware import get_current_user
from app.services.auth_service import authenticate
from app.services.email_services import Notifier, get_notifier
from app.services.firebase_service import MobileTokenVerifier, get_mobile_verifier
from app.services.password_reset_service import complete_reset, request_reset
from app.services.verification_service import (
    confirm_email,
    confirm_mobile,
    describe_state,
    register_identity,
    resend_email_otp,
)
from app.utils.errors import ValidationError
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


def _verification_payload(user: User) -> dict:
    return {
        "email": user.email,
        "email_verified": user.email_verified,
        "mobile_verified": user.mobile_verified,
        "verified": user.verified,
        "state": describe_state(user).value,
    }


@router.post("/register")
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        user, created = register_identity(db, body, notifier)
        if created:
            message = "User registered. Email OTP sent. Mobile verification via Firebase."
            status_code = status.HTTP_201_CREATED
        elif user.email_verified:
            message = "Already registered. Email verified, complete mobile verification via Firebase."
            status_code = status.HTTP_200_OK
        else:
            message = "Already registered but not verified. Email OTP sent. Mobile verification via Firebase."
            status_code = status.HTTP_200_OK
        return create_response(
            message=message,
            data=_verification_payload(user),
            status_code=status_code,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify-email")
def verify_email(body: VerifyEmailRequest, db: Session = Depends(get_db)):
    try:
        user = confirm_email(db, body.email, body.otp)
        return create_response(
            message="Email verified successfully",
            data=_verification_payload(user),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/verify-mobile")
def verify_mobile(
    body: VerifyMobileRequest,
    db: Session = Depends(get_db),
    verifier: MobileTokenVerifier = Depends(get_mobile_verifier),
):
    try:
        user = confirm_mobile(db, body.id_token, verifier)
        return create_response(
            message="Mobile verified successfully via Firebase",
            data=_verification_payload(user),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    try:
        token, user = authenticate(db, body.email, body.password, body.role)
        return create_response(
            message=f"{user.role} login successful",
            data={
                "access_token": token,
                "token_type": "bearer",
                "user": {
                    "id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "role": user.role,
                    "verified": user.verified,
                    "document_verification": user.document_verification,
                },
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/resend-email-otp")
def resend_email_verification(
    body: EmailOnlyRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        user = resend_email_otp(db, body.email, notifier)
        return create_response(
            message="OTP sent to email successfully",
            data={"email": user.email},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/forgot-password")
def forgot_password(
    body: EmailOnlyRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        user = request_reset(db, body.email, notifier)
        return create_response(
            message="OTP sent to email successfully",
            data={"email": user.email},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        user = complete_reset(db, body.email, body.otp, body.new_password)
        return create_response(
            message="Password reset successful",
            data={"email": user.email},
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    try:
        return create_response(
            message="Profile fetched successfully",
            data=UserResponse.model_validate(current_user).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@router.put("/profile-update")
def update_profile(
    update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        update_data = update.model_dump(exclude_unset=True, exclude_none=True)
        work_schedule = update_data.pop("work_schedule", None) or {}

        # Clinic details only apply to doctors
        if current_user.role == UserRole.doctor.value:
            update_data.update(work_schedule)
        else:
            update_data.pop("clinic_address", None)
            update_data.pop("hospital_address", None)

        if not update_data:
            raise ValidationError("At least one field must be provided for update")

        for field, value in update_data.items():
            setattr(current_user, field, value)

        db.commit()
        db.refresh(current_user)

        return create_response(
            message="Profile updated successfully",
            data=UserResponse.model_validate(current_user).model_dump(),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
