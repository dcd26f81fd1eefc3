"""Dual-channel identity verification.

A record becomes ``verified`` only once both channels have been proven: the
email channel by a self-issued OTP, the mobile channel by an ID token from the
external verifier. Each proof flips one flag; the model recomputes the
derived gate on every flag assignment.
"""
import logging
from enum import Enum

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.otp import OtpPurpose
from app.models.user import User, normalize_email, normalize_mobile
from app.schemas.user import RegisterRequest
from app.services.auth_service import get_role_policy, hash_password
from app.services.email_services import DeliveryError, Notifier
from app.services.firebase_service import MobileTokenVerifier
from app.services.otp_service import consume_otp, issue_otp
from app.utils.errors import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    InvalidMobileTokenError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

EMAIL_OTP_SUBJECT = "Email Verification OTP"


class VerificationState(str, Enum):
    unverified = "unverified"
    email_only = "email_only"
    mobile_only = "mobile_only"
    verified = "verified"


def describe_state(user: User) -> VerificationState:
    if user.verified:
        return VerificationState.verified
    if user.email_verified:
        return VerificationState.email_only
    if user.mobile_verified:
        return VerificationState.mobile_only
    return VerificationState.unverified


def deliver(notifier: Notifier, to: str, subject: str, message: str) -> None:
    try:
        notifier.send(to, subject, message)
    except DeliveryError as exc:
        raise ExternalServiceError("Failed to send email. Please try again later.") from exc


def send_email_verification_otp(db: Session, notifier: Notifier, email: str, subject: str = EMAIL_OTP_SUBJECT) -> None:
    code = issue_otp(db, OtpPurpose.email_verification, email=email)
    deliver(notifier, email, subject, f"Your OTP for email verification is: {code}")


def register_identity(db: Session, payload: RegisterRequest, notifier: Notifier) -> tuple[User, bool]:
    """Create a pending record, or resume the one already holding this email/mobile.

    Returns ``(user, created)``.
    """
    if not get_role_policy(payload.role).self_registration:
        raise ForbiddenError(f"Registration as {payload.role.value} is not allowed")

    email = normalize_email(payload.email)
    mobile = normalize_mobile(payload.mobile)

    matches = db.query(User).filter(or_(User.email == email, User.mobile == mobile)).all()
    if any(match.verified for match in matches):
        raise ConflictError("User already exists. Please login.")
    if len(matches) > 1:
        raise ConflictError("Email and mobile are registered to different accounts")

    if matches:
        user = matches[0]
        logger.info("Resuming verification for pending user %s", user.id)
        if not user.email_verified:
            send_email_verification_otp(db, notifier, user.email)
        return user, False

    user = User(
        name=payload.name,
        email=email,
        mobile=mobile,
        date_of_birth=payload.date_of_birth,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        email_verified=False,
        mobile_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Registration for this email or mobile is already in progress") from exc
    db.refresh(user)
    logger.info("Registered pending %s %s", user.role, user.id)

    send_email_verification_otp(db, notifier, user.email)
    return user, True


def confirm_email(db: Session, email: str, code: str, now=None) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError()
    if user.email_verified:
        raise ConflictError("Email already verified")

    consume_otp(db, OtpPurpose.email_verification, code, email=user.email, now=now)

    user.email_verified = True
    db.commit()
    db.refresh(user)
    logger.info("Email verified for user %s (state=%s)", user.id, describe_state(user).value)
    return user


def confirm_mobile(db: Session, id_token: str, verifier: MobileTokenVerifier) -> User:
    claims = verifier.verify(id_token)
    phone_number = claims.get("phone_number")
    if not phone_number:
        raise InvalidMobileTokenError("Phone number not found in token")

    user = db.query(User).filter(User.mobile == normalize_mobile(phone_number)).first()
    if not user:
        raise NotFoundError()
    if user.mobile_verified:
        raise ConflictError("Mobile already verified")

    user.mobile_verified = True
    db.commit()
    db.refresh(user)
    logger.info("Mobile verified for user %s (state=%s)", user.id, describe_state(user).value)
    return user


def resend_email_otp(db: Session, email: str, notifier: Notifier) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError()
    if user.email_verified:
        raise ConflictError("Email already verified")

    send_email_verification_otp(db, notifier, user.email, subject="Resend Email Verification OTP")
    return user
