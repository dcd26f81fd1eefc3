import logging

from sqlalchemy.orm import Session

from app.models.otp import OtpPurpose
from app.models.user import User, normalize_email
from app.services.auth_service import hash_password
from app.services.email_services import Notifier
from app.services.otp_service import consume_otp, issue_otp
from app.services.verification_service import deliver
from app.utils.errors import NotFoundError, UnverifiedAccountError

logger = logging.getLogger(__name__)


def request_reset(db: Session, email: str, notifier: Notifier) -> User:
    # Only fully verified identities may recover their password.
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError()
    if not user.verified:
        raise UnverifiedAccountError()

    code = issue_otp(db, OtpPurpose.forgot_password, email=user.email)
    deliver(notifier, user.email, "Forgot Password OTP", f"Your OTP for password reset is: {code}")
    return user


def complete_reset(db: Session, email: str, code: str, new_password: str, now=None) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError()

    consume_otp(db, OtpPurpose.forgot_password, code, email=user.email, now=now)

    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info("Password reset for user %s", user.id)
    return user
