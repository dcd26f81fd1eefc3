"""Purpose-scoped one-time codes.

A code is addressed by a subject (an email or a mobile number, never both) and
a purpose tag, so a registration code and a password-reset code for the same
address never overwrite each other. Every operation commits immediately: the
rows are shared between concurrent requests and are treated as point records.
"""
import hmac
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.otp import OtpCode, OtpPurpose
from app.utils.errors import ExpiredCodeError, InvalidCodeError

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def _subject_clause(email: str | None, mobile: str | None):
    if (email is None) == (mobile is None):
        raise ValueError("Exactly one of email or mobile must be given")
    if email is not None:
        return OtpCode.email == email
    return OtpCode.mobile == mobile


def issue_otp(
    db: Session,
    purpose: OtpPurpose,
    *,
    email: str | None = None,
    mobile: str | None = None,
    now: datetime | None = None,
) -> str:
    """Create or replace the live code for (subject, purpose) and return it."""
    subject = _subject_clause(email, mobile)
    now = now or datetime.utcnow()
    code = generate_otp_code()
    values = {
        "code": code,
        "expire_at": now + timedelta(minutes=settings.OTP_TTL_MINUTES),
        "created_at": now,
    }

    def _replace() -> int:
        return (
            db.query(OtpCode)
            .filter(subject, OtpCode.purpose == purpose.value)
            .update(values, synchronize_session=False)
        )

    if not _replace():
        db.add(OtpCode(email=email, mobile=mobile, purpose=purpose.value, **values))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the row first; last write wins.
            db.rollback()
            _replace()
            db.commit()
    else:
        db.commit()

    logger.info("Issued %s OTP for %s", purpose.value, email or mobile)
    return code


def consume_otp(
    db: Session,
    purpose: OtpPurpose,
    code: str,
    *,
    email: str | None = None,
    mobile: str | None = None,
    now: datetime | None = None,
) -> None:
    """Accept ``code`` exactly once.

    Raises :class:`InvalidCodeError` when no live code matches and
    :class:`ExpiredCodeError` when the match is past its expiry. In both the
    success and the expired case the row is gone when this returns.
    """
    subject = _subject_clause(email, mobile)
    now = now or datetime.utcnow()
    candidate = (code or "").strip()

    record = db.query(OtpCode).filter(subject, OtpCode.purpose == purpose.value).first()
    if record is None or not hmac.compare_digest(record.code.encode(), candidate.encode()):
        raise InvalidCodeError()

    record_id, stored_code, expire_at = record.id, record.code, record.expire_at

    # Conditional delete: of two racing consumers only one sees a deleted row.
    deleted = (
        db.query(OtpCode)
        .filter(OtpCode.id == record_id, OtpCode.code == stored_code)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise InvalidCodeError()

    if now > expire_at:
        logger.info("Rejected expired %s OTP for %s", purpose.value, email or mobile)
        raise ExpiredCodeError()


def purge_expired_otps(db: Session, now: datetime | None = None) -> int:
    now = now or datetime.utcnow()
    removed = (
        db.query(OtpCode)
        .filter(OtpCode.expire_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed
