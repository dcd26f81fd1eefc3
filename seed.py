import logging

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.models.user import User, UserRole, normalize_email, normalize_mobile
from app.services.auth_service import hash_password

logger = logging.getLogger("app.seed")


def seed_admin(db) -> User | None:
    """Create the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD if missing.

    The admin is stored with both verification flags set, so the account is
    ``verified`` even though it never goes through the OTP flow.
    """
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin seeding.")
        return None

    email = normalize_email(settings.ADMIN_EMAIL)
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        logger.info("Admin already exists")
        return existing

    admin_user = User(
        name=settings.ADMIN_NAME,
        email=email,
        mobile=normalize_mobile(settings.ADMIN_MOBILE),
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        role=UserRole.admin.value,
        email_verified=True,
        mobile_verified=True,
    )
    db.add(admin_user)
    db.commit()
    db.refresh(admin_user)
    logger.info("Default admin user seeded")
    return admin_user


def run_seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db)
    except Exception:
        db.rollback()
        logger.exception("Seeding error")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
