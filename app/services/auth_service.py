import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import User, UserRole, normalize_email
from app.utils.errors import InvalidCredentialsError, NotVerifiedError, RoleMismatchError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class RolePolicy:
    requires_verification: bool
    self_registration: bool


# Admin accounts are seeded pre-verified and never go through the OTP
# ceremony, so login does not check their verification flags.
ROLE_POLICIES: dict[UserRole, RolePolicy] = {
    UserRole.user: RolePolicy(requires_verification=True, self_registration=True),
    UserRole.doctor: RolePolicy(requires_verification=True, self_registration=True),
    UserRole.admin: RolePolicy(requires_verification=False, self_registration=False),
}


def get_role_policy(role: UserRole | str) -> RolePolicy:
    return ROLE_POLICIES[UserRole(role)]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"iat": now, "exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Decode and validate a session token; raises jose's ``JWTError`` subclasses."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])


def authenticate(db: Session, email: str, password: str, role: UserRole) -> tuple[str, User]:
    """Check credentials and role gate, returning a signed session token.

    Unknown email and wrong password fail identically so the response does
    not reveal which one was wrong.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        pwd_context.dummy_verify()
        raise InvalidCredentialsError()

    if user.role != role.value:
        raise RoleMismatchError(f"This account is not registered as {role.value}")

    if get_role_policy(role).requires_verification and not user.verified:
        raise NotVerifiedError()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()

    token = create_access_token({"sub": str(user.id), "user_id": user.id, "role": user.role})
    logger.info("User %s logged in as %s", user.id, user.role)
    return token, user
