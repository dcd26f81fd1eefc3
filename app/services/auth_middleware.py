from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole
from app.services.auth_service import decode_access_token
from app.utils.errors import AuthenticationError, ForbiddenError


def _resolve_user(token: str, db: Session) -> User:
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    user_id = payload.get("user_id")
    if payload.get("type") != "access" or user_id is None:
        raise AuthenticationError("Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("User not found or token invalid")
    if user.is_blocked:
        raise ForbiddenError("Account has been disabled")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(settings.bearer_scheme),
    db: Session = Depends(get_db)
):
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError()
    return _resolve_user(credentials.credentials, db)


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    def _dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError(f"Access denied. Required role(s): {', '.join(sorted(allowed))}")
        return current_user

    return _dependency


get_current_admin = require_roles(UserRole.admin)
get_current_doctor = require_roles(UserRole.doctor)
