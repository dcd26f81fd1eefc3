import logging
import os
from typing import Protocol

import firebase_admin
from firebase_admin import auth, credentials, exceptions

from app.config import settings
from app.utils.errors import ExternalServiceError, InvalidMobileTokenError

logger = logging.getLogger(__name__)


class MobileTokenVerifier(Protocol):
    def verify(self, token: str) -> dict:
        ...


def _initialize_firebase(credentials_file: str | None):
    if not credentials_file or not os.path.exists(credentials_file):
        logger.warning("Firebase credentials not configured. Mobile verification disabled.")
        return None
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(credentials_file)
        app = firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialized using %s", credentials_file)
        return app


class FirebaseMobileVerifier:
    """Attests phone ownership through Firebase Authentication ID tokens."""

    def __init__(self, app=None):
        self.app = app

    def verify(self, token: str) -> dict:
        if self.app is None:
            raise ExternalServiceError("Mobile verification is not configured")
        try:
            return auth.verify_id_token(token, app=self.app)
        except (
            auth.InvalidIdTokenError,
            auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError,
            auth.UserDisabledError,
        ) as exc:
            logger.info("Rejected Firebase ID token: %s", exc)
            raise InvalidMobileTokenError() from exc
        except (auth.CertificateFetchError, exceptions.FirebaseError) as exc:
            raise ExternalServiceError("Mobile verification service unavailable") from exc
        except ValueError as exc:
            # malformed (empty / non-string) token
            raise InvalidMobileTokenError() from exc


_verifier: FirebaseMobileVerifier | None = None


def get_mobile_verifier() -> MobileTokenVerifier:
    global _verifier
    if _verifier is None:
        _verifier = FirebaseMobileVerifier(_initialize_firebase(settings.FIREBASE_CREDENTIALS_FILE))
    return _verifier
