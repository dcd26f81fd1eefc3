import os
import re
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("OTP_PURGE_AUTO_ENABLED", "false")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.auth_service import hash_password  # noqa: E402
from app.services.email_services import DeliveryError, get_notifier  # noqa: E402
from app.services.firebase_service import get_mobile_verifier  # noqa: E402
from app.utils.errors import InvalidMobileTokenError  # noqa: E402

OTP_PATTERN = re.compile(r"\b(\d{6})\b")


class FakeNotifier:
    def __init__(self):
        self.outbox: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, message: str) -> None:
        if self.fail:
            raise DeliveryError("smtp down")
        self.outbox.append({"to": to, "subject": subject, "message": message})

    def last_code(self, to: str) -> str:
        for mail in reversed(self.outbox):
            if mail["to"] == to:
                match = OTP_PATTERN.search(mail["message"])
                if match:
                    return match.group(1)
        raise AssertionError(f"no OTP mailed to {to}")


class FakeMobileVerifier:
    """Maps opaque tokens to claims; unknown tokens are rejected."""

    def __init__(self):
        self.tokens: dict[str, dict] = {}

    def issue(self, phone_number: str | None, token: str | None = None) -> str:
        token = token or f"token-{len(self.tokens) + 1}"
        self.tokens[token] = {"uid": token, "phone_number": phone_number} if phone_number else {"uid": token}
        return token

    def verify(self, token: str) -> dict:
        if token not in self.tokens:
            raise InvalidMobileTokenError()
        return self.tokens[token]


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def mobile_verifier():
    return FakeMobileVerifier()


@pytest.fixture()
def client(monkeypatch, notifier, mobile_verifier):
    """Provide a TestClient with startup tasks patched out and fake collaborators."""
    monkeypatch.setattr(main, "run_seed", lambda: None)

    async def _noop_async(*args, **kwargs):
        return None

    monkeypatch.setattr(main.otp_purge_scheduler, "start", _noop_async)
    monkeypatch.setattr(main.otp_purge_scheduler, "stop", _noop_async)

    main.app.dependency_overrides[get_notifier] = lambda: notifier
    main.app.dependency_overrides[get_mobile_verifier] = lambda: mobile_verifier
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


def make_user(
    db,
    email="user@example.com",
    mobile="+15550000001",
    password="secret123",
    role=UserRole.user,
    email_verified=True,
    mobile_verified=True,
    name="Test User",
) -> User:
    user = User(
        name=name,
        email=email,
        mobile=mobile,
        password_hash=hash_password(password),
        role=role.value,
        email_verified=email_verified,
        mobile_verified=mobile_verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(client, email, password="secret123", role="user") -> str:
    response = client.post("/auth/login", json={"email": email, "password": password, "role": role})
    assert response.status_code == 200, response.json()
    return response.json()["data"]["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
