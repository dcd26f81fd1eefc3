import pytest
from firebase_admin import auth, exceptions

from app.services import firebase_service
from app.services.firebase_service import FirebaseMobileVerifier
from app.utils.errors import ExternalServiceError, InvalidMobileTokenError

FIREBASE_APP = object()


def _raising(error):
    def _verify(token, app=None):
        raise error

    return _verify


def test_valid_token_returns_decoded_claims(monkeypatch):
    calls = []

    def _verify(token, app=None):
        calls.append((token, app))
        return {"uid": "abc", "phone_number": "+15550100200"}

    monkeypatch.setattr(firebase_service.auth, "verify_id_token", _verify)

    claims = FirebaseMobileVerifier(FIREBASE_APP).verify("good-token")

    assert claims["phone_number"] == "+15550100200"
    assert calls == [("good-token", FIREBASE_APP)]


@pytest.mark.parametrize(
    "error",
    [
        auth.InvalidIdTokenError("bad signature"),
        auth.ExpiredIdTokenError("token expired", None),
        auth.RevokedIdTokenError("token revoked"),
        auth.UserDisabledError("user disabled"),
        ValueError("empty token"),
    ],
)
def test_rejected_tokens_map_to_invalid_mobile_token(monkeypatch, error):
    monkeypatch.setattr(firebase_service.auth, "verify_id_token", _raising(error))

    with pytest.raises(InvalidMobileTokenError) as exc_info:
        FirebaseMobileVerifier(FIREBASE_APP).verify("some-token")

    assert exc_info.value.status_code == 400


@pytest.mark.parametrize(
    "error",
    [
        auth.CertificateFetchError("cannot fetch keys", None),
        exceptions.FirebaseError(exceptions.UNAVAILABLE, "backend down"),
    ],
)
def test_firebase_outages_map_to_external_service_error(monkeypatch, error):
    monkeypatch.setattr(firebase_service.auth, "verify_id_token", _raising(error))

    with pytest.raises(ExternalServiceError) as exc_info:
        FirebaseMobileVerifier(FIREBASE_APP).verify("some-token")

    assert exc_info.value.status_code == 502


def test_unconfigured_verifier_reports_external_service_error():
    with pytest.raises(ExternalServiceError) as exc_info:
        FirebaseMobileVerifier(None).verify("some-token")

    assert exc_info.value.message == "Mobile verification is not configured"


def test_verify_mobile_endpoint_surfaces_firebase_outage(client, monkeypatch):
    from app.main import app
    from app.services.firebase_service import get_mobile_verifier

    monkeypatch.setattr(
        firebase_service.auth,
        "verify_id_token",
        _raising(exceptions.FirebaseError(exceptions.UNAVAILABLE, "backend down")),
    )
    app.dependency_overrides[get_mobile_verifier] = lambda: FirebaseMobileVerifier(FIREBASE_APP)

    response = client.post("/auth/verify-mobile", json={"id_token": "some-token"})

    assert response.status_code == 502
    assert response.json()["message"] == "Mobile verification service unavailable"
