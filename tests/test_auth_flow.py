from datetime import datetime, timedelta

import pytest

from app.models.otp import OtpCode
from app.models.user import User, UserRole
from app.services.verification_service import VerificationState, describe_state
from conftest import auth_header, login, make_user

REGISTRATION = {
    "name": "Dr. Jane Roe",
    "email": "Jane@Example.com",
    "mobile": "+1 555-010-0200",
    "date_of_birth": "1990-04-12",
    "password": "secret123",
    "role": "doctor",
}


def _register(client, **overrides):
    return client.post("/auth/register", json={**REGISTRATION, **overrides})


def _assert_gate_consistent(user: User):
    assert user.verified == (user.email_verified and user.mobile_verified)


def test_register_creates_pending_record_and_mails_otp(client, db, notifier):
    response = _register(client)

    assert response.status_code == 201
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["data"]["state"] == "unverified"
    assert "password" not in str(payload)

    user = db.query(User).one()
    assert user.email == "jane@example.com"
    assert user.mobile == "+15550100200"
    assert user.role == "doctor"
    assert user.password_hash != "secret123"
    assert not user.email_verified and not user.mobile_verified and not user.verified

    assert notifier.outbox[-1]["to"] == "jane@example.com"
    assert notifier.outbox[-1]["subject"] == "Email Verification OTP"
    assert db.query(OtpCode).filter(OtpCode.purpose == "email_verification").count() == 1


def test_register_missing_fields_reports_them(client):
    response = client.post("/auth/register", json={"name": "X", "email": "x@example.com"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "All fields are required"
    assert set(payload["data"]["missing_fields"]) == {"mobile", "date_of_birth", "password"}


def test_register_admin_role_is_refused(client, db):
    response = _register(client, role="admin")

    assert response.status_code == 403
    assert db.query(User).count() == 0


def test_reregistering_unverified_email_resumes_existing_record(client, db, notifier):
    _register(client)
    first_code = notifier.last_code("jane@example.com")

    response = _register(client, email="jane@example.com")

    assert response.status_code == 200
    assert db.query(User).count() == 1
    assert len(notifier.outbox) == 2
    assert db.query(OtpCode).count() == 1
    second_code = notifier.last_code("jane@example.com")
    if first_code != second_code:
        stale = client.post("/auth/verify-email", json={"email": "jane@example.com", "otp": first_code})
        assert stale.status_code == 400


def test_reregistering_by_mobile_mails_the_stored_email(client, db, notifier):
    _register(client)

    response = _register(client, email="other@example.com")

    assert response.status_code == 200
    assert db.query(User).count() == 1
    assert notifier.outbox[-1]["to"] == "jane@example.com"


def test_registering_verified_identity_asks_to_login(client, db, notifier):
    make_user(db, email="jane@example.com", mobile="+15550100200", role=UserRole.doctor)

    by_email = _register(client, mobile="+15559999999")
    by_mobile = _register(client, email="someone@example.com")

    for response in (by_email, by_mobile):
        assert response.status_code == 400
        assert response.json()["message"] == "User already exists. Please login."
    assert notifier.outbox == []
    assert db.query(OtpCode).count() == 0


def test_email_and_mobile_of_different_accounts_conflict(client, db):
    make_user(db, email="a@example.com", mobile="+15550000001", email_verified=False, mobile_verified=False)
    make_user(db, email="b@example.com", mobile="+15550000002", email_verified=False, mobile_verified=False)

    response = _register(client, email="a@example.com", mobile="+15550000002")

    assert response.status_code == 400
    assert db.query(User).count() == 2


def test_notifier_failure_surfaces_as_gateway_error(client, db, notifier):
    notifier.fail = True

    response = _register(client)

    assert response.status_code == 502
    assert response.json()["status"] == "error"


def test_full_dual_channel_flow_promotes_to_verified(client, db, notifier, mobile_verifier):
    _register(client)
    code = notifier.last_code("jane@example.com")

    response = client.post("/auth/verify-email", json={"email": "jane@example.com", "otp": code})
    assert response.status_code == 200
    assert response.json()["data"]["state"] == "email_only"
    user = db.query(User).one()
    assert describe_state(user) == VerificationState.email_only
    _assert_gate_consistent(user)

    # Login is still refused with only one channel proven
    refused = client.post(
        "/auth/login",
        json={"email": "jane@example.com", "password": "secret123", "role": "doctor"},
    )
    assert refused.status_code == 400
    assert refused.json()["message"] == "Please verify your email and mobile before logging in."

    token = mobile_verifier.issue("+15550100200")
    response = client.post("/auth/verify-mobile", json={"id_token": token})
    assert response.status_code == 200
    assert response.json()["data"]["state"] == "verified"

    db.expire_all()
    user = db.query(User).one()
    assert user.verified
    _assert_gate_consistent(user)

    access_token = login(client, "jane@example.com", role="doctor")
    profile = client.get("/auth/profile", headers=auth_header(access_token))
    assert profile.status_code == 200
    assert profile.json()["data"]["verified"] is True
    assert "password_hash" not in profile.json()["data"]


def test_mobile_first_then_email(client, db, notifier, mobile_verifier):
    _register(client)

    response = client.post("/auth/verify-mobile", json={"id_token": mobile_verifier.issue("+15550100200")})
    assert response.json()["data"]["state"] == "mobile_only"

    code = notifier.last_code("jane@example.com")
    response = client.post("/auth/verify-email", json={"email": "jane@example.com", "otp": code})
    assert response.json()["data"]["verified"] is True


def test_verify_email_rejects_wrong_code_without_state_change(client, db, notifier):
    _register(client)
    code = notifier.last_code("jane@example.com")
    wrong = "100000" if code != "100000" else "100001"

    response = client.post("/auth/verify-email", json={"email": "jane@example.com", "otp": wrong})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"
    assert db.query(User).one().email_verified is False


def test_verify_email_with_expired_code_uses_generic_message(client, db, notifier):
    _register(client)
    code = notifier.last_code("jane@example.com")
    db.query(OtpCode).update({"expire_at": datetime.utcnow() - timedelta(minutes=1)})
    db.commit()

    response = client.post("/auth/verify-email", json={"email": "jane@example.com", "otp": code})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"
    assert db.query(OtpCode).count() == 0


def test_verify_email_unknown_user_and_already_verified(client, db):
    make_user(db, email="done@example.com")

    missing = client.post("/auth/verify-email", json={"email": "nobody@example.com", "otp": "123456"})
    already = client.post("/auth/verify-email", json={"email": "done@example.com", "otp": "123456"})

    assert missing.status_code == 404
    assert already.status_code == 400
    assert already.json()["message"] == "Email already verified"


def test_verify_mobile_failures(client, db, mobile_verifier):
    make_user(db, email="done@example.com", mobile="+15550000009")

    invalid = client.post("/auth/verify-mobile", json={"id_token": "forged"})
    no_phone = client.post("/auth/verify-mobile", json={"id_token": mobile_verifier.issue(None)})
    unknown = client.post("/auth/verify-mobile", json={"id_token": mobile_verifier.issue("+15551234567")})
    already = client.post("/auth/verify-mobile", json={"id_token": mobile_verifier.issue("+15550000009")})

    assert invalid.status_code == 400
    assert no_phone.status_code == 400
    assert no_phone.json()["message"] == "Phone number not found in token"
    assert unknown.status_code == 404
    assert already.status_code == 400
    assert already.json()["message"] == "Mobile already verified"


def test_resend_email_otp(client, db, notifier):
    make_user(db, email="pending@example.com", mobile="+15550000003", email_verified=False, mobile_verified=True)
    make_user(db, email="done@example.com", mobile="+15550000004")

    ok = client.post("/auth/resend-email-otp", json={"email": "Pending@Example.com"})
    already = client.post("/auth/resend-email-otp", json={"email": "done@example.com"})
    missing = client.post("/auth/resend-email-otp", json={"email": "nobody@example.com"})

    assert ok.status_code == 200
    assert notifier.outbox[-1]["subject"] == "Resend Email Verification OTP"
    assert already.status_code == 400
    assert missing.status_code == 404
    assert len(notifier.outbox) == 1


@pytest.mark.parametrize("role", ["user", "doctor"])
def test_login_requires_both_channels_for_non_admin_roles(client, db, role):
    make_user(db, role=UserRole(role), email_verified=True, mobile_verified=False)

    response = client.post(
        "/auth/login",
        json={"email": "user@example.com", "password": "secret123", "role": role},
    )

    assert response.status_code == 400
    assert "verify" in response.json()["message"]


def test_admin_login_bypasses_verification_gate(client, db):
    make_user(db, role=UserRole.admin, email_verified=True, mobile_verified=False)

    token = login(client, "user@example.com", role="admin")

    assert token


def test_login_role_mismatch_is_forbidden(client, db):
    make_user(db, role=UserRole.doctor)

    response = client.post(
        "/auth/login",
        json={"email": "user@example.com", "password": "secret123", "role": "user"},
    )

    assert response.status_code == 403


def test_login_does_not_reveal_which_credential_was_wrong(client, db):
    make_user(db)

    wrong_password = client.post(
        "/auth/login",
        json={"email": "user@example.com", "password": "nope-nope", "role": "user"},
    )
    unknown_email = client.post(
        "/auth/login",
        json={"email": "ghost@example.com", "password": "secret123", "role": "user"},
    )

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid credentials"


def test_login_token_carries_identity_and_role(client, db):
    from app.services.auth_service import decode_access_token

    user = make_user(db, role=UserRole.doctor)
    token = login(client, "USER@example.com", role="doctor")

    claims = decode_access_token(token)
    assert claims["user_id"] == user.id
    assert claims["role"] == "doctor"
    assert claims["exp"] - claims["iat"] == 3600
