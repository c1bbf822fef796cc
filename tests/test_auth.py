"""Signup, login sessions and one-time passwords."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import PASSWORD, bearer

from dinehub.core import security
from dinehub.core.exceptions import BadRequestError, UnauthorizedError
from dinehub.database import utcnow
from dinehub.models import LoginLog, LoginStatus, Setting, UserSession
from dinehub.services import auth as auth_service


async def enable_email_otp(db):
    db.add(Setting(key="OTP_EMAIL_ENABLED", value="true"))
    await db.commit()


# =============================================================================
# LOGIN & SESSIONS
# =============================================================================

async def test_signup_login_and_me(client):
    signup = await client.post("/api/auth/signup", json={
        "email": "New.Diner@Example.com",
        "password": "long-enough-pw",
        "first_name": "New",
    })
    assert signup.status_code == 201
    assert signup.json()["role_name"] == "Customer"

    login = await client.post(
        "/api/auth/login",
        json={"email": "new.diner@example.com", "password": "long-enough-pw"},
        headers={"User-Agent": "Mozilla/5.0 (iPhone)", "X-Forwarded-For": "8.8.8.8"},
    )
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get("/api/auth/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["email"] == "new.diner@example.com"


async def test_duplicate_signup_is_conflict(client, customer):
    response = await client.post("/api/auth/signup", json={
        "email": customer.email, "password": "long-enough-pw", "first_name": "Again",
    })
    assert response.status_code == 409


async def test_failed_login_is_logged(db, customer):
    with pytest.raises(UnauthorizedError):
        await auth_service.login(db, customer.email, "wrong-password", "8.8.8.8", "curl/8.0")

    log = (await db.execute(select(LoginLog).where(LoginLog.user_id == customer.id))).scalar_one()
    assert log.status == LoginStatus.FAILED
    assert log.device == "Desktop"
    assert log.location is not None


async def test_private_ip_login_has_no_location(db, customer):
    await auth_service.login(db, customer.email, PASSWORD, "10.0.0.7", "Mozilla/5.0 (iPad)")

    log = (await db.execute(select(LoginLog).where(LoginLog.user_id == customer.id))).scalar_one()
    assert log.status == LoginStatus.SUCCESS
    assert log.device == "Tablet"
    assert log.location is None


async def test_login_history_for_self_and_admin(client, db, customer, customer_headers, admin_headers):
    with pytest.raises(UnauthorizedError):
        await auth_service.login(db, customer.email, "wrong-password", "8.8.8.8", "curl/8.0")

    mine = (await client.get("/api/auth/login-logs/me?limit=1", headers=customer_headers)).json()
    assert mine["total"] == 2
    assert len(mine["logs"]) == 1

    failed = (await client.get("/api/auth/login-logs/me?status=FAILED", headers=customer_headers)).json()
    assert [log["status"] for log in failed["logs"]] == ["FAILED"]
    assert isinstance(failed["logs"][0]["location"], dict)

    assert (await client.get("/api/auth/login-logs", headers=customer_headers)).status_code == 403
    response = await client.get(
        f"/api/auth/login-logs?user_id={customer.id}&status=FAILED", headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["logs"][0]["user_id"] == customer.id


async def test_logout_revokes_token(client, customer_headers):
    assert (await client.post("/api/auth/logout", headers=customer_headers)).status_code == 200
    assert (await client.get("/api/auth/me", headers=customer_headers)).status_code == 401


async def test_logout_all_revokes_every_session(client, db, customer):
    first = bearer((await auth_service.login(db, customer.email, PASSWORD))[0])
    second = bearer((await auth_service.login(db, customer.email, PASSWORD))[0])

    response = await client.post("/api/auth/logout-all", headers=first)
    assert response.json()["sessions_revoked"] == 2
    assert (await client.get("/api/auth/me", headers=second)).status_code == 401


async def test_deactivated_user_token_is_rejected(client, db, customer, customer_headers):
    customer.is_active = False
    await db.commit()

    assert (await client.get("/api/auth/me", headers=customer_headers)).status_code == 401


async def test_admin_lists_sessions(client, customer_headers, admin_headers):
    assert (await client.get("/api/auth/sessions", headers=customer_headers)).status_code == 403

    response = await client.get("/api/auth/sessions", headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()) == 2


async def test_purge_keeps_recently_expired_sessions(db, customer):
    now = utcnow()
    db.add_all([
        UserSession(user_id=customer.id, token_id="old", expires=now - timedelta(days=45)),
        UserSession(user_id=customer.id, token_id="recent", expires=now - timedelta(hours=1)),
        UserSession(user_id=customer.id, token_id="live", expires=now + timedelta(hours=1)),
    ])
    await db.commit()

    removed = await auth_service.purge_expired_sessions(db)

    assert removed == 1
    remaining = (await db.execute(select(UserSession.token_id))).scalars().all()
    assert sorted(remaining) == ["live", "recent"]


async def test_change_password_checks_current(db, customer):
    with pytest.raises(BadRequestError):
        await auth_service.change_password(db, customer, "not-it", "new-password-1")

    await auth_service.change_password(db, customer, PASSWORD, "new-password-1")
    await auth_service.login(db, customer.email, "new-password-1")


# =============================================================================
# ONE-TIME PASSWORDS
# =============================================================================

async def test_otp_disabled_by_default(db, customer):
    with pytest.raises(BadRequestError):
        await auth_service.request_otp(db, customer.email)


async def test_otp_round_trip_verifies_email(db, customer):
    await enable_email_otp(db)
    channels, minutes, code = await auth_service.request_otp(db, customer.email)

    assert channels == ["email"]
    assert minutes == 5
    assert customer.otp_digest != code

    user = await auth_service.verify_otp(db, customer.email, code)
    assert user.email_verified
    assert user.otp_digest is None


async def test_otp_mismatch_is_rejected_and_counted(db, customer):
    await enable_email_otp(db)
    _, _, code = await auth_service.request_otp(db, customer.email)
    wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)

    with pytest.raises(BadRequestError):
        await auth_service.verify_otp(db, customer.email, wrong)

    await db.refresh(customer)
    assert customer.otp_tries == 1
    assert not customer.email_verified


async def test_expired_otp_is_rejected(db, customer):
    await enable_email_otp(db)
    _, _, code = await auth_service.request_otp(db, customer.email)
    customer.otp_expires = utcnow() - timedelta(seconds=1)
    await db.commit()

    with pytest.raises(BadRequestError):
        await auth_service.verify_otp(db, customer.email, code)


async def test_otp_locks_after_max_attempts(db, customer):
    await enable_email_otp(db)
    _, _, code = await auth_service.request_otp(db, customer.email)
    customer.otp_digest = security.otp_digest("never-sent")
    await db.commit()

    for _ in range(3):
        with pytest.raises(BadRequestError):
            await auth_service.verify_otp(db, customer.email, code)

    customer.otp_digest = security.otp_digest(code)
    await db.commit()
    with pytest.raises(BadRequestError, match="Maximum"):
        await auth_service.verify_otp(db, customer.email, code)


async def test_password_reset_with_otp_revokes_sessions(client, db, customer, customer_headers):
    await enable_email_otp(db)
    sent = await client.post("/api/auth/otp/request", json={"email": customer.email})
    assert sent.status_code == 200
    code = sent.json()["otp"]

    reset = await client.post("/api/auth/password/reset", json={
        "email": customer.email, "otp": code, "new_password": "brand-new-pass",
    })
    assert reset.status_code == 200
    assert reset.json()["sessions_revoked"] == 1
    assert (await client.get("/api/auth/me", headers=customer_headers)).status_code == 401
