from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from conftest import PASSWORD, auth_headers
from remise.audit.models import AuditLog
from remise.auth.models import User
from remise.auth.security import JWT_ALG, JWT_SECRET, create_session_token
from remise.auth.session import resolve_session
from remise.auth.tokens import PASSWORD_RESET, issue_token
from remise.core.config import settings
from remise.core.errors import UpstreamFailure
from remise.tenants.models import Tenant


def _login(client, username, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"username": username, "password": password})


def test_wrong_password_is_audited_and_creates_no_session(client, db, make_tenant, make_user):
    user = make_user(make_tenant(), username="dana", password=PASSWORD)

    response = _login(client, "dana", "not-the-password")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"
    assert settings.SESSION_COOKIE_NAME not in response.cookies
    assert "access_token" not in response.json()

    rows = db.execute(select(AuditLog).where(AuditLog.username == "dana")).scalars().all()
    assert len(rows) == 1
    assert rows[0].action == "login_failed"
    assert rows[0].success is False
    assert rows[0].details == {"reason": "bad_password"}

    db.expire_all()
    assert db.get(User, user.id).last_login_at is None


def test_successful_login_sets_cookie_and_resolves_identity(client, db, make_tenant, make_user):
    user = make_user(make_tenant(), username="erin", password=PASSWORD)

    response = _login(client, "erin")

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 8 * 3600
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == body["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == user.id
    assert "upload:evidence" in me.json()["permissions"]

    success = db.execute(select(AuditLog).where(AuditLog.action == "login")).scalars().one()
    assert success.success is True


def test_unverified_email_cannot_log_in(client, make_tenant, make_user):
    make_user(make_tenant(), username="fred", password=PASSWORD, email_verified=False)

    assert _login(client, "fred").status_code == 401


def test_session_older_than_ceiling_is_rejected_despite_valid_signature(client, db, make_tenant, make_user):
    user = make_user(make_tenant())
    issued = datetime.now(timezone.utc) - timedelta(hours=9)
    token = jwt.encode(
        {
            "typ": "session",
            "sub": user.id,
            "role": user.role,
            "tenant_id": user.tenant_id,
            "iat": int(issued.timestamp()),
            # a far-off exp must not extend the session
            "exp": int((issued + timedelta(days=30)).timestamp()),
        },
        JWT_SECRET,
        algorithm=JWT_ALG,
    )

    assert resolve_session(token, db) is None
    assert client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_session_within_ceiling_is_accepted(db, make_tenant, make_user):
    user = make_user(make_tenant())
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        tenant_id=user.tenant_id,
        issued_at=datetime.now(timezone.utc) - timedelta(hours=7),
    )

    identity = resolve_session(token, db)

    assert identity is not None
    assert identity.user_id == user.id
    assert identity.tenant_id == user.tenant_id


def test_role_change_or_deactivation_invalidates_session(db, make_tenant, make_user):
    user = make_user(make_tenant())
    token = create_session_token(user_id=user.id, role=user.role, tenant_id=user.tenant_id)

    user.role = "insurance_agent"
    db.commit()
    assert resolve_session(token, db) is None

    user.role = "property_owner"
    user.is_active = False
    db.commit()
    assert resolve_session(token, db) is None


def test_garbage_credentials_resolve_to_no_session(db):
    assert resolve_session(None, db) is None
    assert resolve_session("not.a.jwt", db) is None


def test_register_creates_tenant_owner_and_blocks_platform_roles(client, db):
    payload = {
        "username": "gwen",
        "email": "gwen@example.com",
        "name": "Gwen",
        "password": "long-enough-pass",
        "property_name": "Gwen's Vineyard",
    }

    created = client.post("/api/v1/auth/register", json=payload)
    blocked = client.post(
        "/api/v1/auth/register",
        json={**payload, "username": "gwen2", "email": "gwen2@example.com", "role": "law_enforcement"},
    )
    duplicate = client.post("/api/v1/auth/register", json=payload)

    assert created.status_code == 201
    assert created.json()["role"] == "property_owner"
    assert created.json()["access_level"] == "owner"
    assert created.json()["email_verified"] is False
    assert created.json()["tenant_id"].startswith("t_")
    assert blocked.status_code == 422
    assert duplicate.status_code == 409


def test_email_failure_after_password_reset_does_not_fail_reset(client, db, monkeypatch, make_tenant, make_user):
    user = make_user(make_tenant(), username="hana", email_verified=False)
    raw = issue_token(db, user=user, kind=PASSWORD_RESET, ttl=timedelta(hours=1))
    db.commit()

    def _provider_down(**_kwargs):
        raise UpstreamFailure("email", "connection refused")

    monkeypatch.setattr("remise.notifications.email.send_email", _provider_down)

    response = client.post("/api/v1/auth/reset-password", json={"token": raw, "password": "brand-new-pass"})

    assert response.status_code == 200
    assert _login(client, "hana", "brand-new-pass").status_code == 200

    reused = client.post("/api/v1/auth/reset-password", json={"token": raw, "password": "another-pass-1"})
    assert reused.status_code == 422


def test_forgot_password_surfaces_provider_outage(client, monkeypatch, make_tenant, make_user):
    make_user(make_tenant(), username="ivan")

    def _unreachable(*_args, **_kwargs):
        from urllib.error import URLError

        raise URLError("connection refused")

    monkeypatch.setattr(settings, "EMAIL_API_KEY", "re_test_key")
    monkeypatch.setattr("remise.notifications.email.request.urlopen", _unreachable)

    response = client.post("/api/v1/auth/forgot-password", json={"email": "ivan@example.com"})

    assert response.status_code == 502
    assert "email" in response.json()["detail"]


def test_forgot_password_does_not_reveal_unknown_addresses(client):
    response = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})

    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_logout_is_audited_and_clears_cookie(client, db, make_tenant, make_user):
    user = make_user(make_tenant())

    response = client.post("/api/v1/auth/logout", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith("remise_session=")
    assert "Max-Age=0" in response.headers["set-cookie"]
    logged = db.execute(select(AuditLog).where(AuditLog.action == "logout")).scalars().one()
    assert logged.user_id == user.id


def test_common_names_register_separate_tenants(client, db):
    payload = {"name": "John Smith", "password": "long-enough-pass"}

    first = client.post(
        "/api/v1/auth/register", json={**payload, "username": "jsmith", "email": "jsmith@example.com"}
    )
    second = client.post(
        "/api/v1/auth/register", json={**payload, "username": "john.smith", "email": "john.smith@example.com"}
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["tenant_id"] != second.json()["tenant_id"]
    assert db.get(Tenant, first.json()["tenant_id"]).name == "John Smith's Property"
    assert db.get(Tenant, second.json()["tenant_id"]).name == "John Smith's Property (2)"


def test_resend_verification_answers_the_same_for_every_address(client, db, monkeypatch, make_tenant, make_user):
    make_user(make_tenant(), username="kira", email_verified=False)
    make_user(make_tenant(), username="lena")
    attempted = []

    def _provider_down(**kwargs):
        attempted.append(kwargs["to"])
        raise UpstreamFailure("email", "timed out")

    monkeypatch.setattr("remise.notifications.email.send_email", _provider_down)

    answers = [
        client.post("/api/v1/auth/resend-verification", json={"email": email})
        for email in ("kira@example.com", "lena@example.com", "ghost@example.com")
    ]

    assert [a.status_code for a in answers] == [200, 200, 200]
    assert answers[0].json() == answers[1].json() == answers[2].json()
    assert attempted == ["kira@example.com"]
