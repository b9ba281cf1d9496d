from sqlalchemy import select

from conftest import PASSWORD, auth_headers
from remise.audit.models import AuditLog
from remise.auth.models import AuthToken, User
from remise.auth.tokens import EMAIL_VERIFICATION


def _login(client, password):
    return client.post("/api/v1/auth/login", json={"username": "mara", "password": password})


def test_profile_reflects_the_signed_in_user(client, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara")

    response = client.get("/api/v1/user/profile", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["id"] == user.id
    assert response.json()["email"] == "mara@example.com"
    assert "upload:evidence" in response.json()["permissions"]


def test_profile_requires_a_session(client):
    assert client.get("/api/v1/user/profile").status_code == 401


def test_name_change_keeps_email_verified(client, db, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara")

    response = client.put("/api/v1/user/profile", json={"name": "Mara Quinn"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["name"] == "Mara Quinn"
    assert response.json()["email_verified"] is True
    audit = db.execute(select(AuditLog).where(AuditLog.action == "profile_updated")).scalar_one()
    assert audit.details == {"fields": ["name"]}


def test_email_change_requires_new_verification(client, db, monkeypatch, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara")
    sent = []

    def _capture(**kwargs):
        sent.append(kwargs["to"])
        return True

    monkeypatch.setattr("remise.notifications.email.send_email", _capture)

    response = client.put(
        "/api/v1/user/profile", json={"email": "Mara.Quinn@Example.com"}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json()["email"] == "mara.quinn@example.com"
    assert response.json()["email_verified"] is False
    assert sent == ["mara.quinn@example.com"]
    token = db.execute(select(AuthToken).where(AuthToken.user_id == user.id)).scalar_one()
    assert token.kind == EMAIL_VERIFICATION


def test_email_taken_by_someone_else_conflicts(client, db, make_tenant, make_user):
    tenant = make_tenant()
    user = make_user(tenant, username="mara")
    make_user(tenant, username="nico")

    response = client.put("/api/v1/user/profile", json={"email": "nico@example.com"}, headers=auth_headers(user))

    assert response.status_code == 409
    db.expire_all()
    assert db.get(User, user.id).email == "mara@example.com"


def test_empty_profile_update_is_rejected(client, make_tenant, make_user):
    user = make_user(make_tenant())

    response = client.put("/api/v1/user/profile", json={"name": None}, headers=auth_headers(user))

    assert response.status_code == 422


def test_wrong_current_password_is_audited(client, db, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara", password=PASSWORD)

    response = client.put(
        "/api/v1/user/password",
        json={"current_password": "not-the-password", "new_password": "a-new-secret-1"},
        headers=auth_headers(user),
    )

    assert response.status_code == 422
    audit = db.execute(select(AuditLog).where(AuditLog.action == "password_change_failed")).scalar_one()
    assert audit.success is False
    assert audit.severity == "warning"


def test_password_change_takes_effect_for_login(client, db, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara", password=PASSWORD)
    headers = auth_headers(user)

    same = client.put(
        "/api/v1/user/password",
        json={"current_password": PASSWORD, "new_password": PASSWORD},
        headers=headers,
    )
    changed = client.put(
        "/api/v1/user/password",
        json={"current_password": PASSWORD, "new_password": "a-new-secret-1"},
        headers=headers,
    )

    assert same.status_code == 422
    assert changed.status_code == 200
    assert changed.json()["ok"] is True
    assert _login(client, PASSWORD).status_code == 401
    assert _login(client, "a-new-secret-1").status_code == 200


def test_password_guessing_is_rate_limited_per_account(client, make_tenant, make_user):
    user = make_user(make_tenant(), username="mara", password=PASSWORD)

    statuses = [
        client.put(
            "/api/v1/user/password",
            json={"current_password": "wrong-guess", "new_password": "a-new-secret-1"},
            headers=auth_headers(user),
        ).status_code
        for _ in range(6)
    ]

    assert statuses == [422] * 5 + [429]
