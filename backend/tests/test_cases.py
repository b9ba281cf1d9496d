import pytest
from sqlalchemy import select

from conftest import auth_headers
from remise.audit.models import AuditLog
from remise.cases.models import Case, CasePermission, CaseSuspect, CaseTimelineEvent


@pytest.fixture()
def farm(make_tenant):
    return make_tenant("Hill Farm")


@pytest.fixture()
def agent(farm, make_user):
    return make_user(farm, role="insurance_agent", access_level="stakeholder", username="agent_ana")


def _open_case(client, user, **overrides):
    payload = {
        "case_name": "Quad bike theft",
        "date_reported": "2026-03-02",
        "date_occurred": "2026-03-01",
        "location": "North paddock shed",
        "description": "Two quad bikes taken overnight",
    }
    payload.update(overrides)
    return client.post("/api/v1/cases", json=payload, headers=auth_headers(user))


def _grant(client, granter, case_id, user, **flags):
    return client.put(
        f"/api/v1/cases/{case_id}/permissions",
        json={"user_id": user.id, **flags},
        headers=auth_headers(granter),
    )


def test_creator_and_tenant_owner_see_the_case(client, db, farm, agent, make_user):
    owner = make_user(farm)

    created = _open_case(client, agent)

    assert created.status_code == 201
    body = created.json()
    assert body["tenant_id"] == farm.id
    assert body["status"] == "open"
    assert body["priority"] == "medium"
    assert body["created_by"] == agent.id
    assert body["created_by_role"] == "insurance_agent"

    for user in (agent, owner):
        listed = client.get("/api/v1/cases", headers=auth_headers(user)).json()
        assert [c["id"] for c in listed["cases"]] == [body["id"]]

    audit = db.execute(select(AuditLog).where(AuditLog.action == "case_created")).scalar_one()
    assert audit.details == {"case_id": body["id"], "tenant_id": farm.id}


def test_colleague_needs_a_grant_to_see_and_edit(client, farm, agent, make_user):
    colleague = make_user(farm, role="broker", access_level="stakeholder")
    case_id = _open_case(client, agent).json()["id"]
    headers = auth_headers(colleague)

    assert client.get(f"/api/v1/cases/{case_id}", headers=headers).status_code == 403
    assert client.get("/api/v1/cases", headers=headers).json()["total"] == 0

    granted = _grant(client, agent, case_id, colleague)
    assert granted.status_code == 200
    assert granted.json()["can_view"] is True
    assert granted.json()["can_edit"] is False

    detail = client.get(f"/api/v1/cases/{case_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["permissions"] == []
    assert client.get("/api/v1/cases", headers=headers).json()["total"] == 1
    assert client.patch(f"/api/v1/cases/{case_id}", json={"status": "investigating"}, headers=headers).status_code == 403

    _grant(client, agent, case_id, colleague, can_edit=True)
    patched = client.patch(f"/api/v1/cases/{case_id}", json={"status": "investigating"}, headers=headers)
    assert patched.status_code == 200
    assert patched.json()["status"] == "investigating"
    assert client.delete(f"/api/v1/cases/{case_id}", headers=headers).status_code == 403


def test_grantees_cannot_manage_grants(client, farm, agent, make_user):
    colleague = make_user(farm, role="broker", access_level="stakeholder")
    outsider = make_user(farm, role="banker", access_level="stakeholder")
    case_id = _open_case(client, agent).json()["id"]
    _grant(client, agent, case_id, colleague, can_edit=True, can_delete=True)

    assert _grant(client, colleague, case_id, outsider).status_code == 403
    assert client.get(f"/api/v1/cases/{case_id}/permissions", headers=auth_headers(colleague)).status_code == 403
    assert (
        client.delete(f"/api/v1/cases/{case_id}/permissions/{colleague.id}", headers=auth_headers(colleague)).status_code
        == 403
    )

    listed = client.get(f"/api/v1/cases/{case_id}/permissions", headers=auth_headers(agent))
    assert [g["user_id"] for g in listed.json()] == [colleague.id]


def test_revoking_a_grant_removes_access(client, db, farm, agent, make_user):
    colleague = make_user(farm, role="broker", access_level="stakeholder")
    case_id = _open_case(client, agent).json()["id"]
    _grant(client, agent, case_id, colleague)

    revoked = client.delete(f"/api/v1/cases/{case_id}/permissions/{colleague.id}", headers=auth_headers(agent))
    again = client.delete(f"/api/v1/cases/{case_id}/permissions/{colleague.id}", headers=auth_headers(agent))

    assert revoked.status_code == 200
    assert again.status_code == 404
    assert client.get(f"/api/v1/cases/{case_id}", headers=auth_headers(colleague)).status_code == 403
    audit = db.execute(select(AuditLog).where(AuditLog.action == "case_permission_revoked")).scalar_one()
    assert audit.severity == "warning"


def test_grant_opens_a_case_to_an_officer_in_another_tenant(client, agent, make_tenant, make_user):
    officer = make_user(make_tenant("County Police"), role="law_enforcement", access_level="stakeholder")
    case_id = _open_case(client, agent).json()["id"]

    assert client.get(f"/api/v1/cases/{case_id}", headers=auth_headers(officer)).status_code == 403

    _grant(client, agent, case_id, officer, can_edit=True)
    added = client.post(
        f"/api/v1/cases/{case_id}/updates",
        json={"date": "2026-03-04", "body": "Bikes spotted at auction"},
        headers=auth_headers(officer),
    )

    assert added.status_code == 201
    assert added.json()["created_by_role"] == "law_enforcement"
    listed = client.get("/api/v1/cases", headers=auth_headers(officer)).json()
    assert [c["id"] for c in listed["cases"]] == [case_id]


def test_grant_for_unknown_user_is_not_found(client, agent):
    case_id = _open_case(client, agent).json()["id"]

    response = client.put(
        f"/api/v1/cases/{case_id}/permissions", json={"user_id": "u_missing"}, headers=auth_headers(agent)
    )

    assert response.status_code == 404


def test_cases_cannot_be_opened_in_another_tenant(client, agent, make_tenant, make_user):
    other = make_tenant("Dale Farm")
    admin = make_user(make_tenant("Platform"), role="super_admin")

    assert _open_case(client, agent, tenant_id=other.id).status_code == 403

    created = _open_case(client, admin, tenant_id=other.id, priority="critical")
    assert created.status_code == 201
    assert created.json()["tenant_id"] == other.id
    assert _open_case(client, admin, tenant_id="t_missing").status_code == 404


def test_timeline_suspects_and_updates(client, db, agent):
    case_id = _open_case(client, agent).json()["id"]
    headers = auth_headers(agent)

    late = client.post(
        f"/api/v1/cases/{case_id}/timeline",
        json={"date": "2026-03-01", "time": "23:40", "event": "Gate found open", "description": "Chain cut"},
        headers=headers,
    )
    early = client.post(
        f"/api/v1/cases/{case_id}/timeline",
        json={"date": "2026-03-01", "time": "21:15", "event": "Vehicle heard", "description": "Ute on the track"},
        headers=headers,
    )
    suspect = client.post(
        f"/api/v1/cases/{case_id}/suspects",
        json={"name": "Unknown driver", "description": "White ute", "phone": "0400 000 000"},
        headers=headers,
    )
    assert late.status_code == early.status_code == suspect.status_code == 201

    cleared = client.patch(
        f"/api/v1/cases/{case_id}/suspects/{suspect.json()['id']}",
        json={"phone": None, "status": "cleared"},
        headers=headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["phone"] is None
    assert cleared.json()["status"] == "cleared"

    detail = client.get(f"/api/v1/cases/{case_id}", headers=headers).json()
    assert [e["time"] for e in detail["timeline"]] == ["21:15", "23:40"]
    assert [s["name"] for s in detail["suspects"]] == ["Unknown driver"]

    removed = client.delete(f"/api/v1/cases/{case_id}/timeline/{late.json()['id']}", headers=headers)
    assert removed.status_code == 200
    assert db.get(CaseTimelineEvent, late.json()["id"]) is None


def test_entries_are_addressed_through_their_own_case(client, agent):
    headers = auth_headers(agent)
    first = _open_case(client, agent).json()["id"]
    second = _open_case(client, agent, case_name="Fuel theft").json()["id"]
    event = client.post(
        f"/api/v1/cases/{first}/timeline",
        json={"date": "2026-03-01", "time": "22:00", "event": "Lights seen", "description": "Torch by shed"},
        headers=headers,
    ).json()

    response = client.patch(
        f"/api/v1/cases/{second}/timeline/{event['id']}", json={"event": "Moved"}, headers=headers
    )

    assert response.status_code == 404
    assert client.get("/api/v1/cases/999999", headers=headers).status_code == 404


def test_null_for_required_case_field_is_rejected(client, agent):
    case_id = _open_case(client, agent, case_number="PX-19", assigned_officer="Sgt Hale").json()["id"]
    headers = auth_headers(agent)

    rejected = client.patch(f"/api/v1/cases/{case_id}", json={"case_name": None}, headers=headers)
    cleared = client.patch(f"/api/v1/cases/{case_id}", json={"assigned_officer": None}, headers=headers)

    assert rejected.status_code == 422
    assert cleared.status_code == 200
    assert cleared.json()["assigned_officer"] is None
    assert cleared.json()["case_number"] == "PX-19"


def test_delete_purges_entries_and_grants(client, db, farm, agent, make_user):
    colleague = make_user(farm, role="broker", access_level="stakeholder")
    case_id = _open_case(client, agent).json()["id"]
    headers = auth_headers(agent)
    client.post(
        f"/api/v1/cases/{case_id}/suspects",
        json={"name": "Neighbour's cousin", "description": "Seen near the shed"},
        headers=headers,
    )
    _grant(client, agent, case_id, colleague)

    response = client.delete(f"/api/v1/cases/{case_id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"deleted": True, "id": case_id}
    db.expire_all()
    assert db.get(Case, case_id) is None
    assert db.execute(select(CaseSuspect).where(CaseSuspect.case_id == case_id)).first() is None
    assert db.execute(select(CasePermission).where(CasePermission.case_id == case_id)).first() is None
