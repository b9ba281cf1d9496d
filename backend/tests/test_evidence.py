import base64

import pytest
from sqlalchemy import select

from conftest import auth_headers
from remise.audit.models import AuditLog
from remise.evidence.models import Evidence
from remise.storage.provider import StorageError


@pytest.fixture()
def owner(make_tenant, make_user):
    return make_user(make_tenant("Hill Farm"), username="hill_owner")


def _upload(client, user, item_id, *, name="tractor.jpg", content_type="image/jpeg", data=b"\xff\xd8jpeg"):
    return client.post(
        "/api/v1/evidence/upload",
        data={"item_id": str(item_id), "type": "photo", "description": "Front view"},
        files={"file": (name, data, content_type)},
        headers=auth_headers(user),
    )


def test_upload_stores_media_and_lists_it(client, storage, owner, make_item):
    item = make_item(owner)

    response = _upload(client, owner, item.id)

    assert response.status_code == 201
    body = response.json()
    assert body["stored_inline"] is False
    assert body["original_name"] == "tractor.jpg"
    assert storage.exists(body["storage_id"])
    assert body["url"].endswith(body["storage_id"])

    listed = client.get("/api/v1/evidence", params={"item_id": item.id}, headers=auth_headers(owner))
    assert listed.status_code == 200
    assert listed.json()["total"] == 1


def test_upload_rejects_mismatched_mime_type(client, owner, make_item):
    item = make_item(owner)

    response = _upload(client, owner, item.id, name="notes.pdf", content_type="application/pdf")

    assert response.status_code == 422


def test_duplicate_inline_document_name_conflicts(client, owner, make_item):
    item = make_item(owner)
    payload = {
        "item_id": item.id,
        "filename": "receipt.pdf",
        "mime_type": "application/pdf",
        "content_base64": base64.b64encode(b"%PDF-1.4 receipt").decode(),
    }

    first = client.post("/api/v1/evidence/documents", json=payload, headers=auth_headers(owner))
    second = client.post("/api/v1/evidence/documents", json=payload, headers=auth_headers(owner))

    assert first.status_code == 201
    assert first.json()["stored_inline"] is True
    assert second.status_code == 409
    assert "receipt.pdf" in second.json()["detail"]


def test_inline_document_downloads_its_bytes(client, db, owner, make_item):
    item = make_item(owner)
    created = client.post(
        "/api/v1/evidence/documents",
        json={
            "item_id": item.id,
            "filename": "receipt.txt",
            "mime_type": "text/plain",
            "content_base64": base64.b64encode(b"paid in full").decode(),
        },
        headers=auth_headers(owner),
    ).json()

    response = client.get(f"/api/v1/evidence/{created['id']}/download", headers=auth_headers(owner))

    assert response.status_code == 200
    assert response.content == b"paid in full"
    assert 'filename="receipt.txt"' in response.headers["content-disposition"]
    assert db.execute(select(AuditLog).where(AuditLog.action == "evidence_downloaded")).first() is not None


def test_invalid_base64_is_rejected(client, owner, make_item):
    item = make_item(owner)

    response = client.post(
        "/api/v1/evidence/documents",
        json={"item_id": item.id, "filename": "x.txt", "content_base64": "***not base64***"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 422


def test_delete_removes_media(client, db, storage, owner, make_item):
    item = make_item(owner)
    created = _upload(client, owner, item.id).json()

    response = client.delete(f"/api/v1/evidence/{created['id']}", headers=auth_headers(owner))

    assert response.status_code == 200
    assert not storage.exists(created["storage_id"])
    assert db.get(Evidence, created["id"]) is None


def test_storage_failure_on_delete_is_upstream_error(client, db, monkeypatch, storage, owner, make_item):
    item = make_item(owner)
    created = _upload(client, owner, item.id).json()

    def _broken(_storage_id):
        raise StorageError("bucket unavailable")

    monkeypatch.setattr(storage, "delete", _broken)

    response = client.delete(f"/api/v1/evidence/{created['id']}", headers=auth_headers(owner))

    assert response.status_code == 502
    db.expire_all()
    assert db.get(Evidence, created["id"]) is not None


def test_support_staff_cannot_upload(client, make_tenant, make_user, make_item):
    tenant = make_tenant()
    owner = make_user(tenant)
    assistant = make_user(tenant, role="assistant", access_level="stakeholder")
    item = make_item(owner)

    assert _upload(client, assistant, item.id).status_code == 403


def test_stakeholder_edits_only_evidence_they_uploaded(client, make_tenant, make_user, make_item):
    tenant = make_tenant()
    owner = make_user(tenant)
    agent = make_user(tenant, role="insurance_agent", access_level="stakeholder")
    item = make_item(owner)
    mine = _upload(client, agent, item.id, name="agent.jpg").json()
    theirs = _upload(client, owner, item.id, name="owner.jpg").json()

    ok = client.patch(f"/api/v1/evidence/{mine['id']}", json={"description": "Scratched"}, headers=auth_headers(agent))
    denied = client.patch(f"/api/v1/evidence/{theirs['id']}", json={"description": "x"}, headers=auth_headers(agent))

    assert ok.status_code == 200
    assert ok.json()["description"] == "Scratched"
    assert denied.status_code == 403


def test_law_enforcement_can_attach_evidence_across_tenants(client, make_tenant, make_user, make_item):
    owner = make_user(make_tenant())
    officer = make_user(make_tenant(), role="law_enforcement", access_level="stakeholder")
    item = make_item(owner)

    response = _upload(client, officer, item.id, name="scene.jpg")

    assert response.status_code == 201
    assert response.json()["uploaded_by"] == officer.id


def test_metadata_cannot_point_outside_the_media_root(client, storage, tmp_path, owner, make_item):
    item = make_item(owner)
    victim = tmp_path / "outside" / "victim.txt"
    victim.parent.mkdir()
    victim.write_text("keep me")

    for storage_id in ["\\" + str(victim).lstrip("/"), str(victim), "../outside/victim.txt", f"item_{item.id}/../../outside/victim.txt"]:
        response = client.post(
            "/api/v1/evidence",
            json={"item_id": item.id, "type": "document", "storage_id": storage_id},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422, storage_id

    assert victim.read_text() == "keep me"


def test_storage_rejects_ids_that_escape_its_root(storage, tmp_path):
    victim = tmp_path / "victim.txt"
    victim.write_text("keep me")

    with pytest.raises(StorageError):
        storage.exists("item_1/../../victim.txt")
    with pytest.raises(StorageError):
        storage.delete("..\\victim.txt")

    assert victim.exists()
    assert not storage.exists(str(victim))
    assert storage.put("/item_3/a.jpg", b"x", "image/jpeg") == "item_3/a.jpg"
    assert storage.exists("\\item_3\\a.jpg")


def test_metadata_cannot_claim_another_tenants_media(client, storage, owner, make_tenant, make_user, make_item):
    victim_item = make_item(owner)
    uploaded = _upload(client, owner, victim_item.id).json()
    intruder = make_user(make_tenant("Dale Farm"))
    intruder_item = make_item(intruder)

    response = client.post(
        "/api/v1/evidence",
        json={"item_id": intruder_item.id, "type": "photo", "storage_id": uploaded["storage_id"]},
        headers=auth_headers(intruder),
    )

    assert response.status_code == 422
    assert storage.exists(uploaded["storage_id"])


def test_metadata_attaches_unclaimed_object_under_item_prefix_once(client, storage, owner, make_item):
    item = make_item(owner)
    storage_id = storage.put(f"item_{item.id}/1700000000000_scan.jpg", b"\xff\xd8jpeg", "image/jpeg")
    payload = {"item_id": item.id, "type": "photo", "storage_id": storage_id, "original_name": "scan.jpg"}

    first = client.post("/api/v1/evidence", json=payload, headers=auth_headers(owner))
    again = client.post(
        "/api/v1/evidence", json={**payload, "original_name": "copy.jpg"}, headers=auth_headers(owner)
    )
    missing = client.post(
        "/api/v1/evidence",
        json={**payload, "storage_id": f"item_{item.id}/never-uploaded.jpg", "original_name": "x.jpg"},
        headers=auth_headers(owner),
    )

    assert first.status_code == 201
    assert first.json()["url"].endswith(storage_id)
    assert again.status_code == 409
    assert missing.status_code == 422
