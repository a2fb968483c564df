"""
Tests: checklist HTTP API: concierge.blueprints.checklist_bp.

Exercises the full stack (JWT middleware → client resolution → services)
through the Flask test client. Object storage is faked via `fake_storage`.
"""

import io

import pytest

from concierge.models import db as _db
from concierge.models.checklist import ChecklistAttachment, ChecklistItem

BASE = "/api/v1/client/checklist"
FILES = f"{BASE}/files"
UNKNOWN_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture()
def kim(make_client):
    return make_client("Kim Family", user_id="user-kim", owner_agent_id="agent-1",
                       delegate_user_id="user-spouse")


@pytest.fixture()
def catalog(make_template):
    return {
        "t1": make_template(title="T1", category="arrival", order_num=1),
        "t2": make_template(title="T2", category="arrival", order_num=2),
        "t3": make_template(title="T3", category="pre_departure", order_num=1),
    }


def _upload(client, headers, *, data=b"%PDF-1.7", name="lease.pdf", mime="application/pdf", **fields):
    form = {"file": (io.BytesIO(data), name, mime), **fields}
    return client.post(FILES, data=form, headers=headers, content_type="multipart/form-data")


# ── Authentication ───────────────────────────────────────────────────────────


def test_requires_bearer_token(client, kim, catalog):
    res = client.get(BASE)
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHORIZED"


def test_expired_token_is_rejected(client, kim, catalog):
    from concierge.services.jwt_service import generate_access_token

    token = generate_access_token("user-kim", ["client"], expires_in=-30)
    res = client.get(BASE, headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 401
    assert res.get_json()["error"] == "Token expired"


def test_identity_without_client_is_unauthorized(client, auth_headers, catalog):
    res = client.get(BASE, headers=auth_headers("user-stranger"))
    assert res.status_code == 401


# ── GET /client/checklist ────────────────────────────────────────────────────


def test_get_checklist_shape(client, auth_headers, kim, catalog):
    res = client.get(BASE, headers=auth_headers("user-kim"))

    assert res.status_code == 200
    body = res.get_json()
    assert [m["title"] for m in body["checklist"]] == ["T1", "T2", "T3"]
    grouped = {k: [m["title"] for m in v] for k, v in body["groupedByCategory"].items()}
    assert grouped == {"arrival": ["T1", "T2"], "pre_departure": ["T3"]}
    assert res.headers["Cache-Control"] == "no-store"


def test_delegate_sees_the_same_checklist(client, auth_headers, kim, catalog, make_item):
    make_item(kim.id, catalog["t1"].id, is_completed=True)

    res = client.get(BASE, headers=auth_headers("user-spouse"))

    first = res.get_json()["checklist"][0]
    assert first["templateId"] == catalog["t1"].id
    assert first["isCompleted"] is True


def test_admin_can_view_a_specific_client(client, auth_headers, kim, catalog, make_item):
    make_item(kim.id, catalog["t3"].id, notes="admin can read")

    res = client.get(f"{BASE}?client_id={kim.id}", headers=auth_headers("admin-1", ["admin"]))

    memos = [m["memo"] for m in res.get_json()["checklist"]]
    assert "admin can read" in memos


def test_unknown_category_is_a_business_error(client, auth_headers, kim, make_template):
    make_template(category="visa")

    res = client.get(BASE, headers=auth_headers("user-kim"))

    assert res.status_code == 422
    assert res.get_json()["details"] == {"category": "visa"}


# ── PATCH /client/checklist ──────────────────────────────────────────────────


def test_patch_then_get(client, auth_headers, kim, catalog):
    headers = auth_headers("user-kim")
    t1 = catalog["t1"].id

    res = client.patch(BASE, json={"items": [{"templateId": t1, "is_completed": True, "notes": "done"}]},
                       headers=headers)

    assert res.status_code == 200
    body = res.get_json()
    assert body["count"] == 1
    assert body["attempted"] == 1
    assert body["partial"] is False
    assert body["updated"][0]["completed_at"]

    merged = {m["templateId"]: m for m in client.get(BASE, headers=headers).get_json()["checklist"]}
    assert merged[t1]["isCompleted"] is True
    assert merged[t1]["memo"] == "done"
    assert merged[catalog["t2"].id]["isCompleted"] is False


def test_patch_partial_batch_is_200(client, auth_headers, kim, catalog):
    res = client.patch(BASE, json={"items": [
        {"templateId": catalog["t1"].id, "is_completed": True},
        {"templateId": UNKNOWN_ID, "is_completed": True},
    ]}, headers=auth_headers("user-kim"))

    assert res.status_code == 200
    body = res.get_json()
    assert body["partial"] is True
    assert body["count"] == 1
    assert body["failed"] == [{"templateId": UNKNOWN_ID, "error": "TemplateNotFound"}]


def test_patch_accepts_upper_case_template_id(client, auth_headers, kim, catalog):
    res = client.patch(BASE, json={"items": [
        {"templateId": catalog["t1"].id.upper(), "is_completed": True},
    ]}, headers=auth_headers("user-kim"))

    assert res.status_code == 200
    body = res.get_json()
    assert body["partial"] is False
    assert body["updated"][0]["template_id"] == catalog["t1"].id


@pytest.mark.parametrize(
    "payload",
    [
        {"items": "not-a-list"},
        {"items": [{"templateId": "not-a-uuid"}]},
        {"items": [{"templateId": UNKNOWN_ID, "is_completed": "yes"}]},
        {"items": [{"templateId": UNKNOWN_ID, "notes": 42}]},
        {"items": [{"templateId": UNKNOWN_ID, "notes": "x" * 2001}]},
        {"items": [{"templateId": UNKNOWN_ID, "completed_at": "last tuesday"}]},
        {"items": ["string item"]},
        {},
    ],
)
def test_patch_rejects_malformed_input(client, auth_headers, kim, payload):
    res = client.patch(BASE, json=payload, headers=auth_headers("user-kim"))
    assert res.status_code == 400
    assert ChecklistItem.query.count() == 0


def test_patch_accepts_null_fields(client, auth_headers, kim, catalog):
    res = client.patch(BASE, json={"items": [
        {"templateId": catalog["t1"].id, "is_completed": None, "notes": None, "completed_at": None},
    ]}, headers=auth_headers("user-kim"))
    assert res.status_code == 200
    assert res.get_json()["count"] == 1


def test_patch_requires_json_content_type(client, auth_headers, kim):
    res = client.patch(BASE, data="items=1", headers=auth_headers("user-kim"),
                       content_type="application/x-www-form-urlencoded")
    assert res.status_code == 415


def test_ownership_isolation_between_clients(client, auth_headers, kim, make_client, catalog, make_item):
    make_client("Park Family", user_id="user-park")
    kim_item = make_item(kim.id, catalog["t1"].id, notes="kim private")

    res = client.patch(BASE, json={"items": [
        {"templateId": catalog["t1"].id, "notes": "park overwrite"},
    ]}, headers=auth_headers("user-park"))
    assert res.status_code == 200

    _db.session.expire_all()
    assert _db.session.get(ChecklistItem, kim_item.id).notes == "kim private"
    park_view = client.get(BASE, headers=auth_headers("user-park")).get_json()["checklist"]
    assert "kim private" not in [m["memo"] for m in park_view]


# ── Agent routes ─────────────────────────────────────────────────────────────


def test_agent_reads_and_updates_assigned_client(client, auth_headers, kim, catalog):
    url = f"/api/v1/agent/clients/{kim.id}/checklist"
    headers = auth_headers("agent-1", ["agent"])

    res = client.patch(url, json={"items": [{"templateId": catalog["t2"].id, "is_completed": True}]},
                       headers=headers)
    assert res.status_code == 200

    merged = {m["templateId"]: m for m in client.get(url, headers=headers).get_json()["checklist"]}
    assert merged[catalog["t2"].id]["isCompleted"] is True


def test_other_agent_gets_404(client, auth_headers, kim, catalog):
    url = f"/api/v1/agent/clients/{kim.id}/checklist"

    assert client.get(url, headers=auth_headers("agent-2", ["agent"])).status_code == 404
    res = client.patch(url, json={"items": [{"templateId": catalog["t1"].id, "is_completed": True}]},
                       headers=auth_headers("agent-2", ["agent"]))
    assert res.status_code == 404
    assert ChecklistItem.query.count() == 0


def test_client_role_cannot_use_agent_routes(client, auth_headers, kim, catalog):
    res = client.get(f"/api/v1/agent/clients/{kim.id}/checklist", headers=auth_headers("user-kim"))
    assert res.status_code == 401


# ── Attachments ──────────────────────────────────────────────────────────────


def test_upload_by_template_then_read(client, auth_headers, fake_storage, kim, catalog):
    headers = auth_headers("user-kim")

    res = _upload(client, headers, template_id=catalog["t3"].id)

    assert res.status_code == 201
    uploaded = res.get_json()["file"]
    assert uploaded["name"] == "lease.pdf"
    assert uploaded["uploaded_by"] == "user-kim"

    t3 = next(m for m in client.get(BASE, headers=headers).get_json()["checklist"]
              if m["templateId"] == catalog["t3"].id)
    assert t3["isCompleted"] is False
    assert [f["id"] for f in t3["files"]] == [uploaded["id"]]
    assert t3["id"] == uploaded["item_id"]


def test_upload_validation(client, auth_headers, fake_storage, kim, catalog):
    headers = auth_headers("user-kim")

    assert _upload(client, headers).status_code == 400
    assert _upload(client, headers, template_id="nope").status_code == 400
    res = _upload(client, headers, mime="application/zip", name="a.zip", template_id=catalog["t1"].id)
    assert res.status_code == 422
    assert fake_storage.calls == []


def test_upload_missing_file(client, auth_headers, kim, catalog):
    res = client.post(FILES, data={"template_id": catalog["t1"].id},
                      headers=auth_headers("user-kim"), content_type="multipart/form-data")
    assert res.status_code == 400


def test_upload_requires_multipart(client, auth_headers, kim, catalog):
    res = client.post(FILES, json={"template_id": catalog["t1"].id}, headers=auth_headers("user-kim"))
    assert res.status_code == 415


def test_upload_storage_outage_is_503(client, auth_headers, fake_storage, kim, catalog):
    for _ in range(3):
        fake_storage.fail("POST", 503, "unavailable")

    res = _upload(client, auth_headers("user-kim"), template_id=catalog["t1"].id)

    assert res.status_code == 503
    assert res.get_json()["code"] == "ERR_STORE_UNAVAILABLE"
    assert ChecklistAttachment.query.count() == 0


def test_list_delete_download(client, auth_headers, fake_storage, kim, catalog):
    headers = auth_headers("user-kim")
    uploaded = _upload(client, headers, template_id=catalog["t1"].id).get_json()["file"]

    listed = client.get(f"{FILES}?item_id={uploaded['item_id']}", headers=headers)
    assert [f["id"] for f in listed.get_json()["files"]] == [uploaded["id"]]

    download = client.get(f"{FILES}/{uploaded['id']}/download", headers=headers)
    assert download.status_code == 302
    assert download.headers["Location"].startswith("https://storage.test/storage/v1/object/sign/")

    deleted = client.delete(f"{FILES}/{uploaded['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.get_json()["deleted"] is True
    assert client.get(f"{FILES}/{uploaded['id']}/download", headers=headers).status_code == 404


def test_delete_reports_storage_warning(client, auth_headers, fake_storage, kim, catalog):
    headers = auth_headers("user-kim")
    uploaded = _upload(client, headers, template_id=catalog["t1"].id).get_json()["file"]
    fake_storage.fail("DELETE", 400, "bad request")

    res = client.delete(f"{FILES}/{uploaded['id']}", headers=headers)

    assert res.status_code == 200
    assert res.get_json()["warning"]
    assert ChecklistAttachment.query.count() == 0


def test_delete_accepts_upper_case_attachment_id(client, auth_headers, fake_storage, kim, catalog):
    headers = auth_headers("user-kim")
    uploaded = _upload(client, headers, template_id=catalog["t1"].id.upper()).get_json()["file"]

    res = client.delete(f"{FILES}/{uploaded['id'].upper()}", headers=headers)

    assert res.status_code == 200
    assert res.get_json()["id"] == uploaded["id"]
    assert ChecklistAttachment.query.count() == 0


def test_files_of_another_client_are_not_found(client, auth_headers, fake_storage, kim, catalog, make_client):
    make_client("Park Family", user_id="user-park")
    uploaded = _upload(client, auth_headers("user-kim"), template_id=catalog["t1"].id).get_json()["file"]
    park = auth_headers("user-park")

    assert client.get(f"{FILES}?item_id={uploaded['item_id']}", headers=park).status_code == 404
    assert client.get(f"{FILES}/{uploaded['id']}/download", headers=park).status_code == 404
    assert client.delete(f"{FILES}/{uploaded['id']}", headers=park).status_code == 404
    assert ChecklistAttachment.query.count() == 1


def test_list_requires_item_id(client, auth_headers, kim):
    assert client.get(FILES, headers=auth_headers("user-kim")).status_code == 400
    assert client.get(f"{FILES}?item_id=abc", headers=auth_headers("user-kim")).status_code == 400


# ── Cross-cutting ────────────────────────────────────────────────────────────


def test_health_endpoints(client):
    assert client.get("/api/v1/health").get_json()["status"] == "ok"
    assert client.get("/api/v1/health/ready").status_code == 200
    live = client.get("/api/v1/health/live")
    assert live.status_code == 200
    assert live.get_json()["checks"]["database"]["status"] == "ok"
    assert live.get_json()["checks"]["object_storage"]["status"] == "configured"


def test_request_id_and_security_headers(client, auth_headers, kim):
    res = client.get(BASE, headers={**auth_headers("user-kim"), "X-Request-ID": "req-123"})

    assert res.headers["X-Request-ID"] == "req-123"
    assert "X-Request-Duration-Ms" in res.headers
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"


def test_unknown_api_route_is_json_404(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"
