import uuid

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from propertyhub.auth import get_password_hash
from propertyhub.db import engine
from propertyhub.main import app
from propertyhub.models import AuditLog, Payment, User


def make_user(username, password, role="property_manager"):
    with Session(engine) as s:
        existing = s.exec(select(User).where(User.username == username)).first()
        if existing:
            return existing
        u = User(username=username, password_hash=get_password_hash(password), role=role)
        s.add(u)
        s.commit()
        s.refresh(u)
        return u


def get_token(client, username, password):
    r = client.post("/api/auth/token", data={"username": username, "password": password})
    assert r.status_code == 200
    return r.json()["access_token"]


def auth(client, username, password, role="property_manager"):
    make_user(username, password, role)
    return {"Authorization": f"Bearer {get_token(client, username, password)}"}


def create_property_and_tenant(client, headers, user_id=None):
    uniq = uuid.uuid4().hex[:8]
    r = client.post(
        "/api/v1/properties",
        json={"title": f"Flat {uniq}", "address": "1 Marina", "city": "Lagos", "rent_amount": "1200.00"},
        headers=headers,
    )
    assert r.status_code == 200
    property_id = r.json()["id"]
    r = client.post(
        "/api/v1/tenants",
        json={
            "full_name": f"tenant-{uniq}",
            "email": f"{uniq}@example.com",
            "property_id": property_id,
            "user_id": user_id,
            "lease_start": "2026-01-01",
            "lease_end": "2026-12-31",
            "monthly_rent": "1200.00",
        },
        headers=headers,
    )
    assert r.status_code == 200
    return property_id, r.json()["id"]


def create_payment(client, headers, tenant_id, property_id, **extra):
    body = {
        "tenant_id": tenant_id,
        "property_id": property_id,
        "amount": "1200.00",
        "due_date": "2026-02-01",
        "description": "February rent",
    }
    body.update(extra)
    r = client.post("/api/v1/payments", json=body, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_records_require_auth():
    client = TestClient(app)
    assert client.get("/api/v1/payments").status_code == 401
    assert client.post("/api/v1/tenants", json={"full_name": "x"}).status_code == 401
    assert client.get("/api/v1/properties").status_code == 401
    assert client.get("/api/v1/properties/anything").status_code == 401
    assert client.delete("/api/v1/properties/anything").status_code == 401
    assert client.delete("/api/v1/tenants/anything").status_code == 401


def test_manager_records_and_lists_payments():
    client = TestClient(app)
    headers = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, headers)

    p = create_payment(client, headers, tenant_id, property_id)
    assert p["status"] == "pending"
    assert p["payment_reference"] is None
    assert p["payment_date"] is None

    r = client.get("/api/v1/payments", params={"tenant_id": tenant_id}, headers=headers)
    assert r.status_code == 200
    assert [row["id"] for row in r.json()] == [p["id"]]

    r = client.get("/api/v1/payments", params={"status": "completed", "tenant_id": tenant_id}, headers=headers)
    assert r.json() == []

    with Session(engine) as s:
        audit = s.exec(select(AuditLog).where(AuditLog.after == f"payment:{p['id']}")).first()
    assert audit is not None


def test_create_payment_for_unknown_tenant_is_rejected():
    client = TestClient(app)
    headers = auth(client, "manager1", "mpass")
    r = client.post(
        "/api/v1/payments",
        json={"tenant_id": "nope", "amount": "10", "due_date": "2026-02-01"},
        headers=headers,
    )
    assert r.status_code == 400


def test_status_transitions_are_enforced():
    client = TestClient(app)
    headers = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, headers)
    p = create_payment(client, headers, tenant_id, property_id)

    r = client.patch(
        f"/api/v1/payments/{p['id']}",
        json={"status": "completed", "payment_method": "bank transfer", "payment_reference": "TRF-1"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["payment_date"] is not None

    # completed is terminal
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"status": "pending"}, headers=headers)
    assert r.status_code == 400
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"status": "failed"}, headers=headers)
    assert r.status_code == 400


def test_amount_only_editable_while_pending():
    client = TestClient(app)
    headers = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, headers)
    p = create_payment(client, headers, tenant_id, property_id)

    r = client.patch(f"/api/v1/payments/{p['id']}", json={"amount": "1300.00"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["amount"] == "1300.00"

    client.patch(f"/api/v1/payments/{p['id']}", json={"status": "failed"}, headers=headers)
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"amount": "1400.00"}, headers=headers)
    assert r.status_code == 400
    with Session(engine) as s:
        assert str(s.get(Payment, p["id"]).amount) == "1300.00"


def test_mark_overdue_only_flips_past_due_pending():
    client = TestClient(app)
    headers = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, headers)
    late = create_payment(client, headers, tenant_id, property_id, due_date="2026-01-01")
    not_due = create_payment(client, headers, tenant_id, property_id, due_date="2026-03-01")
    paid = create_payment(
        client, headers, tenant_id, property_id, due_date="2026-01-01",
        status="completed", payment_method="cash",
    )

    r = client.post("/api/v1/payments/mark-overdue", params={"on": "2026-02-01"}, headers=headers)
    assert r.status_code == 200
    assert late["id"] in r.json()["payment_ids"]
    assert not_due["id"] not in r.json()["payment_ids"]
    assert paid["id"] not in r.json()["payment_ids"]

    statuses = {
        row["id"]: row["status"]
        for row in client.get("/api/v1/payments", params={"tenant_id": tenant_id}, headers=headers).json()
    }
    assert statuses == {late["id"]: "overdue", not_due["id"]: "pending", paid["id"]: "completed"}

    # a late payment can still settle
    r = client.patch(
        f"/api/v1/payments/{late['id']}",
        json={"status": "completed", "payment_method": "cash"},
        headers=headers,
    )
    assert r.status_code == 200


def test_tenant_sees_only_own_payments_and_cannot_record():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    tenant_user = make_user(f"tenant-{uuid.uuid4().hex[:6]}", "tpass", "tenant")
    tenant_headers = {"Authorization": f"Bearer {get_token(client, tenant_user.username, 'tpass')}"}

    property_id, own_tenant_id = create_property_and_tenant(client, staff, user_id=tenant_user.id)
    _, other_tenant_id = create_property_and_tenant(client, staff)
    own = create_payment(client, staff, own_tenant_id, property_id)
    other = create_payment(client, staff, other_tenant_id, property_id)

    r = client.get("/api/v1/payments", headers=tenant_headers)
    ids = [row["id"] for row in r.json()]
    assert own["id"] in ids
    assert other["id"] not in ids
    assert client.get(f"/api/v1/payments/{other['id']}", headers=tenant_headers).status_code == 404

    r = client.post(
        "/api/v1/payments",
        json={"tenant_id": own_tenant_id, "amount": "1", "due_date": "2026-02-01"},
        headers=tenant_headers,
    )
    assert r.status_code == 403


def test_payment_stats():
    client = TestClient(app)
    tenant_user = make_user(f"tenant-{uuid.uuid4().hex[:6]}", "tpass", "tenant")
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff, user_id=tenant_user.id)
    create_payment(client, staff, tenant_id, property_id, amount="100.00")
    create_payment(client, staff, tenant_id, property_id, amount="250.50", status="completed", payment_method="cash")
    overdue = create_payment(client, staff, tenant_id, property_id, amount="75.00", due_date="2020-01-01")
    client.patch(f"/api/v1/payments/{overdue['id']}", json={"status": "overdue"}, headers=staff)

    tenant_headers = {"Authorization": f"Bearer {get_token(client, tenant_user.username, 'tpass')}"}
    r = client.get("/api/v1/payments/stats", headers=tenant_headers)
    assert r.status_code == 200
    stats = r.json()
    assert float(stats["total"]) == 425.50
    assert float(stats["pending"]) == 100.00
    assert float(stats["completed"]) == 250.50
    assert stats["overdue"] == 1


def test_maintenance_requests():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    tenant_user = make_user(f"tenant-{uuid.uuid4().hex[:6]}", "tpass", "tenant")
    property_id, tenant_id = create_property_and_tenant(client, staff, user_id=tenant_user.id)
    tenant_headers = {"Authorization": f"Bearer {get_token(client, tenant_user.username, 'tpass')}"}

    r = client.post(
        "/api/v1/maintenance",
        json={"property_id": property_id, "title": "Leaking tap", "priority": "high"},
        headers=tenant_headers,
    )
    assert r.status_code == 200
    request_id = r.json()["id"]
    assert r.json()["tenant_id"] == tenant_id
    assert r.json()["status"] == "open"

    r = client.patch(f"/api/v1/maintenance/{request_id}", json={"status": "resolved"}, headers=tenant_headers)
    assert r.status_code == 403

    r = client.patch(f"/api/v1/maintenance/{request_id}", json={"status": "resolved"}, headers=staff)
    assert r.status_code == 200
    assert r.json()["status"] == "resolved"

    r = client.get("/api/v1/maintenance", headers=tenant_headers)
    assert [m["id"] for m in r.json()] == [request_id]


def test_tenant_lease_dates_validated():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    r = client.post(
        "/api/v1/tenants",
        json={"full_name": "x", "lease_start": "2026-06-01", "lease_end": "2026-01-01"},
        headers=staff,
    )
    assert r.status_code == 400


def test_required_fields_cannot_be_cleared():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)
    p = create_payment(client, staff, tenant_id, property_id)

    r = client.patch(f"/api/v1/payments/{p['id']}", json={"due_date": None}, headers=staff)
    assert r.status_code == 422
    r = client.patch(f"/api/v1/properties/{property_id}", json={"title": None}, headers=staff)
    assert r.status_code == 422
    r = client.patch(f"/api/v1/tenants/{tenant_id}", json={"full_name": None}, headers=staff)
    assert r.status_code == 422

    # nullable columns may still be cleared
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"description": None}, headers=staff)
    assert r.status_code == 200
    assert r.json()["description"] is None
    assert r.json()["due_date"] == "2026-02-01"


def test_unknown_references_are_rejected():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)
    p = create_payment(client, staff, tenant_id, property_id)

    r = client.post(
        "/api/v1/payments",
        json={"tenant_id": tenant_id, "property_id": "nope", "amount": "10", "due_date": "2026-02-01"},
        headers=staff,
    )
    assert r.status_code == 400
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"property_id": "nope"}, headers=staff)
    assert r.status_code == 400
    r = client.post(
        "/api/v1/maintenance",
        json={"property_id": property_id, "tenant_id": "nope", "title": "Door"},
        headers=staff,
    )
    assert r.status_code == 400
    r = client.post("/api/v1/tenants", json={"full_name": "x", "user_id": 987654}, headers=staff)
    assert r.status_code == 400
    r = client.patch(f"/api/v1/tenants/{tenant_id}", json={"property_id": "nope"}, headers=staff)
    assert r.status_code == 400
    r = client.post(
        "/api/v1/properties",
        json={"title": "x", "address": "y", "city": "z", "rent_amount": "1", "manager_id": 987654},
        headers=staff,
    )
    assert r.status_code == 400
    r = client.patch(f"/api/v1/properties/{property_id}", json={"manager_id": 987654}, headers=staff)
    assert r.status_code == 400


def test_payment_reference_only_on_completed_payments():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)

    r = client.post(
        "/api/v1/payments",
        json={
            "tenant_id": tenant_id,
            "amount": "10",
            "due_date": "2026-02-01",
            "payment_reference": "forged-ref",
        },
        headers=staff,
    )
    assert r.status_code == 400

    p = create_payment(client, staff, tenant_id, property_id)
    r = client.patch(f"/api/v1/payments/{p['id']}", json={"payment_reference": "forged-ref"}, headers=staff)
    assert r.status_code == 400

    recorded = create_payment(
        client, staff, tenant_id, property_id,
        status="completed", payment_method="cash", payment_reference="RCPT-9",
    )
    assert recorded["payment_reference"] == "RCPT-9"


def test_completed_payment_is_closed_to_edits():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)
    p = create_payment(
        client, staff, tenant_id, property_id,
        status="completed", payment_method="cash", payment_reference="RCPT-1",
    )

    for change in ({"due_date": "2030-01-01"}, {"payment_reference": "other"}, {"payment_method": "card"}):
        r = client.patch(f"/api/v1/payments/{p['id']}", json=change, headers=staff)
        assert r.status_code == 400, change

    # repeating the current values changes nothing
    r = client.patch(
        f"/api/v1/payments/{p['id']}",
        json={"status": "completed", "payment_method": "cash", "amount": "1200.00"},
        headers=staff,
    )
    assert r.status_code == 200

    with Session(engine) as s:
        row = s.get(Payment, p["id"])
    assert str(row.due_date) == "2026-02-01"
    assert row.payment_reference == "RCPT-1"
    assert row.payment_method == "cash"


def test_completing_by_hand_needs_a_payment_method():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)
    p = create_payment(client, staff, tenant_id, property_id)

    r = client.patch(f"/api/v1/payments/{p['id']}", json={"status": "completed"}, headers=staff)
    assert r.status_code == 400
    assert "payment_method" in r.json()["detail"]
    with Session(engine) as s:
        assert s.get(Payment, p["id"]).status == "pending"

    r = client.patch(
        f"/api/v1/payments/{p['id']}",
        json={"status": "completed", "payment_method": "cash"},
        headers=staff,
    )
    assert r.status_code == 200


def test_delete_tenant_and_property():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    tenant_user = make_user(f"tenant-{uuid.uuid4().hex[:6]}", "tpass", "tenant")
    tenant_headers = {"Authorization": f"Bearer {get_token(client, tenant_user.username, 'tpass')}"}
    property_id, tenant_id = create_property_and_tenant(client, staff, user_id=tenant_user.id)
    r = client.post(
        "/api/v1/maintenance",
        json={"property_id": property_id, "title": "Broken window"},
        headers=tenant_headers,
    )
    request_id = r.json()["id"]

    assert client.delete(f"/api/v1/tenants/{tenant_id}", headers=tenant_headers).status_code == 403
    assert client.delete(f"/api/v1/properties/{property_id}", headers=tenant_headers).status_code == 403

    r = client.delete(f"/api/v1/properties/{property_id}", headers=staff)
    assert r.status_code == 400

    r = client.delete(f"/api/v1/tenants/{tenant_id}", headers=staff)
    assert r.status_code == 200
    assert r.json() == {"deleted": True}
    assert client.get(f"/api/v1/tenants/{tenant_id}", headers=staff).status_code == 404
    r = client.get("/api/v1/maintenance", params={"property_id": property_id}, headers=staff)
    assert [(m["id"], m["tenant_id"]) for m in r.json()] == [(request_id, None)]

    r = client.delete(f"/api/v1/properties/{property_id}", headers=staff)
    assert r.status_code == 200
    assert client.get(f"/api/v1/properties/{property_id}", headers=staff).status_code == 404
    assert client.delete(f"/api/v1/properties/{property_id}", headers=staff).status_code == 404


def test_tenant_with_payments_cannot_be_deleted():
    client = TestClient(app)
    staff = auth(client, "manager1", "mpass")
    property_id, tenant_id = create_property_and_tenant(client, staff)
    p = create_payment(client, staff, tenant_id, property_id)

    r = client.delete(f"/api/v1/tenants/{tenant_id}", headers=staff)
    assert r.status_code == 400
    with Session(engine) as s:
        assert s.get(Payment, p["id"]) is not None


def test_admin_passes_staff_checks():
    client = TestClient(app)
    admin = auth(client, "records-admin", "apass", role="admin")
    property_id, tenant_id = create_property_and_tenant(client, admin)
    p = create_payment(client, admin, tenant_id, property_id)
    assert p["status"] == "pending"
