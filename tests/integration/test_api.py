"""
HTTP-level tests: authentication, the error envelope, purchase order
endpoints, employee catalog proposals and audit log access.
"""

import pytest

PO_BODY = {
    "department": "Operations",
    "request_date": "2026-10-01",
    "request_type": "purchase",
    "requester_name": "Eli Employee",
    "currency": "USD",
    "items": [
        {"item_code": "PAP-A4", "item_name": "A4 paper", "unit": "box", "quantity": 10, "price": "25.00"}
    ],
}

VENDOR_BODY = {
    "name": "Acme Supplies",
    "contact_person": "Rana Haddad",
    "phone": "+963 11 222 3344",
    "address": "Industrial Zone, Damascus",
}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["checks"]["db"] == "ok"
    assert body["checks"]["entity_locks_held"] == 0
    assert "x-request-id" in resp.headers


@pytest.mark.asyncio
async def test_requests_need_a_valid_token(client):
    resp = await client.get("/api/v1/purchase-orders")
    assert resp.status_code in (401, 403)
    assert "error" in resp.json()

    resp = await client.get("/api/v1/purchase-orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_TOKEN_INVALID"


@pytest.mark.asyncio
async def test_purchase_order_round_trip(client, users, auth_headers):
    employee, assistant = auth_headers("employee"), auth_headers("assistant")

    resp = await client.post("/api/v1/purchase-orders", json=PO_BODY, headers=employee)
    assert resp.status_code == 201
    po = resp.json()
    assert po["status"] == "draft"
    assert po["total_amount"] == 250.0
    assert po["items"][0]["line_total"] == 250.0
    assert po["items"][0]["currency"] == "USD"
    assert po["version"] == 1

    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/submit", headers=employee)
    assert resp.status_code == 200
    assert resp.json()["status"] == "under_assistant_review"

    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/approve", headers=employee)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/reject", json={}, headers=assistant)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    resp = await client.post(
        f"/api/v1/purchase-orders/{po['id']}/reject", json={"reason": "budget"}, headers=assistant
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected_by_assistant"

    resp = await client.get(f"/api/v1/purchase-orders/{po['id']}", headers=auth_headers("other_employee"))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"

    resp = await client.get("/api/v1/purchase-orders", params={"status": "rejected_by_assistant"}, headers=assistant)
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["notes"] == "Rejection reason: budget"


@pytest.mark.asyncio
async def test_conflict_and_invalid_state_render_as_409(client, users, auth_headers):
    employee = auth_headers("employee")
    po = (await client.post("/api/v1/purchase-orders", json=PO_BODY, headers=employee)).json()

    resp = await client.post(
        f"/api/v1/purchase-orders/{po['id']}/submit", json={"expected_version": 5}, headers=employee
    )
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "CONFLICT"
    assert error["retryable"] is True

    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/complete", headers=auth_headers("manager"))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_malformed_body_is_validation_error(client, users, auth_headers):
    body = {**PO_BODY, "items": [{"item_code": "X", "quantity": 0}]}
    resp = await client.post("/api/v1/purchase-orders", json=body, headers=auth_headers("employee"))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]


@pytest.mark.asyncio
async def test_employee_vendor_create_becomes_change_request(client, users, auth_headers):
    resp = await client.post("/api/v1/vendors", json=VENDOR_BODY, headers=auth_headers("employee"))
    assert resp.status_code == 202
    cr = resp.json()
    assert cr["status"] == "pending"
    assert cr["entity_type"] == "vendor"
    assert cr["operation_type"] == "create"

    manager = auth_headers("manager")
    resp = await client.get("/api/v1/vendors", headers=manager)
    assert resp.json()["pagination"]["total"] == 0

    resp = await client.post(f"/api/v1/change-requests/{cr['id']}/approve", headers=manager)
    assert resp.status_code == 200
    approved = resp.json()
    assert approved["status"] == "approved"
    assert approved["entity_id"] is None

    resp = await client.get("/api/v1/vendors", headers=auth_headers("guest"))
    assert resp.status_code == 200
    (vendor,) = resp.json()["data"]
    assert vendor["name"] == "Acme Supplies"

    resp = await client.get(f"/api/v1/vendors/{vendor['id']}", headers=auth_headers("guest"))
    assert resp.status_code == 200

    resp = await client.post(f"/api/v1/change-requests/{cr['id']}/approve", headers=manager)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_reviewer_vendor_create_is_direct(client, users, auth_headers):
    resp = await client.post("/api/v1/vendors", json=VENDOR_BODY, headers=auth_headers("assistant"))
    assert resp.status_code == 201
    vendor = resp.json()
    assert vendor["status"] == "active"
    assert vendor["version"] == 1

    resp = await client.delete(f"/api/v1/vendors/{vendor['id']}", headers=auth_headers("manager"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "archived"

    resp = await client.post("/api/v1/vendors", json=VENDOR_BODY, headers=auth_headers("guest"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_audit_logs_are_manager_only(client, users, auth_headers):
    await client.post("/api/v1/purchase-orders", json=PO_BODY, headers=auth_headers("employee"))

    resp = await client.get("/api/v1/audit-logs", headers=auth_headers("assistant"))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    resp = await client.get(
        "/api/v1/audit-logs", params={"entity_type": "purchase_order"}, headers=auth_headers("manager")
    )
    assert resp.status_code == 200
    (entry,) = resp.json()["data"]
    assert entry["action"] == "create_purchase_order"
    assert entry["after_state"] == {"status": "draft"}


@pytest.mark.asyncio
async def test_receipt_with_repeated_line_is_rejected(client, users, auth_headers):
    employee, manager = auth_headers("employee"), auth_headers("manager")
    po = (await client.post("/api/v1/purchase-orders", json=PO_BODY, headers=employee)).json()
    await client.post(f"/api/v1/purchase-orders/{po['id']}/submit", headers=employee)
    await client.post(f"/api/v1/purchase-orders/{po['id']}/approve", headers=auth_headers("assistant"))
    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/approve", headers=manager)
    assert resp.json()["status"] == "in_progress"

    line_id = po["items"][0]["id"]
    body = {"lines": [
        {"item_id": line_id, "received_quantity": 2},
        {"item_id": line_id, "received_quantity": 9},
    ]}
    resp = await client.post(f"/api/v1/purchase-orders/{po['id']}/receipts", json=body, headers=manager)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    resp = await client.get(f"/api/v1/purchase-orders/{po['id']}", headers=manager)
    assert resp.json()["items"][0]["received_quantity"] is None
    assert resp.json()["version"] == 4
