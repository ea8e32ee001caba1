from __future__ import annotations

import base64

from fastapi.testclient import TestClient

from app.main import app
from app.models import Customer, Role

from .conftest import PASSWORD, auth_header


def _login(client, email, password=PASSWORD) -> dict:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


def test_health(client):
    assert client.get("/").json()["ok"] is True


def test_end_to_end_team_flow_and_buyer_isolation(client, make_user, product):
    team = make_user(Role.TEAM, email="ops@nafru.eg")
    make_user(Role.BUYER, email="someone@else.ru")

    h = _login(client, "ops@nafru.eg")

    r = client.post("/api/customers", json={"name": "Acme", "email": "a@x.com"}, headers=h)
    assert r.status_code == 200, r.text
    customer = r.json()["customer"]
    assert customer["country"] == "Russia"

    r = client.post(
        "/api/orders",
        json={
            "customerId": customer["id"],
            "items": [{"productId": product.id, "quantity": 100, "pricePerKg": 2}],
            "currency": "USD",
        },
        headers=h,
    )
    assert r.status_code == 200, r.text
    order = r.json()["order"]
    assert order["totalKg"] == 100
    assert order["totalPrice"] == 200
    assert order["items"][0]["totalPrice"] == 200
    assert order["orderNo"].startswith("ORD-")
    assert order["createdBy"] == team.id

    r = client.post("/api/shipments", json={"orderId": order["id"], "vesselName": "MSC Aurora"}, headers=h)
    assert r.status_code == 200, r.text
    shipment = r.json()["shipment"]

    r = client.get("/api/shipments", headers=h)
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["shipments"]] == [shipment["id"]]

    listed = client.get("/api/orders", headers=h).json()["orders"][0]
    assert (listed["shipmentCount"], listed["documentCount"]) == (1, 0)

    hb = _login(client, "someone@else.ru")
    r = client.get("/api/orders", headers=hb)
    assert r.status_code == 200
    assert r.json()["orders"] == []
    assert r.json()["pagination"] == {"page": 1, "limit": 10, "total": 0, "pages": 0}


def test_buyer_sees_own_order_over_http(client, db, team, buyer, buyer_customer, customer, product):
    for cid in (buyer_customer.id, customer.id):
        r = client.post(
            "/api/orders",
            json={"customerId": cid, "orderItems": [{"productId": product.id, "quantity": 10, "pricePerKg": 3}]},
            headers=auth_header(team),
        )
        assert r.status_code == 200, r.text

    r = client.get("/api/orders", headers=auth_header(buyer))
    orders = r.json()["orders"]
    assert [o["customerId"] for o in orders] == [buyer_customer.id]

    r = client.get("/api/orders", headers=auth_header(team))
    assert r.json()["pagination"]["total"] == 2


def test_forbidden_for_buyer(client, buyer, customer, product):
    h = auth_header(buyer)
    cases = [
        ("/api/customers", {"name": "X", "email": "x@y.ru"}),
        ("/api/orders", {"customerId": customer.id, "items": [{"productId": product.id, "quantity": 1, "pricePerKg": 1}]}),
        ("/api/shipments", {"orderId": 1}),
        ("/api/documents", {"orderId": 1, "type": "PACKING_LIST"}),
    ]
    for path, body in cases:
        r = client.post(path, json=body, headers=h)
        assert r.status_code == 403, path
        assert r.json() == {"error": "Insufficient permissions"}


def test_duplicate_customer_is_409(client, db, team):
    body = {"name": "Acme", "email": "a@x.com"}
    assert client.post("/api/customers", json=body, headers=auth_header(team)).status_code == 200
    r = client.post("/api/customers", json=body, headers=auth_header(team))
    assert r.status_code == 409
    assert r.json() == {"error": "Customer with this email already exists"}
    assert db.query(Customer).count() == 1


def test_malformed_input_is_400(client, team):
    r = client.post("/api/customers", json={"email": "not-an-email"}, headers=auth_header(team))
    assert r.status_code == 400
    assert "error" in r.json()

    r = client.post("/api/orders", json={"customerId": 1, "items": []}, headers=auth_header(team))
    assert r.status_code == 400
    assert r.json() == {"error": "Customer ID and order items are required"}


def test_missing_references_are_404(client, team):
    r = client.post("/api/shipments", json={"orderId": 777}, headers=auth_header(team))
    assert r.status_code == 404
    assert r.json() == {"error": "Order not found"}

    r = client.post("/api/documents", json={"orderId": 777, "type": "PACKING_LIST"}, headers=auth_header(team))
    assert r.status_code == 404


def test_generate_list_and_download_document(client, team, customer, product, documents_dir):
    h = auth_header(team)
    order = client.post(
        "/api/orders",
        json={"customerId": customer.id, "items": [{"productId": product.id, "quantity": 5, "pricePerKg": 4}]},
        headers=h,
    ).json()["order"]

    r = client.post("/api/documents", json={"orderId": order["id"], "type": "GENERIC"}, headers=h)
    assert r.status_code == 400

    r = client.post("/api/documents", json={"orderId": order["id"], "type": "COMMERCIAL_INVOICE"}, headers=h)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    doc = body["document"]
    assert doc["type"] == "COMMERCIAL_INVOICE"
    pdf = base64.b64decode(body["pdfData"].split(",", 1)[1])
    assert pdf.startswith(b"%PDF")

    r = client.get("/api/documents", params={"orderId": order["id"]}, headers=h)
    assert [d["id"] for d in r.json()["documents"]] == [doc["id"]]

    r = client.get(f"/api/documents/{doc['id']}/file", headers=h)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content == pdf


def test_non_numeric_paging_falls_back_to_defaults(client, team, customer):
    r = client.get("/api/customers", params={"page": "abc", "limit": "lots"}, headers=auth_header(team))
    assert r.status_code == 200
    assert r.json()["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}


def test_customer_search_over_http(client, team, customer):
    r = client.get("/api/customers", params={"search": "ACME"}, headers=auth_header(team))
    assert [c["email"] for c in r.json()["customers"]] == ["a@x.com"]
    assert r.json()["customers"][0]["orderCount"] == 0


def test_order_status_patch(client, team, customer, product):
    h = auth_header(team)
    order = client.post(
        "/api/orders",
        json={"customerId": customer.id, "items": [{"productId": product.id, "quantity": 1, "pricePerKg": 1}]},
        headers=h,
    ).json()["order"]

    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "CONFIRMED"}, headers=h)
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "CONFIRMED"

    r = client.patch(f"/api/orders/{order['id']}/status", json={"status": "DELIVERED"}, headers=h)
    assert r.status_code == 400


def test_unexpected_errors_are_masked(client, team, monkeypatch):
    import app.main as main

    def boom(*_a, **_kw):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(main, "list_orders", boom)
    raw = TestClient(app, raise_server_exceptions=False)
    r = raw.get("/api/orders", headers=auth_header(team))
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}


def test_dashboard_stats(client, team, buyer, buyer_customer, customer, product):
    h = auth_header(team)
    for cid, qty in ((customer.id, 10), (buyer_customer.id, 5)):
        client.post(
            "/api/orders",
            json={"customerId": cid, "items": [{"productId": product.id, "quantity": qty, "pricePerKg": 2}]},
            headers=h,
        )
    orders = client.get("/api/orders", headers=h).json()["orders"]
    client.post("/api/shipments", json={"orderId": orders[0]["id"]}, headers=h)

    r = client.get("/api/dashboard/stats", headers=h)
    assert r.json() == {"activeOrders": 2, "upcomingShipments": 1, "pendingDocuments": 0, "totalRevenue": 30.0}

    r = client.get("/api/dashboard/stats", headers=auth_header(buyer))
    assert r.json()["activeOrders"] == 1
    assert r.json()["totalRevenue"] == 10.0
