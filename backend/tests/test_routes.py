# Overview: Pytest coverage for the HTTP API surface.

"""
API Route Tests

Covers:
1. Actor headers are required on every inventory endpoint
2. Response shapes (lists, created objects, decimals as strings)
3. Domain errors map to their HTTP status codes
4. End-to-end flows through items, ledger, allocations, orders, counts, alerts
"""

import pytest


ORG_ID = 1


def _create_item(client, headers, **fields):
    payload = {"item_code": "HTTP-1", "name": "Conduit", "unit_cost": "3.00"}
    payload.update(fields)
    return client.post("/api/inventory/items", json=payload, headers=headers)


class TestAuthentication:
    """X-User-Id / X-Org-Id are mandatory."""

    @pytest.mark.parametrize("path", [
        "/api/inventory/items",
        "/api/inventory/transactions",
        "/api/inventory/allocations",
        "/api/inventory/purchase-orders",
        "/api/inventory/alerts",
        "/api/inventory/counts",
        "/api/inventory/suppliers",
        "/api/inventory/reports/dashboard",
    ])
    def test_missing_headers(self, client, db_session, path):
        response = client.get(path)
        assert response.status_code == 401
        assert response.get_json() == {"error": "Authentication required"}

    def test_non_numeric_headers(self, client, db_session):
        response = client.get("/api/inventory/items", headers={"X-User-Id": "abc", "X-Org-Id": "1"})
        assert response.status_code == 401

    def test_health_is_public(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["checks"]["database"]["status"] == "healthy"


class TestItemRoutes:
    """Item registry over HTTP."""

    def test_create_and_get(self, client, headers, warehouse):
        response = _create_item(client, headers, initial_quantity="12", primary_location_id=warehouse.id)
        assert response.status_code == 201
        body = response.get_json()
        assert body["quantity_on_hand"] == "12.00"
        assert body["status"] == "in_stock"

        response = client.get(f"/api/inventory/items/{body['id']}", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["item_code"] == "HTTP-1"

    def test_list_shape(self, client, headers, db_session):
        _create_item(client, headers)
        response = client.get("/api/inventory/items?limit=10", headers=headers)
        body = response.get_json()
        assert body["count"] == 1
        assert body["limit"] == 10
        assert body["offset"] == 0
        assert len(body["items"]) == 1

    def test_protected_field_is_422(self, client, headers, db_session):
        item_id = _create_item(client, headers).get_json()["id"]
        response = client.put(f"/api/inventory/items/{item_id}", json={"quantity_on_hand": "5"}, headers=headers)
        assert response.status_code == 422
        assert response.get_json()["code"] == "invalid_operation"

    def test_duplicate_code_is_409(self, client, headers, db_session):
        _create_item(client, headers)
        response = _create_item(client, headers)
        assert response.status_code == 409

    def test_other_org_gets_404(self, client, headers, db_session):
        item_id = _create_item(client, headers).get_json()["id"]
        response = client.get(
            f"/api/inventory/items/{item_id}",
            headers={"X-User-Id": "1", "X-Org-Id": "2"},
        )
        assert response.status_code == 404

    def test_history_and_verify(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="3").get_json()["id"]

        history = client.get(f"/api/inventory/items/{item_id}/history", headers=headers).get_json()
        assert history["count"] == 1

        report = client.get(f"/api/inventory/items/{item_id}/verify", headers=headers).get_json()
        assert report["ok"] is True


class TestLedgerRoutes:
    """Transactions and transfers over HTTP."""

    def test_append_and_list(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="10").get_json()["id"]

        response = client.post("/api/inventory/transactions", json={
            "item_id": item_id,
            "transaction_type": "issue",
            "quantity": "-4",
            "job_id": "JOB-55",
        }, headers=headers)
        assert response.status_code == 201
        row = response.get_json()
        assert row["quantity"] == "-4.00"
        assert row["balance_after"] == "6.00"
        assert row["performed_by"] == 7

        listing = client.get(f"/api/inventory/transactions?item_id={item_id}", headers=headers).get_json()
        assert listing["count"] == 2
        assert listing["items"][0]["transaction_type"] == "issue"

    def test_insufficient_stock_is_409(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="1").get_json()["id"]
        response = client.post("/api/inventory/transactions", json={
            "item_id": item_id, "transaction_type": "issue", "quantity": "-2",
        }, headers=headers)
        assert response.status_code == 409
        assert response.get_json()["code"] == "insufficient_stock"

    def test_missing_item_id_is_400(self, client, headers, db_session):
        response = client.post("/api/inventory/transactions", json={
            "transaction_type": "receipt", "quantity": "1",
        }, headers=headers)
        assert response.status_code == 400

    def test_bad_date_filter_is_400(self, client, headers, db_session):
        response = client.get("/api/inventory/transactions?from_date=yesterday", headers=headers)
        assert response.status_code == 400

    def test_transfer(self, client, headers, warehouse, truck):
        item_id = _create_item(
            client, headers, initial_quantity="10", primary_location_id=warehouse.id,
        ).get_json()["id"]

        response = client.post("/api/inventory/transfers", json={
            "item_id": item_id,
            "quantity": "3",
            "from_location_id": warehouse.id,
            "to_location_id": truck.id,
        }, headers=headers)
        assert response.status_code == 201
        body = response.get_json()
        assert len(body["transactions"]) == 2
        assert {t["transfer_group"] for t in body["transactions"]} == {body["transfer_group"]}

        locations = client.get(f"/api/inventory/items/{item_id}/locations", headers=headers).get_json()
        balances = {entry["location_id"]: entry["quantity"] for entry in locations["locations"]}
        assert balances == {warehouse.id: "7.00", truck.id: "3.00"}


class TestWorkflowRoutes:
    """Allocations, purchase orders, counts and alerts over HTTP."""

    def test_allocation_flow(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="10").get_json()["id"]

        response = client.post("/api/inventory/allocations", json={
            "item_id": item_id, "quantity": "4", "job_id": "JOB-1",
        }, headers=headers)
        assert response.status_code == 201
        allocation_id = response.get_json()["id"]

        assert client.post(f"/api/inventory/allocations/{allocation_id}/issue", headers=headers).status_code == 200
        response = client.post(
            f"/api/inventory/allocations/{allocation_id}/return", json={"quantity": "4"}, headers=headers,
        )
        assert response.get_json()["status"] == "returned"

        response = client.post(f"/api/inventory/allocations/{allocation_id}/cancel", headers=headers)
        assert response.status_code == 409

    def test_allocation_needs_one_target(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="10").get_json()["id"]
        response = client.post("/api/inventory/allocations", json={
            "item_id": item_id, "quantity": "1", "job_id": "J", "bid_id": "B",
        }, headers=headers)
        assert response.status_code == 400

    def test_purchase_order_flow(self, client, headers, supplier):
        item_id = _create_item(client, headers).get_json()["id"]

        response = client.post("/api/inventory/purchase-orders", json={
            "supplier_id": supplier.id,
            "lines": [{"item_id": item_id, "quantity_ordered": "5", "unit_cost": "3.00"}],
        }, headers=headers)
        assert response.status_code == 201
        order = response.get_json()
        assert order["total_amount"] == "15.00"
        assert len(order["lines"]) == 1

        for action in ("submit", "approve", "send"):
            response = client.post(f"/api/inventory/purchase-orders/{order['id']}/{action}", headers=headers)
            assert response.status_code == 200, response.get_json()

        response = client.post(f"/api/inventory/purchase-orders/{order['id']}/receive", json={
            "receipts": [{"item_id": item_id, "quantity": "5"}],
        }, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["status"] == "received"

        item = client.get(f"/api/inventory/items/{item_id}", headers=headers).get_json()
        assert item["quantity_on_hand"] == "5.00"
        assert item["quantity_on_order"] == "0.00"

    def test_approve_empty_order_is_403(self, client, headers, supplier):
        order = client.post("/api/inventory/purchase-orders", json={"supplier_id": supplier.id},
                            headers=headers).get_json()
        client.post(f"/api/inventory/purchase-orders/{order['id']}/submit", headers=headers)
        response = client.post(f"/api/inventory/purchase-orders/{order['id']}/approve", headers=headers)
        assert response.status_code == 403

    def test_count_flow(self, client, headers, db_session):
        item_id = _create_item(client, headers, initial_quantity="10").get_json()["id"]

        response = client.post("/api/inventory/counts", json={
            "count_type": "spot", "item_ids": [item_id], "start": True,
        }, headers=headers)
        assert response.status_code == 201
        count = response.get_json()
        assert count["status"] == "in_progress"

        response = client.post(f"/api/inventory/counts/{count['id']}/record", json={
            "item_id": item_id, "counted_quantity": "9",
        }, headers=headers)
        assert response.status_code == 200
        assert response.get_json()["items"][0]["variance"] == "-1.00"

        response = client.post(f"/api/inventory/counts/{count['id']}/complete", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["status"] == "completed"

        item = client.get(f"/api/inventory/items/{item_id}", headers=headers).get_json()
        assert item["quantity_on_hand"] == "9.00"

    def test_alert_flow(self, client, headers, db_session):
        _create_item(client, headers, reorder_level="5")

        response = client.post("/api/inventory/alerts/check", headers=headers)
        assert response.get_json()["alerts_created"] == 1

        alerts = client.get("/api/inventory/alerts?is_resolved=false", headers=headers).get_json()
        assert alerts["count"] == 1
        alert_id = alerts["items"][0]["id"]

        response = client.post(f"/api/inventory/alerts/{alert_id}/resolve", json={"notes": "PO raised"},
                               headers=headers)
        assert response.get_json()["is_resolved"] is True

        response = client.post(f"/api/inventory/alerts/{alert_id}/acknowledge", headers=headers)
        assert response.status_code == 409

    def test_reports(self, client, headers, db_session):
        _create_item(client, headers, initial_quantity="2")
        dashboard = client.get("/api/inventory/reports/dashboard", headers=headers).get_json()
        assert dashboard["total_items"] == 1
        assert dashboard["inventory_value"] == "6.00"

        rows = client.get("/api/inventory/reports/by-status", headers=headers).get_json()["rows"]
        assert rows[0]["status"] == "in_stock"
