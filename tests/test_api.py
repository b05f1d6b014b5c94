"""End-to-end flows through the HTTP API."""
import uuid
from decimal import Decimal

import pytest


USER = {"X-User-Id": str(uuid.uuid4())}


async def post(client, url, json=None, expected=200):
    response = await client.post(url, json=json, headers=USER)
    assert response.status_code == expected, response.text
    return response.json()


@pytest.fixture
async def catalog(client):
    store = await post(client, "/api/v1/master/stores", {"name": "Sharma General Store"}, 201)
    product = await post(
        client, "/api/v1/master/products",
        {"name": "Floor Cleaner 1L", "hsn_code": "3402", "mrp": "100", "gst_rate": "18"}, 201,
    )
    surfactant = await post(
        client, "/api/v1/master/raw-materials",
        {"name": "Surfactant", "unit": "kg", "opening_stock": "200"}, 201,
    )
    response = await client.put(
        f"/api/v1/recipes/{product['id']}",
        json={"lines": [{"raw_material_id": surfactant["id"], "quantity_required": "2"}]},
    )
    assert response.status_code == 200, response.text
    return {"store": store, "product": product, "surfactant": surfactant}


class TestOrderToCash:
    async def test_full_flow(self, client, catalog):
        store, product = catalog["store"], catalog["product"]

        order = await post(client, "/api/v1/orders", {
            "store_id": store["id"],
            "items": [{"product_id": product["id"], "quantity": 10}],
        }, 201)
        assert order["status"] == "draft"
        await post(client, f"/api/v1/orders/{order['id']}/submit")
        approval = await post(client, f"/api/v1/orders/{order['id']}/approve")
        assert approval["order"]["status"] == "approved"
        assert approval["warnings"][0]["kind"] == "out_of_stock"

        suggestions = (await client.get("/api/v1/production/suggestions")).json()
        assert suggestions[0]["production_needed"] == 10
        assert suggestions[0]["can_produce"] == 100

        created = await post(client, "/api/v1/production", {
            "product_id": product["id"], "quantity_to_produce": 10, "source_order_id": order["id"],
        }, 201)
        po_id = created["production_order"]["id"]
        await post(client, f"/api/v1/production/{po_id}/start")
        completed = await post(client, f"/api/v1/production/{po_id}/complete", {"quantity_produced": 10})
        assert completed["status"] == "completed"

        invoice = await post(client, "/api/v1/invoices/from-order", {
            "order_id": order["id"],
            "items": [{"product_id": product["id"], "quantity": 10, "margin_percentage": "20"}],
        }, 201)
        assert Decimal(invoice["subtotal"]) == 1200
        assert Decimal(invoice["cgst"]) == 108
        assert Decimal(invoice["total_amount"]) == 1416
        assert invoice["payment_status"] == "pending"

        order = (await client.get(f"/api/v1/orders/{order['id']}")).json()
        assert order["status"] == "invoiced"

        [dispatch] = (await client.get("/api/v1/dispatches", params={"invoice_id": invoice["id"]})).json()
        dispatch = await post(client, f"/api/v1/dispatches/{dispatch['id']}/allocate")
        assert dispatch["status"] == "ready"
        assert dispatch["items"][0]["allocations"][0]["quantity"] == 10

        first = await post(client, "/api/v1/payments", {
            "invoice_id": invoice["id"], "amount": "1000", "method": "cash",
        }, 201)
        assert first["payment_status"] == "partial"
        assert Decimal(first["balance"]) == 416

        second = await post(client, "/api/v1/payments", {
            "invoice_id": invoice["id"], "amount": "416", "method": "upi",
        }, 201)
        assert second["payment_status"] == "paid"

        history = (await client.get(f"/api/v1/payments/invoice/{invoice['id']}")).json()
        assert len(history) == 2
        assert history[0]["collected_by"] == USER["X-User-Id"]

        outstanding = (await client.get("/api/v1/invoices/outstanding")).json()
        assert outstanding == []


class TestErrors:
    async def test_repeated_transition_is_409(self, client, catalog):
        order = await post(client, "/api/v1/orders", {
            "store_id": catalog["store"]["id"],
            "items": [{"product_id": catalog["product"]["id"], "quantity": 1}],
        }, 201)
        await post(client, f"/api/v1/orders/{order['id']}/submit")

        response = await client.post(f"/api/v1/orders/{order['id']}/submit")
        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "InvalidStateError"
        assert body["path"] == f"/api/v1/orders/{order['id']}/submit"
        assert body["method"] == "POST"

    async def test_unknown_order_is_404(self, client):
        response = await client.get(f"/api/v1/orders/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    async def test_insufficient_material_is_422_and_nothing_changes(self, client, catalog):
        created = await post(client, "/api/v1/production", {
            "product_id": catalog["product"]["id"], "quantity_to_produce": 150,
        }, 201)
        po_id = created["production_order"]["id"]

        response = await client.post(f"/api/v1/production/{po_id}/start")
        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "InsufficientMaterialError"
        assert Decimal(body["details"][0]["shortage"]) == 100

        po = (await client.get(f"/api/v1/production/{po_id}")).json()
        assert po["status"] == "pending"

    async def test_validation_error_is_400(self, client, catalog):
        response = await client.post("/api/v1/orders", json={
            "store_id": catalog["store"]["id"],
            "items": [{"product_id": catalog["product"]["id"], "quantity": 0}],
        })
        assert response.status_code == 400
        assert response.json()["type"] == "ValidationError"

    async def test_failed_request_rolls_back(self, client, catalog):
        response = await client.post("/api/v1/invoices", json={
            "store_id": catalog["store"]["id"],
            "items": [
                {"product_id": catalog["product"]["id"], "quantity": 1, "margin_percentage": "-150"},
            ],
        })
        assert response.status_code == 400
        assert response.json()["type"] == "InvalidMarginError"

        assert (await client.get("/api/v1/invoices")).json() == []
        assert (await client.get("/api/v1/invoices/next-number")).json()["next_number"].endswith("/1")

    async def test_bad_user_header(self, client):
        response = await client.get("/api/v1/orders", headers={"X-User-Id": "not-a-uuid"})
        assert response.status_code == 400


class TestStockEndpoints:
    async def test_manual_adjustment_and_low_stock(self, client, catalog):
        surfactant = catalog["surfactant"]
        adjusted = await post(client, "/api/v1/stock/raw-materials/adjust", {
            "raw_material_id": surfactant["id"], "delta": "-195",
        })
        assert Decimal(adjusted["stock_quantity"]) == 5

        low = (await client.get("/api/v1/stock/raw-materials/low-stock")).json()
        assert low == []

        movements = (await client.get(
            f"/api/v1/stock/movements/raw_material/{surfactant['id']}"
        )).json()
        assert {m["reason"] for m in movements} == {"manual_add", "manual_remove"}

    async def test_cannot_adjust_below_zero(self, client, catalog):
        response = await client.post("/api/v1/stock/raw-materials/adjust", json={
            "raw_material_id": catalog["surfactant"]["id"], "delta": "-200.5",
        })
        assert response.status_code == 422
        assert response.json()["type"] == "NegativeStockError"


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"
