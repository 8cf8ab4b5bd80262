"""Tests for API endpoints"""
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from api.index import app
from pos.routers.deps import get_cart_manager_dep, get_transaction_manager_dep

HEADERS = {"X-User-Id": "C1", "X-User-Role": "cashier", "X-Store-Id": "S1"}


@pytest.fixture
def client(cart_manager, transaction_manager):
    """Test client wired to the in-memory store and cache"""
    app.dependency_overrides[get_cart_manager_dep] = lambda: cart_manager
    app.dependency_overrides[get_transaction_manager_dep] = lambda: transaction_manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def _cart_with_p1(client, quantity=2):
    cart = client.post("/api/carts", json={"store_id": "S1"}, headers=HEADERS).json()["data"]
    response = client.post(
        f"/api/carts/{cart['id']}/items",
        json={"product_id": "P1", "quantity": quantity},
        headers=HEADERS,
    )
    return response.json()["data"]


def _pending_sale(client):
    cart = _cart_with_p1(client)
    response = client.post(
        "/api/transactions",
        json={"store_id": "S1", "type": "sale", "payment_method": "card", "cart_id": cart["id"]},
        headers=HEADERS,
    )
    return response.json()["data"]


class TestCartEndpoints:
    def test_create_cart(self, client):
        response = client.post("/api/carts", json={"store_id": "S1"}, headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Cart created successfully"
        assert body["data"]["cashier_id"] == "C1"
        assert body["data"]["total"] == "0.00"

    def test_requires_identity(self, client):
        response = client.post("/api/carts", json={"store_id": "S1"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Authentication required",
            "code": "UNAUTHORIZED",
        }

    def test_other_store_is_forbidden(self, client):
        response = client.post("/api/carts", json={"store_id": "S2"}, headers=HEADERS)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_super_admin_can_use_any_store(self, client):
        headers = {"X-User-Id": "admin", "X-User-Role": "super_admin"}
        response = client.post("/api/carts", json={"store_id": "S2"}, headers=headers)
        assert response.status_code == 201

    def test_add_item_money_as_strings(self, client):
        cart = _cart_with_p1(client)

        assert cart["subtotal"] == "20.00"
        assert cart["total_tax"] == "2.00"
        assert cart["total"] == "22.00"
        assert cart["items"][0]["unit_price"] == "10.00"

    def test_item_lifecycle(self, client):
        cart = _cart_with_p1(client)
        item_id = cart["items"][0]["id"]

        response = client.put(
            f"/api/carts/{cart['id']}/items/{item_id}", json={"quantity": 3}, headers=HEADERS
        )
        assert response.json()["data"]["total"] == "33.00"

        response = client.delete(f"/api/carts/{cart['id']}/items/{item_id}", headers=HEADERS)
        assert response.json()["data"]["items"] == []

        response = client.delete(f"/api/carts/{cart['id']}/items", headers=HEADERS)
        assert response.json()["message"] == "Cart cleared"

        response = client.delete(f"/api/carts/{cart['id']}", headers=HEADERS)
        assert response.json() == {"success": True, "message": "Cart deleted", "data": None}

        response = client.get(f"/api/carts/{cart['id']}", headers=HEADERS)
        assert response.status_code == 404

    def test_float_price_rejected(self, client):
        cart = client.post("/api/carts", json={"store_id": "S1"}, headers=HEADERS).json()["data"]
        response = client.post(
            f"/api/carts/{cart['id']}/items",
            json={"product_id": "P1", "quantity": 1, "unit_price": 9.99},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_domain_errors_map_to_status(self, client):
        cart = client.post("/api/carts", json={"store_id": "S1"}, headers=HEADERS).json()["data"]

        missing = client.get("/api/carts/nope", headers=HEADERS)
        assert missing.status_code == 404
        assert missing.json() == {"success": False, "message": "Cart not found", "code": "NOT_FOUND"}

        inactive = client.post(
            f"/api/carts/{cart['id']}/items", json={"product_id": "P3", "quantity": 1}, headers=HEADERS
        )
        assert inactive.status_code == 400

        zero = client.post(
            f"/api/carts/{cart['id']}/items", json={"product_id": "P1", "quantity": 0}, headers=HEADERS
        )
        assert zero.status_code == 400
        assert zero.json()["message"] == "Quantity must be greater than 0"


class TestTransactionEndpoints:
    def test_create_and_settle(self, client, fake_supabase):
        transaction = _pending_sale(client)
        assert transaction["status"] == "pending"
        assert transaction["total"] == "22.00"

        response = client.post(
            f"/api/transactions/{transaction['id']}/payment",
            json={"payment_method": "card", "amount": "22.00"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Payment processed successfully"
        assert body["data"]["status"] == "completed"
        assert fake_supabase.product("P1")["stock_quantity"] == 98

        again = client.post(
            f"/api/transactions/{transaction['id']}/payment",
            json={"payment_method": "card", "amount": "22.00"},
            headers=HEADERS,
        )
        assert again.status_code == 409
        assert again.json()["code"] == "INVALID_STATE"

    def test_amount_mismatch_is_422(self, client):
        transaction = _pending_sale(client)

        response = client.post(
            f"/api/transactions/{transaction['id']}/payment",
            json={"payment_method": "card", "amount": "21.00"},
            headers=HEADERS,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "AMOUNT_MISMATCH"
        assert body["details"] == {"expected": "22.00", "received": "21.00"}

    def test_locked_transaction_is_409_conflict(self, client, fake_redis):
        transaction = _pending_sale(client)
        fake_redis.store[f"lock:transaction_payment:{transaction['id']}"] = "other"

        response = client.post(
            f"/api/transactions/{transaction['id']}/payment",
            json={"payment_method": "card", "amount": "22.00"},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_void(self, client):
        transaction = _pending_sale(client)
        client.post(
            f"/api/transactions/{transaction['id']}/payment",
            json={"payment_method": "card", "amount": "22.00"},
            headers=HEADERS,
        )

        response = client.post(
            f"/api/transactions/{transaction['id']}/void",
            json={"reason": "customer refund"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "voided"
        assert "customer refund" in response.json()["data"]["notes"]

    def test_void_missing_reason_is_400(self, client):
        response = client.post("/api/transactions/t-1/void", json={}, headers=HEADERS)
        assert response.status_code == 400

    def test_get_transaction(self, client):
        transaction = _pending_sale(client)

        response = client.get(f"/api/transactions/{transaction['id']}", headers=HEADERS)
        assert response.json()["data"]["receipt_number"] == transaction["receipt_number"]

        assert client.get("/api/transactions/missing", headers=HEADERS).status_code == 404

    def test_store_history(self, client):
        _pending_sale(client)
        _pending_sale(client)

        response = client.get("/api/stores/S1/transactions?limit=1", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["transactions"]) == 1
        assert data["pagination"] == {"total": 2, "limit": 1, "offset": 0, "pages": 2}

        assert client.get("/api/stores/S2/transactions", headers=HEADERS).status_code == 403
        assert client.get("/api/stores/S1/transactions?limit=0", headers=HEADERS).status_code == 400


class TestInfrastructure:
    def test_store_outage_is_503(self, client, fake_supabase):
        fake_supabase.broken = True
        response = client.post("/api/carts", json={"store_id": "S1"}, headers=HEADERS)

        assert response.status_code == 503
        assert response.json()["code"] == "INFRASTRUCTURE_ERROR"

    def test_unexpected_error_is_500_envelope(self):
        failing = Mock()
        failing.get_transaction = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_transaction_manager_dep] = lambda: failing
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.get("/api/transactions/t-1", headers=HEADERS)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        }

    def test_health(self):
        db = Mock()
        db.is_healthy = AsyncMock(return_value=True)
        cache = Mock()
        cache.is_healthy = AsyncMock(return_value=True)

        with patch("pos.routers.health.is_database_initialized", return_value=True), \
                patch("pos.routers.health.get_database", return_value=db), \
                patch("pos.routers.health.get_cache_service", return_value=cache):
            response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ok"

    def test_health_degraded(self):
        cache = Mock()
        cache.is_healthy = AsyncMock(return_value=True)

        with patch("pos.routers.health.is_database_initialized", return_value=False), \
                patch("pos.routers.health.get_cache_service", return_value=cache):
            response = TestClient(app).get("/health")

        assert response.status_code == 503
        assert response.json()["data"]["database"] is False
