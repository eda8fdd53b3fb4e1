"""Catalogue, cart, payment and order endpoints."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

import config
import database
import payments
from security import generate_token, payment_signature

NPK = "Organic NPK Fertilizer 19-19-19"
MANCOZEB = "Mancozeb Fungicide - 500g"


def _checkout_body(shipping, order_id="order_test_1", payment_id="pay_test_1"):
    return {
        "shippingAddress": shipping,
        "razorpayOrderId": order_id,
        "razorpayPaymentId": payment_id,
        "razorpaySignature": payment_signature(order_id, payment_id),
    }


@pytest.fixture
def npk(product_by_name):
    return product_by_name(NPK)


@pytest.fixture
def filled_cart(client, user_headers, npk, product_by_name):
    """Two NPK bags and one Mancozeb pack in the seed user's cart."""

    client.post("/api/cart", json={"productId": npk["id"], "quantity": 2}, headers=user_headers)
    client.post("/api/cart", json={"productId": product_by_name(MANCOZEB)["id"]}, headers=user_headers)
    return client.get("/api/cart", headers=user_headers).get_json()["data"]


class TestCatalogue:
    def test_list_all(self, client):
        body = client.get("/api/products").get_json()
        assert body["success"] is True
        assert len(body["data"]) == 25

    def test_filters(self, client):
        tools = client.get("/api/products?category=Tools").get_json()["data"]
        assert len(tools) == 10
        assert len(client.get("/api/products?category=All").get_json()["data"]) == 25

        neem = client.get("/api/products?search=NEEM").get_json()["data"]
        assert [product["name"] for product in neem] == ["Neem Oil Organic Pesticide"]

        cheap = client.get("/api/products?minPrice=300&maxPrice=400").get_json()["data"]
        assert cheap and all(300 <= product["price"] <= 400 for product in cheap)

    def test_sort(self, client):
        by_price = client.get("/api/products?sort=price_low").get_json()["data"]
        prices = [product["price"] for product in by_price]
        assert prices == sorted(prices)

        by_price_desc = client.get("/api/products?category=Seeds&sort=price_high").get_json()["data"]
        prices = [product["price"] for product in by_price_desc]
        assert prices == sorted(prices, reverse=True)

        names = [product["name"] for product in client.get("/api/products?sort=name_az").get_json()["data"]]
        assert names == sorted(names, key=str.lower)

        unknown = client.get("/api/products?sort=bogus").get_json()["data"]
        assert unknown == client.get("/api/products").get_json()["data"]

    def test_detail(self, client, npk):
        body = client.get(f"/api/products/{npk['id']}").get_json()
        assert body["data"]["final_price"] == 722.5
        assert client.get("/api/products/999999").status_code == 404


class TestCart:
    def test_requires_login(self, client):
        assert client.get("/api/cart").status_code == 401

    def test_totals(self, filled_cart):
        assert len(filled_cart["items"]) == 2
        assert filled_cart["subtotal"] == 2080.0
        assert filled_cart["discount"] == 285.4
        assert filled_cart["total"] == 1794.6

    def test_adding_again_accumulates(self, client, user_headers, npk):
        client.post("/api/cart", json={"productId": npk["id"], "quantity": 2}, headers=user_headers)
        body = client.post("/api/cart", json={"productId": npk["id"], "quantity": 3}, headers=user_headers).get_json()
        assert body["data"]["items"][0]["quantity"] == 5

    def test_stock_is_enforced(self, client, user_headers, npk):
        response = client.post("/api/cart", json={"productId": npk["id"], "quantity": 151}, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Insufficient stock"

    def test_bad_input(self, client, user_headers, npk):
        assert client.post("/api/cart", json={}, headers=user_headers).status_code == 400
        response = client.post("/api/cart", json={"productId": npk["id"], "quantity": 0}, headers=user_headers)
        assert response.status_code == 400
        assert client.post("/api/cart", json={"productId": 999999}, headers=user_headers).status_code == 404

    def test_update_and_remove(self, client, user_headers, npk, filled_cart):
        response = client.put(f"/api/cart/{npk['id']}", json={"quantity": 4}, headers=user_headers)
        quantities = {item["product"]["id"]: item["quantity"] for item in response.get_json()["data"]["items"]}
        assert quantities[npk["id"]] == 4

        response = client.delete(f"/api/cart/{npk['id']}", headers=user_headers)
        assert [item["product"]["name"] for item in response.get_json()["data"]["items"]] == [MANCOZEB]

        response = client.delete("/api/cart", headers=user_headers)
        assert response.get_json()["data"]["items"] == []
        assert response.get_json()["data"]["total"] == 0

    def test_update_item_not_in_cart(self, client, user_headers, npk):
        response = client.put(f"/api/cart/{npk['id']}", json={"quantity": 1}, headers=user_headers)
        assert response.status_code == 404


class TestPayments:
    def test_gateway_not_configured(self, client, user_headers):
        response = client.post("/api/payment/create-order", json={"amount": 100}, headers=user_headers)
        assert response.status_code == 500
        assert response.get_json()["message"] == "Payment gateway not configured"

    def test_create_gateway_order(self, client, user_headers, monkeypatch):
        created = {}

        def create(data):
            created.update(data)
            return {"id": "order_rzp_1", "amount": data["amount"], "currency": data["currency"]}

        monkeypatch.setattr(config, "RAZORPAY_KEY_ID", "rzp_test_key")
        monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "rzp_test_secret")
        monkeypatch.setattr(payments, "_client", SimpleNamespace(order=SimpleNamespace(create=create)))

        response = client.post("/api/payment/create-order", json={"amount": 1794.6}, headers=user_headers)
        body = response.get_json()
        assert response.status_code == 200
        assert body["data"] == {"orderId": "order_rzp_1", "amount": 179460, "currency": "INR", "keyId": "rzp_test_key"}
        assert created["receipt"].startswith("order_")

    def test_invalid_amount(self, client, user_headers, monkeypatch):
        monkeypatch.setattr(config, "RAZORPAY_KEY_ID", "rzp_test_key")
        monkeypatch.setattr(config, "RAZORPAY_KEY_SECRET", "rzp_test_secret")
        response = client.post("/api/payment/create-order", json={"amount": "lots"}, headers=user_headers)
        assert response.status_code == 400

    def test_verify_signature(self, client, user_headers, payment_secret):
        body = {
            "razorpayOrderId": "order_1",
            "razorpayPaymentId": "pay_1",
            "razorpaySignature": payment_signature("order_1", "pay_1"),
        }
        assert client.post("/api/payment/verify", json=body, headers=user_headers).get_json()["verified"] is True

        body["razorpaySignature"] = "0" * 64
        response = client.post("/api/payment/verify", json=body, headers=user_headers)
        assert response.status_code == 400


class TestOrders:
    def test_place_order(self, client, user_headers, npk, filled_cart, shipping, payment_secret):
        response = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers)
        assert response.status_code == 201
        order = response.get_json()["data"]

        assert order["reference"] == f"FT-{order['id']:05d}"
        assert order["total"] == 1794.6
        assert order["item_count"] == 3
        assert order["payment_status"] == "completed"
        assert order["order_status"] == "confirmed"
        assert order["shipping_address"] == shipping
        assert order["user"]["email"] == "test@farmtech.com"

        assert database.get_product(npk["id"])["stock"] == npk["stock"] - 2
        assert client.get("/api/cart", headers=user_headers).get_json()["data"]["items"] == []

        listed = client.get("/api/orders", headers=user_headers).get_json()["data"]
        assert [item["id"] for item in listed] == [order["id"]]

    def test_shipping_fields_are_encrypted_at_rest(self, client, user_headers, filled_cart, shipping, payment_secret):
        order_id = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers).get_json()["data"]["id"]
        with database.session_scope() as session:
            row = session.get(database.Order, order_id)
            assert row.shipping_phone != shipping["phone"]
            assert row.shipping_city != shipping["city"]

    def test_invalid_signature_keeps_cart(self, client, user_headers, filled_cart, shipping, payment_secret):
        body = _checkout_body(shipping)
        body["razorpaySignature"] = "f" * 64
        response = client.post("/api/orders", json=body, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid payment signature"
        assert len(client.get("/api/cart", headers=user_headers).get_json()["data"]["items"]) == 2

    def test_empty_cart(self, client, user_headers, shipping, payment_secret):
        response = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Cart is empty"

    def test_invalid_shipping(self, client, user_headers, filled_cart, shipping, payment_secret):
        response = client.post(
            "/api/orders", json=_checkout_body({**shipping, "pincode": "42"}), headers=user_headers
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "Pincode must be 6 digits"

    def test_stock_changed_after_adding_to_cart(self, client, user_headers, npk, filled_cart, shipping, payment_secret):
        database.update_product(npk["id"], stock=1)
        response = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["message"] == f"Insufficient stock for {NPK} (only 1 left)."
        assert database.get_product(npk["id"])["stock"] == 1
        assert database.fetch_orders() == []

    def test_other_users_cannot_read_an_order(self, client, user_headers, filled_cart, shipping, payment_secret):
        order_id = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers).get_json()["data"]["id"]

        stranger_id = database.create_user("Stranger", "stranger@example.com", is_verified=True)
        stranger = {"Authorization": f"Bearer {generate_token(stranger_id)}"}
        assert client.get(f"/api/orders/{order_id}", headers=stranger).status_code == 403
        assert client.get("/api/orders", headers=stranger).get_json()["data"] == []

        assert client.get(f"/api/orders/{order_id}", headers=user_headers).status_code == 200
        assert client.get("/api/orders/999999", headers=user_headers).status_code == 404

    def test_admin_sees_every_order(self, client, user_headers, admin_headers, filled_cart, shipping, payment_secret):
        order_id = client.post("/api/orders", json=_checkout_body(shipping), headers=user_headers).get_json()["data"]["id"]
        listed = client.get("/api/orders", headers=admin_headers).get_json()["data"]
        assert [order["id"] for order in listed] == [order_id]
        assert client.get(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200


class TestWishlist:
    def test_add_duplicate_and_remove(self, client, user_headers, npk):
        response = client.post("/api/user/wishlist", json={"productId": npk["id"]}, headers=user_headers)
        assert [product["id"] for product in response.get_json()["data"]] == [npk["id"]]

        duplicate = client.post("/api/user/wishlist", json={"productId": npk["id"]}, headers=user_headers)
        assert duplicate.status_code == 400
        assert duplicate.get_json()["message"] == "Product already in wishlist"

        response = client.delete(f"/api/user/wishlist/{npk['id']}", headers=user_headers)
        assert response.get_json()["data"] == []

    def test_unknown_product(self, client, user_headers):
        response = client.post("/api/user/wishlist", json={"productId": 999999}, headers=user_headers)
        assert response.status_code == 404
