"""Data-layer helpers that the HTTP tests do not reach directly."""

from __future__ import annotations

import pytest

import database


class TestProducts:
    def test_seed_is_idempotent(self):
        database.seed_data()
        assert database.count_products() == 25
        assert len(database.fetch_users()) == 2

    def test_sorting(self):
        by_price = database.fetch_products(sort="price_low")
        prices = [product["price"] for product in by_price]
        assert prices == sorted(prices)

        by_name = [product["name"] for product in database.fetch_products(sort="name_az", limit=3)]
        assert by_name == sorted(by_name, key=str.lower)

    def test_keyword_and_category_filters(self):
        products = database.fetch_products(keywords=["fungicide", "neem"], categories=["Pesticides"])
        assert {product["name"] for product in products} == {"Mancozeb Fungicide - 500g", "Neem Oil Organic Pesticide"}

    def test_inactive_and_out_of_stock_filters(self, product_by_name):
        spade = product_by_name("Garden Spade - Heavy Duty")
        rake = product_by_name("Garden Rake - Steel")
        database.update_product(spade["id"], is_active=False)
        database.update_product(rake["id"], stock=0)

        names = {product["name"] for product in database.fetch_products(category="Tools", active_only=True, in_stock=True)}
        assert spade["name"] not in names
        assert rake["name"] not in names
        assert len(database.fetch_products(category="tools")) == 10

    def test_fetch_by_ids_keeps_requested_order(self, product_by_name):
        first = product_by_name("Watering Can - 10L")["id"]
        second = product_by_name("Urea Fertilizer - 50kg")["id"]
        products = database.fetch_products_by_ids([first, "junk", second, first, 999999])
        assert [product["id"] for product in products] == [first, second]


class TestTotals:
    def test_calculate_totals(self):
        totals = database.calculate_totals(
            [
                {"price": 850, "discount": 15, "quantity": 2},
                {"price": 380, "discount": 8, "quantity": 1},
            ]
        )
        assert totals == {"subtotal": 2080.0, "discount": 285.4, "total": 1794.6}

    def test_final_price(self):
        assert database.final_price(1200, 10) == 1080.0
        assert database.final_price("450", None) == 450.0

    def test_order_reference(self):
        assert database.format_order_reference(7) == "FT-00007"
        assert database.format_order_reference("bad") == "FT-00000"


class TestPlaceOrder:
    def test_empty_cart(self, seed_user, shipping):
        with pytest.raises(database.EmptyCartError):
            database.place_order(int(seed_user["id"]), shipping=shipping)

    def test_insufficient_stock_writes_nothing(self, seed_user, shipping, product_by_name):
        wheelbarrow = product_by_name("Wheelbarrow - Heavy Duty")
        database.set_cart_quantity(int(seed_user["id"]), wheelbarrow["id"], 36)
        with pytest.raises(database.InsufficientStockError) as excinfo:
            database.place_order(int(seed_user["id"]), shipping=shipping)
        assert excinfo.value.available == 35
        assert database.get_product(wheelbarrow["id"])["stock"] == 35
        assert database.fetch_user_cart(int(seed_user["id"])) == {wheelbarrow["id"]: 36}

    def test_line_items_snapshot_prices(self, seed_user, shipping, product_by_name):
        urea = product_by_name("Urea Fertilizer - 50kg")
        database.set_cart_quantity(int(seed_user["id"]), urea["id"], 1)
        order_id = database.place_order(int(seed_user["id"]), shipping=shipping)
        database.update_product(urea["id"], price=1500, discount=0)

        item = database.get_order(order_id)["items"][0]
        assert item == {"product_id": urea["id"], "name": urea["name"], "price": 1200.0, "discount": 10.0, "quantity": 1}
