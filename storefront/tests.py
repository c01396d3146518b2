import json
import random
import tempfile
import unittest
from decimal import Decimal
from unittest import mock

import requests

from .api import ApiError, Customer, StorefrontClient
from .cart import Cart, CartLine
from .catalog import CatalogFilter, availability_counts
from .storage import JSONFileStorage


def line(product_id="p1", quantity=1, stock=5, price="100.00", title="Chikan Hanky"):
    return CartLine(product_id=product_id, title=title, price=Decimal(price), quantity=quantity, stock=stock)


class CartTests(unittest.TestCase):
    def setUp(self):
        self.cart = Cart()

    def test_add_new_line(self):
        result = self.cart.add(line(quantity=2))
        self.assertTrue(result.success)
        self.assertEqual(self.cart.count, 2)
        self.assertEqual(self.cart.total, Decimal("200.00"))

    def test_add_more_than_stock_is_rejected(self):
        result = self.cart.add(line(quantity=6, stock=5))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Only 5 items available in stock.")
        self.assertTrue(self.cart.is_empty())

    def test_merge_checks_combined_quantity_against_fresh_stock(self):
        self.cart.add(line(quantity=3, stock=5))

        refused = self.cart.add(line(quantity=2, stock=4))
        self.assertFalse(refused.success)
        self.assertEqual(self.cart.lines[0].quantity, 3)
        self.assertEqual(self.cart.lines[0].stock, 5)

        accepted = self.cart.add(line(quantity=1, stock=4))
        self.assertTrue(accepted.success)
        self.assertEqual(len(self.cart), 1)
        self.assertEqual(self.cart.lines[0].quantity, 4)
        self.assertEqual(self.cart.lines[0].stock, 4)

    def test_zero_quantity_add_is_rejected(self):
        self.assertFalse(self.cart.add(line(quantity=0)).success)
        self.assertTrue(self.cart.is_empty())

    def test_set_quantity_clamps_and_ignores_below_one(self):
        self.cart.add(line(quantity=2, stock=5))

        self.cart.set_quantity("p1", 0)
        self.assertEqual(self.cart.lines[0].quantity, 2)

        self.cart.set_quantity("p1", 50)
        self.assertEqual(self.cart.lines[0].quantity, 5)

        self.cart.set_quantity("unknown", 3)
        self.assertEqual(self.cart.count, 5)

    def test_remove_and_clear(self):
        self.cart.add(line("p1"))
        self.cart.add(line("p2"))
        self.cart.remove("p1")
        self.assertEqual([l.product_id for l in self.cart], ["p2"])
        self.cart.clear()
        self.assertTrue(self.cart.is_empty())

    def test_quantities_stay_within_bounds_under_random_operations(self):
        rng = random.Random(11)
        for _ in range(300):
            pid = rng.choice(["a", "b", "c"])
            op = rng.choice(["add", "set", "remove"])
            if op == "add":
                self.cart.add(line(pid, quantity=rng.randint(-1, 4), stock=rng.randint(0, 6)))
            elif op == "set":
                self.cart.set_quantity(pid, rng.randint(-2, 10))
            else:
                self.cart.remove(pid)
            for item in self.cart:
                self.assertGreaterEqual(item.quantity, 1)
                self.assertLessEqual(item.quantity, item.stock)

    def test_order_items(self):
        self.cart.add(line("p1", quantity=2, price="99.50"))
        self.assertEqual(self.cart.to_order_items(), [
            {"product_id": "p1", "quantity": 2, "price": "99.50", "title": "Chikan Hanky"},
        ])

    def test_line_from_product_payload_uses_discount(self):
        product = {
            "id": "p9", "title": "Lace Runner", "price": 400.0, "discount_price": 350.0,
            "stock": 3, "images": ["https://cdn.example.com/a.jpg"],
        }
        cart_line = CartLine.from_product(product, quantity=2)
        self.assertEqual(cart_line.price, Decimal("350.0"))
        self.assertEqual(cart_line.image, "https://cdn.example.com/a.jpg")
        self.assertEqual(cart_line.stock, 3)


class JSONFileStorageTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.storage = JSONFileStorage(tmp.name)

    def test_cart_persists_every_change(self):
        cart = Cart(storage=self.storage)
        cart.add(line("p1", quantity=2))
        cart.add(line("p2", price="50.00"))
        cart.set_quantity("p1", 3)

        restored = Cart(storage=self.storage)
        self.assertEqual(restored.count, 4)
        self.assertEqual(restored.total, Decimal("350.00"))
        self.assertTrue(self.storage.path.name.startswith("hanky_corner_cart"))

        restored.clear()
        self.assertTrue(Cart(storage=self.storage).is_empty())

    def test_missing_file_is_empty_cart(self):
        self.assertEqual(self.storage.load(), [])

    def test_corrupt_file_is_logged_and_ignored(self):
        self.storage.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("storefront.storage", level="WARNING"):
            cart = Cart(storage=self.storage)
        self.assertTrue(cart.is_empty())

        self.storage.path.write_text(json.dumps([{"product_id": "p1", "price": "abc", "quantity": 1}]))
        with self.assertLogs("storefront.storage", level="WARNING"):
            self.assertEqual(self.storage.load(), [])

    def test_undecodable_file_is_logged_and_ignored(self):
        self.storage.path.parent.mkdir(parents=True, exist_ok=True)
        self.storage.path.write_bytes(b"\xff\xfe[garbage")
        with self.assertLogs("storefront.storage", level="WARNING"):
            cart = Cart(storage=self.storage)
        self.assertTrue(cart.is_empty())

    def test_out_of_bounds_lines_are_dropped_on_load(self):
        self.storage.save([line("p1", quantity=9, stock=2), line("p2", quantity=1, stock=2)])
        self.assertEqual([l.product_id for l in Cart(storage=self.storage)], ["p2"])


class StorefrontClientTests(unittest.TestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.client = StorefrontClient(base_url="http://api.test/", token="tok", session=self.session)
        self.customer = Customer(
            name="Asha Verma", email="asha@example.com",
            shipping_address="12 Weaver Lane, Jaipur", phone="+91 98765 43210",
        )

    def _respond(self, status_code, payload, reason="OK"):
        resp = mock.Mock(status_code=status_code, ok=200 <= status_code < 300, reason=reason)
        resp.json.return_value = payload
        self.session.request.return_value = resp
        return resp

    def test_sends_bearer_token_and_filters(self):
        self._respond(200, [])
        self.client.list_products(category=["c1"], search="", ordering="price-asc")

        method, url = self.session.request.call_args.args
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual((method, url), ("GET", "http://api.test/api/products"))
        self.assertEqual(kwargs["params"], {"category": ["c1"], "ordering": "price-asc"})
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")

    def test_error_body_becomes_api_error(self):
        self._respond(400, {"error": "Insufficient stock for Lace Runner. Available: 1", "code": "insufficient_stock"})

        with self.assertRaises(ApiError) as ctx:
            self.client.get_product("p1")

        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(ctx.exception.message, "Insufficient stock for Lace Runner. Available: 1")
        self.assertEqual(ctx.exception.payload["code"], "insufficient_stock")
        self.assertFalse(ctx.exception.is_retryable)

    def test_server_and_network_errors_are_retryable(self):
        self._respond(502, None, reason="Bad Gateway")
        with self.assertRaises(ApiError) as ctx:
            self.client.list_categories()
        self.assertEqual(ctx.exception.message, "Bad Gateway")
        self.assertTrue(ctx.exception.is_retryable)

        self.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ApiError) as ctx:
            self.client.list_categories()
        self.assertIsNone(ctx.exception.status)
        self.assertTrue(ctx.exception.is_retryable)

    def test_checkout_clears_cart_on_success(self):
        cart = Cart()
        cart.add(line("p1", quantity=2))
        self._respond(201, {"message": "Order placed successfully", "order_id": "o1"})

        result = self.client.checkout(cart, self.customer)

        self.assertEqual(result["order_id"], "o1")
        self.assertTrue(cart.is_empty())
        body = self.session.request.call_args.kwargs["json"]
        self.assertEqual(body["total_price"], "200.00")
        self.assertEqual(body["customer_email"], "asha@example.com")
        self.assertEqual(body["items"][0]["quantity"], 2)

    def test_checkout_with_empty_created_body(self):
        cart = Cart()
        cart.add(line("p1"))
        self._respond(201, None, reason="Created")

        self.assertIsNone(self.client.checkout(cart, self.customer))
        self.assertTrue(cart.is_empty())

    def test_checkout_keeps_cart_on_failure(self):
        cart = Cart()
        cart.add(line("p1", quantity=2))
        self._respond(400, {"error": "Stock ran out during checkout.", "code": "stock_conflict"})

        with self.assertRaises(ApiError):
            self.client.checkout(cart, self.customer)
        self.assertEqual(cart.count, 2)

    def test_checkout_rejects_empty_cart(self):
        with self.assertRaises(ValueError):
            self.client.checkout(Cart(), self.customer)
        self.session.request.assert_not_called()

    def test_admin_secret_header(self):
        client = StorefrontClient(base_url="http://api.test", admin_secret="shh", session=self.session)
        self._respond(200, {"message": "Stock updated successfully", "stock": 4})

        client.adjust_stock("p1", -1)

        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs["headers"]["x-admin-secret"], "shh")
        self.assertNotIn("Authorization", kwargs["headers"])
        self.assertEqual(kwargs["json"], {"adjustment": -1})


class CatalogFilterTests(unittest.TestCase):
    def setUp(self):
        self.products = [
            {"id": "1", "title": "silk Hanky", "price": 200, "stock": 3, "category_ids": ["h"],
             "created_at": "2026-03-01T00:00:00Z"},
            {"id": "2", "title": "Lace Runner", "price": 300, "discount_price": 120, "stock": 0,
             "category_ids": ["t"], "created_at": "2026-02-01T00:00:00Z"},
            {"id": "3", "title": "Plain Hanky", "price": 50, "stock": 8, "category_ids": ["h", "t"],
             "created_at": "2026-01-01T00:00:00Z"},
        ]

    def _ids(self, catalog_filter):
        return [p["id"] for p in catalog_filter.apply(self.products)]

    def test_default_is_newest_first(self):
        self.assertEqual(self._ids(CatalogFilter()), ["1", "2", "3"])

    def test_price_range_uses_effective_price(self):
        self.assertEqual(self._ids(CatalogFilter().with_price_range(100, 150)), ["2"])

    def test_category_toggle_is_any_match(self):
        f = CatalogFilter().toggle_category("t")
        self.assertEqual(self._ids(f), ["2", "3"])
        self.assertEqual(self._ids(f.toggle_category("t")), ["1", "2", "3"])

    def test_availability(self):
        f = CatalogFilter().toggle_availability("out-of-stock")
        self.assertEqual(self._ids(f), ["2"])
        self.assertEqual(self._ids(f.toggle_availability("in-stock")), ["1", "2", "3"])
        self.assertEqual(availability_counts(self.products), {"in_stock": 2, "out_of_stock": 1})

    def test_sorting(self):
        self.assertEqual(self._ids(CatalogFilter(sort="price-asc")), ["3", "2", "1"])
        self.assertEqual(self._ids(CatalogFilter(sort="price-desc")), ["1", "2", "3"])
        self.assertEqual(self._ids(CatalogFilter(sort="name-asc")), ["2", "3", "1"])
        with self.assertRaises(ValueError):
            CatalogFilter(sort="cheapest")

    def test_query_params(self):
        f = CatalogFilter().toggle_category("t").toggle_category("h").with_price_range(10, None)
        self.assertEqual(f.to_query_params(), {
            "ordering": "newest",
            "category": ["h", "t"],
            "min_price": "10",
        })
