# apps/orders/tests.py
import concurrent.futures
import uuid
from decimal import Decimal
from unittest import mock, skipUnless

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework import status

from apps.catalog.models import Product
from apps.inventory.models import StockMovement
from apps.inventory.services import StockService
from apps.site_settings.services import SiteSettingsService
from apps.utils.exceptions import BusinessLogicException
from apps.utils.testing import StoreAPITestCase, make_product
from apps.utils.throttle import OrderPlacementThrottle
from .models import Order, OrderItem
from .serializers import OrderCreateSerializer
from .services import OrderService


def order_payload(*lines, **overrides):
    """
    ``lines`` are ``(product, quantity)`` pairs; prices/titles are what a
    client cart would submit.
    """
    items = [
        {
            "product_id": str(product.pk),
            "quantity": quantity,
            "price": str(product.effective_price),
            "title": product.title,
        }
        for product, quantity in lines
    ]
    total = sum((product.effective_price * quantity for product, quantity in lines), Decimal("0"))
    payload = {
        "customer_name": "Asha Verma",
        "customer_email": "asha@example.com",
        "customer_phone": "+91 98765 43210",
        "shipping_address": "12 Weaver Lane, Sanganer, Jaipur 302029",
        "total_price": str(total) if lines else "100.00",
        "items": items,
    }
    payload.update(overrides)
    return payload


def validated_order(payload):
    """Runs the create serializer the way the view does."""
    serializer = OrderCreateSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class OrderItemSnapshotTests(TestCase):
    def setUp(self):
        self.product = make_product(price="150.00", stock=5)
        self.order = OrderService.place_order(
            validated_order(order_payload((self.product, 2)))
        )

    def test_snapshot_survives_price_change(self):
        Product.objects.filter(pk=self.product.pk).update(price=Decimal("999.00"), title="Renamed")

        item = self.order.items.get()
        self.assertEqual(item.price_at_purchase, Decimal("150.00"))
        self.assertEqual(item.product_title, "Cotton Handkerchief")

    def test_snapshot_fields_are_immutable(self):
        item = self.order.items.get()
        item.price_at_purchase = Decimal("1.00")
        with self.assertRaises(ValidationError):
            item.save()

    def test_quantity_can_still_be_saved(self):
        item = self.order.items.get()
        item.quantity = 1
        item.save()
        self.assertEqual(OrderItem.objects.get(pk=item.pk).quantity, 1)


class PlaceOrderAPITests(StoreAPITestCase):
    url = "/api/orders"

    def setUp(self):
        super().setUp()
        self.hanky = make_product(title="Chikan Hanky", price="120.00", stock=5)
        self.runner = make_product(
            title="Lace Runner", price="400.00", discount_price=Decimal("350.00"), stock=2
        )

    def test_places_order_and_decrements_stock(self):
        payload = order_payload((self.hanky, 2), (self.runner, 1))

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["message"], "Order placed successfully")

        order = Order.objects.get(pk=body["order_id"])
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.total_price, Decimal("590.00"))
        self.assertEqual(order.total_price, order.items_total)
        self.assertEqual(
            sorted((i.product_title, i.quantity, i.price_at_purchase) for i in order.items.all()),
            [("Chikan Hanky", 2, Decimal("120.00")), ("Lace Runner", 1, Decimal("350.00"))],
        )

        self.hanky.refresh_from_db()
        self.runner.refresh_from_db()
        self.assertEqual(self.hanky.stock, 3)
        self.assertEqual(self.runner.stock, 1)
        self.assertEqual(
            StockMovement.objects.filter(reference=str(order.pk)).count(), 2
        )

    def test_stale_token_does_not_block_checkout(self):
        self.identity_client.resolve.side_effect = Exception("must not be called")
        self.client.credentials(HTTP_AUTHORIZATION="Bearer expired")

        response = self.client.post(self.url, order_payload((self.hanky, 1)), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_insufficient_stock_creates_nothing(self):
        payload = order_payload((self.hanky, 1), (self.runner, 3))

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {
            "error": "Insufficient stock for Lace Runner. Available: 2",
            "code": "insufficient_stock",
        })
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.hanky.refresh_from_db()
        self.assertEqual(self.hanky.stock, 5)

    def test_repeated_lines_are_checked_together(self):
        payload = order_payload((self.runner, 1), (self.runner, 2))
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_unknown_product_is_404(self):
        payload = order_payload((self.hanky, 1))
        payload["items"].append(
            {"product_id": str(uuid.uuid4()), "quantity": 1, "price": "10.00", "title": "Ghost Hanky"}
        )

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()["error"], "Product Ghost Hanky not found")
        self.assertFalse(Order.objects.exists())

    def test_competing_checkout_between_check_and_decrement(self):
        """
        Another buyer takes the last units after availability was confirmed.
        The conditional decrement refuses, and the order insert is rolled back.
        """
        real_lock_and_validate = StockService.lock_and_validate

        def competing_checkout(items):
            products = real_lock_and_validate(items)
            Product.objects.filter(pk=self.runner.pk).update(stock=0)
            return products

        payload = order_payload((self.hanky, 1), (self.runner, 2))
        with mock.patch.object(StockService, "lock_and_validate", side_effect=competing_checkout):
            response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["code"], "stock_conflict")
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

        self.hanky.refresh_from_db()
        self.runner.refresh_from_db()
        self.assertEqual(self.hanky.stock, 5)
        self.assertEqual(self.runner.stock, 2)

    def test_validation_errors_write_nothing(self):
        good = order_payload((self.hanky, 1))
        cases = {
            "no items": {"items": []},
            "bad email": {"customer_email": "not-an-email"},
            "short address": {"shipping_address": "Jaipur"},
            "bad phone": {"customer_phone": "12ab"},
            "zero total": {"total_price": "0"},
            "missing name": {"customer_name": ""},
            "zero quantity": {"items": [{**good["items"][0], "quantity": 0}]},
            "bad product id": {"items": [{**good["items"][0], "product_id": "hanky-1"}]},
        }
        for label, override in cases.items():
            with self.subTest(label):
                response = self.client.post(self.url, {**good, **override}, format="json")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.json()["code"], "validation_error")

        self.assertFalse(Order.objects.exists())
        self.hanky.refresh_from_db()
        self.assertEqual(self.hanky.stock, 5)

    def test_address_message(self):
        response = self.client.post(
            self.url, order_payload((self.hanky, 1), shipping_address="short"), format="json"
        )
        self.assertEqual(response.json()["error"], "shipping_address: Shipping address must be detailed")

    def test_phone_is_optional(self):
        payload = order_payload((self.hanky, 1))
        payload.pop("customer_phone")
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_submitted_total_mismatch_is_logged_not_trusted(self):
        payload = order_payload((self.hanky, 2), total_price="1.00")

        with self.assertLogs("apps.orders.services", level="WARNING") as logs:
            response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(any("differs from computed total" in line for line in logs.output))
        order = Order.objects.get(pk=response.json()["order_id"])
        self.assertEqual(order.total_price, Decimal("240.00"))

    @override_settings(ORDERS_REQUIRE_ACTIVE_STORE=True)
    def test_closed_store_refuses_orders_when_enforced(self):
        response = self.client.post(self.url, order_payload((self.hanky, 1)), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["code"], "store_closed")

        SiteSettingsService.update({"is_ecommerce_active": True})
        SiteSettingsService.invalidate()
        response = self.client.post(self.url, order_payload((self.hanky, 1)), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_closed_store_still_accepts_orders_by_default(self):
        response = self.client.post(self.url, order_payload((self.hanky, 1)), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_checkout_is_throttled_per_client(self):
        with mock.patch.object(OrderPlacementThrottle, "THROTTLE_RATES", {"orders": "2/min"}):
            codes = [
                self.client.post(self.url, order_payload((self.hanky, 1)), format="json").status_code
                for _ in range(3)
            ]
        self.assertEqual(codes, [201, 201, 429])


class OrderAdminAPITests(StoreAPITestCase):
    def setUp(self):
        super().setUp()
        self.product = make_product(title="Bandhani Hanky", price="80.00", stock=10)
        self.first = OrderService.place_order(validated_order(
            order_payload((self.product, 1), customer_email="Asha@Example.com")
        ))
        self.second = OrderService.place_order(validated_order(
            order_payload((self.product, 2), customer_email="ravi@example.com")
        ))

    def test_admin_lists_orders_newest_first_with_items(self):
        self.authenticate_admin()
        response = self.client.get("/api/orders")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual([o["id"] for o in body], [str(self.second.pk), str(self.first.pk)])
        self.assertEqual(body[0]["order_items"][0]["quantity"], 2)
        self.assertEqual(body[0]["order_items"][0]["product_title"], "Bandhani Hanky")

    def test_mine_matches_email_case_insensitively(self):
        self.authenticate_customer(email="asha@example.com")
        response = self.client.get("/api/orders/mine")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o["id"] for o in response.json()], [str(self.first.pk)])

    def test_mine_is_empty_for_service_identity(self):
        self.authenticate_secret()
        response = self.client.get("/api/orders/mine")
        self.assertEqual(response.json(), [])

    def test_update_status_and_notes(self):
        self.authenticate_admin()
        response = self.client.put(
            f"/api/orders/{self.first.pk}",
            {"status": "shipped", "admin_notes": "Sent via India Post"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], "shipped")
        self.first.refresh_from_db()
        self.assertEqual(self.first.admin_notes, "Sent via India Post")

        response = self.client.put(f"/api/orders/{self.first.pk}", {"admin_notes": None}, format="json")
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, "shipped")
        self.assertEqual(self.first.admin_notes, "")

    def test_update_rejects_unknown_status(self):
        self.authenticate_admin()
        response = self.client.put(f"/api/orders/{self.first.pk}", {"status": "lost"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_requires_admin(self):
        self.authenticate_customer(email="asha@example.com")
        response = self.client.put(f"/api/orders/{self.first.pk}", {"status": "cancelled"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_unknown_order(self):
        self.authenticate_admin()
        response = self.client.put(f"/api/orders/{uuid.uuid4()}", {"status": "shipped"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_order_items(self):
        self.authenticate_admin()
        response = self.client.get(f"/api/orders/{self.second.pk}/items")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        item = response.json()[0]
        self.assertEqual(item["order_id"], str(self.second.pk))
        self.assertEqual(item["product_id"], str(self.product.pk))
        self.assertEqual(Decimal(str(item["subtotal"])), Decimal("160.00"))


@skipUnless(connection.vendor == "postgresql", "row locks need a real database server")
class ConcurrentCheckoutTests(TransactionTestCase):
    """Two buyers race for the last unit."""

    def setUp(self):
        self.product = make_product(stock=1)

    def test_concurrent_ordering(self):
        def place_order(email):
            try:
                OrderService.place_order(validated_order(
                    order_payload((self.product, 1), customer_email=email)
                ))
                return "SUCCESS"
            except BusinessLogicException:
                return "FAILED"
            finally:
                connection.close()

        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            results = list(executor.map(place_order, ["a@example.com", "b@example.com"]))

        self.assertEqual(sorted(results), ["FAILED", "SUCCESS"])
        self.assertEqual(Order.objects.count(), 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
