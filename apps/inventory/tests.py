import concurrent.futures
import uuid
from unittest import skipUnless

from django.db import connection
from django.test import TestCase, TransactionTestCase
from rest_framework import status

from apps.utils.exceptions import (
    InsufficientStockException,
    NotFoundException,
    StockConflictException,
)
from apps.utils.testing import StoreAPITestCase, make_product
from .models import StockMovement
from .services import StockService


class RequiredQuantityTests(TestCase):
    def test_repeated_lines_are_folded_and_sorted(self):
        a, b = sorted([str(uuid.uuid4()), str(uuid.uuid4())])
        items = [
            {"product_id": b, "quantity": 1, "title": "B"},
            {"product_id": a, "quantity": 2, "title": "A"},
            {"product_id": b, "quantity": 3, "title": "B"},
        ]

        required = StockService.required_quantities(items)

        self.assertEqual(list(required.keys()), [a, b])
        self.assertEqual(required[b]["quantity"], 4)


class LockAndValidateTests(TestCase):
    def setUp(self):
        self.product = make_product(title="Ajrakh Hanky", stock=3)

    def test_returns_locked_products(self):
        products = StockService.lock_and_validate([{"product_id": self.product.pk, "quantity": 3}])
        self.assertEqual(products[str(self.product.pk)].stock, 3)

    def test_missing_product_uses_submitted_title(self):
        with self.assertRaisesMessage(NotFoundException, "Product Ghost Hanky not found"):
            StockService.lock_and_validate([{"product_id": uuid.uuid4(), "quantity": 1, "title": "Ghost Hanky"}])
        with self.assertRaisesMessage(NotFoundException, "Product Unknown not found"):
            StockService.lock_and_validate([{"product_id": uuid.uuid4(), "quantity": 1}])

    def test_insufficient_stock_counts_repeated_lines(self):
        items = [
            {"product_id": self.product.pk, "quantity": 2},
            {"product_id": self.product.pk, "quantity": 2},
        ]
        with self.assertRaisesMessage(InsufficientStockException, "Insufficient stock for Ajrakh Hanky. Available: 3"):
            StockService.lock_and_validate(items)


class DecrementTests(TestCase):
    def setUp(self):
        self.product = make_product(stock=5)

    def test_decrement_records_movement(self):
        balance = StockService.decrement(self.product.pk, 2, reference="order-1")

        self.assertEqual(balance, 3)
        movement = StockMovement.objects.get()
        self.assertEqual(movement.quantity_change, -2)
        self.assertEqual(movement.balance_after, 3)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.ORDER)
        self.assertEqual(movement.reference, "order-1")

    def test_decrement_below_zero_is_refused(self):
        with self.assertRaises(StockConflictException):
            StockService.decrement(self.product.pk, 6, reference="order-2")

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)
        self.assertFalse(StockMovement.objects.exists())


class AdjustTests(TestCase):
    def setUp(self):
        self.product = make_product(stock=2)

    def test_clamps_at_zero_and_records_applied_change(self):
        self.assertEqual(StockService.adjust(self.product.pk, -7, performed_by="owner"), 0)
        movement = StockMovement.objects.get()
        self.assertEqual(movement.quantity_change, -2)
        self.assertEqual(movement.performed_by, "owner")

        self.assertEqual(StockService.adjust(self.product.pk, 4), 4)

    def test_unknown_product(self):
        with self.assertRaises(NotFoundException):
            StockService.adjust(uuid.uuid4(), 1)
        with self.assertRaises(NotFoundException):
            StockService.adjust("nope", 1)


class StockMovementAPITests(StoreAPITestCase):
    url = "/api/inventory/movements"

    def setUp(self):
        super().setUp()
        self.first = make_product(title="First Hanky", stock=5)
        self.second = make_product(title="Second Hanky", stock=5)
        StockService.adjust(self.first.pk, 2)
        StockService.decrement(self.second.pk, 1, reference="order-9")

    def test_admin_lists_movements(self):
        self.authenticate_admin()
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertCountEqual(
            [m["product_title"] for m in response.json()], ["First Hanky", "Second Hanky"]
        )

    def test_filter_by_product(self):
        self.authenticate_admin()
        response = self.client.get(self.url, {"product": str(self.second.pk)})
        self.assertEqual([m["reference"] for m in response.json()], ["order-9"])

        bad = self.client.get(self.url, {"product": "123"})
        self.assertEqual(bad.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customers_cannot_read_ledger(self):
        self.authenticate_customer()
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)


@skipUnless(connection.vendor == "postgresql", "row locks need a real database server")
class ConcurrentDecrementTests(TransactionTestCase):
    # TransactionTestCase so each thread commits on its own connection

    def setUp(self):
        self.product = make_product(stock=1)

    def test_only_one_decrement_wins(self):
        def take_one(ref):
            try:
                StockService.decrement(self.product.pk, 1, reference=ref)
                return "SUCCESS"
            except StockConflictException:
                return "FAILED"
            finally:
                connection.close()

        with concurrent.futures.ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(take_one, [f"order-{i}" for i in range(4)]))

        self.assertEqual(results.count("SUCCESS"), 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
