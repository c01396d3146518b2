# apps/catalog/tests.py
import csv
import io
import os
import random
import tempfile
import uuid
from datetime import timedelta
from decimal import Decimal

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from apps.inventory.models import StockMovement
from apps.orders.models import Order, OrderItem
from apps.utils.exceptions import NotFoundException
from apps.utils.testing import IMAGE_URL, StoreAPITestCase, make_category, make_product
from .models import Category, Product
from .services import RelatedProductService


def _age(product, days):
    Product.objects.filter(pk=product.pk).update(created_at=timezone.now() - timedelta(days=days))
    product.refresh_from_db()
    return product


class CategoryModelTests(TestCase):
    def test_category_slug_auto_generated_and_unique(self):
        c1 = Category.objects.create(name="Table Linen")
        c2 = Category.objects.create(name="Table Linen")

        self.assertEqual(c1.slug, "table-linen")
        self.assertEqual(c2.slug, "table-linen-1")


class NewArrivalTests(TestCase):
    def setUp(self):
        self.now = timezone.now()
        self.product = make_product()

    def _created(self, delta):
        self.product.created_at = self.now - delta
        return self.product.is_new_arrival(now=self.now)

    def test_inside_window_is_new(self):
        self.assertTrue(self._created(timedelta(days=29, hours=23)))

    def test_exactly_thirty_days_is_not_new(self):
        self.assertFalse(self._created(timedelta(days=30)))

    def test_older_is_not_new(self):
        self.assertFalse(self._created(timedelta(days=45)))

    def test_explicit_flag_wins(self):
        self.product.mark_as_new = True
        self.assertTrue(self._created(timedelta(days=400)))

    def test_new_arrivals_queryset(self):
        old = _age(make_product(title="Old Napkin Set"), 60)
        flagged = _age(make_product(title="Vintage Doily", mark_as_new=True), 90)

        ids = list(Product.objects.new_arrivals().values_list("pk", flat=True))

        self.assertIn(self.product.pk, ids)
        self.assertIn(flagged.pk, ids)
        self.assertNotIn(old.pk, ids)


class ProductReadAPITests(StoreAPITestCase):
    def setUp(self):
        super().setUp()
        self.hankies = make_category("Handkerchiefs")
        self.linen = make_category("Table Linen")
        self.cheap = _age(make_product(title="Plain Hanky", price="50.00", stock=0, categories=[self.hankies]), 40)
        self.mid = _age(make_product(
            title="Lace Runner", price="300.00", discount_price=Decimal("120.00"),
            categories=[self.linen], description="Hand-made lace",
        ), 10)
        self.dear = make_product(
            title="Silk Hanky", price="200.00", is_featured=True, categories=[self.hankies, self.linen],
        )

    def _titles(self, response):
        return [p["title"] for p in response.json()]

    def test_list_newest_first_with_derived_fields(self):
        response = self.client.get("/api/products")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual([p["title"] for p in body], ["Silk Hanky", "Lace Runner", "Plain Hanky"])

        runner = body[1]
        self.assertTrue(runner["is_new"])
        self.assertEqual(runner["category_ids"], [str(self.linen.pk)])
        self.assertEqual(Decimal(str(runner["effective_price"])), Decimal("120.00"))
        self.assertFalse(body[2]["is_new"])
        self.assertCountEqual(body[0]["category_ids"], [str(self.hankies.pk), str(self.linen.pk)])

    def test_trailing_slash_is_optional(self):
        self.assertEqual(self.client.get("/api/products/").status_code, status.HTTP_200_OK)

    def test_filter_by_category(self):
        response = self.client.get("/api/products", {"category": str(self.hankies.pk)})
        self.assertEqual(self._titles(response), ["Silk Hanky", "Plain Hanky"])

    def test_filter_by_effective_price_band(self):
        response = self.client.get("/api/products", {"min_price": "100", "max_price": "150"})
        self.assertEqual(self._titles(response), ["Lace Runner"])

    def test_filter_availability_and_featured(self):
        in_stock = self.client.get("/api/products", {"availability": "in-stock"})
        self.assertNotIn("Plain Hanky", self._titles(in_stock))

        out = self.client.get("/api/products", {"availability": "out-of-stock"})
        self.assertEqual(self._titles(out), ["Plain Hanky"])

        featured = self.client.get("/api/products", {"featured": "true"})
        self.assertEqual(self._titles(featured), ["Silk Hanky"])

    def test_search_and_ordering(self):
        search = self.client.get("/api/products", {"search": "lace"})
        self.assertEqual(self._titles(search), ["Lace Runner"])

        by_price = self.client.get("/api/products", {"ordering": "price-asc"})
        self.assertEqual(self._titles(by_price), ["Plain Hanky", "Lace Runner", "Silk Hanky"])

        by_name = self.client.get("/api/products", {"ordering": "name-asc"})
        self.assertEqual(self._titles(by_name), ["Lace Runner", "Plain Hanky", "Silk Hanky"])

    def test_new_arrivals(self):
        response = self.client.get("/api/products/new-arrivals")
        self.assertEqual(self._titles(response), ["Silk Hanky", "Lace Runner"])

    def test_retrieve_and_404(self):
        response = self.client.get(f"/api/products/{self.mid.pk}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["title"], "Lace Runner")

        self.assertEqual(self.client.get(f"/api/products/{uuid.uuid4()}").status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get("/api/products/not-a-uuid").status_code, status.HTTP_404_NOT_FOUND)

    def test_categories_listed_by_name(self):
        response = self.client.get("/api/categories")
        self.assertEqual([c["name"] for c in response.json()], ["Handkerchiefs", "Table Linen"])

    def test_category_products(self):
        response = self.client.get(f"/api/categories/{self.linen.pk}/products")
        self.assertEqual(self._titles(response), ["Silk Hanky", "Lace Runner"])


class RelatedProductServiceTests(TestCase):
    def setUp(self):
        self.hankies = make_category("Handkerchiefs")
        self.scarves = make_category("Scarves")
        self.source = make_product(title="Embroidered Cotton Handkerchief", categories=[self.hankies])
        self.best = make_product(title="Embroidered Cotton Handkerchief Set", categories=[self.hankies])
        self.good = make_product(title="Plain Cotton Handkerchief", categories=[self.hankies])
        self.weak = make_product(title="Blue Hanky", categories=[self.hankies])
        self.unrelated = make_product(title="Cotton Handkerchief Scarf", categories=[self.scarves])

    def test_keywords_longer_than_three_chars(self):
        self.assertEqual(
            RelatedProductService.title_keywords("Red Silk Hanky for You"),
            ["silk", "hanky"],
        )

    def test_ranks_shared_category_by_keyword_overlap(self):
        related = RelatedProductService.related_products(self.source.pk, limit=2, rng=random.Random(7))
        self.assertEqual([p.pk for p in related], [self.best.pk, self.good.pk])

    def test_never_returns_source_and_respects_limit(self):
        for limit in (1, 3, 10):
            related = RelatedProductService.related_products(self.source.pk, limit=limit)
            ids = [p.pk for p in related]
            self.assertLessEqual(len(ids), limit)
            self.assertNotIn(self.source.pk, ids)
            # Category neighbours exist, so the other category is never used.
            self.assertNotIn(self.unrelated.pk, ids)

    def test_falls_back_to_random_pool_without_categories(self):
        loner = make_product(title="Handmade Cotton Handkerchief")
        related = RelatedProductService.related_products(loner.pk, limit=3)
        ids = [p.pk for p in related]
        self.assertEqual(len(ids), 3)
        self.assertNotIn(loner.pk, ids)

    def test_missing_source(self):
        with self.assertRaises(NotFoundException):
            RelatedProductService.related_products(uuid.uuid4())
        with self.assertRaises(NotFoundException):
            RelatedProductService.related_products("garbage")

    def test_parse_limit(self):
        self.assertEqual(RelatedProductService.parse_limit(None), 4)
        self.assertEqual(RelatedProductService.parse_limit("abc"), 4)
        self.assertEqual(RelatedProductService.parse_limit("0"), 4)
        self.assertEqual(RelatedProductService.parse_limit("-3"), 4)
        self.assertEqual(RelatedProductService.parse_limit("6"), 6)
        self.assertEqual(RelatedProductService.parse_limit("5000"), 50)


class RelatedProductAPITests(StoreAPITestCase):
    def test_related_endpoint(self):
        cat = make_category()
        source = make_product(title="Cotton Hanky", categories=[cat])
        for i in range(6):
            make_product(title=f"Cotton Hanky {i}", categories=[cat])

        response = self.client.get(f"/api/products/{source.pk}/related", {"limit": "3"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [p["id"] for p in response.json()]
        self.assertEqual(len(ids), 3)
        self.assertNotIn(str(source.pk), ids)

    def test_related_unknown_product(self):
        response = self.client.get(f"/api/products/{uuid.uuid4()}/related")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()["error"], "Product not found")


class ProductWriteAPITests(StoreAPITestCase):
    def setUp(self):
        super().setUp()
        self.cat = make_category()
        self.payload = {
            "title": "Block Print Hanky",
            "description": "Hand block printed cotton",
            "price": "149.00",
            "stock": 12,
            "images": [IMAGE_URL],
            "category_ids": [str(self.cat.pk)],
            "material": "Cotton",
        }

    def test_create_requires_admin(self):
        self.assertEqual(
            self.client.post("/api/products", self.payload, format="json").status_code,
            status.HTTP_401_UNAUTHORIZED,
        )
        self.authenticate_customer()
        self.assertEqual(
            self.client.post("/api/products", self.payload, format="json").status_code,
            status.HTTP_403_FORBIDDEN,
        )
        self.assertFalse(Product.objects.exists())

    def test_create_as_admin(self):
        self.authenticate_admin()
        response = self.client.post("/api/products", self.payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertEqual(body["category_ids"], [str(self.cat.pk)])
        self.assertTrue(body["is_new"])
        product = Product.objects.get(pk=body["id"])
        self.assertEqual(product.stock, 12)
        self.assertEqual(list(product.categories.all()), [self.cat])

    def test_create_validation(self):
        self.authenticate_secret()
        cases = [
            {"images": []},
            {"price": "0"},
            {"stock": -1},
            {"title": "ab"},
            {"discount_price": "200.00"},
        ]
        for override in cases:
            with self.subTest(override=override):
                response = self.client.post("/api/products", {**self.payload, **override}, format="json")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.json()["code"], "validation_error")
        self.assertFalse(Product.objects.exists())

    def test_update_replaces_categories_only_when_given(self):
        other = make_category("Scarves")
        product = make_product(categories=[self.cat], stock=7)
        self.authenticate_admin()

        body = {**self.payload, "category_ids": [str(other.pk)]}
        body.pop("stock")
        response = self.client.put(f"/api/products/{product.pk}", body, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["category_ids"], [str(other.pk)])
        product.refresh_from_db()
        self.assertEqual(product.stock, 7)

        body.pop("category_ids")
        body["title"] = "Renamed Hanky"
        response = self.client.put(f"/api/products/{product.pk}", body, format="json")
        self.assertEqual(response.json()["category_ids"], [str(other.pk)])
        self.assertEqual(response.json()["title"], "Renamed Hanky")

    def test_update_missing_product(self):
        self.authenticate_admin()
        response = self.client.put(f"/api/products/{uuid.uuid4()}", self.payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class StockAdjustmentAPITests(StoreAPITestCase):
    def setUp(self):
        super().setUp()
        self.product = make_product(stock=5)
        self.url = f"/api/products/{self.product.pk}/stock"
        self.authenticate_admin()

    def test_increment(self):
        response = self.client.patch(self.url, {"adjustment": 3}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"message": "Stock updated successfully", "stock": 8})
        movement = StockMovement.objects.get(product=self.product)
        self.assertEqual(movement.quantity_change, 3)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.ADJUSTMENT)
        self.assertEqual(movement.performed_by, "owner@example.com")

    def test_decrement_clamps_at_zero(self):
        response = self.client.patch(self.url, {"adjustment": -100}, format="json")
        self.assertEqual(response.json()["stock"], 0)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
        self.assertEqual(StockMovement.objects.get(product=self.product).quantity_change, -5)

    def test_stock_never_negative_over_any_sequence(self):
        rng = random.Random(3)
        for _ in range(25):
            self.client.patch(self.url, {"adjustment": rng.randint(-10, 10)}, format="json")
            self.product.refresh_from_db()
            self.assertGreaterEqual(self.product.stock, 0)

    def test_non_integer_adjustment(self):
        for bad in ("abc", "3", True, 1.5, None):
            with self.subTest(adjustment=bad):
                response = self.client.patch(self.url, {"adjustment": bad}, format="json")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_missing_product(self):
        response = self.client.patch(f"/api/products/{uuid.uuid4()}/stock", {"adjustment": 1}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_requires_admin(self):
        self.authenticate_customer()
        response = self.client.patch(self.url, {"adjustment": 1}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductDeleteAPITests(StoreAPITestCase):
    def setUp(self):
        super().setUp()
        self.product = make_product()
        self.authenticate_admin()

    def _order_with_product(self, status_value):
        order = Order.objects.create(
            customer_name="Asha", customer_email="asha@example.com",
            shipping_address="12 Weaver Lane, Jaipur", total_price=Decimal("100.00"),
            status=status_value,
        )
        OrderItem.objects.create(
            order=order, product=self.product, product_title=self.product.title,
            price_at_purchase=Decimal("100.00"), quantity=1,
        )
        return order

    def test_blocked_by_active_order(self):
        for status_value in Order.ACTIVE_STATUSES:
            with self.subTest(status=status_value):
                Order.objects.all().delete()
                self._order_with_product(status_value)
                response = self.client.delete(f"/api/products/{self.product.pk}")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.json()["code"], "product_in_active_order")
                self.assertTrue(Product.objects.filter(pk=self.product.pk).exists())

    def test_finished_orders_keep_snapshot(self):
        for status_value in (Order.Status.DELIVERED, Order.Status.CANCELLED):
            with self.subTest(status=status_value):
                self.product = make_product()
                order = self._order_with_product(status_value)

                response = self.client.delete(f"/api/products/{self.product.pk}")

                self.assertEqual(response.status_code, status.HTTP_200_OK)
                self.assertEqual(response.json(), {"message": "Product deleted successfully"})
                self.assertFalse(Product.objects.filter(pk=self.product.pk).exists())
                item = order.items.get()
                self.assertIsNone(item.product_id)
                self.assertEqual(item.product_title, "Cotton Handkerchief")

    def test_product_without_orders(self):
        response = self.client.delete(f"/api/products/{self.product.pk}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Product.objects.filter(pk=self.product.pk).exists())


class CategoryWriteAPITests(StoreAPITestCase):
    def test_create_and_delete(self):
        self.authenticate_admin()
        response = self.client.post("/api/categories", {"name": "Table Linen"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["slug"], "table-linen")

        duplicate = self.client.post(
            "/api/categories", {"name": "Linen", "slug": "table-linen"}, format="json"
        )
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)

        category_id = response.json()["id"]
        product = make_product(categories=[Category.objects.get(pk=category_id)])
        response = self.client.delete(f"/api/categories/{category_id}")
        self.assertEqual(response.json(), {"message": "Category deleted successfully"})
        self.assertFalse(product.categories.exists())

    def test_create_requires_admin(self):
        self.authenticate_customer()
        response = self.client.post("/api/categories", {"name": "Scarves"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ImportProductsCommandTests(TestCase):
    def _write_csv(self, rows):
        handle = tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False, newline="", encoding="utf-8")
        self.addCleanup(os.unlink, handle.name)
        with handle:
            writer = csv.DictWriter(handle, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        return handle.name

    def test_imports_products_and_categories(self):
        path = self._write_csv([
            {"title": "Chikan Hanky", "price": "120", "stock": "4",
             "images": f"{IMAGE_URL}|{IMAGE_URL}?v=2", "categories": "Handkerchiefs|Gifts", "is_featured": "yes"},
            {"title": "Lace Runner", "price": "450.50", "stock": "", "images": IMAGE_URL, "categories": "",
             "is_featured": ""},
        ])

        call_command("import_products", path, stdout=io.StringIO())

        hanky = Product.objects.get(title="Chikan Hanky")
        self.assertEqual(hanky.stock, 4)
        self.assertTrue(hanky.is_featured)
        self.assertEqual(len(hanky.images), 2)
        self.assertCountEqual(hanky.categories.values_list("name", flat=True), ["Handkerchiefs", "Gifts"])
        self.assertEqual(Product.objects.get(title="Lace Runner").price, Decimal("450.50"))

    def test_bad_row_rolls_back_whole_file(self):
        path = self._write_csv([
            {"title": "Good Hanky", "price": "100", "stock": "1", "images": IMAGE_URL},
            {"title": "Bad Hanky", "price": "-5", "stock": "1", "images": IMAGE_URL},
        ])
        with self.assertRaisesMessage(CommandError, "Line 3: price"):
            call_command("import_products", path, stdout=io.StringIO())
        self.assertFalse(Product.objects.exists())

    def test_rows_follow_api_validation(self):
        cases = [
            ("images", {"title": "Ajrakh Hanky", "price": "100", "images": "not-a-url"}),
            ("images", {"title": "Ajrakh Hanky", "price": "100", "images": ""}),
            ("discount_price", {"title": "Ajrakh Hanky", "price": "100", "discount_price": "150",
                                "images": IMAGE_URL}),
            ("discount_price", {"title": "Ajrakh Hanky", "price": "100", "discount_price": "0",
                                "images": IMAGE_URL}),
            ("stock", {"title": "Ajrakh Hanky", "price": "100", "stock": "-1", "images": IMAGE_URL}),
            ("title", {"title": "Ab", "price": "100", "images": IMAGE_URL}),
        ]
        for column, row in cases:
            with self.subTest(row=row):
                path = self._write_csv([row])
                with self.assertRaisesMessage(CommandError, f"Line 2: {column}"):
                    call_command("import_products", path, stdout=io.StringIO())
        self.assertFalse(Product.objects.exists())

    def test_categories_match_on_slug(self):
        Category.objects.create(name="Scarves", slug="scarves")
        Category.objects.create(name="Scarves", slug="scarves-1")
        path = self._write_csv([
            {"title": "Silk Scarf", "price": "300", "images": IMAGE_URL, "categories": "Scarves"},
        ])

        call_command("import_products", path, stdout=io.StringIO())

        scarf = Product.objects.get(title="Silk Scarf")
        self.assertEqual(list(scarf.categories.values_list("slug", flat=True)), ["scarves"])
        self.assertEqual(Category.objects.count(), 2)

    def test_existing_title_is_updated(self):
        make_product(title="Chikan Hanky", price="90.00", stock=1)
        path = self._write_csv([
            {"title": "Chikan Hanky", "price": "120", "stock": "6", "images": IMAGE_URL},
        ])

        out = io.StringIO()
        call_command("import_products", path, stdout=out)

        hanky = Product.objects.get(title="Chikan Hanky")
        self.assertEqual((hanky.price, hanky.stock), (Decimal("120.00"), 6))
        self.assertIn("0 created, 1 updated", out.getvalue())

    def test_ambiguous_title_is_reported_with_line(self):
        make_product(title="Chikan Hanky")
        make_product(title="Chikan Hanky")
        path = self._write_csv([
            {"title": "Chikan Hanky", "price": "120", "images": IMAGE_URL},
        ])

        with self.assertRaisesMessage(CommandError, "Line 2: title \"Chikan Hanky\" matches more than one product"):
            call_command("import_products", path, stdout=io.StringIO())
