"""
Shared fixtures for the API test suites.
"""
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import override_settings
from rest_framework.test import APITestCase

from apps.accounts.models import Identity, Role
from apps.catalog.models import Category, Product

ADMIN_SECRET = "test-admin-secret"
IMAGE_URL = "https://cdn.example.com/hanky.jpg"


def make_category(name="Handkerchiefs", **kwargs):
    return Category.objects.create(name=name, **kwargs)


def make_product(title="Cotton Handkerchief", price="100.00", stock=10, categories=(), **kwargs):
    kwargs.setdefault("images", [IMAGE_URL])
    product = Product.objects.create(title=title, price=Decimal(price), stock=stock, **kwargs)
    if categories:
        product.categories.set(categories)
    return product


def customer_identity(email="buyer@example.com", user_id="user-1"):
    return Identity(id=user_id, email=email, role=Role.CUSTOMER)


def admin_identity(email="owner@example.com", user_id="admin-1"):
    return Identity(id=user_id, email=email, role=Role.ADMIN)


@override_settings(ADMIN_SECRET=ADMIN_SECRET)
class StoreAPITestCase(APITestCase):
    """
    Clears throttle/settings caches between tests and replaces the
    identity provider with a mock whose ``resolve`` the test controls.
    """

    def setUp(self):
        super().setUp()
        cache.clear()
        self.identity_client = mock.Mock()
        patcher = mock.patch(
            "apps.accounts.authentication.get_identity_client",
            return_value=self.identity_client,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def authenticate_secret(self, secret=ADMIN_SECRET):
        self.client.credentials(HTTP_X_ADMIN_SECRET=secret)

    def authenticate_as(self, identity, token="valid-token"):
        self.identity_client.resolve.return_value = identity
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def authenticate_admin(self):
        self.authenticate_as(admin_identity())

    def authenticate_customer(self, email="buyer@example.com"):
        self.authenticate_as(customer_identity(email=email))
