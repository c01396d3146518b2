# apps/utils/tests.py
import json
import logging
from unittest import mock

from django.http import Http404
from django.test import TestCase
from rest_framework import exceptions
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from .exceptions import (
    BusinessLogicException,
    InsufficientStockException,
    NotFoundException,
    custom_exception_handler,
)
from .logging import JSONFormatter
from .validators import validate_image_urls, validate_phone


class ValidatorTests(TestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone("+919876543210"), "+919876543210")
        self.assertEqual(validate_phone("(022) 555-0199"), "(022) 555-0199")
        with self.assertRaises(ValidationError):
            validate_phone("123")  # Invalid
        with self.assertRaises(ValidationError):
            validate_phone("call me maybe")

    def test_image_urls_validator(self):
        urls = ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"]
        self.assertEqual(validate_image_urls(urls), urls)

        with self.assertRaises(ValidationError):
            validate_image_urls([])
        with self.assertRaises(ValidationError):
            validate_image_urls(["not-a-url"])


class ExceptionHandlerTests(TestCase):
    def test_business_exceptions_keep_their_status_and_code(self):
        response = custom_exception_handler(InsufficientStockException("Insufficient stock for Hanky. Available: 1"), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {
            "error": "Insufficient stock for Hanky. Available: 1",
            "code": "insufficient_stock",
        })

        response = custom_exception_handler(NotFoundException("Product not found"), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_validation_error_flattens_first_message(self):
        exc = exceptions.ValidationError({"shipping_address": ["Shipping address must be detailed"]})
        response = custom_exception_handler(exc, {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertEqual(response.data["error"], "shipping_address: Shipping address must be detailed")
        self.assertIn("shipping_address", response.data["details"])

    def test_auth_errors_map_to_error_body(self):
        response = custom_exception_handler(exceptions.PermissionDenied("Forbidden: Admin Privileges Required"), {})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["error"], "Forbidden: Admin Privileges Required")

        response = custom_exception_handler(Http404(), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": "Not found.", "code": "not_found"})

    def test_unhandled_exception_is_generic_500(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            response = custom_exception_handler(RuntimeError("relation products does not exist"), {})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "Internal Server Error", "code": "server_error"})

    def test_default_business_code(self):
        exc = BusinessLogicException("Nope")
        self.assertEqual(custom_exception_handler(exc, {}).data["code"], "business_error")


class JSONFormatterTests(TestCase):
    def _record(self, msg, args=None, **extra):
        record = logging.LogRecord("apps.test", logging.INFO, __file__, 10, msg, args, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_redacts_secrets_in_structured_messages(self):
        record = self._record({"x-admin-secret": "s3cret", "path": "/api/orders"})
        payload = json.loads(JSONFormatter().format(record))
        self.assertNotIn("s3cret", payload["msg"])
        self.assertIn("/api/orders", payload["msg"])

    def test_carries_context_fields(self):
        record = self._record("Order placed", order_id="abc", duration_ms=12.5)
        payload = json.loads(JSONFormatter().format(record))
        self.assertEqual(payload["order_id"], "abc")
        self.assertEqual(payload["duration_ms"], 12.5)
        self.assertEqual(payload["lvl"], "INFO")


class StatusEndpointTests(APITestCase):
    def test_root_reports_server_running(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "Server running"})

    def test_health_check_ok(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"], {"db": "ok", "cache": "ok"})

    def test_health_check_reports_cache_failure(self):
        with mock.patch("apps.utils.health.cache.set", side_effect=ConnectionError("redis down")):
            response = self.client.get("/health/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["components"]["db"], "ok")
