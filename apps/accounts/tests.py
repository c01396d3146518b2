from unittest import mock

import requests
from django.test import TestCase, override_settings
from rest_framework import status

from apps.utils.testing import StoreAPITestCase, customer_identity
from .models import Identity, Role
from .services import IdentityProviderClient, IdentityProviderError, InvalidTokenError


class IdentityTests(TestCase):

    @override_settings(ADMIN_EMAILS=["admin@hankycorner.com"])
    def test_admin_by_metadata_or_email(self):
        by_role = Identity.from_provider_payload(
            {"id": "u1", "email": "maker@example.com", "user_metadata": {"role": "admin"}}
        )
        by_email = Identity.from_provider_payload({"id": "u2", "email": "Admin@HankyCorner.com"})
        customer = Identity.from_provider_payload({"id": "u3", "email": "buyer@example.com"})

        self.assertEqual(by_role.role, Role.ADMIN)
        self.assertTrue(by_email.is_admin)
        self.assertEqual(customer.role, Role.CUSTOMER)
        self.assertFalse(customer.is_admin)

    def test_trusted_service_is_admin_without_email(self):
        service = Identity.trusted_service()
        self.assertTrue(service.is_admin)
        self.assertIsNone(service.email)
        self.assertEqual(str(service), "admin-secret")


class IdentityProviderClientTests(TestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.client = IdentityProviderClient(
            "https://auth.example.com/", "anon-key", timeout=2, session=self.session
        )

    def _response(self, status_code, payload=None):
        resp = mock.Mock(status_code=status_code, ok=200 <= status_code < 300)
        resp.json.return_value = payload
        return resp

    def test_resolves_user_with_bearer_and_apikey(self):
        self.session.get.return_value = self._response(200, {"id": "u1", "email": "buyer@example.com"})

        identity = self.client.resolve("tok")

        self.assertEqual(identity.id, "u1")
        self.session.get.assert_called_once_with(
            "https://auth.example.com/auth/v1/user",
            headers={"Authorization": "Bearer tok", "apikey": "anon-key"},
            timeout=2,
        )

    def test_rejected_token(self):
        self.session.get.return_value = self._response(401, {"msg": "invalid JWT"})
        with self.assertRaises(InvalidTokenError):
            self.client.fetch_user("expired")

    def test_payload_without_user_is_invalid(self):
        self.session.get.return_value = self._response(200, {})
        with self.assertRaises(InvalidTokenError):
            self.client.fetch_user("tok")

    def test_unreachable_provider(self):
        self.session.get.side_effect = requests.ConnectionError("boom")
        with self.assertRaises(IdentityProviderError) as ctx:
            self.client.fetch_user("tok")
        self.assertNotIsInstance(ctx.exception, InvalidTokenError)

    def test_provider_server_error(self):
        self.session.get.return_value = self._response(502)
        with self.assertRaises(IdentityProviderError):
            self.client.fetch_user("tok")

    def test_requires_configuration(self):
        with self.assertRaises(IdentityProviderError):
            IdentityProviderClient("", "")


class AccessControlTests(StoreAPITestCase):
    """
    Admin-only ``GET /api/orders`` and user-only ``GET /api/orders/mine``
    exercise both gates.
    """
    url = "/api/orders"

    def test_missing_token_is_401(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn("error", response.json())

    def test_invalid_token_is_401(self):
        self.identity_client.resolve.side_effect = InvalidTokenError("nope")
        self.client.credentials(HTTP_AUTHORIZATION="Bearer bad")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["error"], "Unauthorized: Invalid Token")

    def test_provider_outage_is_401_could_not_verify(self):
        self.identity_client.resolve.side_effect = IdentityProviderError("down")
        self.client.credentials(HTTP_AUTHORIZATION="Bearer tok")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["error"], "Unauthorized: Could not verify token")

    def test_valid_non_admin_is_403(self):
        self.authenticate_customer()
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"], "Forbidden: Admin Privileges Required")

    def test_admin_identity_allowed(self):
        self.authenticate_admin()
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_admin_secret_bypasses_identity_provider(self):
        self.authenticate_secret()
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.identity_client.resolve.assert_not_called()

    def test_wrong_secret_falls_through(self):
        self.authenticate_secret("guess")
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.credentials(
            HTTP_X_ADMIN_SECRET="guess", HTTP_AUTHORIZATION="Bearer valid-token"
        )
        self.identity_client.resolve.return_value = customer_identity()
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(ADMIN_SECRET="")
    def test_unset_secret_never_matches(self):
        self.client.credentials(HTTP_X_ADMIN_SECRET="")
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_gate_accepts_any_identity(self):
        self.assertEqual(self.client.get("/api/orders/mine").status_code, status.HTTP_401_UNAUTHORIZED)

        self.authenticate_customer()
        self.assertEqual(self.client.get("/api/orders/mine").status_code, status.HTTP_200_OK)

    def test_stale_token_does_not_break_public_reads(self):
        self.identity_client.resolve.side_effect = InvalidTokenError("expired")
        self.client.credentials(HTTP_AUTHORIZATION="Bearer expired")

        self.assertEqual(self.client.get("/api/products").status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get("/api/settings/config").status_code, status.HTTP_200_OK)
        self.identity_client.resolve.assert_not_called()
