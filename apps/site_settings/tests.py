from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status

from apps.utils.testing import StoreAPITestCase
from .models import SiteSettings
from .services import SiteSettingsService


class SiteSettingsServiceTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_defaults_without_row(self):
        self.assertEqual(SiteSettingsService.public_config(), {
            "is_ecommerce_active": False,
            "whatsapp_number": "917822832788",
        })
        self.assertFalse(SiteSettings.objects.exists())

    def test_update_upserts_single_row(self):
        SiteSettingsService.update({"is_ecommerce_active": True})
        SiteSettingsService.update({"whatsapp_number": "919900112233"})

        self.assertEqual(SiteSettings.objects.count(), 1)
        row = SiteSettings.objects.get()
        self.assertTrue(row.is_ecommerce_active)
        self.assertEqual(row.whatsapp_number, "919900112233")

    def test_omitted_or_empty_values_are_kept(self):
        SiteSettingsService.update({"is_ecommerce_active": True, "whatsapp_number": "919900112233"})
        SiteSettingsService.update({"is_ecommerce_active": None, "whatsapp_number": ""})

        row = SiteSettings.objects.get()
        self.assertTrue(row.is_ecommerce_active)
        self.assertEqual(row.whatsapp_number, "919900112233")

    def test_cached_until_write_commits(self):
        self.assertFalse(SiteSettingsService.current().is_ecommerce_active)
        SiteSettings.objects.create(is_ecommerce_active=True)
        # Direct writes bypass invalidation.
        self.assertFalse(SiteSettingsService.current().is_ecommerce_active)

        with self.captureOnCommitCallbacks(execute=True):
            SiteSettingsService.update({"is_ecommerce_active": True})
        self.assertTrue(SiteSettingsService.current().is_ecommerce_active)

    @override_settings(SITE_SETTINGS_CACHE_TTL=0)
    def test_zero_ttl_reads_through(self):
        SiteSettings.objects.create(whatsapp_number="911234567890")
        self.assertEqual(SiteSettingsService.current().whatsapp_number, "911234567890")


class SiteSettingsAPITests(StoreAPITestCase):
    def test_public_config(self):
        response = self.client.get("/api/settings/config")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {
            "is_ecommerce_active": False,
            "whatsapp_number": "917822832788",
        })

    def test_admin_update(self):
        self.authenticate_admin()
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.put(
                "/api/settings", {"is_ecommerce_active": True, "whatsapp_number": "919812345678"}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["message"], "Site settings updated")
        self.assertTrue(body["settings"]["is_ecommerce_active"])
        self.assertEqual(body["settings"]["whatsapp_number"], "919812345678")

        config = self.client.get("/api/settings/config").json()
        self.assertTrue(config["is_ecommerce_active"])

    def test_update_requires_admin(self):
        self.assertEqual(
            self.client.put("/api/settings", {"is_ecommerce_active": True}, format="json").status_code,
            status.HTTP_401_UNAUTHORIZED,
        )
        self.authenticate_customer()
        self.assertEqual(
            self.client.put("/api/settings", {"is_ecommerce_active": True}, format="json").status_code,
            status.HTTP_403_FORBIDDEN,
        )
        self.assertFalse(SiteSettings.objects.exists())

    def test_rejects_malformed_number(self):
        self.authenticate_secret()
        response = self.client.put("/api/settings", {"whatsapp_number": "call us"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
