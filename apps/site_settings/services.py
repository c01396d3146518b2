import logging

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from .models import SiteSettings

logger = logging.getLogger(__name__)


class SiteSettingsService:
    CACHE_KEY = "site_settings:current"

    @staticmethod
    def _load() -> SiteSettings:
        return SiteSettings.objects.order_by("pk").first() or SiteSettings()

    @classmethod
    def current(cls) -> SiteSettings:
        """
        The stored row, or an unsaved instance carrying the defaults.
        Read through the cache; writes invalidate it.
        """
        instance = cache.get(cls.CACHE_KEY)
        if instance is None:
            instance = cls._load()
            cache.set(cls.CACHE_KEY, instance, timeout=settings.SITE_SETTINGS_CACHE_TTL)
        return instance

    @classmethod
    def public_config(cls) -> dict:
        current = cls.current()
        return {
            "is_ecommerce_active": current.is_ecommerce_active,
            "whatsapp_number": current.whatsapp_number,
        }

    @classmethod
    def invalidate(cls):
        cache.delete(cls.CACHE_KEY)

    @classmethod
    @transaction.atomic
    def update(cls, changes: dict) -> SiteSettings:
        """
        Upserts the singleton row. ``is_ecommerce_active`` is applied only
        when given, ``whatsapp_number`` only when non-empty.
        """
        instance = SiteSettings.objects.select_for_update().order_by("pk").first()
        if instance is None:
            instance = SiteSettings()

        if changes.get("is_ecommerce_active") is not None:
            instance.is_ecommerce_active = changes["is_ecommerce_active"]
        if changes.get("whatsapp_number"):
            instance.whatsapp_number = changes["whatsapp_number"]
        instance.save()

        transaction.on_commit(cls.invalidate)
        logger.info(
            "Site settings updated: ecommerce=%s whatsapp=%s",
            instance.is_ecommerce_active, instance.whatsapp_number,
        )
        return instance
