from django.db import models


class SiteSettings(models.Model):
    """
    Single-row storefront switchboard. When the row is absent the public
    config falls back to the field defaults.
    """
    DEFAULT_WHATSAPP_NUMBER = "917822832788"

    is_ecommerce_active = models.BooleanField(
        default=False,
        help_text="When off, the storefront sends buyers to WhatsApp instead of checkout",
    )
    whatsapp_number = models.CharField(max_length=32, default=DEFAULT_WHATSAPP_NUMBER)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "site_settings"
        verbose_name = "Site settings"
        verbose_name_plural = "Site settings"

    def __str__(self):
        state = "online" if self.is_ecommerce_active else "whatsapp only"
        return f"Site settings ({state})"
