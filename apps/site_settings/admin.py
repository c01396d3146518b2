from django.contrib import admin

from .models import SiteSettings
from .services import SiteSettingsService


@admin.register(SiteSettings)
class SiteSettingsAdmin(admin.ModelAdmin):
    list_display = ("id", "is_ecommerce_active", "whatsapp_number", "updated_at")
    readonly_fields = ("updated_at",)

    def has_add_permission(self, request):
        return not SiteSettings.objects.exists()

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        SiteSettingsService.invalidate()
