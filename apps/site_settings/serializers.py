from rest_framework import serializers

from apps.utils.validators import validate_phone
from .models import SiteSettings


class SiteSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = SiteSettings
        fields = ["id", "is_ecommerce_active", "whatsapp_number", "updated_at"]
        read_only_fields = fields


class SiteSettingsUpdateSerializer(serializers.Serializer):
    is_ecommerce_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    whatsapp_number = serializers.CharField(max_length=32, required=False, allow_blank=True)

    def validate_whatsapp_number(self, value):
        if value:
            validate_phone(value)
        return value
