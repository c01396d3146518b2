import re
from rest_framework import serializers


def validate_phone(value):
    pattern = r"^\+?[\d\s\-()]{7,20}$"
    if not re.match(pattern, str(value)) or len(re.sub(r"\D", "", str(value))) < 7:
        raise serializers.ValidationError("Invalid phone number format.")
    return value


def validate_image_urls(value):
    if not value:
        raise serializers.ValidationError("At least one image is required.")
    validator = serializers.URLField()
    for url in value:
        validator.run_validation(url)
    return value
