from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsStoreAdmin
from .serializers import SiteSettingsSerializer, SiteSettingsUpdateSerializer
from .services import SiteSettingsService


class SiteConfigView(APIView):
    """
    Public storefront switches, read on every page load.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(SiteSettingsService.public_config())


class SiteSettingsView(APIView):
    permission_classes = [IsStoreAdmin]

    def put(self, request):
        serializer = SiteSettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        instance = SiteSettingsService.update(serializer.validated_data)
        return Response({
            "message": "Site settings updated",
            "settings": SiteSettingsSerializer(instance).data,
        })
