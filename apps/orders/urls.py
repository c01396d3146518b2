from django.urls import include, path

from apps.utils.routers import OptionalSlashRouter
from .views import OrderViewSet

router = OptionalSlashRouter()
router.register(r'orders', OrderViewSet, basename='order')

urlpatterns = [
    path('', include(router.urls)),
]
