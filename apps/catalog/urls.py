from django.urls import path, include

from apps.utils.routers import OptionalSlashRouter
from .views import CategoryViewSet, ProductViewSet

router = OptionalSlashRouter()
router.register(r"products", ProductViewSet, basename="product")
router.register(r"categories", CategoryViewSet, basename="category")

urlpatterns = [
    path("", include(router.urls)),
]
