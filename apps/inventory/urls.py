from django.urls import re_path
from .views import StockMovementListAPIView

urlpatterns = [
    re_path(r'^movements/?$', StockMovementListAPIView.as_view(), name='stock-movements'),
]
