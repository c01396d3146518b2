from django.urls import path
from .health import health_check
from .views import ServerStatusView


urlpatterns = [
    path("", ServerStatusView.as_view(), name="server-status"),
    path("health/", health_check, name="health-check"),
]
