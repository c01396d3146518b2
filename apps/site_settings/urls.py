from django.urls import re_path

from .views import SiteConfigView, SiteSettingsView

urlpatterns = [
    re_path(r'^settings/config/?$', SiteConfigView.as_view(), name='site-config'),
    re_path(r'^settings/?$', SiteSettingsView.as_view(), name='site-settings'),
]
