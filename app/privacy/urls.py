"""
URL configuration for privacy app.

URL structure:
    /api/v1/privacy/settings/       - Privacy settings (GET/PATCH)
    /api/v1/privacy/security/       - Security settings (GET/PATCH)
    /api/v1/privacy/blocks/         - Blocked users (GET)
    /api/v1/privacy/blocks/toggle/  - Toggle block (POST)
"""

from django.urls import path

from privacy.views import BlockListView, BlockToggleView, PrivacySettingsView, SecuritySettingsView

app_name = "privacy"

urlpatterns = [
    path("settings/", PrivacySettingsView.as_view(), name="settings"),
    path("security/", SecuritySettingsView.as_view(), name="security"),
    path("blocks/", BlockListView.as_view(), name="blocks"),
    path("blocks/toggle/", BlockToggleView.as_view(), name="blocks-toggle"),
]
