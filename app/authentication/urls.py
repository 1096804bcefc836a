"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/me/   - Current user (GET)
"""

from django.urls import path

from authentication.views import MeView

app_name = "authentication"

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
]
