"""
Root URL configuration.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/me/               - Current user
    /api/v1/privacy/               - Privacy settings, security settings, blocks
    /api/v1/chat/                  - Users, conversations, members, messages,
                                     reactions, stars, search, typing, presence
    /api/v1/media/upload-targets/  - Upload target allocation and local PUT
    ws/live/                       - Live queries (see chat/routing.py)
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# All routes here are prefixed with /api/v1/
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("privacy/", include("privacy.urls")),
    path("chat/", include("chat.urls")),
    path("media/", include("media.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

if settings.DEBUG:
    # Locally stored media is served by Django only in development
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

admin.site.site_header = "Relay Admin"
admin.site.site_title = "Relay Admin"
admin.site.index_title = "Conversations, users and uploads"
