"""
URL configuration for media app.

Media - Upload:
    POST /upload-targets/             - Allocate a single-use upload target
    PUT  /upload-targets/{target_id}/ - Upload bytes (local storage only)
"""

from django.urls import path

from media.views import UploadTargetBytesView, UploadTargetCreateView

app_name = "media"

urlpatterns = [
    path("upload-targets/", UploadTargetCreateView.as_view(), name="upload-targets"),
    path(
        "upload-targets/<uuid:target_id>/",
        UploadTargetBytesView.as_view(),
        name="upload-target-bytes",
    ),
]
