"""
API views for chat media uploads.

Provides:
- UploadTargetCreateView: Allocate a single-use upload target
- UploadTargetBytesView: Receive the bytes for a target (local storage)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from media.serializers import (
    UploadTargetAllocateSerializer,
    UploadTargetSerializer,
    UploadTargetStatusSerializer,
)
from media.services import UploadTargetService


class UploadTargetCreateView(APIView):
    """
    Allocate an upload target.

    POST /api/v1/media/upload-targets/

    Response:
        201 Created: Reference plus a write URL valid for a few minutes
        400 Bad Request: Unsupported type or file too large
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="allocate_upload_target",
        summary="Allocate upload target",
        description=(
            "Reserve a single-use slot for one image, video or audio file. PUT the bytes to "
            "upload_url, then send the media message with the returned reference."
        ),
        request=UploadTargetAllocateSerializer,
        responses={
            201: UploadTargetSerializer,
            400: OpenApiResponse(description="Unsupported media type or file too large"),
            502: OpenApiResponse(description="Storage backend unavailable"),
        },
        tags=["Media - Upload"],
    )
    def post(self, request):
        serializer = UploadTargetAllocateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UploadTargetService.allocate(request.user, **serializer.validated_data)
        if not result:
            return Response(result.to_response(), status=result.http_status)

        data = dict(result.data)
        if not data["direct"]:
            data["upload_url"] = request.build_absolute_uri(data["upload_url"])
        return Response(UploadTargetSerializer(data).data, status=status.HTTP_201_CREATED)


class UploadTargetBytesView(APIView):
    """
    Upload the bytes for a target (local storage backend only).

    PUT /api/v1/media/upload-targets/{target_id}/
        Raw file body; Content-Type is the file's MIME type.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="upload_target_bytes",
        summary="Upload file bytes",
        request={"application/octet-stream": {"type": "string", "format": "binary"}},
        responses={
            200: UploadTargetStatusSerializer,
            400: OpenApiResponse(description="Empty, expired, already used, wrong type or too large"),
            404: OpenApiResponse(description="Target not found or not owned by user"),
        },
        tags=["Media - Upload"],
    )
    def put(self, request, target_id):
        result = UploadTargetService.receive_bytes(
            request.user,
            target_id,
            request.body,
            request.content_type,
        )
        if not result:
            return Response(result.to_response(), status=result.http_status)
        return Response(UploadTargetStatusSerializer(result.data).data)
