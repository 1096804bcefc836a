"""
Privacy views.

Endpoints:
    GET/PATCH /api/v1/privacy/settings/       - Privacy settings
    GET/PATCH /api/v1/privacy/security/       - Security settings
    GET       /api/v1/privacy/blocks/         - Users I have blocked
    POST      /api/v1/privacy/blocks/toggle/  - Block or unblock a user

Related files:
    - services.py: PrivacyService, SecurityService, BlockService
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from privacy.serializers import (
    BlockedUserSerializer,
    BlockToggleResponseSerializer,
    BlockToggleSerializer,
    PrivacySettingsSerializer,
    PrivacySettingsUpdateSerializer,
    SecuritySettingsSerializer,
    SecuritySettingsUpdateSerializer,
)
from privacy.services import BlockService, PrivacyService, SecurityService


class PrivacySettingsView(APIView):
    """Read and update the caller's privacy settings."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="privacy_settings_retrieve",
        summary="Get privacy settings",
        tags=["Privacy"],
        responses={200: PrivacySettingsSerializer},
    )
    def get(self, request):
        settings_row = PrivacyService.get_settings(request.user)
        return Response(PrivacySettingsSerializer(settings_row).data)

    @extend_schema(
        operation_id="privacy_settings_update",
        summary="Update privacy settings",
        tags=["Privacy"],
        request=PrivacySettingsUpdateSerializer,
        responses={200: PrivacySettingsSerializer},
    )
    def patch(self, request):
        serializer = PrivacySettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PrivacyService.update_settings(request.user, **serializer.validated_data)
        if not result:
            return Response(result.to_response(), status=result.http_status)
        return Response(PrivacySettingsSerializer(result.data).data)


class SecuritySettingsView(APIView):
    """Read and update the caller's security settings."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="security_settings_retrieve",
        summary="Get security settings",
        tags=["Privacy"],
        responses={200: SecuritySettingsSerializer},
    )
    def get(self, request):
        return Response(SecuritySettingsSerializer(SecurityService.get_settings(request.user)).data)

    @extend_schema(
        operation_id="security_settings_update",
        summary="Update security settings",
        tags=["Privacy"],
        request=SecuritySettingsUpdateSerializer,
        responses={200: SecuritySettingsSerializer},
    )
    def patch(self, request):
        serializer = SecuritySettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = SecurityService.update_settings(request.user, **serializer.validated_data)
        if not result:
            return Response(result.to_response(), status=result.http_status)
        return Response(SecuritySettingsSerializer(result.data).data)


class BlockListView(APIView):
    """List users the caller has blocked."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="blocks_list",
        summary="List blocked users",
        tags=["Privacy"],
        responses={200: BlockedUserSerializer(many=True)},
    )
    def get(self, request):
        blocked = BlockService.list_blocked(request.user)
        return Response(BlockedUserSerializer(blocked, many=True).data)


class BlockToggleView(APIView):
    """Block a user, or unblock if already blocked."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="blocks_toggle",
        summary="Toggle block",
        tags=["Privacy"],
        request=BlockToggleSerializer,
        responses={200: BlockToggleResponseSerializer},
    )
    def post(self, request):
        serializer = BlockToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = BlockService.toggle_block(request.user, serializer.validated_data["user_id"])
        if not result:
            return Response(result.to_response(), status=result.http_status)
        return Response(result.data)
