"""
Serializers for privacy endpoints.
"""

from rest_framework import serializers

from privacy.models import LastSeenVisibility, PrivacySettings, SecuritySettings, WhoCanMessage


class PrivacySettingsSerializer(serializers.ModelSerializer):
    """Read/partial-update representation of PrivacySettings."""

    class Meta:
        model = PrivacySettings
        fields = ["read_receipts_enabled", "last_seen_visibility", "who_can_message"]


class PrivacySettingsUpdateSerializer(serializers.Serializer):
    """Request body for PATCH /privacy/settings/. All fields optional."""

    read_receipts_enabled = serializers.BooleanField(required=False)
    last_seen_visibility = serializers.ChoiceField(choices=LastSeenVisibility.choices, required=False)
    who_can_message = serializers.ChoiceField(choices=WhoCanMessage.choices, required=False)


class SecuritySettingsSerializer(serializers.ModelSerializer):
    """Read/partial-update representation of SecuritySettings."""

    class Meta:
        model = SecuritySettings
        fields = ["suspicious_login_alerts", "e2ee_enabled"]


class SecuritySettingsUpdateSerializer(serializers.Serializer):
    suspicious_login_alerts = serializers.BooleanField(required=False)
    e2ee_enabled = serializers.BooleanField(required=False)


class BlockToggleSerializer(serializers.Serializer):
    """Request body for POST /privacy/blocks/toggle/."""

    user_id = serializers.IntegerField()


class BlockToggleResponseSerializer(serializers.Serializer):
    blocked = serializers.BooleanField()


class BlockedUserSerializer(serializers.Serializer):
    """A user the caller has blocked."""

    id = serializers.IntegerField()
    display_name = serializers.CharField()
    avatar_url = serializers.CharField()
    blocked_at = serializers.DateTimeField()
