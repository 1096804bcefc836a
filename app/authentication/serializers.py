"""
Serializers for authentication models.

Related files:
    - models.py: User model
    - views.py: MeView
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the current user (read-only).

    Profile fields are owned by the identity provider and re-synced on
    every request, so nothing here is writable.
    """

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "identity_subject",
            "name",
            "display_name",
            "email",
            "avatar_url",
            "date_joined",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference embedded in chat payloads."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "display_name", "avatar_url"]
        read_only_fields = fields
