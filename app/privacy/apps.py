"""
Django app configuration for privacy.
"""

from django.apps import AppConfig


class PrivacyConfig(AppConfig):
    """Configuration for the privacy application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "privacy"
    verbose_name = "Privacy"
