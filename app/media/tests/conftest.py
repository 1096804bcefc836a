"""
Test fixtures for media app.

Provides fixtures for:
- Users and authenticated API clients
- An isolated MEDIA_ROOT per test
- Sample file bytes
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_token_for


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    """Store uploaded bytes under a per-test temporary directory."""
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


@pytest.fixture
def user(db):
    return UserFactory(name="Uploader")


@pytest.fixture
def other_user(db):
    return UserFactory(name="Someone Else")


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user) -> APIClient:
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {identity_token_for(user)}")
    return client


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny PNG header followed by padding; content is never decoded."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
