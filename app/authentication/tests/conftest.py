"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get('/api/v1/auth/me/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_token_for


@pytest.fixture
def user(db):
    """Create a basic active user."""
    return UserFactory(name="Ada Lovelace", email="ada@example.com")


@pytest.fixture
def deactivated_user(db):
    """Create a deactivated user (is_active=False)."""
    return UserFactory(is_active=False)


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """Return an API client carrying a valid identity token for `user`."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {identity_token_for(user)}")
    return client
