"""
Test configuration and fixtures for privacy tests.
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_token_for


@pytest.fixture
def alice(db):
    return UserFactory(name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(name="Bob")


@pytest.fixture
def client_for():
    """
    Factory fixture returning an API client authenticated as a given user.

    Usage:
        def test_example(client_for, alice):
            response = client_for(alice).get('/api/v1/privacy/settings/')
    """

    def _make_client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {identity_token_for(user)}")
        return client

    return _make_client


@pytest.fixture
def api_client_anonymous():
    return APIClient()
