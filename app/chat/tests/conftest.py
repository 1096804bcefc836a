"""
Test configuration and fixtures for chat tests.

This module provides:
- Named users (alice, bob, carol, dave) and an outsider
- A direct conversation between alice and bob
- A group owned by alice with bob and carol as members
- API clients authenticated with identity-provider tokens
- An isolated MEDIA_ROOT and an uploaded-media helper

Conversations are created through the services so summaries, read marks
and roles look exactly like production data.

Usage:
    def test_example(client_for, alice, direct):
        response = client_for(alice).get(f"/api/v1/chat/conversations/{direct.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_token_for
from chat.models import Conversation
from chat.services import ConversationService
from media.services import UploadTargetService

# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(name="Bob")


@pytest.fixture
def carol(db):
    return UserFactory(name="Carol")


@pytest.fixture
def dave(db):
    return UserFactory(name="Dave")


@pytest.fixture
def outsider(db):
    """A user who belongs to none of the fixture conversations."""
    return UserFactory(name="Mallory")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct(alice, bob) -> Conversation:
    """Direct conversation opened by alice with bob."""
    row = ConversationService.get_or_create_direct(alice, bob.id).data
    return Conversation.objects.get(pk=row["id"])


@pytest.fixture
def group(alice, bob, carol) -> Conversation:
    """Group "Weekend" owned by alice; bob and carol are members."""
    row = ConversationService.create_group(alice, "Weekend", [bob.id, carol.id]).data
    return Conversation.objects.get(pk=row["id"])


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def client_for():
    """
    Factory fixture returning an API client authenticated as a given user.

    Usage:
        def test_example(client_for, alice):
            response = client_for(alice).get("/api/v1/chat/conversations/")
    """

    def _make_client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {identity_token_for(user)}")
        return client

    return _make_client


@pytest.fixture
def api_client_anonymous():
    return APIClient()


# =============================================================================
# Media Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


@pytest.fixture
def uploaded_media():
    """
    Factory fixture: allocate an upload target for a user and fill it.

    Returns the reference to pass to MessageService.send_media.
    """

    def _upload(user, content_type="image/png", content=b"\x89PNG\r\n\x1a\n" + b"\x00" * 32):
        allocated = UploadTargetService.allocate(user, content_type, len(content))
        reference = allocated.data["reference"]
        received = UploadTargetService.receive_bytes(user, reference, content, content_type)
        assert received, received.error
        return reference

    return _upload
