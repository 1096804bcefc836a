"""
Endpoint tests for the chat API.

Services are covered in test_services.py; these tests pin the HTTP
contract: routes, status codes, payload shapes and the error envelope
{"success": false, "error", "error_code"}.
"""

from unittest.mock import patch

from core.exceptions import ExternalServiceError

from chat.constants import MESSAGE_CONFIG
from chat.models import Conversation, Membership
from chat.services import MessageService, PresenceService, ReactionService
from chat.tests.factories import MessageFactory
from privacy.models import LastSeenVisibility, WhoCanMessage
from privacy.tests.factories import PrivacySettingsFactory

BASE = "/api/v1/chat"


class TestAuthentication:
    def test_anonymous_request_is_unauthenticated(self, api_client_anonymous):
        """
        Why it matters: Every chat operation requires a verified identity.
        """
        response = api_client_anonymous.get(f"{BASE}/conversations/")

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHENTICATED"

    def test_invalid_token_is_unauthenticated(self, api_client_anonymous):
        api_client_anonymous.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")

        response = api_client_anonymous.get(f"{BASE}/conversations/")

        assert response.status_code == 401
        assert response.json()["error"] == "Sign in required."


class TestConversationEndpoints:
    """Conversation list, direct/group creation, detail, read and delete."""

    def test_open_direct_returns_row(self, client_for, alice, bob):
        response = client_for(alice).post(f"{BASE}/conversations/direct/", {"user_id": bob.id}, format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Bob"
        assert body["other_user_id"] == bob.id

    def test_open_direct_with_self_is_bad_request(self, client_for, alice):
        response = client_for(alice).post(f"{BASE}/conversations/direct/", {"user_id": alice.id}, format="json")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Cannot message yourself",
            "error_code": "CANNOT_MESSAGE_SELF",
        }

    def test_open_direct_with_opted_out_user_is_forbidden(self, client_for, alice, bob):
        PrivacySettingsFactory(user=bob, who_can_message=WhoCanMessage.NOBODY)

        response = client_for(alice).post(f"{BASE}/conversations/direct/", {"user_id": bob.id}, format="json")

        assert response.status_code == 403
        assert response.json()["error_code"] == "MESSAGING_NOT_ALLOWED"

    def test_create_group_is_created(self, client_for, alice, bob, carol):
        response = client_for(alice).post(
            f"{BASE}/conversations/group/",
            {"name": "Trip", "member_ids": [bob.id, carol.id]},
            format="json",
        )

        assert response.status_code == 201
        assert response.json()["my_role"] == "owner"

    def test_create_group_with_one_member_is_rejected(self, client_for, alice, bob):
        response = client_for(alice).post(
            f"{BASE}/conversations/group/", {"name": "Pair", "member_ids": [bob.id]}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "NOT_ENOUGH_MEMBERS"

    def test_list_returns_rows(self, client_for, alice, direct, group):
        response = client_for(alice).get(f"{BASE}/conversations/")

        assert response.status_code == 200
        assert {row["id"] for row in response.json()} == {direct.id, group.id}

    def test_detail_for_outsider_is_not_found(self, client_for, outsider, group):
        """
        Why it matters: Outsiders cannot tell a private group from a missing one.
        """
        response = client_for(outsider).get(f"{BASE}/conversations/{group.id}/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "CONVERSATION_NOT_FOUND"

    def test_mark_read(self, client_for, bob, direct):
        response = client_for(bob).post(f"{BASE}/conversations/{direct.id}/read/")

        assert response.status_code == 200
        assert response.json()["last_read_at"] is not None

    def test_delete_hides_for_caller(self, client_for, alice, direct):
        response = client_for(alice).delete(f"{BASE}/conversations/{direct.id}/")

        assert response.status_code == 204
        assert Membership.objects.get(conversation=direct, user=alice).is_deleted is True
        assert Conversation.objects.filter(pk=direct.id).exists()


class TestMemberEndpoints:
    def test_list_members(self, client_for, bob, group):
        response = client_for(bob).get(f"{BASE}/conversations/{group.id}/members/")

        assert response.status_code == 200
        assert [row["role"] for row in response.json()] == ["owner", "member", "member"]

    def test_add_members(self, client_for, alice, dave, group):
        response = client_for(alice).post(
            f"{BASE}/conversations/{group.id}/members/", {"user_ids": [dave.id]}, format="json"
        )

        assert response.status_code == 200
        assert response.json() == {"added": 1}

    def test_member_cannot_add(self, client_for, bob, dave, group):
        response = client_for(bob).post(
            f"{BASE}/conversations/{group.id}/members/", {"user_ids": [dave.id]}, format="json"
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "ADMIN_REQUIRED"

    def test_set_role(self, client_for, alice, bob, group):
        response = client_for(alice).patch(
            f"{BASE}/conversations/{group.id}/members/{bob.id}/", {"role": "admin"}, format="json"
        )

        assert response.status_code == 200
        assert response.json() == {"user_id": bob.id, "role": "admin"}

    def test_set_invalid_role_reports_field_error(self, client_for, alice, bob, group):
        response = client_for(alice).patch(
            f"{BASE}/conversations/{group.id}/members/{bob.id}/", {"role": "owner"}, format="json"
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INVALID_ROLE"
        assert "role" in body["errors"]

    def test_remove_member(self, client_for, alice, carol, group):
        response = client_for(alice).delete(f"{BASE}/conversations/{group.id}/members/{carol.id}/")

        assert response.status_code == 204
        assert Membership.objects.get(conversation=group, user=carol).is_deleted is True


class TestMessageEndpoints:
    def test_send_returns_presented_message(self, client_for, alice, direct):
        """
        Why it matters: Clients reconcile optimistic rows with this payload.
        """
        response = client_for(alice).post(f"{BASE}/conversations/{direct.id}/messages/", {"body": "hi"}, format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["body"] == "hi"
        assert body["is_own"] is True
        assert body["status"] == "delivered"
        assert body["reactions"] == []
        assert body["reply_to"] is None

    def test_send_empty_body_is_rejected(self, client_for, alice, direct):
        response = client_for(alice).post(f"{BASE}/conversations/{direct.id}/messages/", {"body": "  "}, format="json")

        assert response.status_code == 400
        assert response.json()["error_code"] == "EMPTY_MESSAGE"

    def test_send_to_foreign_conversation_is_not_found(self, client_for, outsider, direct):
        response = client_for(outsider).post(
            f"{BASE}/conversations/{direct.id}/messages/", {"body": "hi"}, format="json"
        )

        assert response.status_code == 404

    def test_storage_failure_while_listing_is_upstream(self, client_for, alice, direct):
        """
        Why it matters: A storage outage is retryable and must not look like a bug.
        """
        MessageFactory(conversation=direct, sender=alice, body="", media_kind="image", media_ref="ref-1")
        outage = ExternalServiceError("Could not resolve the media URL", error_code="STORAGE_UNAVAILABLE")

        with patch("chat.services.UploadTargetService.resolve_url", side_effect=outage):
            response = client_for(alice).get(f"{BASE}/conversations/{direct.id}/messages/")

        assert response.status_code == 502
        assert response.json() == {"error": "Could not resolve the media URL", "error_code": "STORAGE_UNAVAILABLE"}

    def test_list_pages_with_cursor(self, client_for, alice, direct):
        for i in range(3):
            MessageService.send_text(alice, direct.id, f"m{i}")
        client = client_for(alice)

        first = client.get(f"{BASE}/conversations/{direct.id}/messages/", {"limit": 2}).json()
        second = client.get(
            f"{BASE}/conversations/{direct.id}/messages/",
            {"limit": 2, "before": first["oldest_created_at"]},
        ).json()

        assert [item["body"] for item in first["items"]] == ["m1", "m2"]
        assert first["has_more"] is True
        assert [item["body"] for item in second["items"]] == ["m0"]
        assert second["has_more"] is False

    def test_send_media(self, client_for, alice, group, uploaded_media):
        reference = uploaded_media(alice)

        response = client_for(alice).post(
            f"{BASE}/conversations/{group.id}/messages/media/",
            {"media_ref": reference, "media_kind": "image", "caption": "look"},
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["media_kind"] == "image"
        assert body["media_url"]

    def test_send_media_with_unknown_reference(self, client_for, alice, group):
        response = client_for(alice).post(
            f"{BASE}/conversations/{group.id}/messages/media/",
            {"media_ref": "not-a-reference", "media_kind": "image"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "UPLOAD_NOT_FOUND"

    def test_edit_and_history(self, client_for, alice, bob, direct):
        message = MessageService.send_text(alice, direct.id, "helo").data

        edited = client_for(alice).patch(f"{BASE}/messages/{message.id}/", {"body": "hello"}, format="json")
        history = client_for(bob).get(f"{BASE}/messages/{message.id}/edits/")

        assert edited.status_code == 200
        assert edited.json()["edit_count"] == 1
        assert [entry["previous_body"] for entry in history.json()] == ["helo"]

    def test_edit_someone_elses_message_is_forbidden(self, client_for, alice, bob, direct):
        message = MessageService.send_text(alice, direct.id, "mine").data

        response = client_for(bob).patch(f"{BASE}/messages/{message.id}/", {"body": "x"}, format="json")

        assert response.status_code == 403
        assert response.json()["error_code"] == "NOT_MESSAGE_SENDER"

    def test_delete_returns_tombstone(self, client_for, alice, direct):
        message = MessageService.send_text(alice, direct.id, "bye").data

        response = client_for(alice).delete(f"{BASE}/messages/{message.id}/")

        assert response.status_code == 200
        assert response.json()["is_deleted"] is True
        assert response.json()["body"] == MESSAGE_CONFIG.DELETED_PLACEHOLDER


class TestReactionAndStarEndpoints:
    def test_toggle_reaction(self, client_for, alice, bob, direct):
        message = MessageService.send_text(alice, direct.id, "yay").data

        response = client_for(bob).post(f"{BASE}/messages/{message.id}/reactions/toggle/", {"emoji": "🎉"}, format="json")

        assert response.status_code == 200
        assert response.json() == {"reacted": True}

    def test_invalid_reaction(self, client_for, alice, direct):
        message = MessageService.send_text(alice, direct.id, "yay").data

        response = client_for(alice).post(
            f"{BASE}/messages/{message.id}/reactions/toggle/", {"emoji": "🦄"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_REACTION"

    def test_star_and_list(self, client_for, alice, bob, direct):
        message = MessageService.send_text(alice, direct.id, "keep").data
        ReactionService.toggle_reaction(alice, message.id, "👍")
        client = client_for(bob)

        toggled = client.post(f"{BASE}/messages/{message.id}/star/toggle/")
        starred = client.get(f"{BASE}/conversations/{direct.id}/starred/")

        assert toggled.json() == {"starred": True}
        assert [row["id"] for row in starred.json()] == [message.id]
        assert starred.json()[0]["reactions"] == [{"emoji": "👍", "count": 1, "reacted_by_me": False}]


class TestSearchEndpoints:
    def test_search_in_conversation(self, client_for, alice, direct):
        MessageService.send_text(alice, direct.id, "Train at 9")
        MessageService.send_text(alice, direct.id, "bus at 10")

        response = client_for(alice).get(f"{BASE}/conversations/{direct.id}/messages/search/", {"q": "train"})

        assert response.status_code == 200
        assert [hit["body"] for hit in response.json()] == ["Train at 9"]

    def test_global_search_invalid_range(self, client_for, alice):
        response = client_for(alice).get(
            f"{BASE}/messages/search/", {"from_date": "2026-03-02", "to_date": "2026-03-01"}
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_DATE_RANGE"

    def test_global_search_malformed_date(self, client_for, alice):
        response = client_for(alice).get(f"{BASE}/messages/search/", {"from_date": "yesterday"})

        assert response.status_code == 400
        assert "from_date" in response.json()


class TestPresenceEndpoints:
    def test_typing_round_trip(self, client_for, alice, bob, direct):
        posted = client_for(alice).post(f"{BASE}/conversations/{direct.id}/typing/", {"is_typing": True}, format="json")
        listed = client_for(bob).get(f"{BASE}/conversations/{direct.id}/typing/")

        assert posted.json() == {"is_typing": True}
        assert listed.json() == [{"user_id": alice.id, "display_name": "Alice"}]

    def test_typing_in_foreign_conversation(self, client_for, outsider, direct):
        response = client_for(outsider).post(
            f"{BASE}/conversations/{direct.id}/typing/", {"is_typing": True}, format="json"
        )

        assert response.status_code == 404

    def test_heartbeat_and_online_list(self, client_for, alice, bob):
        beat = client_for(bob).post(f"{BASE}/presence/heartbeat/")
        online = client_for(alice).get(f"{BASE}/presence/online/")

        assert beat.status_code == 200
        assert online.json() == {"user_ids": [bob.id]}

    def test_user_presence_respects_visibility(self, client_for, alice, bob):
        PrivacySettingsFactory(user=bob, last_seen_visibility=LastSeenVisibility.NOBODY)
        PresenceService.heartbeat(bob)

        response = client_for(alice).get(f"{BASE}/presence/{bob.id}/")

        assert response.json() == {"user_id": bob.id, "is_online": False, "last_seen_at": None}

    def test_user_presence_unknown_user(self, client_for, alice):
        response = client_for(alice).get(f"{BASE}/presence/987654/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_directory_search(self, client_for, alice, bob, carol):
        response = client_for(alice).get(f"{BASE}/users/", {"search": "bo"})

        assert [row["display_name"] for row in response.json()] == ["Bob"]
