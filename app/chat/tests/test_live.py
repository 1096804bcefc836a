"""
Tests for the live query registry, change notifications and token parsing.
"""

from unittest.mock import patch

from core.exceptions import ExternalServiceError

from chat.broadcast import PRESENCE_GROUP, conversation_group, user_group
from chat.live import QUERIES, get_query
from chat.middleware import token_from_query, token_from_subprotocol
from chat.services import MessageService, ReactionService, StarService
from chat.tests.factories import MessageFactory
from privacy.tests.factories import BlockFactory


class TestLiveQueries:
    def test_registry_names(self):
        assert set(QUERIES) == {"conversations", "conversation", "messages", "typing", "members", "starred", "users"}
        assert get_query("nope") is None

    def test_evaluate_wraps_success(self, alice, direct):
        MessageService.send_text(alice, direct.id, "hello")

        payload = get_query("messages").evaluate(alice, {"conversation_id": direct.id})

        assert payload["success"] is True
        assert [item["body"] for item in payload["data"]["items"]] == ["hello"]

    def test_evaluate_wraps_failure(self, outsider, direct):
        payload = get_query("conversation").evaluate(outsider, {"conversation_id": direct.id})

        assert payload["success"] is False
        assert payload["error_code"] == "CONVERSATION_NOT_FOUND"

    def test_missing_params(self, alice):
        """
        Why it matters: A malformed subscription is answered, not crashed on.
        """
        query = get_query("messages")

        assert query.evaluate(alice, {})["error_code"] == "INVALID_PARAMS"
        assert query.groups(alice, {"conversation_id": "abc"}) == set()

    def test_malformed_limit(self, alice, direct):
        payload = get_query("messages").evaluate(alice, {"conversation_id": direct.id, "limit": "abc"})

        assert payload["success"] is False
        assert payload["error_code"] == "INVALID_PARAMS"
        assert payload["error"] == "limit must be a whole number"

    def test_storage_outage_is_reported_to_the_subscriber(self, alice, direct):
        """
        Why it matters: One failed evaluation must not drop the socket.
        """
        MessageFactory(conversation=direct, sender=alice, body="", media_kind="audio", media_ref="ref-1")
        outage = ExternalServiceError("Could not resolve the media URL", error_code="STORAGE_UNAVAILABLE")

        with patch("chat.services.UploadTargetService.resolve_url", side_effect=outage):
            payload = get_query("messages").evaluate(alice, {"conversation_id": direct.id})

        assert payload == {
            "success": False,
            "error": "Could not resolve the media URL",
            "error_code": "STORAGE_UNAVAILABLE",
        }

    def test_numeric_string_limit(self, alice, direct):
        MessageService.send_text(alice, direct.id, "one")
        MessageService.send_text(alice, direct.id, "two")

        payload = get_query("messages").evaluate(alice, {"conversation_id": direct.id, "limit": "1"})

        assert [item["body"] for item in payload["data"]["items"]] == ["two"]
        assert payload["data"]["has_more"] is True

    def test_dependency_groups(self, alice, direct):
        params = {"conversation_id": direct.id}

        assert get_query("conversations").groups(alice, {}) == {user_group(alice.id)}
        assert get_query("messages").groups(alice, params) == {conversation_group(direct.id), user_group(alice.id)}
        assert get_query("typing").groups(alice, params) == {conversation_group(direct.id)}
        assert PRESENCE_GROUP in get_query("members").groups(alice, params)
        assert get_query("users").groups(alice, {}) == {user_group(alice.id), PRESENCE_GROUP}


class TestChangeNotifications:
    """Committed writes notify the groups whose live queries they affect."""

    def _sent_groups(self, mock_send):
        groups = set()
        for call in mock_send.call_args_list:
            groups.update(call.args[0])
        return groups

    def test_message_notifies_conversation_and_members(
        self, alice, bob, direct, django_capture_on_commit_callbacks
    ):
        with patch("chat.broadcast._send") as mock_send:
            with django_capture_on_commit_callbacks(execute=True):
                MessageService.send_text(alice, direct.id, "hi")

        assert {conversation_group(direct.id), user_group(alice.id), user_group(bob.id)} <= self._sent_groups(
            mock_send
        )

    def test_reaction_notifies_conversation(self, alice, bob, direct, django_capture_on_commit_callbacks):
        message = MessageService.send_text(alice, direct.id, "hi").data

        with patch("chat.broadcast._send") as mock_send:
            with django_capture_on_commit_callbacks(execute=True):
                ReactionService.toggle_reaction(bob, message.id, "🔥")

        assert conversation_group(direct.id) in self._sent_groups(mock_send)

    def test_star_notifies_only_the_starring_user(self, alice, bob, direct, django_capture_on_commit_callbacks):
        """
        Why it matters: Stars are private and must not wake other members.
        """
        message = MessageService.send_text(alice, direct.id, "hi").data

        with patch("chat.broadcast._send") as mock_send:
            with django_capture_on_commit_callbacks(execute=True):
                StarService.toggle_star(bob, message.id)

        assert self._sent_groups(mock_send) == {user_group(bob.id)}

    def test_block_notifies_both_users(self, alice, bob, django_capture_on_commit_callbacks):
        with patch("chat.broadcast._send") as mock_send:
            with django_capture_on_commit_callbacks(execute=True):
                BlockFactory(blocker=alice, blocked=bob)

        assert self._sent_groups(mock_send) == {user_group(alice.id), user_group(bob.id)}

    def test_nothing_sent_before_commit(self, alice, direct, django_capture_on_commit_callbacks):
        with patch("chat.broadcast._send") as mock_send:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                MessageService.send_text(alice, direct.id, "pending")

        assert callbacks
        mock_send.assert_not_called()


class TestTokenExtraction:
    def test_query_string(self):
        assert token_from_query({"query_string": b"token=abc&x=1"}) == "abc"
        assert token_from_query({"query_string": b""}) is None

    def test_subprotocol_pair(self):
        assert token_from_subprotocol({"subprotocols": ["jwt", "abc"]}) == "abc"
        assert token_from_subprotocol({"subprotocols": ["abc"]}) is None
        assert token_from_subprotocol({}) is None
