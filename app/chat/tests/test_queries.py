"""
Tests for backward pagination and message search.

Covers MessageQueryService.list_messages (cursor, limit clamping, tombstones,
cleared history) and the in-conversation and global search paths.
"""

from datetime import date, timedelta

from freezegun import freeze_time

from chat.constants import MESSAGE_CONFIG
from chat.services import (
    ConversationService,
    MessageQueryService,
    MessageSearchFilters,
    MessageService,
)
from core.services import FailureKind
from privacy.tests.factories import BlockFactory


def _send_many(user, conversation_id, count, prefix="m"):
    return [MessageService.send_text(user, conversation_id, f"{prefix}{i}").data for i in range(count)]


def _bodies(page):
    return [item["body"] for item in page["items"]]


class TestListMessages:
    """Tests for MessageQueryService.list_messages()."""

    def test_newest_page_oldest_first(self, alice, direct):
        """
        The first page holds the newest messages in chronological order.

        Why it matters: Clients render pages top to bottom without re-sorting.
        """
        _send_many(alice, direct.id, 5)

        page = MessageQueryService.list_messages(alice, direct.id, limit=3).data

        assert _bodies(page) == ["m2", "m3", "m4"]
        assert page["has_more"] is True
        assert page["oldest_created_at"] == page["items"][0]["created_at"]

    def test_cursor_walks_backwards_without_overlap(self, alice, direct):
        """
        Why it matters: Scrolling up must neither skip nor repeat messages.
        """
        with freeze_time("2026-03-01 09:00:00"):
            _send_many(alice, direct.id, 5)

        first = MessageQueryService.list_messages(alice, direct.id, limit=3).data
        second = MessageQueryService.list_messages(
            alice, direct.id, before=first["oldest_created_at"], limit=3
        ).data

        assert _bodies(second) == ["m0", "m1"]
        assert second["has_more"] is False

    def test_empty_conversation(self, alice, direct):
        page = MessageQueryService.list_messages(alice, direct.id).data

        assert page == {"items": [], "oldest_created_at": None, "has_more": False}

    def test_limit_is_clamped(self, alice, direct):
        """
        Why it matters: Out-of-range limits are corrected, not rejected.
        """
        _send_many(alice, direct.id, 3)

        assert len(MessageQueryService.list_messages(alice, direct.id, limit=0).data["items"]) == 1
        assert MessageQueryService.clamp_limit(10_000) == MESSAGE_CONFIG.PAGE_SIZE_MAX
        assert MessageQueryService.clamp_limit(None) == MESSAGE_CONFIG.PAGE_SIZE_DEFAULT

    def test_deleted_messages_stay_as_tombstones(self, alice, direct):
        """
        Why it matters: Deleting must not shift the page boundaries.
        """
        messages = _send_many(alice, direct.id, 3)
        MessageService.delete_message(alice, messages[1].id)

        page = MessageQueryService.list_messages(alice, direct.id).data

        assert _bodies(page) == ["m0", MESSAGE_CONFIG.DELETED_PLACEHOLDER, "m2"]
        assert page["items"][1]["is_deleted"] is True

    def test_cleared_history_is_not_returned(self, alice, bob, direct):
        _send_many(bob, direct.id, 2, prefix="before")
        ConversationService.delete_for_caller(alice, direct.id)
        MessageService.send_text(bob, direct.id, "after")

        page = MessageQueryService.list_messages(alice, direct.id).data

        assert _bodies(page) == ["after"]
        assert page["has_more"] is False

    def test_outsider_gets_not_found(self, outsider, direct):
        result = MessageQueryService.list_messages(outsider, direct.id)

        assert result.kind == FailureKind.NOT_FOUND


class TestSearchInConversation:
    """Tests for MessageQueryService.search_in_conversation()."""

    def test_text_is_case_insensitive_and_newest_first(self, alice, bob, direct):
        MessageService.send_text(alice, direct.id, "Dinner at 8?")
        MessageService.send_text(bob, direct.id, "sure")
        MessageService.send_text(bob, direct.id, "dinner was great")

        hits = MessageQueryService.search_in_conversation(
            alice, direct.id, MessageSearchFilters(text="DINNER")
        ).data

        assert [hit["body"] for hit in hits] == ["dinner was great", "Dinner at 8?"]
        assert hits[0]["conversation_title"] == "Bob"
        assert hits[0]["sender_name"] == "Bob"

    def test_deleted_messages_are_excluded(self, alice, direct):
        """
        Why it matters: Deleted text must not be findable.
        """
        message = MessageService.send_text(alice, direct.id, "secret plan").data
        MessageService.delete_message(alice, message.id)

        hits = MessageQueryService.search_in_conversation(alice, direct.id, MessageSearchFilters(text="plan")).data

        assert hits == []

    def test_filters_are_conjunctive(self, alice, bob, group, uploaded_media):
        """
        Why it matters: Combining filters narrows, never widens, the results.
        """
        MessageService.send_text(alice, group.id, "photo incoming")
        MessageService.send_media(alice, group.id, uploaded_media(alice), "image", caption="sunset photo")
        MessageService.send_media(bob, group.id, uploaded_media(bob), "image", caption="my photo")

        hits = MessageQueryService.search_in_conversation(
            alice, group.id, MessageSearchFilters(text="photo", media_kind="image", sender_id=alice.id)
        ).data

        assert [hit["body"] for hit in hits] == ["sunset photo"]
        assert hits[0]["media_kind"] == "image"

    def test_date_bounds_are_inclusive_whole_days(self, alice, direct):
        with freeze_time("2026-02-27 23:30:00"):
            MessageService.send_text(alice, direct.id, "too early")
        with freeze_time("2026-02-28 00:00:00"):
            MessageService.send_text(alice, direct.id, "first day")
        with freeze_time("2026-03-01 23:59:59"):
            MessageService.send_text(alice, direct.id, "last day")
        with freeze_time("2026-03-02 00:00:01"):
            MessageService.send_text(alice, direct.id, "too late")

        hits = MessageQueryService.search_in_conversation(
            alice,
            direct.id,
            MessageSearchFilters(from_date=date(2026, 2, 28), to_date=date(2026, 3, 1)),
        ).data

        assert [hit["body"] for hit in hits] == ["last day", "first day"]

    def test_inverted_date_range_is_rejected(self, alice, direct):
        result = MessageQueryService.search_in_conversation(
            alice,
            direct.id,
            MessageSearchFilters(from_date=date(2026, 3, 2), to_date=date(2026, 3, 1)),
        )

        assert result.error_code == "INVALID_DATE_RANGE"

    def test_unknown_media_kind_is_rejected(self, alice, direct):
        result = MessageQueryService.search_in_conversation(alice, direct.id, MessageSearchFilters(media_kind="pdf"))

        assert result.error_code == "INVALID_MEDIA_KIND"

    def test_outsider_gets_not_found(self, outsider, group):
        result = MessageQueryService.search_in_conversation(outsider, group.id, MessageSearchFilters(text="x"))

        assert result.error_code == "CONVERSATION_NOT_FOUND"


class TestSearchGlobal:
    """Tests for MessageQueryService.search_global()."""

    def test_spans_visible_conversations_with_titles(self, alice, bob, direct, group):
        """
        Why it matters: Global search is how users find old messages anywhere.
        """
        MessageService.send_text(bob, direct.id, "lunch tomorrow?")
        MessageService.send_text(alice, group.id, "lunch spot ideas")

        hits = MessageQueryService.search_global(alice, MessageSearchFilters(text="lunch")).data

        assert {(hit["conversation_id"], hit["conversation_title"]) for hit in hits} == {
            (direct.id, "Bob"),
            (group.id, "Weekend"),
        }

    def test_skips_hidden_and_blocked_conversations(self, alice, bob, carol, direct, group):
        """
        Why it matters: Search must respect the same visibility as the inbox.
        """
        MessageService.send_text(bob, direct.id, "keyword in direct")
        MessageService.send_text(carol, group.id, "keyword in group")
        ConversationService.delete_for_caller(alice, group.id)
        BlockFactory(blocker=alice, blocked=bob)

        hits = MessageQueryService.search_global(alice, MessageSearchFilters(text="keyword")).data

        assert hits == []

    def test_respects_cleared_history(self, alice, bob, direct):
        MessageService.send_text(bob, direct.id, "needle old")
        ConversationService.delete_for_caller(alice, direct.id)
        MessageService.send_text(bob, direct.id, "needle new")

        hits = MessageQueryService.search_global(alice, MessageSearchFilters(text="needle")).data

        assert [hit["body"] for hit in hits] == ["needle new"]

    def test_no_conversations(self, outsider):
        assert MessageQueryService.search_global(outsider, MessageSearchFilters(text="x")).data == []

    def test_results_are_capped(self, alice, direct):
        with freeze_time("2026-03-01 10:00:00") as frozen:
            for i in range(MESSAGE_CONFIG.SEARCH_MAX_RESULTS + 5):
                MessageService.send_text(alice, direct.id, f"spam {i}")
                frozen.tick(timedelta(seconds=1))

        hits = MessageQueryService.search_global(alice, MessageSearchFilters(text="spam")).data

        assert len(hits) == MESSAGE_CONFIG.SEARCH_MAX_RESULTS
        assert hits[0]["body"] == f"spam {MESSAGE_CONFIG.SEARCH_MAX_RESULTS + 4}"
