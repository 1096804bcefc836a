"""
Tests for privacy services.
"""

from core.services import FailureKind
from privacy.models import Block, PrivacySettings
from privacy.services import BlockService, PrivacyService, SecurityService
from privacy.tests.factories import BlockFactory, PrivacySettingsFactory


class TestPrivacyServiceSettings:
    """Tests for get_settings() and update_settings()."""

    def test_missing_row_returns_defaults_without_saving(self, alice):
        """
        Settings are materialized lazily.

        Why it matters: Reads must not create rows for every user.
        """
        settings_row = PrivacyService.get_settings(alice)

        assert settings_row.read_receipts_enabled is True
        assert settings_row.last_seen_visibility == "everyone"
        assert settings_row.who_can_message == "everyone"
        assert PrivacySettings.objects.count() == 0

    def test_update_materializes_row(self, alice):
        """
        The first update creates the row.

        Why it matters: updatePrivacySettings works for users with no row.
        """
        result = PrivacyService.update_settings(alice, read_receipts_enabled=False)

        assert result.success is True
        assert PrivacySettings.objects.get(user=alice).read_receipts_enabled is False

    def test_update_keeps_untouched_fields(self, alice):
        """
        Partial updates only change the named fields.

        Why it matters: Toggling one switch must not reset the others.
        """
        PrivacySettingsFactory(user=alice, who_can_message="nobody")

        PrivacyService.update_settings(alice, last_seen_visibility="nobody")

        row = PrivacySettings.objects.get(user=alice)
        assert row.who_can_message == "nobody"
        assert row.last_seen_visibility == "nobody"

    def test_invalid_enum_value_is_rejected(self, alice):
        """
        Unknown visibility values fail validation.

        Why it matters: Only the known policies can be enforced.
        """
        result = PrivacyService.update_settings(alice, who_can_message="friends")

        assert result.success is False
        assert result.kind == FailureKind.VALIDATION
        assert "who_can_message" in result.errors
        assert PrivacySettings.objects.count() == 0

    def test_unknown_field_is_rejected(self, alice):
        """
        Unknown setting names fail validation.

        Why it matters: Typos must not be silently ignored.
        """
        result = PrivacyService.update_settings(alice, colour="blue")

        assert result.success is False
        assert result.errors == {"colour": ["Unknown setting."]}


class TestPrivacyServiceCanMessage:
    """Tests for can_message()."""

    def test_defaults_allow_messaging(self, alice, bob):
        """
        Users with default settings can message each other.

        Why it matters: Default is open messaging.
        """
        assert PrivacyService.can_message(alice, bob) is True

    def test_recipient_opt_out_blocks(self, alice, bob):
        """
        A recipient with who_can_message=nobody cannot be messaged.

        Why it matters: Users control who reaches them.
        """
        PrivacySettingsFactory(user=bob, who_can_message="nobody")

        assert PrivacyService.can_message(alice, bob) is False

    def test_sender_opt_out_blocks_too(self, alice, bob):
        """
        A sender who opted out cannot message others either.

        Why it matters: Permission is checked for both sides.
        """
        PrivacySettingsFactory(user=alice, who_can_message="nobody")

        assert PrivacyService.can_message(alice, bob) is False


class TestSecurityService:
    """Tests for SecurityService."""

    def test_update_e2ee_flag(self, alice):
        """
        The e2ee flag is stored as a plain preference.

        Why it matters: It is a scaffold for a future protocol.
        """
        assert SecurityService.get_settings(alice).e2ee_enabled is False

        result = SecurityService.update_settings(alice, e2ee_enabled=True)

        assert result.success is True
        assert SecurityService.get_settings(alice).e2ee_enabled is True
        assert SecurityService.get_settings(alice).suspicious_login_alerts is True

    def test_non_boolean_is_rejected(self, alice):
        """
        Flags must be booleans.

        Why it matters: Stringly-typed flags would always be truthy.
        """
        result = SecurityService.update_settings(alice, e2ee_enabled="yes")

        assert result.success is False


class TestBlockService:
    """Tests for the block ledger."""

    def test_block_is_symmetric_in_effect(self, alice, bob):
        """
        isBlocked(A, B) == isBlocked(B, A) whoever issued the block.

        Why it matters: Both parties must lose visibility.
        """
        BlockFactory(blocker=alice, blocked=bob)

        assert BlockService.is_blocked_between(alice, bob) is True
        assert BlockService.is_blocked_between(bob, alice) is True
        assert BlockService.is_blocked_between(bob.id, alice.id) is True

    def test_toggle_inserts_then_deletes_edge(self, alice, bob):
        """
        Toggling twice returns to the unblocked state.

        Why it matters: Unblocking must resurface the conversation.
        """
        first = BlockService.toggle_block(alice, bob.id)
        second = BlockService.toggle_block(alice, bob.id)

        assert first.data == {"blocked": True}
        assert second.data == {"blocked": False}
        assert Block.objects.count() == 0

    def test_toggle_from_blocked_side_adds_own_edge(self, alice, bob):
        """
        The blocked user toggling creates their own directed edge.

        Why it matters: Storage is directional; only the blocker can undo it.
        """
        BlockService.toggle_block(alice, bob.id)
        BlockService.toggle_block(bob, alice.id)

        assert Block.objects.count() == 2
        BlockService.toggle_block(alice, bob.id)
        assert BlockService.is_blocked_between(alice, bob) is True

    def test_self_block_is_validation_error(self, alice):
        """
        Users cannot block themselves.

        Why it matters: A self-edge would hide the user's own chats.
        """
        result = BlockService.toggle_block(alice, alice.id)

        assert result.success is False
        assert result.kind == FailureKind.VALIDATION
        assert result.error_code == "CANNOT_BLOCK_SELF"

    def test_unknown_target_is_not_found(self, alice):
        """
        Unknown targets are NotFound.

        Why it matters: Consistent with the rest of the visibility rules.
        """
        result = BlockService.toggle_block(alice, 999999)

        assert result.kind == FailureKind.NOT_FOUND

    def test_list_blocked_only_includes_own_edges(self, alice, bob, db):
        """
        The list shows who I blocked, not who blocked me.

        Why it matters: Users must not learn who blocked them.
        """
        BlockFactory(blocker=alice, blocked=bob)
        BlockFactory(blocker=bob, blocked=alice)

        listed = BlockService.list_blocked(alice)

        assert [row["id"] for row in listed] == [bob.id]
        assert listed[0]["display_name"] == "Bob"

    def test_blocked_ids_for_covers_both_directions(self, alice, bob, db):
        """
        blocked_ids_for() returns users on either side of an edge.

        Why it matters: Listings hide blocked counterparts both ways.
        """
        BlockFactory(blocker=bob, blocked=alice)

        assert BlockService.blocked_ids_for(alice) == {bob.id}
        assert BlockService.blocked_by_ids(alice) == set()
