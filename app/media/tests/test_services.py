"""
Tests for UploadTargetService.

Tests cover:
- Allocation (local and presigned S3 targets, pre-flight validation)
- Byte receipt for the local backend
- Single-use consumption by media messages
- URL resolution and expiry of unused targets
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.exceptions import ExternalServiceError
from core.services import FailureKind
from media.constants import UPLOAD_CONFIG
from media.models import UploadTarget, UploadTargetStatus
from media.services import UploadTargetService
from media.tasks import cleanup_expired_upload_targets
from media.tests.factories import UploadTargetFactory


@pytest.fixture
def uploaded_target(user, png_bytes):
    """A target that has received its bytes but was never sent."""
    reference = UploadTargetService.allocate(user, "image/png").data["reference"]
    return UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png").data


class TestAllocate:
    """Tests for UploadTargetService.allocate()."""

    def test_local_storage_returns_our_put_endpoint(self, user):
        """
        Local storage targets point at the byte endpoint.

        Why it matters: Without S3 the client must upload through the API.
        """
        result = UploadTargetService.allocate(user, "image/jpeg")

        assert result.success is True
        reference = result.data["reference"]
        assert result.data["direct"] is False
        assert result.data["method"] == "PUT"
        assert result.data["upload_url"] == f"/api/v1/media/upload-targets/{reference}/"
        target = UploadTarget.objects.get(pk=reference)
        assert target.uploader == user
        assert target.status == UploadTargetStatus.PENDING

    def test_unsupported_type_is_rejected(self, user):
        """
        Only image, video and audio are accepted.

        Why it matters: Chat media is limited to those three kinds.
        """
        result = UploadTargetService.allocate(user, "application/pdf")

        assert result.success is False
        assert result.error == "Only image, video, and audio files are supported."
        assert result.kind == FailureKind.VALIDATION
        assert UploadTarget.objects.count() == 0

    def test_declared_size_above_ceiling_is_rejected(self, user):
        """
        A declared size over the per-kind ceiling fails up front.

        Why it matters: Oversized uploads are refused before any bytes move.
        """
        result = UploadTargetService.allocate(user, "video/mp4", size=21 * 1024 * 1024)

        assert result.success is False
        assert result.error == "Video is too large. Max size is 20MB."

    def test_s3_storage_returns_presigned_url(self, user):
        """
        S3 targets are presigned PUT URLs.

        Why it matters: With S3 the bytes go straight to the bucket.
        """
        s3_client = MagicMock()
        s3_client.generate_presigned_url.return_value = "https://bucket.example/upload?sig=1"
        storage = MagicMock(bucket_name="chat-bucket")

        with (
            patch.object(UploadTargetService, "is_s3_storage", return_value=True),
            patch.object(UploadTargetService, "_s3_client", return_value=s3_client),
            patch("media.services.default_storage", storage),
        ):
            result = UploadTargetService.allocate(user, "audio/mpeg")

        assert result.success is True
        assert result.data["direct"] is True
        assert result.data["upload_url"] == "https://bucket.example/upload?sig=1"
        params = s3_client.generate_presigned_url.call_args.kwargs["Params"]
        assert params["Bucket"] == "chat-bucket"
        assert params["ContentType"] == "audio/mpeg"

    def test_presign_failure_is_upstream(self, user):
        """
        Storage failures surface as UPSTREAM.

        Why it matters: Clients retry upstream failures instead of giving up.
        """
        s3_client = MagicMock()
        s3_client.generate_presigned_url.side_effect = RuntimeError("no credentials")

        with (
            patch.object(UploadTargetService, "is_s3_storage", return_value=True),
            patch.object(UploadTargetService, "_s3_client", return_value=s3_client),
            patch("media.services.default_storage", MagicMock(bucket_name="chat-bucket")),
        ):
            result = UploadTargetService.allocate(user, "image/png")

        assert result.success is False
        assert result.kind == FailureKind.UPSTREAM
        assert result.http_status == 502
        assert result.error_code == "STORAGE_UNAVAILABLE"
        assert UploadTarget.objects.count() == 0


class TestReceiveBytes:
    """Tests for UploadTargetService.receive_bytes()."""

    def test_bytes_are_stored_and_target_marked_uploaded(self, user, png_bytes, media_root):
        """
        Received bytes land in storage.

        Why it matters: A media message can only reference stored bytes.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        result = UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        assert result.success is True
        target = UploadTarget.objects.get(pk=reference)
        assert target.status == UploadTargetStatus.UPLOADED
        assert target.size == len(png_bytes)
        assert target.uploaded_at is not None
        assert (media_root / target.storage_key).read_bytes() == png_bytes

    def test_storage_failure_leaves_target_pending(self, user, png_bytes):
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]
        storage = MagicMock()
        storage.save.side_effect = OSError("disk full")

        with patch("media.services.default_storage", storage):
            result = UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        assert result.kind == FailureKind.UPSTREAM
        assert result.error_code == "STORAGE_UNAVAILABLE"
        assert UploadTarget.objects.get(pk=reference).status == UploadTargetStatus.PENDING

    def test_other_users_target_is_not_found(self, user, other_user, png_bytes):
        """
        Only the uploader may write to a target.

        Why it matters: References must not be hijacked by other users.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        result = UploadTargetService.receive_bytes(other_user, reference, png_bytes, "image/png")

        assert result.kind == FailureKind.NOT_FOUND

    def test_expired_target_rejects_bytes(self, user, png_bytes):
        """
        Targets stop accepting bytes after their deadline.

        Why it matters: Write URLs are short-lived by contract.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        with freeze_time(timezone.now() + timedelta(minutes=16)):
            result = UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        assert result.error_code == "UPLOAD_EXPIRED"

    def test_empty_body_is_rejected(self, user):
        """
        Why it matters: An empty file is never a valid media message.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        result = UploadTargetService.receive_bytes(user, reference, b"", "image/png")

        assert result.error_code == "EMPTY_UPLOAD"

    def test_kind_must_match_allocation(self, user, png_bytes):
        """
        Bytes of another media kind are refused.

        Why it matters: The allocated kind drives size limits and rendering.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        result = UploadTargetService.receive_bytes(user, reference, png_bytes, "audio/mpeg")

        assert result.error_code == "MEDIA_KIND_MISMATCH"

    def test_received_bytes_above_ceiling_are_rejected(self, user, png_bytes):
        """
        The actual byte count is checked, not only the declared size.

        Why it matters: A client can under-declare and then send a larger body.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]

        with patch.dict(UPLOAD_CONFIG.MAX_BYTES, {"image": 32}):
            result = UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        assert result.success is False
        assert result.error_code == "FILE_TOO_LARGE"
        assert UploadTarget.objects.get(pk=reference).status == UploadTargetStatus.PENDING

    def test_target_accepts_bytes_once(self, user, png_bytes):
        """
        Targets are single-use.

        Why it matters: A reference must always point at the same bytes.
        """
        reference = UploadTargetService.allocate(user, "image/png").data["reference"]
        UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        result = UploadTargetService.receive_bytes(user, reference, png_bytes, "image/png")

        assert result.error_code == "UPLOAD_ALREADY_USED"


class TestConsume:
    """Tests for UploadTargetService.consume()."""

    def test_uploaded_target_is_consumed(self, user, uploaded_target):
        """
        Why it matters: Consumption is what ties bytes to exactly one message.
        """
        result = UploadTargetService.consume(user, str(uploaded_target.id), "image")

        assert result.success is True
        target = UploadTarget.objects.get(pk=uploaded_target.id)
        assert target.status == UploadTargetStatus.CONSUMED
        assert target.consumed_at is not None

    def test_second_consume_is_rejected(self, user, uploaded_target):
        """
        Why it matters: One upload can back only one media message.
        """
        UploadTargetService.consume(user, str(uploaded_target.id), "image")

        result = UploadTargetService.consume(user, str(uploaded_target.id), "image")

        assert result.error_code == "UPLOAD_ALREADY_USED"
        assert result.kind == FailureKind.VALIDATION

    def test_pending_target_is_not_ready(self, user):
        """
        Why it matters: A message cannot reference bytes that never arrived.
        """
        target = UploadTargetFactory(uploader=user)

        result = UploadTargetService.consume(user, str(target.id), "image")

        assert result.error_code == "UPLOAD_NOT_READY"

    def test_kind_mismatch_is_rejected(self, user, uploaded_target):
        """
        Why it matters: A photo must not be sent as a voice message.
        """
        result = UploadTargetService.consume(user, str(uploaded_target.id), "audio")

        assert result.error_code == "MEDIA_KIND_MISMATCH"

    def test_stored_size_above_ceiling_is_rejected(self, user):
        """
        Why it matters: Presigned uploads report their size only after the fact.
        """
        target = UploadTargetFactory(uploader=user, status=UploadTargetStatus.UPLOADED, size=11 * 1024 * 1024)

        result = UploadTargetService.consume(user, str(target.id), "image")

        assert result.error_code == "FILE_TOO_LARGE"
        target.refresh_from_db()
        assert target.status == UploadTargetStatus.UPLOADED

    def test_other_users_reference_is_unknown(self, other_user, uploaded_target):
        """
        Why it matters: Users cannot send media uploaded by someone else.
        """
        result = UploadTargetService.consume(other_user, str(uploaded_target.id), "image")

        assert result.error_code == "UPLOAD_NOT_FOUND"
        assert result.kind == FailureKind.VALIDATION

    def test_malformed_reference_is_unknown(self, user):
        """
        Why it matters: Garbage references fail validation instead of crashing.
        """
        result = UploadTargetService.consume(user, "not-a-reference", "image")

        assert result.error_code == "UPLOAD_NOT_FOUND"

    def test_expired_target_cannot_be_consumed(self, user, uploaded_target):
        """
        Why it matters: Expired bytes may already be gone from storage.
        """
        with freeze_time(timezone.now() + timedelta(minutes=16)):
            result = UploadTargetService.consume(user, str(uploaded_target.id), "image")

        assert result.error_code == "UPLOAD_EXPIRED"


class TestResolveUrl:
    """Tests for UploadTargetService.resolve_url()."""

    def test_consumed_target_resolves_to_storage_url(self, user, uploaded_target):
        """
        Why it matters: Message rendering needs a fetchable URL for the media.
        """
        UploadTargetService.consume(user, str(uploaded_target.id), "image")

        url = UploadTargetService.resolve_url(str(uploaded_target.id))

        assert url.endswith(uploaded_target.storage_key)

    def test_unconsumed_or_unknown_reference_has_no_url(self, uploaded_target):
        """
        Why it matters: Unsent uploads are not publicly addressable.
        """
        assert UploadTargetService.resolve_url(str(uploaded_target.id)) is None
        assert UploadTargetService.resolve_url("nope") is None

    def test_storage_failure_raises_upstream_error(self, user, uploaded_target):
        """
        Why it matters: Rendering must report an outage, not a missing file.
        """
        UploadTargetService.consume(user, str(uploaded_target.id), "image")
        storage = MagicMock()
        storage.url.side_effect = RuntimeError("endpoint unreachable")

        with patch("media.services.default_storage", storage), pytest.raises(ExternalServiceError) as exc_info:
            UploadTargetService.resolve_url(str(uploaded_target.id))

        assert exc_info.value.error_code == "STORAGE_UNAVAILABLE"
        assert exc_info.value.status_code == 502


class TestCleanupExpiredUploadTargets:
    """Tests for the cleanup_expired_upload_targets task."""

    def test_unused_targets_past_deadline_are_expired(self, user, uploaded_target, media_root):
        """
        Stale pending and uploaded targets expire; their bytes are deleted.

        Why it matters: Abandoned uploads must not accumulate in storage.
        """
        pending = UploadTargetFactory(uploader=user)
        stored_path = media_root / uploaded_target.storage_key
        assert stored_path.exists()

        with freeze_time(timezone.now() + timedelta(minutes=16)):
            result = cleanup_expired_upload_targets()

        assert result == {"expired": 2, "errors": 0}
        assert UploadTarget.objects.get(pk=pending.pk).status == UploadTargetStatus.EXPIRED
        assert UploadTarget.objects.get(pk=uploaded_target.pk).status == UploadTargetStatus.EXPIRED
        assert not stored_path.exists()

    def test_consumed_and_fresh_targets_are_untouched(self, user, uploaded_target):
        """
        Why it matters: Sent media must never disappear.
        """
        UploadTargetService.consume(user, str(uploaded_target.id), "image")
        fresh = UploadTargetFactory(uploader=user)

        with freeze_time(timezone.now() + timedelta(minutes=16)):
            consumed_result = cleanup_expired_upload_targets()

        assert consumed_result["expired"] == 1  # only the fresh one has passed its deadline
        assert UploadTarget.objects.get(pk=uploaded_target.pk).status == UploadTargetStatus.CONSUMED
        assert UploadTarget.objects.get(pk=fresh.pk).status == UploadTargetStatus.EXPIRED
