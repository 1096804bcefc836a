"""
Upload target service.

Clients never send media bytes through the message endpoints. Instead:
    1. allocate() hands out a single-use write URL plus an opaque reference
    2. the client PUTs the bytes to that URL (our endpoint for local
       storage, a presigned S3 URL otherwise)
    3. the media message is committed with the reference; consume()
       claims the target inside the send transaction

Storage is whatever default_storage is configured; S3 is detected the same
way everywhere in the project (the storage has a ``bucket`` attribute).

Error codes (all VALIDATION unless noted):
    UNSUPPORTED_MEDIA_TYPE: Not image, video or audio
    FILE_TOO_LARGE: Above the per-kind ceiling
    UPLOAD_NOT_FOUND: Unknown reference, or not the caller's (NOT_FOUND from
        the byte endpoint, VALIDATION when consuming)
    UPLOAD_EXPIRED / UPLOAD_NOT_READY / UPLOAD_ALREADY_USED
    MEDIA_KIND_MISMATCH: Bytes do not match the declared kind
    STORAGE_UNAVAILABLE: Storage backend failure (UPSTREAM)
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.urls import reverse
from django.utils import timezone

from core.exceptions import ExternalServiceError
from core.services import BaseService, ServiceResult
from media.constants import UPLOAD_CONFIG, media_kind_for
from media.models import UploadTarget, UploadTargetStatus

if TYPE_CHECKING:
    from authentication.models import User


UNSUPPORTED_MEDIA_MESSAGE = "Only image, video, and audio files are supported."


def _parse_reference(reference) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(reference))
    except (TypeError, ValueError):
        return None


class UploadTargetService(BaseService):
    """
    Allocate, fill, claim and clean up upload targets.

    Usage:
        result = UploadTargetService.allocate(user, "image/png")
        result.data  # {"reference": "...", "upload_url": "...", "method": "PUT", ...}
    """

    @classmethod
    def is_s3_storage(cls) -> bool:
        return hasattr(default_storage, "bucket")

    @classmethod
    def _s3_client(cls):
        import boto3

        return boto3.client("s3", region_name=settings.AWS_S3_REGION_NAME or None)

    @classmethod
    def _presign(cls, target: UploadTarget) -> str:
        try:
            return cls._s3_client().generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": default_storage.bucket_name,
                    "Key": target.storage_key,
                    "ContentType": target.content_type,
                },
                ExpiresIn=UPLOAD_CONFIG.TARGET_TTL_SECONDS,
            )
        except Exception as e:
            raise ExternalServiceError("Could not prepare the upload", error_code="STORAGE_UNAVAILABLE") from e

    @classmethod
    def _store(cls, target: UploadTarget, content: bytes) -> str:
        try:
            return default_storage.save(target.storage_key, ContentFile(content))
        except Exception as e:
            raise ExternalServiceError("Could not store the upload", error_code="STORAGE_UNAVAILABLE") from e

    @classmethod
    def _check_size(cls, kind: str, size: int) -> ServiceResult | None:
        limit = UPLOAD_CONFIG.MAX_BYTES[kind]
        if size > limit:
            return ServiceResult.failure(
                f"{kind.capitalize()} is too large. Max size is {limit // (1024 * 1024)}MB.",
                error_code="FILE_TOO_LARGE",
            )
        return None

    @classmethod
    def allocate(cls, user: User, content_type: str, size: int | None = None) -> ServiceResult[dict]:
        """
        Allocate a single-use upload target.

        Args:
            user: Uploader; only they can write to or consume the target
            content_type: MIME type the client is about to upload
            size: Optional declared size, checked against the kind's ceiling

        Returns:
            ServiceResult with reference, upload_url, method, direct and
            expires_at. upload_url is a path for local storage (the view
            makes it absolute) and a presigned URL for S3.
        """
        kind = media_kind_for(content_type)
        if kind is None:
            return ServiceResult.failure(UNSUPPORTED_MEDIA_MESSAGE, error_code="UNSUPPORTED_MEDIA_TYPE")

        if size is not None:
            too_large = cls._check_size(kind, size)
            if too_large is not None:
                return too_large

        target_id = uuid.uuid4()
        target = UploadTarget(
            id=target_id,
            uploader=user,
            storage_key=f"{UPLOAD_CONFIG.STORAGE_PREFIX}/{user.pk}/{target_id}",
            content_type=content_type,
            expires_at=timezone.now() + timedelta(seconds=UPLOAD_CONFIG.TARGET_TTL_SECONDS),
        )

        if cls.is_s3_storage():
            try:
                upload_url = cls._presign(target)
            except ExternalServiceError as e:
                return cls.handle_exception(e, f"Presigning upload for user {user.id}")
            direct = True
        else:
            upload_url = reverse("media:upload-target-bytes", kwargs={"target_id": target_id})
            direct = False

        target.save()
        cls.get_logger().info(f"Allocated upload target {target.id} ({kind}) for user {user.id}")

        return ServiceResult.success(
            {
                "reference": str(target.id),
                "upload_url": upload_url,
                "method": "PUT",
                "direct": direct,
                "expires_at": target.expires_at,
            }
        )

    @classmethod
    def receive_bytes(
        cls,
        user: User,
        target_id,
        content: bytes,
        content_type: str | None,
    ) -> ServiceResult[UploadTarget]:
        """Store the bytes for a pending target (local storage backend)."""
        with cls.atomic():
            target = UploadTarget.objects.select_for_update().filter(pk=target_id, uploader=user).first()
            if target is None:
                return ServiceResult.not_found("Upload target not found", error_code="UPLOAD_NOT_FOUND")

            if target.status != UploadTargetStatus.PENDING:
                return ServiceResult.failure("Upload target was already used", error_code="UPLOAD_ALREADY_USED")
            if target.is_expired:
                return ServiceResult.failure("Upload target has expired", error_code="UPLOAD_EXPIRED")
            if not content:
                return ServiceResult.failure("No file data provided", error_code="EMPTY_UPLOAD")

            actual_type = content_type or target.content_type
            kind = media_kind_for(actual_type)
            if kind is None:
                return ServiceResult.failure(UNSUPPORTED_MEDIA_MESSAGE, error_code="UNSUPPORTED_MEDIA_TYPE")
            if kind != media_kind_for(target.content_type):
                return ServiceResult.failure(
                    "Uploaded file does not match the allocated media type",
                    error_code="MEDIA_KIND_MISMATCH",
                )
            too_large = cls._check_size(kind, len(content))
            if too_large is not None:
                return too_large

            try:
                target.storage_key = cls._store(target, content)
            except ExternalServiceError as e:
                return cls.handle_exception(e, f"Storing upload target {target.id}")

            target.mark_uploaded(actual_type, len(content))
            target.save()

        cls.get_logger().info(f"Received {target.size} bytes for upload target {target.id}")
        return ServiceResult.success(target)

    @classmethod
    def _sync_direct_upload(cls, target: UploadTarget) -> None:
        """Notice bytes that were PUT straight to S3."""
        if target.status != UploadTargetStatus.PENDING:
            return
        try:
            if not default_storage.exists(target.storage_key):
                return
            size = default_storage.size(target.storage_key)
        except Exception as e:
            raise ExternalServiceError("Could not check the upload", error_code="STORAGE_UNAVAILABLE") from e
        target.mark_uploaded(target.content_type, size)
        target.save()

    @classmethod
    def consume(cls, user: User, reference, media_kind: str) -> ServiceResult[UploadTarget]:
        """
        Claim an uploaded target for a media message.

        Must run inside the caller's transaction so a failed send releases
        the claim.
        """
        target_id = _parse_reference(reference)
        target = None
        if target_id is not None:
            target = UploadTarget.objects.select_for_update().filter(pk=target_id, uploader=user).first()
        if target is None:
            return ServiceResult.failure("Unknown media reference", error_code="UPLOAD_NOT_FOUND")

        if target.status == UploadTargetStatus.CONSUMED:
            return ServiceResult.failure("Media was already sent", error_code="UPLOAD_ALREADY_USED")
        if target.status == UploadTargetStatus.EXPIRED or target.is_expired:
            return ServiceResult.failure("Media upload has expired", error_code="UPLOAD_EXPIRED")

        if cls.is_s3_storage():
            try:
                cls._sync_direct_upload(target)
            except ExternalServiceError as e:
                return cls.handle_exception(e, f"Checking direct upload {target.id}")

        if target.status != UploadTargetStatus.UPLOADED:
            return ServiceResult.failure("Media has not been uploaded yet", error_code="UPLOAD_NOT_READY")

        kind = media_kind_for(target.content_type)
        if kind != media_kind:
            return ServiceResult.failure(
                f"Uploaded file is not {media_kind}",
                error_code="MEDIA_KIND_MISMATCH",
            )
        too_large = cls._check_size(kind, target.size)
        if too_large is not None:
            return too_large

        target.consume()
        target.save()
        cls.get_logger().info(f"User {user.id} consumed upload target {target.id}")
        return ServiceResult.success(target)

    @classmethod
    def resolve_url(cls, reference) -> str | None:
        """
        Fetchable URL for a consumed target, or None.

        Raises:
            ExternalServiceError: The storage backend could not build the URL
        """
        target_id = _parse_reference(reference)
        if target_id is None:
            return None
        storage_key = (
            UploadTarget.objects.filter(pk=target_id, status=UploadTargetStatus.CONSUMED)
            .values_list("storage_key", flat=True)
            .first()
        )
        if not storage_key:
            return None
        try:
            return default_storage.url(storage_key)
        except Exception as e:
            raise ExternalServiceError("Could not resolve the media URL", error_code="STORAGE_UNAVAILABLE") from e

    @classmethod
    def expire_stale(cls) -> dict:
        """
        Expire unused targets past their deadline and delete their bytes.

        Returns:
            Dict with expired and error counts
        """
        stale = UploadTarget.objects.filter(
            status__in=[UploadTargetStatus.PENDING, UploadTargetStatus.UPLOADED],
            expires_at__lt=timezone.now(),
        )

        expired = 0
        errors = 0
        for target in stale:
            try:
                if default_storage.exists(target.storage_key):
                    default_storage.delete(target.storage_key)
                target.expire()
                target.save()
                expired += 1
            except Exception as e:
                errors += 1
                cls.get_logger().error(f"Failed to expire upload target {target.id}: {e}")

        cls.get_logger().info(f"Expired {expired} upload targets ({errors} errors)")
        return {"expired": expired, "errors": errors}

