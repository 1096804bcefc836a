"""
Celery tasks for media maintenance.

Usage:
    from media.tasks import cleanup_expired_upload_targets

    # Normally run by celery-beat (see migration 0002)
    cleanup_expired_upload_targets.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def cleanup_expired_upload_targets() -> dict:
    """
    Periodic task to expire unused upload targets.

    Pending or uploaded-but-never-sent targets past their deadline are
    marked expired and their bytes deleted. Consumed targets are never
    touched.

    Returns:
        Dict with expired and error counts.
    """
    from media.services import UploadTargetService

    result = UploadTargetService.expire_stale()
    logger.info(
        "Expired upload targets cleaned up",
        extra={
            "event_type": "upload_target_cleanup",
            "expired_count": result["expired"],
            "error_count": result["errors"],
        },
    )
    return result
