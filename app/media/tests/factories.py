"""
Factory Boy factories for media models.

Usage:
    from media.tests.factories import UploadTargetFactory

    pending = UploadTargetFactory(uploader=user)
    ready = UploadTargetFactory(uploader=user, status="uploaded", size=100)
"""

from datetime import timedelta

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from media.models import UploadTarget, UploadTargetStatus


class UploadTargetFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UploadTarget

    uploader = factory.SubFactory(UserFactory)
    storage_key = factory.Sequence(lambda n: f"chat-media/test/{n}")
    content_type = "image/png"
    size = 0
    status = UploadTargetStatus.PENDING
    expires_at = factory.LazyFunction(lambda: timezone.now() + timedelta(minutes=15))
