import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UploadTarget",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "storage_key",
                    models.CharField(help_text="Storage path of the uploaded bytes", max_length=500),
                ),
                (
                    "content_type",
                    models.CharField(blank=True, default="", help_text="MIME type of the uploaded bytes", max_length=100),
                ),
                ("size", models.BigIntegerField(default=0, help_text="Size of the uploaded bytes")),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("uploaded", "Uploaded"),
                            ("consumed", "Consumed"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the target (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(help_text="When this target stops accepting bytes or consumption"),
                ),
                ("uploaded_at", models.DateTimeField(blank=True, help_text="When the bytes were received", null=True)),
                (
                    "consumed_at",
                    models.DateTimeField(blank=True, help_text="When a message claimed this target", null=True),
                ),
                (
                    "uploader",
                    models.ForeignKey(
                        help_text="User allowed to write to and consume this target",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="upload_targets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "media_upload_target",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "expires_at"], name="media_target_status_exp_idx"),
                ],
            },
        ),
    ]
