import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PrivacySettings",
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
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="privacy_settings",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "read_receipts_enabled",
                    models.BooleanField(
                        default=True,
                        help_text="Whether other members can see when this user has read their messages",
                    ),
                ),
                (
                    "last_seen_visibility",
                    models.CharField(
                        choices=[("everyone", "Everyone"), ("nobody", "Nobody")],
                        default="everyone",
                        help_text="Who can see this user's online state",
                        max_length=20,
                    ),
                ),
                (
                    "who_can_message",
                    models.CharField(
                        choices=[("everyone", "Everyone"), ("nobody", "Nobody")],
                        default="everyone",
                        help_text="Who can start a direct conversation with this user",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "verbose_name": "privacy settings",
                "verbose_name_plural": "privacy settings",
                "db_table": "privacy_settings",
            },
        ),
        migrations.CreateModel(
            name="SecuritySettings",
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
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="security_settings",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "suspicious_login_alerts",
                    models.BooleanField(default=True, help_text="Whether to alert the user about suspicious sign-ins"),
                ),
                (
                    "e2ee_enabled",
                    models.BooleanField(default=False, help_text="End-to-end encryption preference flag"),
                ),
            ],
            options={
                "verbose_name": "security settings",
                "verbose_name_plural": "security settings",
                "db_table": "privacy_security_settings",
            },
        ),
        migrations.CreateModel(
            name="Block",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
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
                    "blocked",
                    models.ForeignKey(
                        help_text="User who is blocked",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks_received",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "blocker",
                    models.ForeignKey(
                        help_text="User who issued the block",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks_made",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "privacy_block",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["blocked", "blocker"], name="privacy_block_reverse_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("blocker", "blocked"), name="unique_block_edge"),
                    models.CheckConstraint(
                        condition=models.Q(("blocker", models.F("blocked")), _negated=True),
                        name="block_not_self",
                    ),
                ],
            },
        ),
    ]
