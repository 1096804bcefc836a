import authentication.managers
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                (
                    "is_superuser",
                    models.BooleanField(
                        default=False,
                        help_text="Designates that this user has all permissions without explicitly assigning them.",
                        verbose_name="superuser status",
                    ),
                ),
                (
                    "identity_subject",
                    models.CharField(
                        help_text="Subject id issued by the identity provider", max_length=255, unique=True
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        default="Anonymous", help_text="Name as reported by the identity provider", max_length=255
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        blank=True,
                        help_text="Optional email address reported by the identity provider",
                        max_length=254,
                        null=True,
                    ),
                ),
                (
                    "avatar_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Avatar image URL reported by the identity provider",
                        max_length=1024,
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Whether this user account is active. Deselect instead of deleting.",
                    ),
                ),
                (
                    "is_staff",
                    models.BooleanField(default=False, help_text="Whether the user can access the admin site."),
                ),
                ("date_joined", models.DateTimeField(auto_now_add=True, help_text="When the user was first seen")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="When the user record was last synced")),
                (
                    "groups",
                    models.ManyToManyField(
                        blank=True,
                        help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.group",
                        verbose_name="groups",
                    ),
                ),
                (
                    "user_permissions",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Specific permissions for this user.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.permission",
                        verbose_name="user permissions",
                    ),
                ),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "ordering": ["name", "id"],
            },
            managers=[
                ("objects", authentication.managers.UserManager()),
            ],
        ),
    ]
