"""
Custom user manager for subject-based users.

Users are created from identity-provider claims, so the subject id is the
only required field and passwords are unusable unless explicitly set (for
admin superusers).
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Manager for the User model.

    Usage:
        user = User.objects.create_user(identity_subject="user_2abc", name="Ada")
        admin = User.objects.create_superuser(
            identity_subject="admin", password="adminpassword"
        )
    """

    def create_user(self, identity_subject, password=None, **extra_fields):
        """
        Create and save a user for the given provider subject.

        Raises:
            ValueError: If identity_subject is not provided
        """
        if not identity_subject:
            raise ValueError("The identity_subject field must be set")

        email = extra_fields.pop("email", None)
        if email:
            extra_fields["email"] = self.normalize_email(email)

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(identity_subject=identity_subject, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, identity_subject, password=None, **extra_fields):
        """Create and save a superuser for Django admin access."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(identity_subject, password, **extra_fields)
