from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.crypto import get_random_string
from django.utils.translation import gettext_lazy as _


class UserRole(models.TextChoices):
    """Coarse role used as the first-pass gate before feature checks."""
    PLATFORM_OWNER = "PLATFORM_OWNER", "Platform Owner"
    MERCHANT_ADMIN = "MERCHANT_ADMIN", "Merchant Admin"
    MERCHANT_STAFF = "MERCHANT_STAFF", "Merchant Staff"


MERCHANT_ROLES = (UserRole.MERCHANT_ADMIN, UserRole.MERCHANT_STAFF)


class UserManager(BaseUserManager):
    """Manager for a user model with email as the login identifier."""

    use_in_migrations = True

    def _unique_username(self, email):
        base = email.split("@")[0][:140] or "user"
        username = base
        while self.model.objects.filter(username=username).exists():
            username = f"{base}_{get_random_string(4)}"
        return username

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_("The Email must be set"))
        email = self.normalize_email(email)
        extra_fields.setdefault("username", self._unique_username(email))

        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("role", UserRole.PLATFORM_OWNER)

        if extra_fields.get("is_staff") is not True:
            raise ValueError(_("Superuser must have is_staff=True."))
        if extra_fields.get("is_superuser") is not True:
            raise ValueError(_("Superuser must have is_superuser=True."))
        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    email = models.EmailField(_("email address"), unique=True)

    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.MERCHANT_STAFF)

    merchant = models.ForeignKey(
        "merchants.Merchant",
        on_delete=models.CASCADE,
        related_name="users",
        null=True,
        blank=True,
    )

    #  Password reset & security controls
    requires_password_change = models.BooleanField(default=False)

    password_reset_sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the last temporary password was issued"
    )

    password_reset_reason = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Reason for reset: self_reset | admin_reset"
    )

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["email"]

    def __str__(self):
        return f"{self.email} ({self.merchant})" if self.merchant_id else self.email

    @property
    def role_type(self):
        """Role type (``PLATFORM_OWNER`` or ``MERCHANT``) of the roles this user can hold."""
        return "PLATFORM_OWNER" if self.role == UserRole.PLATFORM_OWNER else "MERCHANT"

    @property
    def is_platform_owner(self):
        return self.role == UserRole.PLATFORM_OWNER

    @property
    def is_merchant_user(self):
        return self.role in MERCHANT_ROLES
