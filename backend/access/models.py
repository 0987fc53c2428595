from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models

from .grants import grant_from_actions


feature_slug_validator = RegexValidator(
    r"^[a-z0-9_]+(\.[a-z0-9_]+)*\Z",
    "Use lowercase letters, digits and underscores, separated by dots (e.g. sales.view).",
)


class RoleType(models.TextChoices):
    PLATFORM_OWNER = "PLATFORM_OWNER", "Platform Owner"
    MERCHANT = "MERCHANT", "Merchant"


class Feature(models.Model):
    """
    An addressable capability (``sales.view``, ``roles.edit``...), scoped to a role type.

    The slug is the stable key every grant refers to; it cannot change once
    a role grants the feature.
    """
    slug = models.CharField(max_length=100, unique=True, validators=[feature_slug_validator])
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=50, blank=True)
    is_page_level = models.BooleanField(default=False)
    role_type = models.CharField(max_length=20, choices=RoleType.choices)
    default_actions = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["role_type", "category", "slug"]

    def __str__(self):
        return self.slug

    @property
    def is_referenced(self):
        return self.role_grants.exists()


class Role(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=RoleType.choices)
    hierarchy_level = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(3)],
        help_text="1=Auditor, 2=Admin, 3=Super Admin. Used for ordering only.",
    )
    is_system_role = models.BooleanField(default=False)
    features = models.ManyToManyField(Feature, through="RoleFeature", related_name="roles")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["type", "-hierarchy_level", "name"]
        constraints = [
            models.UniqueConstraint(fields=["type", "name"], name="unique_role_name_per_type"),
        ]

    def __str__(self):
        return f"{self.name} ({self.type})"


class RoleFeature(models.Model):
    """One grant: a feature plus the actions allowed on it (empty for page-level)."""
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="grants")
    feature = models.ForeignKey(Feature, on_delete=models.PROTECT, related_name="role_grants")
    actions = models.JSONField(default=list, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["role", "feature"], name="unique_role_feature"),
        ]

    def __str__(self):
        return f"{self.role.name} -> {self.feature.slug} {self.actions}"

    def to_grant(self):
        return grant_from_actions(self.actions, is_page_level=self.feature.is_page_level)


class RoleAssignment(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="role_assignments",
    )
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name="assignments")
    is_active = models.BooleanField(default=True)
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-assigned_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "role"], name="unique_user_role_assignment"),
        ]

    def __str__(self):
        state = "active" if self.is_active else "removed"
        return f"{self.user} -> {self.role.name} ({state})"
