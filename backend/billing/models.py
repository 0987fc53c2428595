import math
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from merchants.models import Merchant, MerchantStatus
from .constants import (
    ACTIVE_STATUSES,
    DEFAULT_TRANSACTION_FEE_RATE,
    DEFAULT_TRIAL_PERIOD_DAYS,
    MAX_TRANSACTION_FEE_RATE,
    MIN_TRANSACTION_FEE_RATE,
)

SECONDS_PER_DAY = 24 * 60 * 60


class SubscriptionStatus(models.TextChoices):
    ACTIVE_TRIAL = "ACTIVE_TRIAL", "Active trial"
    ACTIVE_PAID = "ACTIVE_PAID", "Active paid"
    EXPIRED = "EXPIRED", "Expired"
    CANCELLED = "CANCELLED", "Cancelled"


class PlanType(models.TextChoices):
    TRIAL = "TRIAL", "Trial"
    MONTHLY = "MONTHLY", "Monthly"
    YEARLY = "YEARLY", "Yearly"


class PlatformSettings(models.Model):
    """Singleton row with the platform-wide billing defaults."""
    default_trial_period_days = models.PositiveIntegerField(
        default=DEFAULT_TRIAL_PERIOD_DAYS,
        validators=[MinValueValidator(1)],
    )
    default_transaction_fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_TRANSACTION_FEE_RATE,
        validators=[MinValueValidator(MIN_TRANSACTION_FEE_RATE), MaxValueValidator(MAX_TRANSACTION_FEE_RATE)],
        help_text="Percentage of each sale charged as platform fee",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "platform settings"
        verbose_name_plural = "platform settings"

    def __str__(self):
        return f"Trial {self.default_trial_period_days}d, fee {self.default_transaction_fee_rate}%"

    @classmethod
    def load(cls):
        settings, _ = cls.objects.get_or_create(pk=1)
        return settings


class Subscription(models.Model):
    merchant = models.OneToOneField(Merchant, on_delete=models.CASCADE, related_name="subscription")
    status = models.CharField(max_length=20, choices=SubscriptionStatus.choices, default=SubscriptionStatus.ACTIVE_TRIAL)
    plan_type = models.CharField(max_length=10, choices=PlanType.choices, default=PlanType.TRIAL)
    start_date = models.DateTimeField(default=timezone.now)
    # Only set while the subscription is trial-relevant.
    trial_end_date = models.DateTimeField(null=True, blank=True)
    trial_period_days = models.PositiveIntegerField(null=True, blank=True)
    # End of the current paid period.
    current_period_end = models.DateTimeField(null=True, blank=True)
    transaction_fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_TRANSACTION_FEE_RATE,
        validators=[MinValueValidator(MIN_TRANSACTION_FEE_RATE), MaxValueValidator(MAX_TRANSACTION_FEE_RATE)],
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.merchant} -> {self.plan_type} ({self.status})"

    @property
    def is_active(self):
        return self.status in ACTIVE_STATUSES

    @property
    def effective_is_active(self):
        return self.is_active and self.merchant.status == MerchantStatus.ACTIVE

    def is_overdue(self, now=None):
        now = now or timezone.now()
        if self.status == SubscriptionStatus.ACTIVE_TRIAL:
            return self.trial_end_date is not None and now > self.trial_end_date
        if self.status == SubscriptionStatus.ACTIVE_PAID:
            return self.current_period_end is not None and now > self.current_period_end
        return False

    def days_remaining(self, now=None):
        """Whole days left in the trial, rounded up and never negative. None unless on trial."""
        if self.status != SubscriptionStatus.ACTIVE_TRIAL or self.trial_end_date is None:
            return None
        now = now or timezone.now()
        seconds = (self.trial_end_date - now).total_seconds()
        return max(0, math.ceil(seconds / SECONDS_PER_DAY))

    def fee_for(self, amount):
        return (Decimal(str(amount)) * self.transaction_fee_rate / Decimal(100)).quantize(Decimal("0.01"))
