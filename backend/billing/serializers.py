from decimal import Decimal
from typing import Optional

from rest_framework import serializers

from .constants import MAX_TRANSACTION_FEE_RATE, MIN_TRANSACTION_FEE_RATE
from .models import PlanType, PlatformSettings, Subscription


def _fee_rate_field(**kwargs):
    return serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal(MIN_TRANSACTION_FEE_RATE),
        max_value=Decimal(MAX_TRANSACTION_FEE_RATE),
        **kwargs,
    )


class SubscriptionSerializer(serializers.ModelSerializer):
    """
    Subscription with its derived state evaluated at serialization time.

    Views pass ``now`` in the context so every derived field uses the same clock.
    """
    merchant = serializers.PrimaryKeyRelatedField(read_only=True)
    merchant_name = serializers.CharField(source='merchant.name', read_only=True)
    is_active = serializers.BooleanField(read_only=True)
    effective_is_active = serializers.BooleanField(read_only=True)
    days_remaining = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            'id',
            'merchant',
            'merchant_name',
            'status',
            'plan_type',
            'start_date',
            'trial_end_date',
            'trial_period_days',
            'current_period_end',
            'transaction_fee_rate',
            'cancelled_at',
            'is_active',
            'effective_is_active',
            'days_remaining',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_days_remaining(self, obj) -> Optional[int]:
        return obj.days_remaining(self.context.get('now'))


class SubscriptionStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
    plan_type = serializers.CharField(allow_null=True)
    is_active = serializers.BooleanField()
    effective_is_active = serializers.BooleanField()
    days_remaining = serializers.IntegerField(allow_null=True)
    trial_end_date = serializers.DateTimeField(allow_null=True)


class PlatformSettingsSerializer(serializers.ModelSerializer):
    default_trial_period_days = serializers.IntegerField(min_value=1, required=False)
    default_transaction_fee_rate = _fee_rate_field(required=False)

    class Meta:
        model = PlatformSettings
        fields = ['default_trial_period_days', 'default_transaction_fee_rate', 'updated_at']
        read_only_fields = ['updated_at']


# ----------------------------------------------------------
#  Lifecycle action payloads
# ----------------------------------------------------------
class ExtendTrialSerializer(serializers.Serializer):
    additional_days = serializers.IntegerField(min_value=1)


class TrialPeriodSerializer(serializers.Serializer):
    new_trial_period_days = serializers.IntegerField(min_value=1)


class FeeRateSerializer(serializers.Serializer):
    transaction_fee_rate = _fee_rate_field()


class ConvertSerializer(serializers.Serializer):
    plan_type = serializers.ChoiceField(choices=[PlanType.MONTHLY, PlanType.YEARLY])


class ReactivateSerializer(serializers.Serializer):
    plan_type = serializers.ChoiceField(choices=PlanType.choices, required=False, default=PlanType.TRIAL)
    trial_period_days = serializers.IntegerField(min_value=1, required=False)
    transaction_fee_rate = _fee_rate_field(required=False)
