from typing import Optional

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from billing.services.subscriptions import apply_expiry
from .models import Merchant
from .services import register_merchant

User = get_user_model()


class MerchantSerializer(serializers.ModelSerializer):
    subscription_status = serializers.SerializerMethodField()

    class Meta:
        model = Merchant
        fields = [
            'id',
            'name',
            'slug',
            'email',
            'phone',
            'address',
            'status',
            'is_active',
            'reviewed_by',
            'reviewed_at',
            'subscription_status',
            'created_at',
        ]
        read_only_fields = fields

    def get_subscription_status(self, obj) -> Optional[str]:
        subscription = getattr(obj, 'subscription', None)
        if subscription is None:
            return None
        return apply_expiry(subscription, self.context.get('now')).status


class MerchantRegistrationSerializer(serializers.Serializer):
    merchant_name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    address = serializers.CharField(required=False, allow_blank=True)

    def validate_merchant_name(self, value):
        if Merchant.objects.filter(name__iexact=value).exists():
            raise serializers.ValidationError("Merchant with this name already exists.")
        return value

    def validate_email(self, value):
        if Merchant.objects.filter(email__iexact=value).exists() or User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return value

    def create(self, validated_data):
        merchant, admin_user = register_merchant(
            name=validated_data["merchant_name"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=validated_data.get("first_name", ""),
            last_name=validated_data.get("last_name", ""),
            phone=validated_data.get("phone", ""),
            address=validated_data.get("address", ""),
        )
        return {"merchant": merchant, "admin_user": admin_user}


class MerchantReviewSerializer(serializers.Serializer):
    tolerate_repeat = serializers.BooleanField(required=False, default=False)
