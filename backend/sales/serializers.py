from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from billing.services.subscriptions import calculate_transaction_fee
from .models import Sale


def generate_sale_reference(merchant):
    # Format: SAL-<merchant>-YYYYMMDD-XXXX (XXXX is a per-merchant counter per day)
    today = timezone.now().date().strftime('%Y%m%d')
    prefix = f"SAL-{merchant.pk}-{today}"
    existing_count = Sale.objects.filter(reference__startswith=f"{prefix}-").count()
    return f"{prefix}-{existing_count + 1:04d}"


class SaleSerializer(serializers.ModelSerializer):
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    created_by = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id',
            'merchant',
            'reference',
            'customer_name',
            'total_amount',
            'platform_fee',
            'payment_method',
            'notes',
            'created_by',
            'created_at',
        ]
        read_only_fields = ['id', 'merchant', 'reference', 'platform_fee', 'created_by', 'created_at']

    def create(self, validated_data):
        merchant = validated_data['merchant']

        with transaction.atomic():
            validated_data['reference'] = generate_sale_reference(merchant)
            validated_data['platform_fee'] = calculate_transaction_fee(validated_data['total_amount'], merchant)
            return super().create(validated_data)
