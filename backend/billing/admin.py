from django.contrib import admin
from .models import PlatformSettings, Subscription


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    list_display = ('default_trial_period_days', 'default_transaction_fee_rate', 'updated_at')


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('merchant', 'status', 'plan_type', 'start_date', 'trial_end_date', 'transaction_fee_rate')
    list_filter = ('status', 'plan_type')
