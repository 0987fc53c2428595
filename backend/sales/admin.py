from django.contrib import admin
from .models import Sale


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ('reference', 'merchant', 'total_amount', 'platform_fee', 'payment_method', 'created_by', 'created_at')
    readonly_fields = ('reference', 'total_amount', 'platform_fee', 'created_at')

    # Sales are immutable once recorded
    def has_change_permission(self, request, obj=None):
        return False
