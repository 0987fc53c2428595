from django.contrib import admin
from .models import Merchant


@admin.register(Merchant)
class MerchantAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'status', 'is_active', 'reviewed_at', 'created_at')
    list_filter = ('status', 'is_active')
    search_fields = ('name', 'email')
    readonly_fields = ('status', 'is_active', 'reviewed_by', 'reviewed_at')
