from django.contrib import admin
from .models import Feature, Role, RoleAssignment, RoleFeature


class RoleFeatureInline(admin.TabularInline):
    model = RoleFeature
    extra = 0


@admin.register(Feature)
class FeatureAdmin(admin.ModelAdmin):
    list_display = ('slug', 'name', 'role_type', 'category', 'is_page_level')
    list_filter = ('role_type', 'category')
    search_fields = ('slug', 'name')


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'hierarchy_level', 'is_system_role')
    list_filter = ('type', 'is_system_role')
    inlines = [RoleFeatureInline]


@admin.register(RoleAssignment)
class RoleAssignmentAdmin(admin.ModelAdmin):
    list_display = ('user', 'role', 'is_active', 'assigned_by', 'assigned_at')
    list_filter = ('is_active',)
