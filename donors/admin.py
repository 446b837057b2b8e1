from django.contrib import admin
from .models import Donor
from .roles import UserRole


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ['donor_number', 'first_name', 'last_name', 'phone_number', 'email', 'is_guest', 'created_at']
    list_filter = ['is_guest', 'country', 'created_at']
    search_fields = ['first_name', 'last_name', 'phone_number', 'email', 'donor_number']
    readonly_fields = ['donor_number', 'created_at', 'updated_at']
    raw_id_fields = ['user']


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active']
    search_fields = ['user__username', 'user__email']
