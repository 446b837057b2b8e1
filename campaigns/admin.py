from django.contrib import admin
from .models import Campaign, Product, CampaignProduct


class CampaignProductInline(admin.TabularInline):
    model = CampaignProduct
    extra = 0


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ['title', 'code', 'status', 'goal_amount', 'total_raised', 'donor_count', 'progress_percentage']
    list_filter = ['status', 'is_deleted', 'created_at']
    search_fields = ['title', 'code']
    readonly_fields = ['total_raised', 'donor_count', 'progress_percentage', 'created_at', 'updated_at']
    inlines = [CampaignProductInline]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'unit', 'is_deleted', 'created_at']
    search_fields = ['name']


@admin.register(CampaignProduct)
class CampaignProductAdmin(admin.ModelAdmin):
    list_display = ['product', 'campaign', 'unit_price', 'stock', 'is_active']
    list_filter = ['is_active', 'campaign']
    search_fields = ['product__name', 'campaign__code']
