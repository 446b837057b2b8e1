from django.contrib import admin
from .models import DistributionBatch, BatchMembership


class BatchMembershipInline(admin.TabularInline):
    model = BatchMembership
    extra = 0
    readonly_fields = ['fulfillment_item', 'quantity_allocated', 'status', 'is_active', 'released_at']
    can_delete = False


@admin.register(DistributionBatch)
class DistributionBatchAdmin(admin.ModelAdmin):
    list_display = [
        'name',
        'campaign',
        'campaign_product',
        'planned_distribution_date',
        'status',
        'total_items',
        'distributed_items',
        'progress_percentage',
    ]
    list_filter = ['status', 'campaign', 'planned_distribution_date']
    search_fields = ['name', 'campaign__code']
    readonly_fields = [
        'total_items',
        'allocated_items',
        'prepared_items',
        'distributed_items',
        'total_value',
        'progress_percentage',
        'created_at',
        'updated_at',
    ]
    inlines = [BatchMembershipInline]
