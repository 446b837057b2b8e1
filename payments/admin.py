from django.contrib import admin
from .models import ContributionIntent, CheckoutSnapshot, GatewayCallback


@admin.register(ContributionIntent)
class ContributionIntentAdmin(admin.ModelAdmin):
    list_display = ['gateway_order_id', 'user', 'campaign', 'amount', 'tip_amount', 'kind', 'status', 'created_at']
    list_filter = ['status', 'kind', 'created_at']
    search_fields = ['gateway_order_id', 'gateway_payment_id', 'user__username', 'user__email']
    readonly_fields = ['gateway_response', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'


@admin.register(CheckoutSnapshot)
class CheckoutSnapshotAdmin(admin.ModelAdmin):
    list_display = ['intent', 'created_at']
    readonly_fields = ['cart_items', 'form_data', 'created_at', 'updated_at']


@admin.register(GatewayCallback)
class GatewayCallbackAdmin(admin.ModelAdmin):
    list_display = ['source', 'event', 'gateway_order_id', 'signature_valid', 'outcome', 'created_at']
    list_filter = ['source', 'signature_valid', 'outcome']
    search_fields = ['gateway_order_id', 'gateway_payment_id']
    readonly_fields = ['raw_data', 'created_at', 'updated_at']
