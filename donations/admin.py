from django.contrib import admin
from .models import Donation, FulfillmentItem, Personalization, ReceiptDelivery


class FulfillmentItemInline(admin.TabularInline):
    model = FulfillmentItem
    extra = 0
    readonly_fields = ['campaign_product', 'quantity', 'unit_price', 'total_price', 'status', 'created_at']
    can_delete = False


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'user', 'campaign', 'amount', 'tip_amount', 'kind', 'entry_type', 'created_at']
    list_filter = ['kind', 'entry_type', 'campaign', 'created_at']
    search_fields = ['user__username', 'contact_name', 'contact_phone', 'gateway_payment_id']
    readonly_fields = ['intent', 'gateway_payment_id', 'gateway_signature', 'amount', 'tip_amount', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'
    inlines = [FulfillmentItemInline]

    def receipt_number(self, obj):
        return obj.receipt_number
    receipt_number.short_description = 'Receipt'


@admin.register(FulfillmentItem)
class FulfillmentItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'donation', 'campaign_product', 'quantity', 'total_price', 'status', 'created_at']
    list_filter = ['status', 'campaign_product__campaign']
    search_fields = ['campaign_product__product__name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Personalization)
class PersonalizationAdmin(admin.ModelAdmin):
    list_display = ['id', 'donor_name', 'donor_country', 'is_image_available', 'donation', 'fulfillment_item']
    search_fields = ['donor_name', 'custom_message']


@admin.register(ReceiptDelivery)
class ReceiptDeliveryAdmin(admin.ModelAdmin):
    list_display = ['donation', 'channel', 'recipient', 'status', 'attempts', 'sent_at']
    list_filter = ['channel', 'status']
    readonly_fields = ['last_error', 'created_at', 'updated_at']
