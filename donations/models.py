from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from core.models import TimeStampedModel


FULFILLMENT_SEQUENCE = ['pending', 'allocated', 'prepared', 'distributed']


def next_fulfillment_status(current: str):
    """The only status a fulfillment item may move to from ``current``"""
    index = FULFILLMENT_SEQUENCE.index(current)
    if index + 1 < len(FULFILLMENT_SEQUENCE):
        return FULFILLMENT_SEQUENCE[index + 1]
    return None


class Donation(TimeStampedModel):
    """
    Completed contribution. Created only by the donation recorder.
    The one-to-one link to the payment request is the idempotency key:
    a request can produce at most one donation.
    """

    KIND_CHOICES = [
        ('direct', 'Direct'),
        ('product_based', 'Product Based'),
    ]

    ENTRY_TYPE_CHOICES = [
        ('gateway', 'Payment Gateway'),
        ('manual', 'Manual Entry'),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='donations'
    )
    campaign = models.ForeignKey(
        'campaigns.Campaign',
        on_delete=models.PROTECT,
        related_name='donations'
    )
    intent = models.OneToOneField(
        'payments.ContributionIntent',
        on_delete=models.PROTECT,
        related_name='donation'
    )

    gateway_payment_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_signature = models.CharField(max_length=255, blank=True)

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Donation amount excluding the platform tip"
    )
    tip_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    entry_type = models.CharField(max_length=20, choices=ENTRY_TYPE_CHOICES, default='gateway')

    is_anonymous = models.BooleanField(default=False, help_text="Hide donor name on public listings")
    dedication = models.CharField(max_length=255, blank=True)
    message = models.TextField(blank=True)

    # Contact captured at checkout, used for the receipt
    contact_name = models.CharField(max_length=200, blank=True)
    contact_phone = models.CharField(max_length=12, blank=True)
    contact_email = models.EmailField(blank=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gte=0), name='donation_amount_non_negative'),
        ]
        indexes = [
            models.Index(fields=['campaign', '-created_at'], name='donation_campaign_created_idx'),
            models.Index(fields=['user', '-created_at'], name='donation_user_created_idx'),
        ]
        verbose_name = 'Donation'
        verbose_name_plural = 'Donations'

    def __str__(self):
        return f"{self.receipt_number} - INR {self.amount}"

    @property
    def receipt_number(self) -> str:
        return f"DON-{self.pk}"

    @property
    def total_paid(self) -> Decimal:
        return self.amount + self.tip_amount

    @property
    def donated_at(self):
        return self.created_at


class FulfillmentItem(TimeStampedModel):
    """
    One purchased cart line, tracked through physical delivery.
    Price fields are frozen at purchase time.
    """

    STATUS_CHOICES = [(status, status.title()) for status in FULFILLMENT_SEQUENCE]

    donation = models.ForeignKey(
        Donation,
        on_delete=models.CASCADE,
        related_name='items'
    )
    campaign_product = models.ForeignKey(
        'campaigns.CampaignProduct',
        on_delete=models.PROTECT,
        related_name='fulfillment_items'
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending',
        db_index=True
    )

    class Meta:
        # Allocation order: oldest first, id breaks ties
        ordering = ['created_at', 'id']
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name='fulfillment_quantity_positive'),
        ]
        indexes = [
            models.Index(fields=['campaign_product', 'status', 'created_at'], name='item_product_status_idx'),
        ]
        verbose_name = 'Fulfillment Item'
        verbose_name_plural = 'Fulfillment Items'

    def __str__(self):
        return f"{self.campaign_product} x{self.quantity} ({self.status})"

    @property
    def product_name(self) -> str:
        return self.campaign_product.product.name


class Personalization(TimeStampedModel):
    """
    Donor customization attached to exactly one owner: the donation (direct
    contributions) or a single fulfillment item (product purchases).
    """

    donation = models.OneToOneField(
        Donation,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='personalization'
    )
    fulfillment_item = models.OneToOneField(
        FulfillmentItem,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='personalization'
    )

    donor_name = models.CharField(max_length=200, blank=True)
    donor_country = models.CharField(max_length=100, blank=True)
    custom_image = models.URLField(max_length=500, blank=True, help_text="Uploaded image reference")
    is_image_available = models.BooleanField(default=False)
    custom_message = models.TextField(blank=True)
    donation_purpose = models.CharField(max_length=255, blank=True)
    special_instructions = models.TextField(blank=True)
    insta_id = models.CharField(max_length=100, blank=True)
    video_wishes = models.URLField(max_length=500, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(donation__isnull=False, fulfillment_item__isnull=True)
                    | models.Q(donation__isnull=True, fulfillment_item__isnull=False)
                ),
                name='personalization_single_owner',
            ),
        ]
        verbose_name = 'Personalization'
        verbose_name_plural = 'Personalizations'

    def __str__(self):
        owner = f"item {self.fulfillment_item_id}" if self.fulfillment_item_id else f"donation {self.donation_id}"
        return f"Personalization for {owner}"


class ReceiptDelivery(TimeStampedModel):
    """
    One row per donation and channel. Records every dispatch attempt so
    failed receipts are visible and can be retried a bounded number of times.
    """

    CHANNEL_CHOICES = [
        ('email', 'Email'),
        ('sms', 'SMS'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sent', 'Sent'),
        ('failed', 'Failed'),
        ('abandoned', 'Abandoned'),
    ]

    donation = models.ForeignKey(
        Donation,
        on_delete=models.CASCADE,
        related_name='receipt_deliveries'
    )
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    recipient = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['donation', 'channel'], name='unique_receipt_per_channel'),
        ]
        verbose_name = 'Receipt Delivery'
        verbose_name_plural = 'Receipt Deliveries'

    def __str__(self):
        return f"{self.donation.receipt_number} via {self.channel} - {self.status}"
