from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from core.models import TimeStampedModel


# Allowed forward moves of a payment request. 'paid' and 'failed' are terminal.
INTENT_TRANSITIONS = {
    'created': {'attempted', 'paid', 'failed', 'cancelled'},
    'attempted': {'paid', 'failed', 'cancelled'},
    'paid': set(),
    'failed': set(),
    'cancelled': set(),
}


class ContributionIntentQuerySet(models.QuerySet):
    """
    Conditional status updates. Each is a single UPDATE, so a terminal
    status written by a concurrent caller is never overwritten.
    """

    def mark_attempted(self, pk) -> bool:
        return bool(self.filter(pk=pk, status='created').update(status='attempted'))

    def mark_failed(self, pk, reason: str, response: dict = None) -> bool:
        changes = {'status': 'failed', 'failure_reason': reason[:1000]}
        if response is not None:
            changes['gateway_response'] = response
        return bool(self.filter(pk=pk, status__in=['created', 'attempted']).update(**changes))

    def record_attempt_failure(self, pk, reason: str, response: dict = None) -> bool:
        """
        A declined attempt. The payer may retry on the same order, so the
        request stays open as attempted with the reason kept.
        """
        changes = {'status': 'attempted', 'failure_reason': reason[:1000]}
        if response is not None:
            changes['gateway_response'] = response
        return bool(self.filter(pk=pk, status__in=['created', 'attempted']).update(**changes))

    def mark_cancelled(self, pk) -> bool:
        return bool(self.filter(pk=pk, status__in=['created', 'attempted']).update(status='cancelled'))

    def pending(self):
        return self.filter(status__in=['created', 'attempted'])


class ContributionIntent(TimeStampedModel):
    """
    A checkout that has been sent to the payment gateway but not yet confirmed.
    Following SRP: Only responsible for payment request state.
    Never deleted; the gateway order id is the join key for callbacks.
    """

    STATUS_CHOICES = [
        ('created', 'Created'),
        ('attempted', 'Attempted'),
        ('paid', 'Paid'),
        ('failed', 'Failed'),
        ('cancelled', 'Cancelled'),
    ]

    KIND_CHOICES = [
        ('direct', 'Direct'),
        ('product_based', 'Product Based'),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='contribution_intents'
    )
    campaign = models.ForeignKey(
        'campaigns.Campaign',
        on_delete=models.PROTECT,
        related_name='contribution_intents'
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Total charged, including the platform tip"
    )
    tip_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='INR')
    kind = models.CharField(max_length=20, choices=KIND_CHOICES, default='direct')

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='created',
        db_index=True
    )

    gateway_order_id = models.CharField(
        max_length=100,
        unique=True,
        help_text="Razorpay order id (order_XXXX) or manual_<ts>_<n> for offline entries"
    )
    gateway_payment_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    failure_reason = models.TextField(blank=True, default='')

    objects = ContributionIntentQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name='intent_amount_positive'),
            models.CheckConstraint(condition=models.Q(tip_amount__gte=0), name='intent_tip_non_negative'),
        ]
        indexes = [
            models.Index(fields=['status', 'created_at'], name='intent_status_created_idx'),
            models.Index(fields=['user', '-created_at'], name='intent_user_created_idx'),
        ]
        verbose_name = 'Contribution Intent'
        verbose_name_plural = 'Contribution Intents'

    def __str__(self):
        return f"{self.gateway_order_id} - INR {self.amount} - {self.status}"

    @property
    def donation_amount(self) -> Decimal:
        return self.amount - self.tip_amount

    @property
    def amount_in_paise(self) -> int:
        return int((self.amount * 100).to_integral_value())

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in INTENT_TRANSITIONS.get(self.status, set())


class CheckoutSnapshot(TimeStampedModel):
    """
    Working copy of the cart and donor form for an unconfirmed intent.
    Deleted once the donation is recorded.
    """

    intent = models.OneToOneField(
        ContributionIntent,
        on_delete=models.CASCADE,
        related_name='snapshot'
    )
    cart_items = models.JSONField(default=list, blank=True)
    form_data = models.JSONField(default=dict, blank=True)

    class Meta:
        verbose_name = 'Checkout Snapshot'
        verbose_name_plural = 'Checkout Snapshots'

    def __str__(self):
        return f"Snapshot for {self.intent.gateway_order_id}"


class GatewayCallback(TimeStampedModel):
    """
    Raw gateway callback / webhook payloads for audit and debugging.
    """

    SOURCE_CHOICES = [
        ('callback', 'Checkout Callback'),
        ('webhook', 'Webhook'),
        ('reconcile', 'Reconciliation'),
    ]

    source = models.CharField(max_length=20, choices=SOURCE_CHOICES)
    event = models.CharField(max_length=50, blank=True)
    gateway_order_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True)
    signature_valid = models.BooleanField(default=False)
    raw_data = models.JSONField(default=dict)
    outcome = models.CharField(max_length=50, blank=True)

    intent = models.ForeignKey(
        ContributionIntent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='callbacks'
    )

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Gateway Callback'
        verbose_name_plural = 'Gateway Callbacks'

    def __str__(self):
        return f"{self.source} - {self.gateway_order_id} - {self.outcome}"
