from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from core.models import TimeStampedModel


class DistributionBatch(TimeStampedModel):
    """
    Operator-defined group of fulfillment items delivered together.
    Counts are denormalized and rewritten by the progress aggregator whenever
    a member item changes status.
    """

    STATUS_CHOICES = [
        ('planning', 'Planning'),
        ('prepared', 'Prepared'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    campaign = models.ForeignKey(
        'campaigns.Campaign',
        on_delete=models.PROTECT,
        related_name='distribution_batches'
    )
    campaign_product = models.ForeignKey(
        'campaigns.CampaignProduct',
        on_delete=models.PROTECT,
        related_name='distribution_batches'
    )
    name = models.CharField(max_length=200, help_text="Label printed on stickers and manifests")
    planned_distribution_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='planning',
        db_index=True
    )
    notes = models.TextField(blank=True)

    total_items = models.PositiveIntegerField(default=0)
    allocated_items = models.PositiveIntegerField(default=0)
    prepared_items = models.PositiveIntegerField(default=0)
    distributed_items = models.PositiveIntegerField(default=0)
    total_value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    progress_percentage = models.PositiveSmallIntegerField(default=0)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_batches'
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['campaign_product', 'status'], name='batch_product_status_idx'),
        ]
        verbose_name = 'Distribution Batch'
        verbose_name_plural = 'Distribution Batches'

    def __str__(self):
        return f"{self.name} ({self.status})"


class BatchMembership(TimeStampedModel):
    """
    Binds a fulfillment item to a batch. At most one active membership per
    item, enforced by a partial unique index.
    """

    STATUS_CHOICES = [
        ('allocated', 'Allocated'),
        ('prepared', 'Prepared'),
        ('distributed', 'Distributed'),
    ]

    batch = models.ForeignKey(
        DistributionBatch,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    fulfillment_item = models.ForeignKey(
        'donations.FulfillmentItem',
        on_delete=models.PROTECT,
        related_name='batch_memberships'
    )
    quantity_allocated = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='allocated')
    is_active = models.BooleanField(default=True, db_index=True)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['batch', 'created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['fulfillment_item'],
                condition=models.Q(is_active=True),
                name='one_active_batch_per_item',
            ),
            models.CheckConstraint(condition=models.Q(quantity_allocated__gt=0), name='membership_quantity_positive'),
        ]
        verbose_name = 'Batch Membership'
        verbose_name_plural = 'Batch Memberships'

    def __str__(self):
        return f"Item {self.fulfillment_item_id} in {self.batch.name}"
