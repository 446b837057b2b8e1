from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator
from core.models import TimeStampedModel, SoftDeleteModel, SoftDeleteQuerySet


class CampaignQuerySet(SoftDeleteQuerySet):
    def active(self):
        return self.alive().filter(status='active')


class Campaign(TimeStampedModel, SoftDeleteModel):
    """
    Fundraising campaign.
    Only the aggregate fields (total_raised, donor_count, progress_percentage)
    are written by the donation pipeline; everything else is catalog data.
    """

    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('active', 'Active'),
        ('paused', 'Paused'),
        ('completed', 'Completed'),
    ]

    title = models.CharField(max_length=200)
    code = models.CharField(
        max_length=30,
        unique=True,
        db_index=True,
        help_text="Short code used by operators when recording offline donations"
    )
    description = models.TextField(blank=True)
    goal_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Fundraising goal in INR"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='draft',
        db_index=True
    )

    # Aggregates maintained by the donation recorder
    total_raised = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    donor_count = models.PositiveIntegerField(default=0)
    progress_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))

    objects = CampaignQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=models.Q(total_raised__gte=0), name='campaign_total_raised_non_negative'),
        ]
        verbose_name = 'Campaign'
        verbose_name_plural = 'Campaigns'

    def __str__(self):
        return f"{self.title} ({self.code})"

    @property
    def is_active(self) -> bool:
        return self.status == 'active' and not self.is_deleted


class Product(TimeStampedModel, SoftDeleteModel):
    """Physical good that campaigns sell as an impact product"""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=50, blank=True, help_text="e.g. 'kit', 'meal', 'kg'")

    class Meta:
        ordering = ['name']
        verbose_name = 'Product'
        verbose_name_plural = 'Products'

    def __str__(self):
        return self.name


class CampaignProduct(TimeStampedModel):
    """
    Inventory unit: a product offered by a campaign at a price with finite stock.
    Stock is only ever decremented through a conditional UPDATE.
    """

    campaign = models.ForeignKey(
        Campaign,
        on_delete=models.PROTECT,
        related_name='campaign_products'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='campaign_products'
    )
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    stock = models.IntegerField(default=0, help_text="Remaining units available for purchase")
    min_quantity = models.PositiveIntegerField(default=1)
    max_quantity = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['campaign', 'product__name']
        constraints = [
            models.CheckConstraint(condition=models.Q(stock__gte=0), name='campaign_product_stock_non_negative'),
            models.UniqueConstraint(fields=['campaign', 'product'], name='unique_campaign_product'),
        ]
        verbose_name = 'Campaign Product'
        verbose_name_plural = 'Campaign Products'

    def __str__(self):
        return f"{self.product.name} @ {self.campaign.code}"

    @property
    def name(self) -> str:
        return self.product.name
