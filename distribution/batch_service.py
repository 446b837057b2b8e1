"""
Distribution batch allocation
Following SOLID principles:
- SRP: BatchAllocator only binds fulfillment items to batches
- DIP: status tracker and progress aggregator are injected

Fairness: unallocated items are taken oldest first, ordered by the fulfillment
item's creation time with the item id breaking ties.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Min, Sum
from django.utils import timezone

from campaigns.models import CampaignProduct
from core.exceptions import (
    AllocationConflict,
    BatchNotFound,
    InsufficientUnallocatedItems,
    InvalidTransition,
    ProductNotFound,
)
from donations.fulfillment_service import FulfillmentStatusTracker
from donations.models import FulfillmentItem
from .models import BatchMembership, DistributionBatch
from .progress_service import BatchProgress, BatchProgressAggregator

logger = logging.getLogger(__name__)

BATCH_STATUSES = [choice[0] for choice in DistributionBatch.STATUS_CHOICES]


@dataclass(frozen=True)
class AllocationResult:
    batch: DistributionBatch
    items_assigned: int
    progress: BatchProgress

    def as_dict(self) -> Dict:
        return {
            'batchId': self.batch.pk,
            'itemsAssigned': self.items_assigned,
            'progress': self.progress.as_dict(),
        }


def unallocated_items(campaign_product_id: int):
    """Pending items for a product with no active batch membership, oldest first"""
    return (
        FulfillmentItem.objects
        .filter(campaign_product_id=campaign_product_id, status='pending')
        .exclude(batch_memberships__is_active=True)
        .order_by('created_at', 'id')
    )


class BatchAllocator:

    def __init__(
        self,
        tracker: Optional[FulfillmentStatusTracker] = None,
        aggregator: Optional[BatchProgressAggregator] = None,
    ):
        self.aggregator = aggregator or BatchProgressAggregator()
        self.tracker = tracker or FulfillmentStatusTracker(aggregator=self.aggregator)

    def create_batch(
        self,
        campaign_product_id: int,
        name: str,
        planned_distribution_date: date,
        quantity: Optional[int] = None,
        campaign_id: Optional[int] = None,
        notes: str = '',
        created_by=None,
    ) -> AllocationResult:
        """
        Create a batch in ``planning`` and allocate items to it.

        Args:
            quantity: number of items to allocate; None allocates every
                unallocated item for the product

        Raises:
            ValidationError: blank name, past date or non-positive quantity
            ProductNotFound: unknown product or product outside ``campaign_id``
            InsufficientUnallocatedItems: fewer items available than requested;
                no batch is created
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError({'name': 'Batch name is required.'})
        self._validate_date(planned_distribution_date)
        self._validate_quantity(quantity)

        product = CampaignProduct.objects.select_related('campaign').filter(pk=campaign_product_id).first()
        if product is None:
            raise ProductNotFound()
        if campaign_id is not None and product.campaign_id != int(campaign_id):
            raise ProductNotFound(f"Product {campaign_product_id} does not belong to campaign {campaign_id}")

        with transaction.atomic():
            items = self._select(product.pk, quantity)
            batch = DistributionBatch.objects.create(
                campaign=product.campaign,
                campaign_product=product,
                name=name,
                planned_distribution_date=planned_distribution_date,
                status='planning',
                notes=notes,
                created_by=created_by if created_by is not None and created_by.is_authenticated else None,
            )
            assigned = self._bind(batch, items)
            progress = self.aggregator.recompute(batch.pk)

        logger.info(f"Batch {batch.pk} '{batch.name}' created with {assigned} items of {product}")
        return AllocationResult(batch, assigned, progress)

    def allocate(self, batch_id: int, quantity: Optional[int] = None) -> AllocationResult:
        """Add more unallocated items to a batch still in ``planning``"""
        self._validate_quantity(quantity)

        with transaction.atomic():
            batch = DistributionBatch.objects.select_for_update().filter(pk=batch_id).first()
            if batch is None:
                raise BatchNotFound()
            if batch.status != 'planning':
                raise InvalidTransition(f"Cannot allocate to a batch in {batch.status}")

            items = self._select(batch.campaign_product_id, quantity)
            assigned = self._bind(batch, items)
            progress = self.aggregator.recompute(batch.pk)

        logger.info(f"Allocated {assigned} more items to batch {batch.pk}")
        return AllocationResult(batch, assigned, progress)

    def cancel_batch(self, batch_id: int) -> BatchProgress:
        """
        Cancel a batch and release its items back to ``pending``.
        Refused once any member has been distributed.
        """
        with transaction.atomic():
            batch = DistributionBatch.objects.select_for_update().filter(pk=batch_id).first()
            if batch is None:
                raise BatchNotFound()
            if batch.status == 'cancelled':
                return self.aggregator.compute(batch)

            memberships = BatchMembership.objects.select_for_update().filter(batch=batch, is_active=True)
            if memberships.filter(fulfillment_item__status='distributed').exists():
                raise InvalidTransition("Cannot cancel a batch with distributed items")

            item_ids = list(memberships.values_list('fulfillment_item_id', flat=True))
            memberships.update(is_active=False, released_at=timezone.now())
            released = self.tracker.release(item_ids)

            batch.status = 'cancelled'
            batch.save(update_fields=['status', 'updated_at'])
            progress = self.aggregator.recompute(batch.pk)

        logger.info(f"Batch {batch.pk} cancelled, {released} items released")
        return progress

    def override_status(self, batch_id: int, status: str) -> BatchProgress:
        """
        Operator override of the rolled-up status. It holds until the next
        member status change recomputes the batch.
        """
        if status not in BATCH_STATUSES:
            raise InvalidTransition(f"Invalid status '{status}'. Allowed: {', '.join(BATCH_STATUSES)}")
        if status == 'cancelled':
            return self.cancel_batch(batch_id)

        with transaction.atomic():
            batch = DistributionBatch.objects.select_for_update().filter(pk=batch_id).first()
            if batch is None:
                raise BatchNotFound()
            if batch.status == 'cancelled':
                raise InvalidTransition("Cancelled batches cannot be reopened")
            batch.status = status
            batch.save(update_fields=['status', 'updated_at'])

        logger.info(f"Batch {batch.pk} status overridden to {status}")
        progress = self.aggregator.snapshot(batch.pk)
        return BatchProgress(**{**progress.as_dict(), 'status': status})

    def unassigned_count(self, campaign_product_id: int) -> int:
        return unallocated_items(campaign_product_id).count()

    def unassigned_summary(self, campaign_product_id: int) -> Dict:
        totals = unallocated_items(campaign_product_id).aggregate(
            items=Count('id'),
            quantity=Sum('quantity'),
            value=Sum('total_price'),
            earliest=Min('created_at'),
            latest=Max('created_at'),
        )
        return {
            'remaining_donation_items': totals['items'] or 0,
            'remaining_quantity': totals['quantity'] or 0,
            'remaining_value': totals['value'] or Decimal('0.00'),
            'earliest_donation_date': totals['earliest'],
            'latest_donation_date': totals['latest'],
        }

    def _validate_date(self, planned: date):
        if planned is None:
            raise ValidationError({'planned_distribution_date': 'This field is required.'})
        if planned < timezone.localdate():
            raise ValidationError({'planned_distribution_date': 'Planned distribution date cannot be in the past.'})

    def _validate_quantity(self, quantity: Optional[int]):
        if quantity is not None and quantity < 1:
            raise ValidationError({'quantity': 'Quantity must be at least 1.'})

    def _select(self, campaign_product_id: int, quantity: Optional[int]) -> List[FulfillmentItem]:
        queryset = unallocated_items(campaign_product_id).select_for_update()
        items = list(queryset[:quantity] if quantity else queryset)

        if quantity and len(items) < quantity:
            raise InsufficientUnallocatedItems(
                f"Requested {quantity} items but only {len(items)} are unallocated",
                available=len(items),
            )
        if not items:
            raise InsufficientUnallocatedItems("No unallocated items for this product", available=0)
        return items

    def _bind(self, batch: DistributionBatch, items: List[FulfillmentItem]) -> int:
        try:
            with transaction.atomic():
                BatchMembership.objects.bulk_create([
                    BatchMembership(
                        batch=batch,
                        fulfillment_item=item,
                        quantity_allocated=item.quantity,
                        status='allocated',
                    )
                    for item in items
                ])
        except IntegrityError as e:
            logger.warning(f"Allocation conflict on batch {batch.pk}: {e}")
            raise AllocationConflict() from e

        return self.tracker.mark_allocated([item.pk for item in items])
