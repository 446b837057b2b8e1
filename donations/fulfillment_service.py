"""
Fulfillment status tracking.
Following SRP: owns the lifecycle of fulfillment items
(pending -> allocated -> prepared -> distributed). Every change is forward
by exactly one step and triggers a batch progress recompute.
"""

import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from core.exceptions import AllocationConflict, FulfillmentItemNotFound, InvalidTransition
from distribution.models import BatchMembership
from distribution.progress_service import BatchProgress, BatchProgressAggregator
from .models import FULFILLMENT_SEQUENCE, FulfillmentItem, next_fulfillment_status

logger = logging.getLogger(__name__)

SETTABLE_STATUSES = FULFILLMENT_SEQUENCE[1:]


def serialize_item(item: FulfillmentItem) -> Dict:
    """Listing shape: id, productName, quantity, status, personalization"""
    personalization = getattr(item, 'personalization', None)
    return {
        'id': item.pk,
        'productName': item.product_name,
        'quantity': item.quantity,
        'status': item.status,
        'personalization': {
            'donorName': personalization.donor_name,
            'customMessage': personalization.custom_message,
            'customImage': personalization.custom_image or None,
            'isImageAvailable': personalization.is_image_available,
        } if personalization else None,
    }


class FulfillmentStatusTracker:

    def __init__(self, aggregator: Optional[BatchProgressAggregator] = None):
        self.aggregator = aggregator or BatchProgressAggregator()

    def set_status(self, item_id: int, new_status: str, batch_id: Optional[int] = None) -> BatchProgress:
        """
        Move one fulfillment item to its next status.

        ``pending -> allocated`` only happens through batch allocation, so
        the item must already have an active batch membership.

        Raises:
            InvalidTransition: unknown status, skipped or reverted step,
                item outside the given batch or not in any active batch
        """
        if new_status not in SETTABLE_STATUSES:
            raise InvalidTransition(
                f"Invalid status '{new_status}'. Allowed: {', '.join(SETTABLE_STATUSES)}"
            )

        with transaction.atomic():
            item = FulfillmentItem.objects.select_for_update().filter(pk=item_id).first()
            if item is None:
                raise FulfillmentItemNotFound()

            expected = next_fulfillment_status(item.status)
            if new_status != expected:
                raise InvalidTransition(
                    f"Cannot move item {item.pk} from {item.status} to {new_status}"
                )

            membership = (
                BatchMembership.objects.select_for_update()
                .filter(fulfillment_item=item, is_active=True)
                .first()
            )
            if membership is None:
                raise InvalidTransition(f"Item {item.pk} is not allocated to an active batch")
            if batch_id is not None and membership.batch_id != int(batch_id):
                raise InvalidTransition(f"Item {item.pk} does not belong to batch {batch_id}")

            item.status = new_status
            item.save(update_fields=['status', 'updated_at'])
            membership.status = new_status
            membership.save(update_fields=['status', 'updated_at'])

            progress = self.aggregator.recompute(membership.batch_id)

        logger.info(f"Fulfillment item {item.pk} -> {new_status} (batch {membership.batch_id})")
        return progress

    def mark_allocated(self, item_ids: List[int]) -> int:
        """
        Bulk pending -> allocated for items the allocator has just bound.
        Must run inside the allocator's transaction.
        """
        updated = FulfillmentItem.objects.filter(
            pk__in=item_ids,
            status='pending',
        ).update(status='allocated', updated_at=timezone.now())
        if updated != len(item_ids):
            raise AllocationConflict(
                f"Expected to allocate {len(item_ids)} items but {updated} were still pending"
            )
        return updated

    def release(self, item_ids: List[int]) -> int:
        """Return items of a cancelled batch to the unallocated pool"""
        return FulfillmentItem.objects.filter(
            pk__in=item_ids,
            status__in=['allocated', 'prepared'],
        ).update(status='pending', updated_at=timezone.now())

    def list_for_donation(self, donation_id: int) -> List[Dict]:
        items = (
            FulfillmentItem.objects.filter(donation_id=donation_id)
            .select_related('campaign_product__product', 'personalization')
        )
        return [serialize_item(item) for item in items]

    def list_for_user(self, user) -> List[Dict]:
        items = (
            FulfillmentItem.objects.filter(donation__user=user)
            .select_related('campaign_product__product', 'personalization')
        )
        return [serialize_item(item) for item in items]
