"""
Batch progress aggregation.

Counts are derived from the current status of each member fulfillment item
(one bucket per item) and written back to the batch row. The batch status is
a roll-up of those counts; ``cancelled`` is never rolled over.
"""

import logging
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from django.db import transaction
from django.db.models import Count, Q, Sum

from core.exceptions import BatchNotFound
from .models import DistributionBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchProgress:
    batch_id: int
    status: str
    total_items: int
    allocated_items: int
    prepared_items: int
    distributed_items: int
    total_value: Decimal
    progress_percentage: int

    def as_dict(self) -> Dict:
        return asdict(self)


def progress_percentage(distributed: int, total: int) -> int:
    """distributed / total * 100, rounded half up to an integer"""
    if not total:
        return 0
    return int((Decimal(distributed * 100) / Decimal(total)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def rollup_status(total: int, prepared: int, distributed: int) -> str:
    if total == 0:
        return 'planning'
    if distributed == total:
        return 'completed'
    if distributed > 0:
        return 'in_progress'
    if prepared == total:
        return 'prepared'
    return 'planning'


class BatchProgressAggregator:
    """
    Following SRP: only computes and stores batch progress.
    """

    def compute(self, batch: DistributionBatch) -> BatchProgress:
        """Progress from the live member items, without writing anything"""
        totals = batch.memberships.filter(is_active=True).aggregate(
            total=Count('id'),
            allocated=Count('id', filter=Q(fulfillment_item__status='allocated')),
            prepared=Count('id', filter=Q(fulfillment_item__status='prepared')),
            distributed=Count('id', filter=Q(fulfillment_item__status='distributed')),
            value=Sum('fulfillment_item__total_price'),
        )
        total = totals['total'] or 0
        distributed = totals['distributed'] or 0
        prepared = totals['prepared'] or 0

        status = batch.status
        if status != 'cancelled':
            status = rollup_status(total, prepared, distributed)

        return BatchProgress(
            batch_id=batch.pk,
            status=status,
            total_items=total,
            allocated_items=totals['allocated'] or 0,
            prepared_items=prepared,
            distributed_items=distributed,
            total_value=totals['value'] or Decimal('0.00'),
            progress_percentage=progress_percentage(distributed, total),
        )

    def recompute(self, batch_id: int) -> BatchProgress:
        """Recompute under a row lock on the batch and persist the result"""
        with transaction.atomic():
            batch = DistributionBatch.objects.select_for_update().filter(pk=batch_id).first()
            if batch is None:
                raise BatchNotFound()

            progress = self.compute(batch)
            if progress.status != batch.status:
                logger.info(f"Batch {batch.pk} status {batch.status} -> {progress.status}")

            batch.status = progress.status
            batch.total_items = progress.total_items
            batch.allocated_items = progress.allocated_items
            batch.prepared_items = progress.prepared_items
            batch.distributed_items = progress.distributed_items
            batch.total_value = progress.total_value
            batch.progress_percentage = progress.progress_percentage
            batch.save(update_fields=[
                'status',
                'total_items',
                'allocated_items',
                'prepared_items',
                'distributed_items',
                'total_value',
                'progress_percentage',
                'updated_at',
            ])
        return progress

    def snapshot(self, batch_id: int) -> BatchProgress:
        """On-demand read; does not persist"""
        batch = DistributionBatch.objects.filter(pk=batch_id).first()
        if batch is None:
            raise BatchNotFound()
        return self.compute(batch)
