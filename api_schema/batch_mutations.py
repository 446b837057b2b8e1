"""
GraphQL Mutations for distribution batches
Requires operations or admin role
"""

import logging
from datetime import date
from typing import Optional

import strawberry
from django.core.exceptions import ValidationError

from core.exceptions import PipelineError
from distribution.batch_service import BatchAllocator
from distribution.models import DistributionBatch
from donations.fulfillment_service import FulfillmentStatusTracker
from donors.roles import require_batch_manager
from .types import BatchResponse, progress_type

logger = logging.getLogger(__name__)


def _failure(error: Exception) -> BatchResponse:
    if isinstance(error, PipelineError):
        return BatchResponse(success=False, message=error.message, reason=error.code)
    return BatchResponse(success=False, message=' '.join(error.messages), reason='VALIDATION_ERROR')


def _progress_response(message: str, progress) -> BatchResponse:
    return BatchResponse(
        success=True,
        message=message,
        batch=DistributionBatch.objects.filter(pk=progress.batch_id).first(),
        progress=progress_type(progress),
    )


class BatchMutations:

    @require_batch_manager
    def create_distribution_batch(
        self,
        info,
        campaign_product_id: strawberry.ID,
        name: str,
        planned_distribution_date: date,
        quantity: Optional[int] = None,
        campaign_id: Optional[strawberry.ID] = None,
        notes: Optional[str] = None
    ) -> BatchResponse:
        """
        Create a batch and allocate the oldest unallocated items to it.
        Omitting quantity allocates every unallocated item for the product.
        """
        try:
            result = BatchAllocator().create_batch(
                campaign_product_id=int(campaign_product_id),
                name=name,
                planned_distribution_date=planned_distribution_date,
                quantity=quantity,
                campaign_id=int(campaign_id) if campaign_id else None,
                notes=notes or '',
                created_by=info.context.request.user,
            )
        except (PipelineError, ValidationError) as e:
            return _failure(e)

        return BatchResponse(
            success=True,
            message=f"Batch created with {result.items_assigned} items",
            batch=result.batch,
            items_assigned=result.items_assigned,
            progress=progress_type(result.progress),
        )

    @require_batch_manager
    def allocate_to_batch(
        self,
        info,
        batch_id: strawberry.ID,
        quantity: Optional[int] = None
    ) -> BatchResponse:
        try:
            result = BatchAllocator().allocate(int(batch_id), quantity)
        except (PipelineError, ValidationError) as e:
            return _failure(e)

        result.batch.refresh_from_db()
        return BatchResponse(
            success=True,
            message=f"Allocated {result.items_assigned} items",
            batch=result.batch,
            items_assigned=result.items_assigned,
            progress=progress_type(result.progress),
        )

    @require_batch_manager
    def update_fulfillment_status(
        self,
        info,
        fulfillment_item_id: strawberry.ID,
        status: str,
        batch_id: Optional[strawberry.ID] = None
    ) -> BatchResponse:
        """Advance one item a single step (allocated -> prepared -> distributed)"""
        try:
            progress = FulfillmentStatusTracker().set_status(
                int(fulfillment_item_id),
                status,
                batch_id=int(batch_id) if batch_id else None,
            )
        except PipelineError as e:
            return _failure(e)

        return _progress_response(f"Item marked {status}", progress)

    @require_batch_manager
    def cancel_distribution_batch(self, info, batch_id: strawberry.ID) -> BatchResponse:
        try:
            progress = BatchAllocator().cancel_batch(int(batch_id))
        except PipelineError as e:
            return _failure(e)

        logger.info(f"Batch {batch_id} cancelled by {info.context.request.user.username}")
        return _progress_response("Batch cancelled", progress)

    @require_batch_manager
    def override_batch_status(self, info, batch_id: strawberry.ID, status: str) -> BatchResponse:
        """Set the batch status directly; the next item status change recomputes it"""
        try:
            progress = BatchAllocator().override_status(int(batch_id), status)
        except PipelineError as e:
            return _failure(e)

        logger.info(f"Batch {batch_id} status overridden to {status} by {info.context.request.user.username}")
        return _progress_response(f"Batch status set to {status}", progress)
