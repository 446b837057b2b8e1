"""
GraphQL Queries
Following SRP: Each query has single responsibility
"""

from typing import List, Optional

import strawberry

from campaigns.models import Campaign, CampaignProduct
from core.exceptions import PipelineError
from distribution.batch_service import BatchAllocator
from distribution.models import DistributionBatch
from distribution.sticker_service import StickerDataSelector
from donations.models import Donation, FulfillmentItem
from donors.roles import (
    PermissionChecker,
    require_authentication,
    require_batch_manager,
)
from .types import (
    CampaignProductType,
    CampaignType,
    DistributionBatchType,
    DonationType,
    FulfillmentItemType,
    StickerPageType,
    UnassignedSummaryType,
    UserRoleInfo,
    sticker_type,
)


class CampaignQueries:
    """Public catalogue queries"""

    def campaigns(self, status: Optional[str] = 'active') -> List[CampaignType]:
        queryset = Campaign.objects.alive()
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')

    def campaign(
        self,
        id: Optional[strawberry.ID] = None,
        code: Optional[str] = None
    ) -> Optional[CampaignType]:
        """Get a single campaign by ID or code"""
        queryset = Campaign.objects.alive()
        if id:
            return queryset.filter(pk=id).first()
        if code:
            return queryset.filter(code__iexact=code).first()
        return None

    def campaign_products(self, campaign_id: strawberry.ID) -> List[CampaignProductType]:
        return (
            CampaignProduct.objects
            .filter(campaign_id=campaign_id, is_active=True, product__is_deleted=False)
            .select_related('product')
            .order_by('product__name')
        )


class DonationQueries:
    """Donor-facing queries. Staff may read any donation."""

    @require_authentication
    def my_donations(self, info, limit: Optional[int] = 20) -> List[DonationType]:
        user = info.context.request.user
        queryset = (
            Donation.objects.filter(user=user)
            .select_related('campaign')
            .prefetch_related('items__campaign_product__product')
            .order_by('-created_at')
        )
        return queryset[:limit] if limit else queryset

    @require_authentication
    def donation(self, info, id: strawberry.ID) -> Optional[DonationType]:
        user = info.context.request.user
        queryset = Donation.objects.select_related('campaign')
        if not PermissionChecker.is_staff(user):
            queryset = queryset.filter(user=user)
        return queryset.filter(pk=id).first()

    @require_authentication
    def fulfillment_items(
        self,
        info,
        donation_id: Optional[strawberry.ID] = None
    ) -> List[FulfillmentItemType]:
        """Items of one donation, or of all the caller's donations"""
        user = info.context.request.user
        queryset = FulfillmentItem.objects.select_related('campaign_product__product')
        if not PermissionChecker.is_staff(user):
            queryset = queryset.filter(donation__user=user)
        if donation_id:
            queryset = queryset.filter(donation_id=donation_id)
        return queryset.order_by('created_at', 'id')


class BatchQueries:
    """Operations queries for distribution batches"""

    @require_batch_manager
    def distribution_batches(
        self,
        info,
        campaign_id: Optional[strawberry.ID] = None,
        status: Optional[str] = None
    ) -> List[DistributionBatchType]:
        queryset = DistributionBatch.objects.select_related('campaign', 'campaign_product__product')
        if campaign_id:
            queryset = queryset.filter(campaign_id=campaign_id)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by('-created_at')

    @require_batch_manager
    def distribution_batch(self, info, id: strawberry.ID) -> Optional[DistributionBatchType]:
        return (
            DistributionBatch.objects
            .select_related('campaign', 'campaign_product__product')
            .filter(pk=id)
            .first()
        )

    @require_batch_manager
    def unassigned_count(self, info, campaign_product_id: strawberry.ID) -> int:
        return BatchAllocator().unassigned_count(int(campaign_product_id))

    @require_batch_manager
    def unassigned_summary(self, info, campaign_product_id: strawberry.ID) -> UnassignedSummaryType:
        summary = BatchAllocator().unassigned_summary(int(campaign_product_id))
        return UnassignedSummaryType(
            remaining_donation_items=summary['remaining_donation_items'],
            remaining_quantity=summary['remaining_quantity'],
            remaining_value=str(summary['remaining_value']),
            earliest_donation_date=summary['earliest_donation_date'],
            latest_donation_date=summary['latest_donation_date'],
        )

    @require_batch_manager
    def stickers(
        self,
        info,
        batch_id: strawberry.ID,
        page: int = 1,
        page_size: int = 50,
        filter: str = 'all',
        include_images: bool = True,
        get_all: bool = False
    ) -> StickerPageType:
        """
        Sticker data for label printing. Numbering is stable across page
        sizes; ``get_all`` returns the whole batch in one page.
        """
        try:
            result = StickerDataSelector().page(
                int(batch_id),
                page=page,
                page_size=page_size,
                image_filter=filter,
                include_images=include_images,
                get_all=get_all,
            )
        except PipelineError as e:
            raise ValueError(e.message) from e
        return StickerPageType(
            stickers=[sticker_type(sticker) for sticker in result.stickers],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            has_next=result.has_next,
        )


class RoleQueries:

    def current_user_role(self, info) -> UserRoleInfo:
        user = info.context.request.user
        return UserRoleInfo(
            is_authenticated=user.is_authenticated,
            is_staff=PermissionChecker.is_staff(user),
            roles=PermissionChecker.roles_for(user),
            can_manage_batches=PermissionChecker.can_manage_batches(user),
            can_manage_payments=PermissionChecker.can_manage_payments(user),
            can_generate_reports=PermissionChecker.can_generate_reports(user),
        )


@strawberry.type
class Query:
    """Root Query type"""

    campaigns: List[CampaignType] = strawberry.field(resolver=CampaignQueries.campaigns)
    campaign: Optional[CampaignType] = strawberry.field(resolver=CampaignQueries.campaign)
    campaign_products: List[CampaignProductType] = strawberry.field(resolver=CampaignQueries.campaign_products)

    my_donations: List[DonationType] = strawberry.field(resolver=DonationQueries.my_donations)
    donation: Optional[DonationType] = strawberry.field(resolver=DonationQueries.donation)
    fulfillment_items: List[FulfillmentItemType] = strawberry.field(resolver=DonationQueries.fulfillment_items)

    distribution_batches: List[DistributionBatchType] = strawberry.field(resolver=BatchQueries.distribution_batches)
    distribution_batch: Optional[DistributionBatchType] = strawberry.field(resolver=BatchQueries.distribution_batch)
    unassigned_count: int = strawberry.field(resolver=BatchQueries.unassigned_count)
    unassigned_summary: UnassignedSummaryType = strawberry.field(resolver=BatchQueries.unassigned_summary)
    stickers: StickerPageType = strawberry.field(resolver=BatchQueries.stickers)

    current_user_role: UserRoleInfo = strawberry.field(resolver=RoleQueries.current_user_role)
