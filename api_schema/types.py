"""
GraphQL Types for the donation pipeline
Following DRY: Centralized type definitions
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

import strawberry
import strawberry_django

from campaigns.models import Campaign, CampaignProduct
from distribution.models import DistributionBatch
from donations.models import Donation, FulfillmentItem, Personalization


@strawberry_django.type(Campaign)
class CampaignType:
    """GraphQL type for Campaign model"""
    id: strawberry.ID
    title: str
    code: str
    description: str
    goal_amount: Decimal
    status: str
    total_raised: Decimal
    donor_count: int
    progress_percentage: Decimal
    created_at: datetime


@strawberry_django.type(CampaignProduct)
class CampaignProductType:
    """GraphQL type for CampaignProduct model"""
    id: strawberry.ID
    unit_price: Decimal
    stock: int
    min_quantity: int
    max_quantity: Optional[int]
    is_active: bool

    @strawberry.field
    def name(self) -> str:
        return self.product.name

    @strawberry.field
    def unit(self) -> str:
        return self.product.unit

    @strawberry.field
    def campaign_id(self) -> strawberry.ID:
        return strawberry.ID(str(self.campaign_id))


@strawberry_django.type(Personalization)
class PersonalizationType:
    donor_name: str
    donor_country: str
    custom_image: str
    is_image_available: bool
    custom_message: str
    donation_purpose: str
    special_instructions: str
    insta_id: str
    video_wishes: str


@strawberry_django.type(FulfillmentItem)
class FulfillmentItemType:
    """GraphQL type for FulfillmentItem model"""
    id: strawberry.ID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: str
    created_at: datetime

    @strawberry.field
    def product_name(self) -> str:
        return self.product_name

    @strawberry.field
    def personalization(self) -> Optional[PersonalizationType]:
        return getattr(self, 'personalization', None)


@strawberry_django.type(Donation)
class DonationType:
    """GraphQL type for Donation model"""
    id: strawberry.ID
    campaign: CampaignType
    amount: Decimal
    tip_amount: Decimal
    kind: str
    entry_type: str
    is_anonymous: bool
    dedication: str
    message: str
    gateway_payment_id: str
    created_at: datetime
    items: List[FulfillmentItemType]

    @strawberry.field
    def receipt_number(self) -> str:
        return self.receipt_number

    @strawberry.field
    def total_paid(self) -> Decimal:
        return self.total_paid

    @strawberry.field
    def personalization(self) -> Optional[PersonalizationType]:
        return getattr(self, 'personalization', None)


@strawberry_django.type(DistributionBatch)
class DistributionBatchType:
    """GraphQL type for DistributionBatch model"""
    id: strawberry.ID
    campaign: CampaignType
    campaign_product: CampaignProductType
    name: str
    planned_distribution_date: date
    status: str
    notes: str
    total_items: int
    allocated_items: int
    prepared_items: int
    distributed_items: int
    total_value: Decimal
    progress_percentage: int
    created_at: datetime


@strawberry.type
class CheckoutResponse:
    """Response type for checkout initiation"""
    success: bool
    message: str
    reason: Optional[str] = None
    retryable: bool = False
    gateway_order_id: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    contribution_intent_id: Optional[strawberry.ID] = None
    key_id: Optional[str] = None


@strawberry.type
class PaymentConfirmationResponse:
    """Response type for payment confirmation"""
    success: bool
    message: str
    reason: Optional[str] = None
    donation_id: Optional[strawberry.ID] = None
    affected_campaign_ids: List[strawberry.ID] = strawberry.field(default_factory=list)
    donation: Optional[DonationType] = None


@strawberry.type
class PaymentStatusResponse:
    success: bool
    message: str
    reason: Optional[str] = None
    contribution_intent_id: Optional[strawberry.ID] = None
    status: Optional[str] = None


@strawberry.type
class ManualDonationError:
    index: int
    message: str


@strawberry.type
class ManualDonationResponse:
    """Response type for offline donation entry"""
    success: bool
    message: str
    donation_ids: List[strawberry.ID] = strawberry.field(default_factory=list)
    errors: List[ManualDonationError] = strawberry.field(default_factory=list)


@strawberry.type
class BatchProgressType:
    batch_id: strawberry.ID
    status: str
    total_items: int
    allocated_items: int
    prepared_items: int
    distributed_items: int
    total_value: str
    progress_percentage: int


@strawberry.type
class BatchResponse:
    """Response type for batch mutations"""
    success: bool
    message: str
    reason: Optional[str] = None
    batch: Optional[DistributionBatchType] = None
    items_assigned: int = 0
    progress: Optional[BatchProgressType] = None


@strawberry.type
class StickerType:
    sequence_number: int
    sticker_id: str
    fulfillment_item_id: strawberry.ID
    donation_id: strawberry.ID
    unit_number: int
    quantity: int
    donor_name: str
    donor_country: str
    message: str
    donation_purpose: str
    product_name: str
    batch_name: str
    campaign_title: str
    has_image: bool
    custom_image: Optional[str] = None


@strawberry.type
class StickerPageType:
    stickers: List[StickerType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool


@strawberry.type
class UnassignedSummaryType:
    remaining_donation_items: int
    remaining_quantity: int
    remaining_value: str
    earliest_donation_date: Optional[datetime]
    latest_donation_date: Optional[datetime]


@strawberry.type
class ReportResponse:
    """Response type for report generation"""
    success: bool
    message: str
    file_data: Optional[str] = None  # Base64 encoded file
    filename: Optional[str] = None
    content_type: Optional[str] = None


@strawberry.type
class UserRoleInfo:
    """Information about user's role and permissions"""
    is_authenticated: bool
    is_staff: bool  # admin, operations or finance
    roles: List[str]
    can_manage_batches: bool
    can_manage_payments: bool
    can_generate_reports: bool


@strawberry.input
class CheckoutPersonalizationInput:
    donor_name: Optional[str] = None
    donor_country: Optional[str] = None
    custom_image: Optional[str] = None
    custom_message: Optional[str] = None
    donation_purpose: Optional[str] = None
    special_instructions: Optional[str] = None
    insta_id: Optional[str] = None
    video_wishes: Optional[str] = None


@strawberry.input
class CartItemInput:
    campaign_product_id: strawberry.ID
    quantity: int
    unit_price: str
    campaign_id: Optional[strawberry.ID] = None
    personalization: Optional[CheckoutPersonalizationInput] = None


@strawberry.input
class DonorFormInput:
    mobile_number: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    message: Optional[str] = None
    dedication: Optional[str] = None
    is_anonymous: bool = False
    personalization: Optional[CheckoutPersonalizationInput] = None


@strawberry.input
class ManualDonationEntryInput:
    mobile_number: str
    amount: str
    message: Optional[str] = None


def progress_type(progress) -> BatchProgressType:
    """BatchProgress dataclass -> GraphQL type"""
    return BatchProgressType(
        batch_id=strawberry.ID(str(progress.batch_id)),
        status=progress.status,
        total_items=progress.total_items,
        allocated_items=progress.allocated_items,
        prepared_items=progress.prepared_items,
        distributed_items=progress.distributed_items,
        total_value=str(progress.total_value),
        progress_percentage=progress.progress_percentage,
    )


def sticker_type(sticker) -> StickerType:
    return StickerType(
        sequence_number=sticker.sequence_number,
        sticker_id=sticker.sticker_id,
        fulfillment_item_id=strawberry.ID(str(sticker.fulfillment_item_id)),
        donation_id=strawberry.ID(str(sticker.donation_id)),
        unit_number=sticker.unit_number,
        quantity=sticker.quantity,
        donor_name=sticker.donor_name,
        donor_country=sticker.donor_country,
        message=sticker.message,
        donation_purpose=sticker.donation_purpose,
        product_name=sticker.product_name,
        batch_name=sticker.batch_name,
        campaign_title=sticker.campaign_title,
        has_image=sticker.has_image,
        custom_image=sticker.custom_image,
    )
