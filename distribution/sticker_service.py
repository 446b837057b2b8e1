"""
Sticker data selection for batch label printing.

A batch membership with ``quantity_allocated = N`` expands to N stickers.
Stickers are numbered 1..total by their position in the full sequence, so a
page of any size carries the same numbers as the bulk export. Read-only.
"""

from dataclasses import dataclass, asdict
from itertools import islice
from typing import Dict, Iterator, List, Optional

from django.core.exceptions import ValidationError
from django.db.models import Q, Sum

from core.exceptions import BatchNotFound
from donors.models import display_name_for
from .models import BatchMembership, DistributionBatch

STICKER_FILTERS = ('all', 'with-images', 'without-images')
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000
ITERATOR_CHUNK_SIZE = 200

ANONYMOUS_DONOR = 'Anonymous Donor'
DEFAULT_PRODUCT_NAME = 'Food Package'


@dataclass(frozen=True)
class Sticker:
    sequence_number: int
    sticker_id: str
    fulfillment_item_id: int
    donation_id: int
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

    def as_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class StickerPage:
    stickers: List[Sticker]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if not self.total:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class StickerSequence:
    """
    Lazy, restartable sequence of stickers for one batch. Each iteration runs
    a fresh query, so iterating twice yields the same stickers in the same
    order.
    """

    def __init__(self, batch: DistributionBatch, image_filter: str = 'all', include_images: bool = True):
        if image_filter not in STICKER_FILTERS:
            raise ValidationError({'filter': f"Filter must be one of: {', '.join(STICKER_FILTERS)}"})
        self.batch = batch
        self.image_filter = image_filter
        self.include_images = include_images

    def memberships(self):
        queryset = (
            BatchMembership.objects
            .filter(batch=self.batch, is_active=True)
            .select_related(
                'fulfillment_item__personalization',
                'fulfillment_item__campaign_product__product',
                'fulfillment_item__donation__user__donor',
            )
            .order_by('fulfillment_item__created_at', 'fulfillment_item__id')
        )
        with_image = Q(fulfillment_item__personalization__is_image_available=True)
        if self.image_filter == 'with-images':
            queryset = queryset.filter(with_image)
        elif self.image_filter == 'without-images':
            queryset = queryset.exclude(with_image)
        return queryset

    def count(self) -> int:
        return self.memberships().aggregate(total=Sum('quantity_allocated'))['total'] or 0

    def __iter__(self) -> Iterator[Sticker]:
        number = 0
        campaign_title = self.batch.campaign.title
        for membership in self.memberships().iterator(chunk_size=ITERATOR_CHUNK_SIZE):
            for unit in range(1, membership.quantity_allocated + 1):
                number += 1
                yield self._build(membership, unit, number, campaign_title)

    def _build(self, membership: BatchMembership, unit: int, number: int, campaign_title: str) -> Sticker:
        item = membership.fulfillment_item
        donation = item.donation
        personalization = getattr(item, 'personalization', None)

        if donation.is_anonymous:
            donor_name = ANONYMOUS_DONOR
        else:
            donor_name = (
                (personalization.donor_name if personalization else '')
                or display_name_for(donation.user)
                or ANONYMOUS_DONOR
            )

        has_image = bool(personalization and personalization.is_image_available)
        return Sticker(
            sequence_number=number,
            sticker_id=f"{membership.pk}_{unit}",
            fulfillment_item_id=item.pk,
            donation_id=donation.pk,
            unit_number=unit,
            quantity=membership.quantity_allocated,
            donor_name=donor_name,
            donor_country=personalization.donor_country if personalization else '',
            message=(personalization.custom_message if personalization else '') or donation.message,
            donation_purpose=personalization.donation_purpose if personalization else '',
            product_name=item.campaign_product.product.name or DEFAULT_PRODUCT_NAME,
            batch_name=self.batch.name,
            campaign_title=campaign_title,
            has_image=has_image,
            custom_image=personalization.custom_image if has_image and self.include_images else None,
        )


class StickerDataSelector:
    """
    Pages over a batch's StickerSequence. ``get_all`` returns the whole
    sequence as a single page for bulk export.
    """

    def sequence(self, batch_id: int, image_filter: str = 'all', include_images: bool = True) -> StickerSequence:
        batch = DistributionBatch.objects.select_related('campaign').filter(pk=batch_id).first()
        if batch is None:
            raise BatchNotFound()
        return StickerSequence(batch, image_filter, include_images)

    def page(
        self,
        batch_id: int,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        image_filter: str = 'all',
        include_images: bool = True,
        get_all: bool = False,
    ) -> StickerPage:
        if page < 1:
            raise ValidationError({'page': 'Page must be at least 1.'})
        if not get_all and not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError({'page_size': f'Page size must be between 1 and {MAX_PAGE_SIZE}.'})

        sequence = self.sequence(batch_id, image_filter, include_images)
        total = sequence.count()

        if get_all:
            return StickerPage(stickers=list(sequence), total=total, page=1, page_size=max(total, 1))

        start = (page - 1) * page_size
        stickers = list(islice(sequence, start, start + page_size))
        return StickerPage(stickers=stickers, total=total, page=page, page_size=page_size)
