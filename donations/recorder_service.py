"""
Donation recording - the transactional core of the pipeline.

Turns a verified payment into a Donation, its fulfillment items and
personalization, decrements stock with an oversell guard and updates campaign
aggregates, all in one database transaction. Receipts are scheduled with
``transaction.on_commit`` so they can never affect the financial write.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from django.db.models import F

from campaigns.aggregates import apply_campaign_totals
from campaigns.models import Campaign, CampaignProduct
from core.exceptions import (
    InsufficientStock,
    IntentNotFound,
    InvalidTransition,
    PipelineError,
    ProductNotFound,
)
from payments.checkout_payload import CheckoutRequest, PersonalizationData, request_from_snapshot
from payments.models import ContributionIntent, CheckoutSnapshot
from .models import Donation, FulfillmentItem, Personalization
from .receipt_service import ReceiptNotifier

logger = logging.getLogger(__name__)


@dataclass
class RecordingResult:
    donation: Donation
    affected_campaign_ids: List[int] = field(default_factory=list)
    created: bool = True

    def as_dict(self) -> Dict:
        return {
            'success': True,
            'donationId': self.donation.pk,
            'affectedCampaignIds': self.affected_campaign_ids,
        }


def affected_campaign_ids(donation: Donation) -> List[int]:
    """Campaigns whose totals a donation contributed to"""
    ids = set(
        donation.items.values_list('campaign_product__campaign_id', flat=True)
    )
    if donation.kind == 'direct' or not ids:
        ids.add(donation.campaign_id)
    return sorted(ids)


def failure_reason(error: Exception) -> str:
    if isinstance(error, PipelineError):
        return f"{error.code}: {error.message}"
    return f"{type(error).__name__}: {error}"


class DonationRecorder:
    """
    Records verified payments.
    Following SRP: the only component that mutates stock and campaign totals
    as the result of a purchase.
    Following DIP: the receipt notifier is injected; pass a SilentNotifier to disable receipts.
    """

    def __init__(self, notifier: Optional[ReceiptNotifier] = None):
        self.notifier = notifier or ReceiptNotifier()

    def record(self, intent_id: int, payment_id: str, signature: str = '') -> RecordingResult:
        """
        Record the donation for a verified payment request.

        Idempotent: a request that is already paid returns its existing
        donation with ``created=False``.

        Raises:
            IntentNotFound: unknown payment request
            InvalidTransition: request already failed or cancelled
            InsufficientStock: a product sold out between checkout and payment
        """
        try:
            with transaction.atomic():
                try:
                    intent = ContributionIntent.objects.select_for_update().get(pk=intent_id)
                except ContributionIntent.DoesNotExist:
                    raise IntentNotFound()

                if intent.status == 'paid':
                    donation = Donation.objects.get(intent=intent)
                    logger.info(f"Payment request {intent.pk} already recorded as {donation.receipt_number}")
                    return RecordingResult(donation, affected_campaign_ids(donation), created=False)

                if not intent.can_transition_to('paid'):
                    raise InvalidTransition(f"Payment request is {intent.status}")

                result = self._record_locked(intent, payment_id, signature)
        except IntentNotFound:
            raise
        except IntegrityError as e:
            # A concurrent recorder won the one-to-one insert
            existing = Donation.objects.filter(intent_id=intent_id).first()
            if existing is not None:
                logger.info(f"Duplicate confirmation for payment request {intent_id}; returning {existing.receipt_number}")
                return RecordingResult(existing, affected_campaign_ids(existing), created=False)
            self._mark_failed(intent_id, e)
            raise
        except Exception as e:
            self._mark_failed(intent_id, e)
            raise

        logger.info(
            f"Recorded {result.donation.receipt_number} for payment request {intent_id}: "
            f"INR {result.donation.amount}, campaigns {result.affected_campaign_ids}"
        )
        return result

    def record_offline(
        self,
        user: User,
        campaign: Campaign,
        amount: Decimal,
        message: str = '',
        contact_phone: str = '',
        reference: Optional[str] = None,
    ) -> RecordingResult:
        """
        Record a donation that was paid outside the gateway (cash, bank
        transfer). The payment request is created directly as paid.
        """
        reference = reference or f"manual_{int(time.time() * 1000)}"
        with transaction.atomic():
            intent = ContributionIntent.objects.create(
                user=user,
                campaign=campaign,
                amount=amount,
                tip_amount=Decimal('0.00'),
                kind='direct',
                status='paid',
                gateway_order_id=reference,
                gateway_payment_id=reference,
                gateway_response={'source': 'manual'},
            )
            donation = Donation.objects.create(
                user=user,
                campaign=campaign,
                intent=intent,
                gateway_payment_id=reference,
                amount=amount,
                tip_amount=Decimal('0.00'),
                kind='direct',
                entry_type='manual',
                message=message,
                contact_name=user.get_full_name(),
                contact_phone=contact_phone,
                contact_email=user.email,
            )
            apply_campaign_totals({campaign.pk: amount})
            self._schedule_receipt(donation)

        return RecordingResult(donation, [campaign.pk], created=True)

    def _record_locked(self, intent: ContributionIntent, payment_id: str, signature: str) -> RecordingResult:
        snapshot = CheckoutSnapshot.objects.filter(intent=intent).first()
        request = request_from_snapshot(intent, snapshot)
        if intent.kind == 'product_based' and not request.lines:
            raise ProductNotFound('Checkout snapshot has no cart items')

        donation = Donation.objects.create(
            user=intent.user,
            campaign=intent.campaign,
            intent=intent,
            gateway_payment_id=payment_id or '',
            gateway_signature=signature or '',
            amount=intent.donation_amount,
            tip_amount=intent.tip_amount,
            kind=intent.kind,
            entry_type='gateway',
            is_anonymous=request.form.is_anonymous,
            dedication=request.form.dedication,
            message=request.form.message,
            contact_name=request.form.full_name or intent.user.get_full_name(),
            contact_phone=request.form.mobile_number,
            contact_email=request.form.email or intent.user.email,
        )

        campaign_totals = self._create_items(donation, request)
        self._decrement_stock(request)
        apply_campaign_totals(campaign_totals)

        intent.status = 'paid'
        intent.gateway_payment_id = payment_id or intent.gateway_payment_id
        intent.failure_reason = ''
        intent.save(update_fields=['status', 'gateway_payment_id', 'failure_reason', 'updated_at'])

        if snapshot is not None:
            snapshot.delete()

        self._schedule_receipt(donation)
        return RecordingResult(donation, sorted(campaign_totals), created=True)

    def _create_items(self, donation: Donation, request: CheckoutRequest) -> Dict[int, Decimal]:
        """Insert line items and personalization; return amount per campaign"""
        campaign_totals = defaultdict(Decimal)

        if request.kind == 'direct':
            personalization = self._direct_personalization(request)
            if personalization.has_content():
                Personalization.objects.create(donation=donation, **personalization.as_model_kwargs())
            campaign_totals[donation.campaign_id] += donation.amount
            return dict(campaign_totals)

        products = CampaignProduct.objects.in_bulk([line.campaign_product_id for line in request.lines])
        for line in request.lines:
            product = products.get(line.campaign_product_id)
            if product is None:
                raise ProductNotFound(f"Product {line.campaign_product_id} no longer exists")

            item = FulfillmentItem.objects.create(
                donation=donation,
                campaign_product=product,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.line_total,
                status='pending',
                created_at=donation.created_at,
            )
            if line.personalization is not None:
                Personalization.objects.create(fulfillment_item=item, **line.personalization.as_model_kwargs())

            campaign_totals[product.campaign_id] += line.line_total

        # Anything the lines do not account for belongs to the checkout's campaign
        remainder = donation.amount - sum(campaign_totals.values(), Decimal('0.00'))
        if remainder > 0:
            logger.warning(f"{donation.receipt_number}: INR {remainder} not covered by cart lines")
            campaign_totals[donation.campaign_id] += remainder

        return dict(campaign_totals)

    def _direct_personalization(self, request: CheckoutRequest) -> PersonalizationData:
        form = request.form
        given = form.personalization
        return PersonalizationData(
            donor_name=given.donor_name or form.full_name,
            donor_country=given.donor_country or form.country,
            custom_image=given.custom_image,
            custom_message=given.custom_message or form.message,
            donation_purpose=given.donation_purpose or form.dedication,
            special_instructions=given.special_instructions,
            insta_id=given.insta_id,
            video_wishes=given.video_wishes,
        )

    def _decrement_stock(self, request: CheckoutRequest):
        """
        Oversell guard: one conditional UPDATE per product, evaluated by the
        database. Zero rows updated means the stock ran out.
        """
        quantities = defaultdict(int)
        for line in request.lines:
            quantities[line.campaign_product_id] += line.quantity

        for product_id in sorted(quantities):
            quantity = quantities[product_id]
            updated = CampaignProduct.objects.filter(
                pk=product_id,
                stock__gte=quantity,
            ).update(stock=F('stock') - quantity)
            if not updated:
                raise InsufficientStock(
                    f"Insufficient stock for product {product_id} (requested {quantity})",
                    campaign_product_id=product_id,
                )

    def _schedule_receipt(self, donation: Donation):
        self.notifier.schedule(donation.pk)

    def _mark_failed(self, intent_id: int, error: Exception):
        reason = failure_reason(error)
        logger.error(f"Recording payment request {intent_id} failed: {reason}", exc_info=error)
        try:
            with transaction.atomic():
                ContributionIntent.objects.mark_failed(intent_id, reason)
        except Exception:
            logger.exception(f"Could not mark payment request {intent_id} as failed")
