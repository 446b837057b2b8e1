"""
Checkout initiation.
Following SRP: PaymentOrderIssuer only opens gateway orders and persists the
pending payment request; nothing here touches stock or campaign totals.
Following DIP: the gateway client is injected.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import transaction

from campaigns.models import Campaign, CampaignProduct
from core.exceptions import (
    IdentityMismatch,
    IdentityNotFound,
    InsufficientStock,
    InvalidAmount,
    NoEligibleCampaign,
    ProductNotFound,
    UnauthenticatedCaller,
)
from .checkout_payload import CheckoutRequest
from .gateway import RazorpayClient
from .models import ContributionIntent, CheckoutSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    gateway_order_id: str
    amount: Decimal
    currency: str
    contribution_intent_id: int
    key_id: str = ''

    def as_dict(self) -> Dict:
        return {
            'gatewayOrderId': self.gateway_order_id,
            'amount': str(self.amount),
            'currency': self.currency,
            'contributionIntentId': self.contribution_intent_id,
        }


class PaymentOrderIssuer:
    """
    Opens a gateway order for a checkout and records it as a ContributionIntent.

    The gateway call happens outside any database transaction so a slow
    gateway never holds row locks; the intent and snapshot are then written
    together atomically. A gateway failure leaves nothing behind and is
    surfaced to the caller, who retries the whole checkout.
    """

    def __init__(self, gateway: Optional[RazorpayClient] = None):
        self.gateway = gateway or RazorpayClient()

    def issue(self, user, request: CheckoutRequest, asserted_user_id=None) -> CheckoutResult:
        self._check_identity(user, asserted_user_id)

        if request.amount <= 0:
            raise InvalidAmount()
        if request.donation_amount <= 0:
            raise InvalidAmount('Donation amount must be greater than the tip')

        campaign = self._resolve_campaign(request)
        self._validate_cart(request)

        currency = getattr(settings, 'GATEWAY_CURRENCY', 'INR')
        order = self.gateway.create_order(
            amount_paise=int((request.amount * 100).to_integral_value()),
            currency=currency,
            receipt=f"donation_{int(time.time() * 1000)}",
            notes={
                'user_id': user.pk,
                'campaign_id': campaign.pk,
                'kind': request.kind,
                'tip_amount': request.tip_amount,
            },
        )

        with transaction.atomic():
            intent = ContributionIntent.objects.create(
                user=user,
                campaign=campaign,
                amount=request.amount,
                tip_amount=request.tip_amount,
                currency=currency,
                kind=request.kind,
                status='created',
                gateway_order_id=order['id'],
                gateway_response=order,
            )
            CheckoutSnapshot.objects.create(
                intent=intent,
                cart_items=request.snapshot_cart(),
                form_data=request.snapshot_form(),
            )

        logger.info(
            f"Checkout {intent.pk} opened: order {intent.gateway_order_id}, "
            f"INR {intent.amount} ({intent.kind}) for user {user.pk}"
        )
        return CheckoutResult(
            gateway_order_id=intent.gateway_order_id,
            amount=intent.amount,
            currency=currency,
            contribution_intent_id=intent.pk,
            key_id=self.gateway.key_id,
        )

    def _check_identity(self, user, asserted_user_id):
        if user is None or not user.is_authenticated:
            raise UnauthenticatedCaller()

        if asserted_user_id is not None and str(asserted_user_id) != str(user.pk):
            logger.warning(
                f"Identity mismatch at checkout: session user {user.pk} asserted {asserted_user_id}"
            )
            raise IdentityMismatch()

        if not User.objects.filter(pk=user.pk, is_active=True).exists():
            raise IdentityNotFound()

    def _resolve_campaign(self, request: CheckoutRequest) -> Campaign:
        """
        Explicit campaign, then the first cart line's campaign, then the most
        recently created active campaign.
        """
        active = Campaign.objects.active()

        if request.campaign_id is not None:
            campaign = active.filter(pk=request.campaign_id).first()
            if campaign is None:
                raise NoEligibleCampaign(f"Campaign {request.campaign_id} is not accepting donations")
            return campaign

        if request.lines:
            first = request.lines[0]
            campaign_id = first.campaign_id
            if campaign_id is None:
                campaign_id = (
                    CampaignProduct.objects
                    .filter(pk=first.campaign_product_id)
                    .values_list('campaign_id', flat=True)
                    .first()
                )
            campaign = active.filter(pk=campaign_id).first() if campaign_id else None
            if campaign is not None:
                return campaign

        campaign = active.order_by('-created_at', '-id').first()
        if campaign is None:
            raise NoEligibleCampaign()
        return campaign

    def _validate_cart(self, request: CheckoutRequest):
        """
        Check each cart line against the live catalog. Stock is only checked
        here to fail fast; the authoritative check is the conditional
        decrement when the payment is recorded.
        """
        if not request.lines:
            return

        products = CampaignProduct.objects.select_related('campaign', 'product').in_bulk(
            [line.campaign_product_id for line in request.lines]
        )
        requested = {}

        for index, line in enumerate(request.lines):
            product = products.get(line.campaign_product_id)
            if product is None or not product.is_active or product.product.is_deleted:
                raise ProductNotFound(f"Product {line.campaign_product_id} is not available")
            if not product.campaign.is_active:
                raise NoEligibleCampaign(f"Campaign {product.campaign.code} is not accepting donations")
            if line.campaign_id is not None and line.campaign_id != product.campaign_id:
                raise ValidationError({
                    f'cart_items[{index}].campaign_id': 'Product does not belong to this campaign.'
                })
            if line.quantity < product.min_quantity:
                raise ValidationError({
                    f'cart_items[{index}].quantity': f'Minimum quantity is {product.min_quantity}.'
                })
            if product.max_quantity is not None and line.quantity > product.max_quantity:
                raise ValidationError({
                    f'cart_items[{index}].quantity': f'Maximum quantity is {product.max_quantity}.'
                })
            if line.unit_price != product.unit_price:
                raise ValidationError({
                    f'cart_items[{index}].unit_price': 'Price has changed, please refresh your cart.'
                })
            requested[product.pk] = requested.get(product.pk, 0) + line.quantity

        for product_id, quantity in requested.items():
            if products[product_id].stock < quantity:
                raise InsufficientStock(
                    f"Only {products[product_id].stock} left of {products[product_id].name}",
                    campaign_product_id=product_id,
                )

        expected = request.lines_total + request.tip_amount
        if request.amount != expected:
            raise ValidationError({
                'amount': f'Total {request.amount} does not match cart total {expected}.'
            })
