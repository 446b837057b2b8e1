"""
GraphQL Mutations
Following SRP: Each mutation has single responsibility
Following DIP: Mutations depend on service abstractions
"""

import logging
from dataclasses import is_dataclass
from typing import List, Optional

import strawberry
from django.core.exceptions import ValidationError

from core.exceptions import PipelineError
from donations.manual_donation_service import ManualDonationService
from donors.roles import require_payment_manager
from payments.checkout_payload import parse_checkout_request
from payments.checkout_service import PaymentOrderIssuer
from payments.services import PaymentStatusService, PaymentVerifier
from .batch_mutations import BatchMutations
from .report_mutations import ReportMutations
from .types import (
    BatchResponse,
    CartItemInput,
    CheckoutResponse,
    DonorFormInput,
    ManualDonationEntryInput,
    ManualDonationError,
    ManualDonationResponse,
    PaymentConfirmationResponse,
    PaymentStatusResponse,
    ReportResponse,
)

logger = logging.getLogger(__name__)


def validation_message(error: ValidationError) -> str:
    if hasattr(error, 'message_dict'):
        return '; '.join(
            f"{field}: {' '.join(messages)}" for field, messages in error.message_dict.items()
        )
    return ' '.join(error.messages)


def _input_dict(value) -> Optional[dict]:
    """strawberry input -> plain dict, dropping unset values"""
    if value is None:
        return None
    data = {}
    for key, item in vars(value).items():
        if item is None:
            continue
        if is_dataclass(item):
            item = _input_dict(item)
        data[key] = item
    return data


class PaymentMutations:
    """Checkout and payment confirmation"""

    def initiate_checkout(
        self,
        info,
        amount: str,
        form_data: DonorFormInput,
        kind: Optional[str] = None,
        cart_items: Optional[List[CartItemInput]] = None,
        campaign_id: Optional[strawberry.ID] = None,
        tip_amount: Optional[str] = None,
        tip_percentage: Optional[str] = None,
        user_id: Optional[strawberry.ID] = None
    ) -> CheckoutResponse:
        """
        Open a Razorpay order for a cart or a direct donation.

        Flow:
        1. Validate the payload shape
        2. Validate identity, amounts, campaign and cart against the catalogue
        3. Create the gateway order
        4. Record the payment request and checkout snapshot

        Args:
            amount: Total charged in INR, tip included
            user_id: Optional asserted user id; must match the token's user
        """
        payload = {
            'kind': kind,
            'amount': amount,
            'tip_amount': tip_amount,
            'tip_percentage': tip_percentage,
            'campaign_id': campaign_id,
            'cart_items': [_input_dict(item) for item in cart_items or []],
            'form_data': _input_dict(form_data),
        }

        try:
            request = parse_checkout_request(payload)
            result = PaymentOrderIssuer().issue(info.context.request.user, request, asserted_user_id=user_id)
        except ValidationError as e:
            return CheckoutResponse(success=False, message=validation_message(e), reason='VALIDATION_ERROR')
        except PipelineError as e:
            return CheckoutResponse(
                success=False,
                message=e.message,
                reason=e.code,
                retryable=e.retryable,
            )

        return CheckoutResponse(
            success=True,
            message="Payment order created",
            gateway_order_id=result.gateway_order_id,
            amount=str(result.amount),
            currency=result.currency,
            contribution_intent_id=strawberry.ID(str(result.contribution_intent_id)),
            key_id=result.key_id,
        )

    def confirm_payment(
        self,
        info,
        razorpay_order_id: str,
        razorpay_payment_id: str,
        razorpay_signature: str
    ) -> PaymentConfirmationResponse:
        """
        Verify the Razorpay Checkout signature and record the donation.
        Confirming the same payment twice returns the same donation.
        """
        try:
            result = PaymentVerifier().verify(razorpay_order_id, razorpay_payment_id, razorpay_signature)
        except PipelineError as e:
            return PaymentConfirmationResponse(success=False, message=e.message, reason=e.code)

        return PaymentConfirmationResponse(
            success=True,
            message="Donation recorded" if result.created else "Donation already recorded",
            donation_id=strawberry.ID(str(result.donation.pk)),
            affected_campaign_ids=[strawberry.ID(str(pk)) for pk in result.affected_campaign_ids],
            donation=result.donation,
        )

    @require_payment_manager
    def set_payment_status(
        self,
        info,
        contribution_intent_id: strawberry.ID,
        status: str,
        payment_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> PaymentStatusResponse:
        """Operator status change for a payment request the gateway never confirmed"""
        try:
            intent = PaymentStatusService().set_status(
                int(contribution_intent_id),
                status,
                payment_id=payment_id or '',
                reason=reason or '',
            )
        except PipelineError as e:
            return PaymentStatusResponse(success=False, message=e.message, reason=e.code)

        logger.info(f"Payment request {intent.pk} set to {intent.status} by {info.context.request.user.username}")
        return PaymentStatusResponse(
            success=True,
            message=f"Payment request is now {intent.status}",
            contribution_intent_id=strawberry.ID(str(intent.pk)),
            status=intent.status,
        )

    @require_payment_manager
    def record_manual_donations(
        self,
        info,
        campaign_code: str,
        entries: List[ManualDonationEntryInput]
    ) -> ManualDonationResponse:
        """
        Record offline donations (cash, cheque, bank transfer) for a campaign.
        Bad entries are reported individually; the rest are still recorded.
        """
        result = ManualDonationService().record_entries(
            campaign_code,
            [{'mobile_number': e.mobile_number, 'amount': e.amount, 'message': e.message or ''} for e in entries],
            entered_by=info.context.request.user,
        )
        return ManualDonationResponse(
            success=result['success'],
            message=result['message'],
            donation_ids=[strawberry.ID(str(pk)) for pk in result['recorded']],
            errors=[ManualDonationError(**error) for error in result['errors']],
        )


@strawberry.type
class Mutation:
    """Root Mutation type - combines all mutations"""

    # Checkout and payments
    initiate_checkout: CheckoutResponse = strawberry.mutation(resolver=PaymentMutations.initiate_checkout)
    confirm_payment: PaymentConfirmationResponse = strawberry.mutation(resolver=PaymentMutations.confirm_payment)
    set_payment_status: PaymentStatusResponse = strawberry.mutation(resolver=PaymentMutations.set_payment_status)
    record_manual_donations: ManualDonationResponse = strawberry.mutation(
        resolver=PaymentMutations.record_manual_donations
    )

    # Distribution batches
    create_distribution_batch: BatchResponse = strawberry.mutation(resolver=BatchMutations.create_distribution_batch)
    allocate_to_batch: BatchResponse = strawberry.mutation(resolver=BatchMutations.allocate_to_batch)
    update_fulfillment_status: BatchResponse = strawberry.mutation(resolver=BatchMutations.update_fulfillment_status)
    cancel_distribution_batch: BatchResponse = strawberry.mutation(resolver=BatchMutations.cancel_distribution_batch)
    override_batch_status: BatchResponse = strawberry.mutation(resolver=BatchMutations.override_batch_status)

    # Reports
    generate_donation_report: ReportResponse = strawberry.mutation(resolver=ReportMutations.generate_donation_report)
    generate_batch_manifest: ReportResponse = strawberry.mutation(resolver=ReportMutations.generate_batch_manifest)
