"""
Payment confirmation services
Following SOLID principles:
- SRP: verification, webhooks, operator status changes and reconciliation
  are separate classes
- DIP: gateway client and donation recorder are injected
"""

import json
import logging
from datetime import timedelta
from typing import Dict, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from core.exceptions import IntentNotFound, InvalidTransition, PipelineError, SignatureMismatch
from donations.recorder_service import DonationRecorder, RecordingResult
from .gateway import RazorpayClient
from .models import ContributionIntent, GatewayCallback

logger = logging.getLogger(__name__)

MANUAL_STATUSES = ('created', 'attempted', 'paid', 'failed', 'cancelled')


def _audit(source: str, raw_data: Dict, intent: Optional[ContributionIntent], order_id: str = '',
           payment_id: str = '', event: str = '', signature_valid: bool = False) -> GatewayCallback:
    return GatewayCallback.objects.create(
        source=source,
        event=event,
        gateway_order_id=order_id or '',
        gateway_payment_id=payment_id or '',
        signature_valid=signature_valid,
        raw_data=raw_data,
        intent=intent,
    )


def _set_outcome(callback: GatewayCallback, outcome: str):
    callback.outcome = outcome
    callback.save(update_fields=['outcome', 'updated_at'])


class PaymentVerifier:
    """
    Verifies the checkout callback Razorpay hands to the browser.
    HMAC-SHA256(order_id|payment_id) with the key secret, compared in
    constant time. A mismatch fails the payment request for good.
    """

    def __init__(self, gateway: Optional[RazorpayClient] = None, recorder: Optional[DonationRecorder] = None):
        self.gateway = gateway or RazorpayClient()
        self.recorder = recorder or DonationRecorder()

    def verify(self, order_id: str, payment_id: str, signature: str) -> RecordingResult:
        valid = self.gateway.verify_checkout_signature(order_id or '', payment_id or '', signature or '')
        intent = ContributionIntent.objects.filter(gateway_order_id=order_id).first() if order_id else None
        callback = _audit(
            'callback',
            {'razorpay_order_id': order_id, 'razorpay_payment_id': payment_id},
            intent,
            order_id=order_id,
            payment_id=payment_id,
            signature_valid=valid,
        )

        if not valid:
            logger.warning(f"Signature mismatch for order {order_id} / payment {payment_id}")
            if intent is not None:
                with transaction.atomic():
                    ContributionIntent.objects.mark_failed(
                        intent.pk,
                        'Invalid signature',
                        response={'error': 'Invalid signature', 'razorpay_payment_id': payment_id},
                    )
            _set_outcome(callback, SignatureMismatch.code)
            raise SignatureMismatch()

        if intent is None:
            _set_outcome(callback, IntentNotFound.code)
            raise IntentNotFound(f"No payment request for order {order_id}")

        try:
            result = self.recorder.record(intent.pk, payment_id=payment_id, signature=signature)
        except PipelineError as e:
            _set_outcome(callback, e.code)
            raise
        _set_outcome(callback, 'recorded' if result.created else 'duplicate')
        return result


class PaymentWebhookHandler:
    """
    Server-to-server Razorpay webhooks. Authenticated by HMAC-SHA256 of the
    raw body with the webhook secret. Delivery is at-least-once; recording
    goes through the idempotent donation recorder.
    """

    RECORD_EVENTS = ('payment.captured', 'order.paid')

    def __init__(self, gateway: Optional[RazorpayClient] = None, recorder: Optional[DonationRecorder] = None):
        self.gateway = gateway or RazorpayClient()
        self.recorder = recorder or DonationRecorder()

    def handle(self, body: bytes, signature: str) -> Dict:
        try:
            payload = json.loads(body.decode('utf-8'))
        except (ValueError, UnicodeDecodeError):
            logger.warning("Webhook with unparseable body rejected")
            raise ValidationError('Malformed webhook payload')

        event = payload.get('event', '')
        payment = payload.get('payload', {}).get('payment', {}).get('entity', {})
        order = payload.get('payload', {}).get('order', {}).get('entity', {})
        order_id = payment.get('order_id') or order.get('id') or ''
        payment_id = payment.get('id', '')

        valid = self.gateway.verify_webhook_signature(body, signature)
        intent = ContributionIntent.objects.filter(gateway_order_id=order_id).first() if order_id else None
        callback = _audit('webhook', payload, intent, order_id, payment_id, event, valid)

        if not valid:
            logger.warning(f"Webhook signature mismatch for event {event} order {order_id}")
            _set_outcome(callback, SignatureMismatch.code)
            raise SignatureMismatch()

        if intent is None:
            _set_outcome(callback, IntentNotFound.code)
            raise IntentNotFound(f"No payment request for order {order_id}")

        logger.info(f"Webhook {event} for order {order_id} (payment request {intent.pk})")

        if event == 'payment.authorized':
            ContributionIntent.objects.mark_attempted(intent.pk)
            _set_outcome(callback, 'attempted')
            return {'success': True, 'status': 'attempted'}

        if event == 'payment.failed':
            reason = payment.get('error_description') or 'Payment failed'
            ContributionIntent.objects.record_attempt_failure(intent.pk, reason, response=payment)
            logger.info(f"Attempt {payment_id} on order {order_id} declined: {reason}")
            _set_outcome(callback, 'failed')
            return {'success': True, 'status': 'attempted'}

        if event in self.RECORD_EVENTS:
            try:
                result = self.recorder.record(intent.pk, payment_id=payment_id)
            except PipelineError as e:
                _set_outcome(callback, e.code)
                raise
            _set_outcome(callback, 'recorded' if result.created else 'duplicate')
            return result.as_dict()

        _set_outcome(callback, 'ignored')
        return {'success': True, 'status': 'ignored'}


class PaymentStatusService:
    """
    Operator-driven status changes for payment requests that the gateway
    never confirmed. Moving a request to ``paid`` runs the recorder so the
    donation, stock and totals stay consistent.
    """

    def __init__(self, recorder: Optional[DonationRecorder] = None):
        self.recorder = recorder or DonationRecorder()

    def set_status(self, intent_id: int, status: str, payment_id: str = '', reason: str = '') -> ContributionIntent:
        if status not in MANUAL_STATUSES:
            raise InvalidTransition(f"Invalid status '{status}'. Allowed: {', '.join(MANUAL_STATUSES)}")

        intent = ContributionIntent.objects.filter(pk=intent_id).first()
        if intent is None:
            raise IntentNotFound()

        if intent.status == status:
            return intent
        if not intent.can_transition_to(status):
            raise InvalidTransition(f"Cannot move payment request from {intent.status} to {status}")

        if status == 'paid':
            self.recorder.record(intent.pk, payment_id=payment_id or f"manual_{intent.gateway_order_id}")
        elif status == 'attempted':
            ContributionIntent.objects.mark_attempted(intent.pk)
        elif status == 'failed':
            with transaction.atomic():
                ContributionIntent.objects.mark_failed(intent.pk, reason or 'Marked failed by operator')
        elif status == 'cancelled':
            ContributionIntent.objects.mark_cancelled(intent.pk)

        intent.refresh_from_db()
        logger.info(f"Payment request {intent.pk} set to {intent.status} by operator")
        return intent


class PaymentReconciler:
    """
    Recovers payments whose callback and webhook were both lost: asks
    Razorpay for the payments on each stale pending order and records the
    captured ones.
    """

    def __init__(self, gateway: Optional[RazorpayClient] = None, recorder: Optional[DonationRecorder] = None):
        self.gateway = gateway or RazorpayClient()
        self.recorder = recorder or DonationRecorder()

    def reconcile(self, older_than_minutes: int = 15, limit: int = 100) -> Dict:
        cutoff = timezone.now() - timedelta(minutes=older_than_minutes)
        stale = (
            ContributionIntent.objects.pending()
            .filter(created_at__lte=cutoff, gateway_order_id__startswith='order_')
            .order_by('created_at')[:limit]
        )

        summary = {'checked': 0, 'recorded': 0, 'attempted': 0, 'unpaid': 0, 'errors': []}
        for intent in stale:
            summary['checked'] += 1
            try:
                payments = self.gateway.fetch_order_payments(intent.gateway_order_id)
            except PipelineError as e:
                summary['errors'].append({'intent_id': intent.pk, 'reason': e.code, 'message': e.message})
                continue

            captured = next((p for p in payments if p.get('status') == 'captured'), None)
            if captured is not None:
                _audit('reconcile', captured, intent, intent.gateway_order_id, captured.get('id', ''),
                       'payment.captured', signature_valid=True)
                try:
                    self.recorder.record(intent.pk, payment_id=captured.get('id', ''))
                    summary['recorded'] += 1
                except PipelineError as e:
                    summary['errors'].append({'intent_id': intent.pk, 'reason': e.code, 'message': e.message})
            elif any(p.get('status') == 'authorized' for p in payments):
                ContributionIntent.objects.mark_attempted(intent.pk)
                summary['attempted'] += 1
            else:
                summary['unpaid'] += 1

        logger.info(f"Reconciliation finished: {summary}")
        return summary
