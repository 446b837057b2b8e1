"""
Unit tests for payment confirmation services.
Tests PaymentVerifier, PaymentWebhookHandler, PaymentStatusService and PaymentReconciler.
"""

import pytest
import responses
from datetime import timedelta
from django.core.exceptions import ValidationError
from django.utils import timezone

from core.exceptions import IntentNotFound, InvalidTransition, SignatureMismatch
from donations.models import Donation
from donations.receipt_service import SilentNotifier
from donations.recorder_service import DonationRecorder
from payments.models import ContributionIntent, GatewayCallback
from payments.services import (
    PaymentReconciler,
    PaymentStatusService,
    PaymentVerifier,
    PaymentWebhookHandler,
)
from tests.utils.factories import create_checkout_intent
from tests.utils.mocks import (
    RAZORPAY_API_URL,
    MockRazorpayResponses,
    checkout_signature,
    signed_webhook,
)


@pytest.fixture
def recorder():
    return DonationRecorder(notifier=SilentNotifier())


@pytest.fixture
def intent(donor_user, blanket):
    return create_checkout_intent(donor_user, [(blanket, 2)], gateway_order_id='order_TEST123')


@pytest.mark.unit
class TestPaymentVerifier:
    """Test cases for PaymentVerifier."""

    def test_valid_signature_records_donation(self, recorder, intent):
        """Test a correctly signed callback records the donation."""
        signature = checkout_signature('order_TEST123', 'pay_TEST123')

        result = PaymentVerifier(recorder=recorder).verify('order_TEST123', 'pay_TEST123', signature)

        assert result.created is True
        assert result.donation.intent_id == intent.pk
        assert result.donation.gateway_signature == signature

        callback = GatewayCallback.objects.get(source='callback')
        assert callback.signature_valid is True
        assert callback.outcome == 'recorded'
        assert callback.intent_id == intent.pk

    def test_repeated_callback_is_duplicate(self, recorder, intent):
        """Test a second callback for the same payment returns the same donation."""
        signature = checkout_signature('order_TEST123', 'pay_TEST123')
        verifier = PaymentVerifier(recorder=recorder)

        first = verifier.verify('order_TEST123', 'pay_TEST123', signature)
        second = verifier.verify('order_TEST123', 'pay_TEST123', signature)

        assert second.created is False
        assert second.donation.pk == first.donation.pk
        assert list(GatewayCallback.objects.order_by('id').values_list('outcome', flat=True)) == ['recorded', 'duplicate']

    def test_bad_signature_fails_intent(self, recorder, intent, blanket):
        """Test a forged callback fails the payment request and records nothing."""
        with pytest.raises(SignatureMismatch):
            PaymentVerifier(recorder=recorder).verify('order_TEST123', 'pay_TEST123', 'forged')

        intent.refresh_from_db()
        blanket.refresh_from_db()
        assert intent.status == 'failed'
        assert intent.failure_reason == 'Invalid signature'
        assert blanket.stock == 10
        assert Donation.objects.count() == 0
        assert GatewayCallback.objects.get().outcome == 'SIGNATURE_MISMATCH'

    def test_bad_signature_after_success_keeps_donation(self, recorder, intent):
        """Test a forged replay cannot undo a recorded payment."""
        verifier = PaymentVerifier(recorder=recorder)
        verifier.verify('order_TEST123', 'pay_TEST123', checkout_signature('order_TEST123', 'pay_TEST123'))

        with pytest.raises(SignatureMismatch):
            verifier.verify('order_TEST123', 'pay_TEST123', 'forged')

        intent.refresh_from_db()
        assert intent.status == 'paid'

    def test_unknown_order(self, recorder):
        """Test a valid signature for an order we never issued."""
        signature = checkout_signature('order_UNKNOWN', 'pay_1')

        with pytest.raises(IntentNotFound):
            PaymentVerifier(recorder=recorder).verify('order_UNKNOWN', 'pay_1', signature)

        assert GatewayCallback.objects.get().outcome == 'INTENT_NOT_FOUND'


@pytest.mark.unit
class TestPaymentWebhookHandler:
    """Test cases for PaymentWebhookHandler."""

    def test_payment_captured_records(self, recorder, intent):
        """Test payment.captured records the donation."""
        body, signature = signed_webhook('payment.captured')

        result = PaymentWebhookHandler(recorder=recorder).handle(body, signature)

        assert result['success'] is True
        assert result['donationId'] == Donation.objects.get(intent=intent).pk
        assert GatewayCallback.objects.get(source='webhook').outcome == 'recorded'

    def test_order_paid_after_capture_is_duplicate(self, recorder, intent):
        """Test Razorpay's follow-up order.paid does not double count."""
        handler = PaymentWebhookHandler(recorder=recorder)
        handler.handle(*signed_webhook('payment.captured'))

        handler.handle(*signed_webhook('order.paid'))

        assert Donation.objects.count() == 1
        assert GatewayCallback.objects.order_by('-id').first().outcome == 'duplicate'

    def test_payment_authorized_marks_attempted(self, recorder, intent):
        """Test payment.authorized only moves the request to attempted."""
        result = PaymentWebhookHandler(recorder=recorder).handle(*signed_webhook('payment.authorized'))

        intent.refresh_from_db()
        assert result['status'] == 'attempted'
        assert intent.status == 'attempted'

    def test_payment_failed_keeps_request_open(self, recorder, intent):
        """Test payment.failed stores the gateway's reason and leaves the order retryable."""
        result = PaymentWebhookHandler(recorder=recorder).handle(*signed_webhook('payment.failed'))

        intent.refresh_from_db()
        assert result['status'] == 'attempted'
        assert intent.status == 'attempted'
        assert intent.failure_reason == 'Payment was declined by the bank'
        assert GatewayCallback.objects.get(source='webhook').outcome == 'failed'

    def test_retry_after_declined_attempt_is_recorded(self, recorder, intent):
        """Test a captured retry on the same order records exactly one donation."""
        PaymentWebhookHandler(recorder=recorder).handle(*signed_webhook('payment.failed'))

        result = PaymentVerifier(recorder=recorder).verify(
            'order_TEST123', 'pay_SECOND', checkout_signature('order_TEST123', 'pay_SECOND')
        )

        intent.refresh_from_db()
        assert result.created is True
        assert intent.status == 'paid'
        assert intent.failure_reason == ''
        assert Donation.objects.get().gateway_payment_id == 'pay_SECOND'

    def test_failed_after_paid_is_ignored(self, recorder, intent):
        """Test a late payment.failed cannot overwrite a paid request."""
        handler = PaymentWebhookHandler(recorder=recorder)
        handler.handle(*signed_webhook('payment.captured'))

        handler.handle(*signed_webhook('payment.failed'))

        intent.refresh_from_db()
        assert intent.status == 'paid'

    def test_unhandled_event_ignored(self, recorder, intent):
        """Test events we do not act on are audited and ignored."""
        result = PaymentWebhookHandler(recorder=recorder).handle(*signed_webhook('refund.created'))

        assert result['status'] == 'ignored'
        intent.refresh_from_db()
        assert intent.status == 'created'

    def test_bad_webhook_signature(self, recorder, intent):
        """Test a webhook signed with the wrong secret is rejected."""
        body, _ = signed_webhook('payment.captured')

        with pytest.raises(SignatureMismatch):
            PaymentWebhookHandler(recorder=recorder).handle(body, 'forged')

        intent.refresh_from_db()
        assert intent.status == 'created'
        assert GatewayCallback.objects.get().signature_valid is False

    def test_malformed_body(self, recorder):
        """Test an unparseable body is a validation error."""
        with pytest.raises(ValidationError):
            PaymentWebhookHandler(recorder=recorder).handle(b'not json', 'sig')


@pytest.mark.unit
class TestPaymentStatusService:
    """Test cases for operator status changes."""

    def test_mark_paid_runs_recorder(self, recorder, intent, blanket):
        """Test an operator marking paid records the donation."""
        updated = PaymentStatusService(recorder=recorder).set_status(intent.pk, 'paid', payment_id='pay_BANK1')

        assert updated.status == 'paid'
        donation = Donation.objects.get(intent=intent)
        assert donation.gateway_payment_id == 'pay_BANK1'
        blanket.refresh_from_db()
        assert blanket.stock == 8

    def test_mark_paid_without_payment_id(self, recorder, intent):
        """Test a generated reference is used when none is given."""
        PaymentStatusService(recorder=recorder).set_status(intent.pk, 'paid')

        assert Donation.objects.get(intent=intent).gateway_payment_id == 'manual_order_TEST123'

    def test_mark_failed_with_reason(self, recorder, intent):
        updated = PaymentStatusService(recorder=recorder).set_status(intent.pk, 'failed', reason='Donor abandoned')

        assert updated.status == 'failed'
        assert updated.failure_reason == 'Donor abandoned'

    def test_same_status_is_noop(self, recorder, intent):
        updated = PaymentStatusService(recorder=recorder).set_status(intent.pk, 'created')

        assert updated.status == 'created'

    def test_terminal_status_cannot_change(self, recorder, intent):
        """Test a paid request cannot be moved back."""
        service = PaymentStatusService(recorder=recorder)
        service.set_status(intent.pk, 'paid')

        with pytest.raises(InvalidTransition):
            service.set_status(intent.pk, 'cancelled')

    def test_unknown_status(self, recorder, intent):
        with pytest.raises(InvalidTransition):
            PaymentStatusService(recorder=recorder).set_status(intent.pk, 'refunded')

    def test_unknown_intent(self, recorder):
        with pytest.raises(IntentNotFound):
            PaymentStatusService(recorder=recorder).set_status(424242, 'paid')


@pytest.mark.unit
@pytest.mark.gateway
class TestPaymentReconciler:
    """Test cases for PaymentReconciler."""

    def _age(self, intent, minutes=30):
        ContributionIntent.objects.filter(pk=intent.pk).update(created_at=timezone.now() - timedelta(minutes=minutes))

    @responses.activate
    def test_captured_payment_is_recorded(self, recorder, intent):
        """Test a stale request with a captured payment is recorded."""
        self._age(intent)
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_TEST123/payments',
            json=MockRazorpayResponses.order_payments([
                MockRazorpayResponses.payment('pay_FAILED', 'order_TEST123', status='failed'),
                MockRazorpayResponses.payment('pay_OK', 'order_TEST123', status='captured'),
            ]),
            status=200
        )

        summary = PaymentReconciler(recorder=recorder).reconcile(older_than_minutes=15)

        assert summary['checked'] == 1
        assert summary['recorded'] == 1
        assert Donation.objects.get(intent=intent).gateway_payment_id == 'pay_OK'
        assert GatewayCallback.objects.get(source='reconcile').gateway_payment_id == 'pay_OK'

    @responses.activate
    def test_authorized_only_marks_attempted(self, recorder, intent):
        self._age(intent)
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_TEST123/payments',
            json=MockRazorpayResponses.order_payments([
                MockRazorpayResponses.payment('pay_AUTH', 'order_TEST123', status='authorized'),
            ]),
            status=200
        )

        summary = PaymentReconciler(recorder=recorder).reconcile()

        intent.refresh_from_db()
        assert summary['attempted'] == 1
        assert intent.status == 'attempted'

    @responses.activate
    def test_declined_request_is_still_reconciled(self, recorder, intent):
        """Test an order with a declined attempt is rescanned and its captured retry recorded."""
        PaymentWebhookHandler(recorder=recorder).handle(
            *signed_webhook('payment.failed', payment_id='pay_FAILED')
        )
        self._age(intent)
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_TEST123/payments',
            json=MockRazorpayResponses.order_payments([
                MockRazorpayResponses.payment('pay_FAILED', 'order_TEST123', status='failed'),
                MockRazorpayResponses.payment('pay_RETRY', 'order_TEST123', status='captured'),
            ]),
            status=200
        )

        summary = PaymentReconciler(recorder=recorder).reconcile()

        intent.refresh_from_db()
        assert summary['recorded'] == 1
        assert intent.status == 'paid'
        assert Donation.objects.get(intent=intent).gateway_payment_id == 'pay_RETRY'

    @responses.activate
    def test_recent_requests_are_left_alone(self, recorder, intent):
        """Test requests younger than the cutoff are not queried."""
        summary = PaymentReconciler(recorder=recorder).reconcile(older_than_minutes=15)

        assert summary['checked'] == 0
        assert len(responses.calls) == 0

    @responses.activate
    def test_gateway_error_is_reported(self, recorder, intent):
        """Test a gateway outage is collected in the summary, not raised."""
        self._age(intent)
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_TEST123/payments',
            json={'error': {}},
            status=503
        )

        summary = PaymentReconciler(recorder=recorder).reconcile()

        assert summary['errors'][0]['reason'] == 'GATEWAY_UNAVAILABLE'
        intent.refresh_from_db()
        assert intent.status == 'created'

    @responses.activate
    def test_no_payments_counts_unpaid(self, recorder, intent):
        self._age(intent)
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_TEST123/payments',
            json=MockRazorpayResponses.order_payments([]),
            status=200
        )

        summary = PaymentReconciler(recorder=recorder).reconcile()

        assert summary['unpaid'] == 1
        assert summary["errors"] == []
