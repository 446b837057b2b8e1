"""
Unit tests for checkout initiation.
Tests RazorpayClient and PaymentOrderIssuer.
"""

import json

import pytest
import requests
import responses
from decimal import Decimal
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError

from core.exceptions import (
    GatewayRejected,
    GatewayTimeout,
    GatewayUnavailable,
    IdentityMismatch,
    IdentityNotFound,
    InsufficientStock,
    InvalidAmount,
    NoEligibleCampaign,
    ProductNotFound,
    UnauthenticatedCaller,
)
from payments.checkout_payload import parse_checkout_request
from payments.checkout_service import PaymentOrderIssuer
from payments.gateway import RazorpayClient
from payments.models import CheckoutSnapshot, ContributionIntent
from tests.utils.factories import CampaignFactory, CampaignProductFactory
from tests.utils.mocks import (
    RAZORPAY_API_URL,
    MockRazorpayResponses,
    checkout_signature,
    setup_razorpay_mocks,
)


def _cart_request(product, quantity=2, tip='0', amount=None, **overrides):
    total = product.unit_price * quantity + Decimal(tip)
    payload = {
        'kind': 'product_based',
        'amount': str(amount if amount is not None else total),
        'tip_amount': tip,
        'cart_items': [{
            'campaign_product_id': product.pk,
            'quantity': quantity,
            'unit_price': str(product.unit_price),
            'campaign_id': product.campaign_id,
        }],
        'form_data': {'mobile_number': '9876543210', 'full_name': 'Priya Nair', 'email': 'priya@example.com'},
    }
    payload.update(overrides)
    return parse_checkout_request(payload)


@pytest.mark.unit
@pytest.mark.gateway
class TestRazorpayClient:
    """Test cases for RazorpayClient."""

    @responses.activate
    def test_create_order_posts_paise(self):
        """Test order creation sends the amount in paise."""
        responses.add(
            responses.POST,
            f'{RAZORPAY_API_URL}/orders',
            json=MockRazorpayResponses.order_created('order_ABC', Decimal('1050.00')),
            status=200
        )

        order = RazorpayClient().create_order(105000, 'INR', 'donation_1', {'user_id': 4})

        assert order['id'] == 'order_ABC'
        sent = json.loads(responses.calls[0].request.body)
        assert sent['amount'] == 105000
        assert sent['notes'] == {'user_id': '4'}

    @responses.activate
    def test_rejected_order_raises(self):
        """Test a 4xx answer becomes GatewayRejected with Razorpay's description."""
        setup_razorpay_mocks(responses, scenario='rejected')

        with pytest.raises(GatewayRejected) as exc:
            RazorpayClient().create_order(50, 'INR', 'donation_1', {})

        assert 'atleast' in exc.value.message
        assert exc.value.retryable is False

    @responses.activate
    def test_server_error_is_retryable(self):
        """Test a 5xx answer becomes a retryable GatewayUnavailable."""
        setup_razorpay_mocks(responses, scenario='unavailable')

        with pytest.raises(GatewayUnavailable) as exc:
            RazorpayClient().create_order(100000, 'INR', 'donation_1', {})

        assert exc.value.retryable is True

    @responses.activate
    def test_timeout_is_retryable(self):
        """Test a timed out call becomes GatewayTimeout."""
        responses.add(responses.POST, f'{RAZORPAY_API_URL}/orders', body=requests.exceptions.ReadTimeout())

        with pytest.raises(GatewayTimeout) as exc:
            RazorpayClient().create_order(100000, 'INR', 'donation_1', {})

        assert exc.value.retryable is True

    @responses.activate
    def test_fetch_order_payments(self):
        """Test payments for an order are listed."""
        responses.add(
            responses.GET,
            f'{RAZORPAY_API_URL}/orders/order_ABC/payments',
            json=MockRazorpayResponses.order_payments([MockRazorpayResponses.payment('pay_1', 'order_ABC')]),
            status=200
        )

        payments = RazorpayClient().fetch_order_payments('order_ABC')

        assert [p['id'] for p in payments] == ['pay_1']

    def test_checkout_signature_verification(self):
        """Test checkout signatures are checked against the key secret."""
        client = RazorpayClient()
        good = checkout_signature('order_ABC', 'pay_1')

        assert client.verify_checkout_signature('order_ABC', 'pay_1', good) is True
        assert client.verify_checkout_signature('order_ABC', 'pay_2', good) is False
        assert client.verify_checkout_signature('order_ABC', 'pay_1', '') is False

    def test_webhook_rejected_without_secret(self):
        """Test webhooks are refused when no webhook secret is configured."""
        client = RazorpayClient(webhook_secret='')

        assert client.verify_webhook_signature(b'{}', 'anything') is False


@pytest.mark.unit
@pytest.mark.gateway
class TestPaymentOrderIssuer:
    """Test cases for PaymentOrderIssuer."""

    @responses.activate
    def test_issue_creates_intent_and_snapshot(self, donor_user, blanket):
        """Test a valid cart opens an order and persists the request."""
        setup_razorpay_mocks(responses, order_id='order_CART1', amount=Decimal('1050.00'))

        result = PaymentOrderIssuer().issue(donor_user, _cart_request(blanket, tip='50'))

        assert result.gateway_order_id == 'order_CART1'
        assert result.amount == Decimal('1050.00')
        assert result.key_id == 'rzp_test_key'

        intent = ContributionIntent.objects.get(pk=result.contribution_intent_id)
        assert intent.status == 'created'
        assert intent.kind == 'product_based'
        assert intent.tip_amount == Decimal('50.00')
        assert intent.campaign == blanket.campaign

        snapshot = CheckoutSnapshot.objects.get(intent=intent)
        assert snapshot.cart_items[0]['campaign_product_id'] == blanket.pk
        assert snapshot.form_data['mobile_number'] == '919876543210'

        sent = json.loads(responses.calls[0].request.body)
        assert sent['amount'] == 105000
        assert sent['receipt'].startswith('donation_')

        blanket.refresh_from_db()
        assert blanket.stock == 10

    def test_anonymous_caller_rejected(self, blanket):
        """Test checkout requires an authenticated user."""
        with pytest.raises(UnauthenticatedCaller):
            PaymentOrderIssuer().issue(AnonymousUser(), _cart_request(blanket))

    def test_asserted_identity_must_match(self, donor_user, blanket):
        """Test an asserted user id different from the caller is refused."""
        with pytest.raises(IdentityMismatch):
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket), asserted_user_id=donor_user.pk + 100)

    def test_deactivated_user_rejected(self, donor_user, blanket):
        """Test a deactivated account cannot check out."""
        donor_user.is_active = False
        donor_user.save()

        with pytest.raises(IdentityNotFound):
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket))

    def test_tip_not_below_amount(self, donor_user, campaign):
        """Test a direct amount that is all tip is rejected."""
        request = parse_checkout_request({
            'kind': 'direct',
            'amount': '100',
            'tip_amount': '100',
            'campaign_id': campaign.pk,
            'form_data': {'mobile_number': '9876543210', 'full_name': 'Priya'},
        })

        with pytest.raises(InvalidAmount):
            PaymentOrderIssuer().issue(donor_user, request)

    def test_zero_amount_rejected(self, donor_user, campaign):
        """Test a zero total is rejected before the gateway is called."""
        request = parse_checkout_request({
            'kind': 'direct',
            'amount': '0',
            'form_data': {'mobile_number': '9876543210', 'full_name': 'Priya'},
        })

        with pytest.raises(InvalidAmount):
            PaymentOrderIssuer().issue(donor_user, request)

    def test_inactive_campaign_rejected(self, donor_user):
        """Test an explicit campaign that is not active is refused."""
        draft = CampaignFactory(status='draft')
        request = parse_checkout_request({
            'kind': 'direct',
            'amount': '500',
            'campaign_id': draft.pk,
            'form_data': {'mobile_number': '9876543210', 'full_name': 'Priya'},
        })

        with pytest.raises(NoEligibleCampaign):
            PaymentOrderIssuer().issue(donor_user, request)

    @responses.activate
    def test_direct_falls_back_to_latest_active_campaign(self, donor_user):
        """Test a direct donation without a campaign goes to the newest active one."""
        CampaignFactory(code='OLD')
        newest = CampaignFactory(code='NEW')
        setup_razorpay_mocks(responses, order_id='order_DIRECT', amount=Decimal('500.00'))
        request = parse_checkout_request({
            'kind': 'direct',
            'amount': '500',
            'form_data': {'mobile_number': '9876543210', 'full_name': 'Priya'},
        })

        result = PaymentOrderIssuer().issue(donor_user, request)

        assert ContributionIntent.objects.get(pk=result.contribution_intent_id).campaign == newest

    def test_unknown_product_rejected(self, donor_user, blanket):
        """Test a cart line for a missing product is refused."""
        blanket.is_active = False
        blanket.save()

        with pytest.raises(ProductNotFound):
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket))

    def test_stale_price_rejected(self, donor_user, blanket):
        """Test a cart priced differently from the catalog is refused."""
        request = _cart_request(blanket)
        blanket.unit_price = Decimal('550.00')
        blanket.save()

        with pytest.raises(ValidationError) as exc:
            PaymentOrderIssuer().issue(donor_user, request)
        assert 'cart_items[0].unit_price' in exc.value.message_dict

    def test_quantity_limits_enforced(self, donor_user, blanket):
        """Test max quantity per line."""
        blanket.max_quantity = 1
        blanket.save()

        with pytest.raises(ValidationError) as exc:
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket, quantity=2))
        assert 'cart_items[0].quantity' in exc.value.message_dict

    def test_stock_checked_before_order(self, donor_user, blanket):
        """Test a cart larger than stock fails fast without a gateway call."""
        with pytest.raises(InsufficientStock):
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket, quantity=11))

        assert ContributionIntent.objects.count() == 0

    def test_amount_must_match_cart(self, donor_user, blanket):
        """Test the charged total must equal lines plus tip."""
        with pytest.raises(ValidationError) as exc:
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket, amount='900'))
        assert 'amount' in exc.value.message_dict

    def test_product_from_other_campaign_rejected(self, donor_user, blanket):
        """Test a line whose campaign does not own the product."""
        other = CampaignProductFactory()
        request = parse_checkout_request({
            'kind': 'product_based',
            'amount': str(blanket.unit_price),
            'cart_items': [{
                'campaign_product_id': blanket.pk,
                'quantity': 1,
                'unit_price': str(blanket.unit_price),
                'campaign_id': other.campaign_id,
            }],
            'form_data': {'mobile_number': '9876543210'},
            'campaign_id': blanket.campaign_id,
        })

        with pytest.raises(ValidationError) as exc:
            PaymentOrderIssuer().issue(donor_user, request)
        assert 'cart_items[0].campaign_id' in exc.value.message_dict

    @responses.activate
    def test_gateway_failure_leaves_nothing(self, donor_user, blanket):
        """Test a gateway outage creates no payment request."""
        setup_razorpay_mocks(responses, scenario='unavailable')

        with pytest.raises(GatewayUnavailable):
            PaymentOrderIssuer().issue(donor_user, _cart_request(blanket))

        assert ContributionIntent.objects.count() == 0
        assert CheckoutSnapshot.objects.count() == 0
