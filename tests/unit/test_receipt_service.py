"""
Unit tests for donation receipts.
Tests ReceiptNotifier delivery, bounded retries and the resend command.
"""

import pytest
from io import StringIO
from unittest.mock import Mock
from django.core.management import call_command

from donations.models import ReceiptDelivery
from donations.receipt_service import ReceiptNotifier, ReceiptRenderer
from donations.recorder_service import DonationRecorder
from tests.utils.factories import DonationFactory, FulfillmentItemFactory, create_checkout_intent
from tests.utils.mocks import FakeSMSService


@pytest.fixture
def sms():
    return FakeSMSService()


@pytest.fixture
def donation(donor_user, campaign):
    return DonationFactory(
        user=donor_user,
        campaign=campaign,
        contact_name='Priya Nair',
        contact_email='priya@example.com',
        contact_phone='919876543210',
    )


@pytest.mark.unit
class TestReceiptNotifier:
    """Test cases for ReceiptNotifier."""

    def test_dispatch_sends_email_and_sms(self, donation, sms, mailoutbox):
        """Test both channels are delivered and tracked."""
        results = ReceiptNotifier(sms_service=sms).dispatch(donation.pk)

        assert results == {'email': 'sent', 'sms': 'sent'}

        assert len(mailoutbox) == 1
        message = mailoutbox[0]
        assert message.subject == f"Thank You for Your Donation - Receipt #{donation.receipt_number}"
        assert message.to == ['priya@example.com']
        filename, content, mimetype = message.attachments[0]
        assert filename == f"Donation_Receipt_{donation.receipt_number}.pdf"
        assert mimetype == 'application/pdf'
        assert content.startswith(b'%PDF')

        phone, text = sms.sent[0]
        assert phone == '919876543210'
        assert donation.receipt_number in text
        assert text.startswith('Thank you Priya!')

        for delivery in ReceiptDelivery.objects.filter(donation=donation):
            assert delivery.status == 'sent'
            assert delivery.attempts == 1
            assert delivery.sent_at is not None

    def test_sent_channel_never_resent(self, donation, sms, mailoutbox):
        """Test dispatching twice delivers each channel once."""
        notifier = ReceiptNotifier(sms_service=sms)
        notifier.dispatch(donation.pk)

        results = notifier.dispatch(donation.pk)

        assert results == {'email': 'sent', 'sms': 'sent'}
        assert len(mailoutbox) == 1
        assert len(sms.sent) == 1

    def test_sms_failure_is_recorded(self, donation, mailoutbox):
        """Test a failing channel does not block the other."""
        results = ReceiptNotifier(sms_service=FakeSMSService(succeed=False)).dispatch(donation.pk)

        assert results == {'email': 'sent', 'sms': 'failed'}
        delivery = ReceiptDelivery.objects.get(donation=donation, channel='sms')
        assert delivery.attempts == 1
        assert 'InsufficientBalance' in delivery.last_error

    def test_retries_are_bounded(self, donation, mailoutbox):
        """Test a channel is abandoned after the maximum attempts."""
        notifier = ReceiptNotifier(sms_service=FakeSMSService(succeed=False), max_attempts=3)
        notifier.dispatch(donation.pk)

        assert notifier.retry_failed()['failed'] == 1
        assert notifier.retry_failed()['abandoned'] == 1
        assert notifier.retry_failed() == {'sent': 0, 'failed': 0, 'abandoned': 0}

        delivery = ReceiptDelivery.objects.get(donation=donation, channel='sms')
        assert delivery.status == 'abandoned'
        assert delivery.attempts == 3

    def test_retry_succeeds_later(self, donation, mailoutbox):
        sms = FakeSMSService(succeed=False)
        notifier = ReceiptNotifier(sms_service=sms)
        notifier.dispatch(donation.pk)

        sms.succeed = True
        counts = notifier.retry_failed()

        assert counts['sent'] == 1
        delivery = ReceiptDelivery.objects.get(donation=donation, channel='sms')
        assert delivery.status == 'sent'
        assert delivery.last_error == ''

    def test_missing_phone(self, donor_user, campaign, sms, mailoutbox):
        """Test a donation without a phone records a failed SMS delivery."""
        donation = DonationFactory(user=donor_user, campaign=campaign, contact_phone='')

        results = ReceiptNotifier(sms_service=sms).dispatch(donation.pk)

        assert results['sms'] == 'failed'
        assert sms.sent == []
        delivery = ReceiptDelivery.objects.get(donation=donation, channel='sms')
        assert delivery.last_error == 'No recipient address on file'

    def test_render_error_is_contained(self, donation, sms, mailoutbox):
        """Test an exception while rendering is stored, not raised."""
        renderer = Mock(spec=ReceiptRenderer)
        renderer.filename.return_value = 'receipt.pdf'
        renderer.render.side_effect = RuntimeError('font missing')

        results = ReceiptNotifier(sms_service=sms, renderer=renderer).dispatch(donation.pk)

        assert results['email'] == 'failed'
        assert results['sms'] == 'sent'
        assert ReceiptDelivery.objects.get(channel='email').last_error == 'RuntimeError: font missing'

    def test_unknown_donation(self, sms):
        assert ReceiptNotifier(sms_service=sms).dispatch(999999) == {}

    def test_receipt_lists_items(self, donation, blanket):
        """Test the rendered receipt is a PDF for item donations."""
        FulfillmentItemFactory(donation=donation, campaign_product=blanket, quantity=2)

        content = ReceiptRenderer().render(donation)

        assert content.startswith(b'%PDF')

    def test_sent_after_recording_commits(self, donor_user, blanket, sms, mailoutbox, django_capture_on_commit_callbacks):
        """Test the recorder's scheduled receipt goes out once the transaction commits."""
        intent = create_checkout_intent(donor_user, [(blanket, 1)])
        recorder = DonationRecorder(notifier=ReceiptNotifier(sms_service=sms))

        with django_capture_on_commit_callbacks(execute=True):
            result = recorder.record(intent.pk, payment_id='pay_ABC')

        assert len(mailoutbox) == 1
        assert result.donation.receipt_number in mailoutbox[0].subject


@pytest.mark.unit
class TestResendFailedReceiptsCommand:
    """Test cases for the resend_failed_receipts management command."""

    def test_command_reports_counts(self, donation, mailoutbox):
        ReceiptDelivery.objects.create(
            donation=donation,
            channel='email',
            recipient='priya@example.com',
            status='failed',
            attempts=1,
        )
        out = StringIO()

        call_command('resend_failed_receipts', stdout=out, stderr=StringIO())

        assert 'Sent:      1' in out.getvalue()
        assert len(mailoutbox) == 1
