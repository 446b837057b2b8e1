"""
Donation Receipt Service
Following SOLID principles:
- SRP: rendering and delivering receipts, nothing else
- DIP: SMS service and renderer are injected

Runs after the donation transaction has committed. Every failure is caught,
logged and stored on the ReceiptDelivery row; nothing propagates back to the
payment flow.
"""

import logging
from typing import Dict, Optional

from django.conf import settings
from django.core.mail import EmailMessage
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from donors.sms import SMSService
from reports.services import PDFExporter, ReportData
from .models import Donation, ReceiptDelivery

logger = logging.getLogger(__name__)


class ReceiptRenderer:
    """Builds the PDF receipt with the report PDF exporter"""

    def __init__(self, exporter: Optional[PDFExporter] = None):
        self.exporter = exporter or PDFExporter()

    def filename(self, donation: Donation) -> str:
        return f"Donation_Receipt_{donation.receipt_number}.pdf"

    def render(self, donation: Donation) -> bytes:
        rows = [
            [
                item.product_name,
                item.quantity,
                f"{item.unit_price:,.2f}",
                f"{item.total_price:,.2f}",
            ]
            for item in donation.items.select_related('campaign_product__product')
        ]
        if not rows:
            rows = [[f"Donation to {donation.campaign.title}", 1, f"{donation.amount:,.2f}", f"{donation.amount:,.2f}"]]

        summary = {
            'Receipt No.': donation.receipt_number,
            'Donor': donation.contact_name or 'Anonymous Donor',
            'Campaign': donation.campaign.title,
            'Date': timezone.localtime(donation.created_at).strftime('%d %b %Y %H:%M'),
            'Payment Reference': donation.gateway_payment_id or 'N/A',
            'Donation Amount (INR)': f"{donation.amount:,.2f}",
            'Platform Tip (INR)': f"{donation.tip_amount:,.2f}",
            'Total Paid (INR)': f"{donation.total_paid:,.2f}",
        }
        if donation.dedication:
            summary['Dedication'] = donation.dedication

        report = ReportData(
            title=f"{settings.ORGANIZATION_NAME} - Donation Receipt #{donation.receipt_number}",
            headers=['Item', 'Qty', 'Unit Price (INR)', 'Total (INR)'],
            rows=rows,
            summary=summary,
        )
        return self.exporter.export(report).getvalue()


class ReceiptNotifier:
    """
    Sends the donation receipt by email (PDF attached) and SMS.

    Delivery is tracked per channel: a channel already ``sent`` is never sent
    again, a failed channel is retried until RECEIPT_MAX_ATTEMPTS, after which
    it is ``abandoned``.
    """

    def __init__(self, sms_service=None, renderer: Optional[ReceiptRenderer] = None, max_attempts: Optional[int] = None):
        self._sms_service = sms_service
        self.renderer = renderer or ReceiptRenderer()
        self.max_attempts = max_attempts or getattr(settings, 'RECEIPT_MAX_ATTEMPTS', 3)

    @property
    def sms_service(self):
        if self._sms_service is None:
            self._sms_service = SMSService()
        return self._sms_service

    def schedule(self, donation_id: int):
        """Dispatch once the surrounding transaction commits"""
        transaction.on_commit(lambda: self.dispatch(donation_id), robust=True)

    def dispatch(self, donation_id: int) -> Dict[str, str]:
        """Send every channel for a donation; returns channel -> status"""
        try:
            donation = Donation.objects.select_related('campaign', 'user').get(pk=donation_id)
        except Donation.DoesNotExist:
            logger.error(f"Receipt requested for unknown donation {donation_id}")
            return {}

        results = {}
        for channel, recipient in self._recipients(donation).items():
            delivery, _ = ReceiptDelivery.objects.get_or_create(
                donation=donation,
                channel=channel,
                defaults={'recipient': recipient},
            )
            results[channel] = self.deliver(delivery).status
        return results

    def retry_failed(self) -> Dict[str, int]:
        """Retry every failed delivery once; used by resend_failed_receipts"""
        counts = {'sent': 0, 'failed': 0, 'abandoned': 0}
        failed = ReceiptDelivery.objects.filter(status='failed').select_related('donation__campaign')
        for delivery in failed:
            status = self.deliver(delivery).status
            counts[status] = counts.get(status, 0) + 1
        return counts

    def deliver(self, delivery: ReceiptDelivery) -> ReceiptDelivery:
        if delivery.status in ('sent', 'abandoned'):
            return delivery

        # Claim the attempt; a concurrent sender that got here first wins
        claimed = ReceiptDelivery.objects.filter(
            pk=delivery.pk,
            status__in=['pending', 'failed'],
            attempts=delivery.attempts,
        ).update(attempts=F('attempts') + 1)
        delivery.refresh_from_db()
        if not claimed:
            return delivery

        if not delivery.recipient:
            error = 'No recipient address on file'
        else:
            try:
                error = self._send(delivery)
            except Exception as e:
                error = f"{type(e).__name__}: {e}"

        if error is None:
            delivery.status = 'sent'
            delivery.sent_at = timezone.now()
            delivery.last_error = ''
            logger.info(
                f"Receipt {delivery.donation.receipt_number} sent via {delivery.channel} "
                f"to {delivery.recipient} (delivery {delivery.pk})"
            )
        else:
            delivery.status = 'abandoned' if delivery.attempts >= self.max_attempts else 'failed'
            delivery.last_error = error
            logger.error(
                f"Receipt delivery {delivery.pk} ({delivery.channel}) for "
                f"{delivery.donation.receipt_number} {delivery.status} "
                f"after {delivery.attempts} attempt(s): {error}"
            )

        delivery.save(update_fields=['status', 'sent_at', 'last_error', 'updated_at'])
        return delivery

    def format_sms(self, donation: Donation) -> str:
        name = (donation.contact_name or 'Donor').split()[0]
        date_str = timezone.localtime(donation.created_at).strftime('%d/%m/%y %H:%M')
        return (
            f"Thank you {name}!\n"
            f"{donation.campaign.title}: INR {donation.amount:,.0f}\n"
            f"Receipt: {donation.receipt_number}\n"
            f"{date_str}"
        )

    def format_email_body(self, donation: Donation) -> str:
        return (
            f"Dear {donation.contact_name or 'Donor'},\n\n"
            f"Thank you for your donation of INR {donation.amount:,.2f} to "
            f"{donation.campaign.title}.\n\n"
            f"Your receipt {donation.receipt_number} is attached.\n\n"
            f"With gratitude,\n{settings.ORGANIZATION_NAME}"
        )

    def _recipients(self, donation: Donation) -> Dict[str, str]:
        return {
            'email': donation.contact_email or donation.user.email or '',
            'sms': donation.contact_phone or '',
        }

    def _send(self, delivery: ReceiptDelivery) -> Optional[str]:
        """Returns None on success, an error message otherwise"""
        donation = delivery.donation
        if delivery.channel == 'email':
            message = EmailMessage(
                subject=f"Thank You for Your Donation - Receipt #{donation.receipt_number}",
                body=self.format_email_body(donation),
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[delivery.recipient],
            )
            message.attach(self.renderer.filename(donation), self.renderer.render(donation), 'application/pdf')
            message.send(fail_silently=False)
            return None

        result = self.sms_service.send_sms(delivery.recipient, self.format_sms(donation))
        if result.get('success'):
            return None
        return result.get('message', 'Unknown SMS error')


class SilentNotifier:
    """Notifier for bulk and offline jobs that must not send receipts"""

    def schedule(self, donation_id: int):
        logger.debug(f"Receipt for donation {donation_id} not scheduled (silent notifier)")
