"""
Management command to retry receipt deliveries that failed.
Deliveries that reach RECEIPT_MAX_ATTEMPTS are marked abandoned.
Usage: python manage.py resend_failed_receipts
"""

from django.core.management.base import BaseCommand

from donations.receipt_service import ReceiptNotifier


class Command(BaseCommand):
    help = 'Retry failed donation receipt deliveries'

    def handle(self, *args, **options):
        counts = ReceiptNotifier().retry_failed()

        self.stdout.write(self.style.SUCCESS(f"Sent:      {counts.get('sent', 0)}"))
        self.stdout.write(f"Failed:    {counts.get('failed', 0)}")
        if counts.get('abandoned'):
            self.stderr.write(self.style.ERROR(f"Abandoned: {counts['abandoned']}"))
