"""
Management command to recover payments whose confirmation never arrived.
Usage: python manage.py reconcile_payments --older-than 30 --limit 200
"""

from django.core.management.base import BaseCommand

from payments.services import PaymentReconciler


class Command(BaseCommand):
    help = 'Record captured Razorpay payments for payment requests still pending'

    def add_arguments(self, parser):
        parser.add_argument(
            '--older-than',
            type=int,
            default=15,
            help='Only check payment requests older than this many minutes'
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=100,
            help='Maximum number of payment requests to check'
        )

    def handle(self, *args, **options):
        summary = PaymentReconciler().reconcile(
            older_than_minutes=options['older_than'],
            limit=options['limit'],
        )

        self.stdout.write(f"Checked:   {summary['checked']}")
        self.stdout.write(f"Attempted: {summary['attempted']}")
        self.stdout.write(f"Unpaid:    {summary['unpaid']}")
        self.stdout.write(self.style.SUCCESS(f"Recorded:  {summary['recorded']}"))

        for error in summary['errors']:
            self.stderr.write(self.style.ERROR(
                f"Payment request {error['intent_id']}: {error['reason']} - {error['message']}"
            ))
