"""
Manual Donation Service
Following SOLID principles:
- SRP: Only responsible for offline donation entry
- DIP: Records through the DonationRecorder
"""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from django.contrib.auth.models import User
from django.db import transaction

from campaigns.models import Campaign
from donors.models import Donor
from donors.utils import normalize_phone_number
from .recorder_service import DonationRecorder

logger = logging.getLogger(__name__)


class ManualDonationService:
    """
    Records donations received outside the gateway (cash, cheque, bank
    transfer) against a campaign identified by its code. Each entry is
    independent: a bad entry is reported and the others are still recorded.
    """

    def __init__(self, recorder: Optional[DonationRecorder] = None):
        self.recorder = recorder or DonationRecorder()

    def record_entries(self, campaign_code: str, entries: List[Dict], entered_by: Optional[User] = None) -> Dict:
        """
        Args:
            campaign_code: Campaign code (case-insensitive)
            entries: dicts with 'mobile_number', 'amount' and optional 'message'
            entered_by: operator recording the entries

        Returns:
            dict with 'success', 'message', 'recorded' (list of donation ids)
            and 'errors' (list of {'index', 'message'})
        """
        campaign = Campaign.objects.alive().filter(code__iexact=(campaign_code or '').strip()).first()
        if campaign is None:
            return {
                'success': False,
                'message': f"Campaign with code '{campaign_code}' not found",
                'recorded': [],
                'errors': [],
            }

        if not entries:
            return {'success': False, 'message': 'No donation entries provided', 'recorded': [], 'errors': []}

        batch_ts = int(time.time() * 1000)
        recorded, errors = [], []

        for index, entry in enumerate(entries):
            try:
                phone = normalize_phone_number(entry.get('mobile_number'))
            except ValueError as e:
                errors.append({'index': index, 'message': str(e)})
                continue

            try:
                amount = Decimal(str(entry.get('amount')))
            except (InvalidOperation, ValueError, TypeError):
                errors.append({'index': index, 'message': f"Invalid amount: {entry.get('amount')!r}"})
                continue
            if not amount.is_finite() or amount <= 0:
                errors.append({'index': index, 'message': 'Amount must be greater than zero'})
                continue

            try:
                user = self._guest_user(phone)
                result = self.recorder.record_offline(
                    user=user,
                    campaign=campaign,
                    amount=amount.quantize(Decimal('0.01')),
                    message=(entry.get('message') or '').strip(),
                    contact_phone=phone,
                    reference=f"manual_{batch_ts}_{index}",
                )
            except Exception as e:
                logger.exception(f"Manual donation entry {index} for {campaign.code} failed")
                errors.append({'index': index, 'message': str(e)})
                continue

            recorded.append(result.donation.pk)

        operator = entered_by.username if entered_by is not None else 'system'
        logger.info(
            f"Manual donations for {campaign.code} by {operator}: "
            f"{len(recorded)} recorded, {len(errors)} failed"
        )
        return {
            'success': bool(recorded),
            'message': f"Recorded {len(recorded)} of {len(entries)} donations",
            'recorded': recorded,
            'errors': errors,
        }

    def _guest_user(self, phone: str) -> User:
        """Existing donor for the number, or a new guest account"""
        donor = Donor.objects.select_related('user').filter(phone_number=phone).first()
        if donor is not None:
            return donor.user

        with transaction.atomic():
            user, _ = User.objects.get_or_create(
                username=phone,
                defaults={'first_name': 'Guest', 'last_name': 'Donor'},
            )
            if user.has_usable_password():
                user.set_unusable_password()
                user.save(update_fields=['password'])
            Donor.objects.create(
                user=user,
                first_name=user.first_name,
                last_name=user.last_name,
                phone_number=phone,
                is_guest=True,
            )
        return user
