"""
Campaign aggregate maintenance.

Totals are applied with single-statement F() increments so concurrent
donations to the same campaign cannot lose an update.
"""

import logging
from decimal import Decimal
from typing import Dict

from django.db.models import DecimalField, ExpressionWrapper, F, Value
from django.db.models.functions import Least

from .models import Campaign

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100.00')


def apply_campaign_totals(totals: Dict[int, Decimal]) -> None:
    """
    Add each campaign's contribution once and count one donor per campaign.
    Must run inside the caller's transaction.
    """
    # Fixed lock order across concurrent donations
    for campaign_id in sorted(totals):
        amount = totals[campaign_id]
        updated = Campaign.objects.filter(pk=campaign_id).update(
            total_raised=F('total_raised') + amount,
            donor_count=F('donor_count') + 1,
        )
        if not updated:
            raise Campaign.DoesNotExist(f"Campaign {campaign_id} not found")

        Campaign.objects.filter(pk=campaign_id, goal_amount__gt=0).update(
            progress_percentage=Least(
                ExpressionWrapper(
                    F('total_raised') * HUNDRED / F('goal_amount'),
                    output_field=DecimalField(max_digits=14, decimal_places=2),
                ),
                Value(HUNDRED, output_field=DecimalField(max_digits=5, decimal_places=2)),
            )
        )
        logger.info(f"Campaign {campaign_id}: +{amount} raised, +1 donor")
