"""
Local Development Seeder
========================
Creates test data for local development and QA.

Usage:
    python manage.py seed_local_data            # seed everything
    python manage.py seed_local_data --reset    # wipe existing seed data first

What gets created
-----------------
Campaigns : Winter Relief (active), School Kits (active), Clean Water (draft)
Products  : Blanket, Food Kit, School Kit, Water Filter with stock
Users     : 5 accounts covering every role, each with a donor profile
Donations : recorded through the donation recorder, so stock and campaign
            totals move exactly as they would for real payments

Receipts are not sent for seeded donations.
"""

from decimal import Decimal

from django.contrib.auth.models import User
from django.core.management.base import BaseCommand
from django.db import transaction

from campaigns.models import Campaign, CampaignProduct, Product
from distribution.models import DistributionBatch
from donations.models import Donation
from donations.receipt_service import SilentNotifier
from donations.recorder_service import DonationRecorder
from donors.models import Donor
from donors.roles import RoleType, UserRole
from payments.models import CheckoutSnapshot, ContributionIntent

SEED_ORDER_PREFIX = 'order_SEED'

CAMPAIGNS = [
    {"code": "WINTER", "title": "Winter Relief", "goal": Decimal("500000"), "status": "active"},
    {"code": "SCHOOL", "title": "School Kits", "goal": Decimal("200000"), "status": "active"},
    {"code": "WATER", "title": "Clean Water", "goal": Decimal("300000"), "status": "draft"},
]

# (campaign code, product name, unit, price, stock)
PRODUCTS = [
    ("WINTER", "Blanket", "piece", Decimal("450.00"), 200),
    ("WINTER", "Food Kit", "kit", Decimal("1200.00"), 100),
    ("SCHOOL", "School Kit", "kit", Decimal("800.00"), 150),
    ("WATER", "Water Filter", "unit", Decimal("2500.00"), 40),
]

USERS = [
    {"username": "admin.local", "first_name": "Asha", "last_name": "Admin", "phone": "919800000001", "role": RoleType.ADMIN},
    {"username": "ops.local", "first_name": "Omar", "last_name": "Ops", "phone": "919800000002", "role": RoleType.OPERATIONS},
    {"username": "finance.local", "first_name": "Farah", "last_name": "Finance", "phone": "919800000003", "role": RoleType.FINANCE},
    {"username": "donor.one", "first_name": "Dev", "last_name": "Sharma", "phone": "919800000004", "role": RoleType.DONOR},
    {"username": "donor.two", "first_name": "Meera", "last_name": "Iyer", "phone": "919800000005", "role": RoleType.DONOR},
]

# (username, [(product name, quantity)], tip, message)
PRODUCT_DONATIONS = [
    ("donor.one", [("Blanket", 4), ("Food Kit", 1)], Decimal("50.00"), "Stay warm"),
    ("donor.two", [("Blanket", 2)], Decimal("0.00"), ""),
    ("donor.two", [("School Kit", 3)], Decimal("100.00"), "For the kids"),
    ("donor.one", [("Blanket", 6), ("School Kit", 1)], Decimal("0.00"), ""),
]

# (username, campaign code, amount, message)
DIRECT_DONATIONS = [
    ("donor.one", "WINTER", Decimal("2000.00"), "In memory of my grandmother"),
    ("donor.two", "SCHOOL", Decimal("1500.00"), ""),
]


class Command(BaseCommand):
    help = 'Seed campaigns, products, role accounts and donations for local development'

    def add_arguments(self, parser):
        parser.add_argument('--reset', action='store_true', help='Delete previously seeded data first')

    def handle(self, *args, **options):
        if options['reset']:
            self._reset()

        with transaction.atomic():
            campaigns = self._seed_campaigns()
            products = self._seed_products(campaigns)
            users = self._seed_users()

        if ContributionIntent.objects.filter(gateway_order_id__startswith=SEED_ORDER_PREFIX).exists():
            self.stdout.write(self.style.WARNING("\nDonations already seeded, skipping"))
        else:
            self._seed_donations(campaigns, products, users)

        self._print_summary(campaigns)

    def _reset(self):
        self.stdout.write(self.style.WARNING("Resetting previously seeded data..."))
        with transaction.atomic():
            codes = [c["code"] for c in CAMPAIGNS]
            DistributionBatch.objects.filter(campaign__code__in=codes).delete()

            intents = ContributionIntent.objects.filter(gateway_order_id__startswith=SEED_ORDER_PREFIX)
            Donation.objects.filter(intent__in=intents).delete()
            intents.delete()

            CampaignProduct.objects.filter(campaign__code__in=codes).delete()
            Campaign.objects.filter(code__in=codes).delete()
            Product.objects.filter(name__in=[p[1] for p in PRODUCTS], campaign_products__isnull=True).delete()

            usernames = [u["username"] for u in USERS]
            User.objects.filter(username__in=usernames).delete()
        self.stdout.write(self.style.SUCCESS("Reset complete.\n"))

    def _seed_campaigns(self):
        self.stdout.write("\nCampaigns")
        campaigns = {}
        for data in CAMPAIGNS:
            campaign, created = Campaign.objects.get_or_create(
                code=data["code"],
                defaults={
                    "title": data["title"],
                    "goal_amount": data["goal"],
                    "status": data["status"],
                    "description": f"{data['title']} (seeded)",
                },
            )
            self.stdout.write(f"   [{'created' if created else 'exists'}] {campaign}")
            campaigns[campaign.code] = campaign
        return campaigns

    def _seed_products(self, campaigns):
        self.stdout.write("\nProducts")
        products = {}
        for code, name, unit, price, stock in PRODUCTS:
            product, _ = Product.objects.get_or_create(name=name, defaults={"unit": unit})
            offer, created = CampaignProduct.objects.get_or_create(
                campaign=campaigns[code],
                product=product,
                defaults={"unit_price": price, "stock": stock},
            )
            self.stdout.write(f"   [{'created' if created else 'exists'}] {offer} INR {offer.unit_price}, stock {offer.stock}")
            products[name] = offer
        return products

    def _seed_users(self):
        self.stdout.write("\nUsers / Roles")
        users = {}
        for data in USERS:
            user, created = User.objects.get_or_create(
                username=data["username"],
                defaults={
                    "first_name": data["first_name"],
                    "last_name": data["last_name"],
                    "email": f"{data['username']}@example.com",
                },
            )
            if created:
                user.set_password("changeme123")
                user.save(update_fields=["password"])

            Donor.objects.get_or_create(
                user=user,
                defaults={
                    "first_name": data["first_name"],
                    "last_name": data["last_name"],
                    "phone_number": data["phone"],
                    "email": user.email,
                },
            )
            UserRole.objects.get_or_create(user=user, role=data["role"].value)
            self.stdout.write(f"   [{'created' if created else 'exists'}] {user.username} role={data['role'].value}")
            users[user.username] = user
        return users

    def _seed_donations(self, campaigns, products, users):
        self.stdout.write("\nDonations")
        recorder = DonationRecorder(notifier=SilentNotifier())
        sequence = 0

        for username, lines, tip, message in PRODUCT_DONATIONS:
            sequence += 1
            user = users[username]
            cart = [
                {
                    "campaign_product_id": products[name].pk,
                    "quantity": quantity,
                    "unit_price": str(products[name].unit_price),
                    "campaign_id": products[name].campaign_id,
                }
                for name, quantity in lines
            ]
            total = sum((products[name].unit_price * quantity for name, quantity in lines), Decimal("0.00"))
            intent = self._seed_intent(
                sequence, user, products[lines[0][0]].campaign, total + tip, tip, 'product_based', cart, message
            )
            result = recorder.record(intent.pk, payment_id=f"pay_SEED{sequence:04d}")
            self.stdout.write(f"   {result.donation.receipt_number} {username} INR {result.donation.amount} ({len(lines)} lines)")

        for username, code, amount, message in DIRECT_DONATIONS:
            sequence += 1
            intent = self._seed_intent(sequence, users[username], campaigns[code], amount, Decimal("0.00"), 'direct', [], message)
            result = recorder.record(intent.pk, payment_id=f"pay_SEED{sequence:04d}")
            self.stdout.write(f"   {result.donation.receipt_number} {username} INR {result.donation.amount} (direct)")

    def _seed_intent(self, sequence, user, campaign, amount, tip, kind, cart, message):
        donor = user.donor
        intent = ContributionIntent.objects.create(
            user=user,
            campaign=campaign,
            amount=amount,
            tip_amount=tip,
            kind=kind,
            gateway_order_id=f"{SEED_ORDER_PREFIX}{sequence:04d}",
            gateway_response={"source": "seed"},
        )
        CheckoutSnapshot.objects.create(
            intent=intent,
            cart_items=cart,
            form_data={
                "mobile_number": donor.phone_number,
                "full_name": donor.full_name,
                "email": user.email,
                "country": donor.country,
                "message": message,
            },
        )
        return intent

    def _print_summary(self, campaigns):
        self.stdout.write("\n" + "=" * 60)
        self.stdout.write(f"  {'Campaign':<20} {'Raised':>12} {'Donors':>7} {'Progress':>9}")
        self.stdout.write("  " + "-" * 56)
        for campaign in Campaign.objects.filter(pk__in=[c.pk for c in campaigns.values()]).order_by('code'):
            self.stdout.write(
                f"  {campaign.title:<20} {campaign.total_raised:>12} {campaign.donor_count:>7} {campaign.progress_percentage:>8}%"
            )
        self.stdout.write("=" * 60)
        self.stdout.write("\n  Accounts use password 'changeme123':")
        for data in USERS:
            self.stdout.write(f"   {data['username']:<16} {data['role'].value}")
        self.stdout.write(self.style.SUCCESS("\nSeed complete.\n"))
