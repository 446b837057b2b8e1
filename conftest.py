"""
Pytest configuration and shared fixtures.
This file is automatically loaded by pytest.
"""

import pytest
import responses
from decimal import Decimal

from donors.roles import RoleType, UserRole
from tests.utils.factories import (
    CampaignFactory,
    CampaignProductFactory,
    DonorFactory,
    UserFactory,
)
from tests.utils.mocks import RAZORPAY_API_URL, MockRazorpayResponses


@pytest.fixture(autouse=True)
def gateway_settings(settings):
    """
    Deterministic Razorpay credentials for every test.
    """
    settings.RAZORPAY_KEY_ID = 'rzp_test_key'
    settings.RAZORPAY_KEY_SECRET = 'test_key_secret'
    settings.RAZORPAY_WEBHOOK_SECRET = 'test_webhook_secret'
    settings.RAZORPAY_API_URL = RAZORPAY_API_URL
    settings.GATEWAY_TIMEOUT = 5
    settings.RECEIPT_MAX_ATTEMPTS = 3
    return settings


@pytest.fixture(autouse=True)
def enable_db_access_for_all_tests(db):
    """
    Automatically enable database access for all tests.
    """
    pass


@pytest.fixture
def api_client():
    """
    Django test client for making requests.
    """
    from django.test import Client
    return Client()


@pytest.fixture
def graphql_client():
    """
    Helper for executing GraphQL queries/mutations.
    """
    from tests.utils.graphql_helpers import GraphQLClient
    return GraphQLClient()


@pytest.fixture
def donor_user(db):
    """
    Authenticated donor with a profile.
    """
    user = UserFactory(username='donor', first_name='Priya', last_name='Nair', email='priya@example.com')
    DonorFactory(user=user, first_name='Priya', last_name='Nair', phone_number='919876543210')
    return user


def _user_with_role(username, role):
    user = UserFactory(username=username)
    UserRole.objects.create(user=user, role=role.value)
    return user


@pytest.fixture
def operations_user(db):
    return _user_with_role('ops', RoleType.OPERATIONS)


@pytest.fixture
def finance_user(db):
    return _user_with_role('finance', RoleType.FINANCE)


@pytest.fixture
def admin_user(db):
    """
    Create an admin user.
    """
    return UserFactory(username='admin', is_staff=True, is_superuser=True)


@pytest.fixture
def campaign(db):
    return CampaignFactory(title='Winter Relief', code='WINTER', goal_amount=Decimal('10000.00'))


@pytest.fixture
def blanket(campaign):
    """
    Blanket offered by the winter campaign at INR 500 with 10 in stock.
    """
    return CampaignProductFactory(
        campaign=campaign,
        product__name='Blanket',
        unit_price=Decimal('500.00'),
        stock=10,
    )


@pytest.fixture
def mock_razorpay_api():
    """
    Mock the Razorpay Orders API using responses library.
    """
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            f'{RAZORPAY_API_URL}/orders',
            json=MockRazorpayResponses.order_created(),
            status=200
        )
        yield rsps
