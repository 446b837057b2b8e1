"""
Integration tests for the GraphQL API.
Tests the full stack from GraphQL mutations/queries to database.
"""

import base64
import pytest
from datetime import timedelta
from decimal import Decimal
from django.utils import timezone

from campaigns.models import CampaignProduct
from donations.models import Donation, FulfillmentItem
from payments.models import CheckoutSnapshot, ContributionIntent
from tests.utils.factories import (
    CampaignFactory,
    DonationFactory,
    FulfillmentItemFactory,
    create_checkout_intent,
)
from tests.utils.graphql_helpers import MUTATIONS, QUERIES
from tests.utils.mocks import checkout_signature


def _cart_variables(blanket, quantity=2, amount='1000.00'):
    return {
        'amount': amount,
        'formData': {
            'mobileNumber': '9876543210',
            'fullName': 'Priya Nair',
            'email': 'priya@example.com',
        },
        'cartItems': [{
            'campaignProductId': str(blanket.pk),
            'quantity': quantity,
            'unitPrice': '500.00',
        }],
        'tipAmount': '0',
    }


@pytest.mark.integration
class TestCatalogueQueries:
    """Integration tests for public campaign queries."""

    def test_campaigns_lists_active_only(self, graphql_client, campaign):
        CampaignFactory(code='DRAFT', status='draft')

        response = graphql_client.query(QUERIES['campaigns'])

        campaigns = graphql_client.get_data(response, 'data.campaigns')
        assert [c['code'] for c in campaigns] == ['WINTER']
        assert Decimal(campaigns[0]['goalAmount']) == Decimal('10000.00')

    def test_current_user_role_anonymous(self, graphql_client):
        response = graphql_client.query(QUERIES['current_user_role'])

        role = graphql_client.get_data(response, 'data.currentUserRole')
        assert role['isAuthenticated'] is False
        assert role['roles'] == []

    def test_current_user_role_operations(self, graphql_client, operations_user):
        graphql_client.authenticate(operations_user)

        response = graphql_client.query(QUERIES['current_user_role'])

        role = graphql_client.get_data(response, 'data.currentUserRole')
        assert role['isStaff'] is True
        assert role['roles'] == ['operations']
        assert role['canManageBatches'] is True
        assert role['canManagePayments'] is False


@pytest.mark.integration
class TestCheckoutFlow:
    """Integration tests for checkout through to the recorded donation."""

    def test_checkout_confirm_and_list(self, graphql_client, donor_user, campaign, blanket, mock_razorpay_api):
        """Test a cart checkout, signature confirmation and the donor's history."""
        graphql_client.authenticate(donor_user)

        response = graphql_client.mutate(MUTATIONS['initiate_checkout'], _cart_variables(blanket))

        checkout = graphql_client.get_data(response, 'data.initiateCheckout')
        assert checkout['success'] is True
        assert checkout['gatewayOrderId'] == 'order_TEST123'
        assert Decimal(checkout['amount']) == Decimal('1000.00')
        assert checkout['currency'] == 'INR'
        assert checkout['keyId'] == 'rzp_test_key'
        intent = ContributionIntent.objects.get(pk=checkout['contributionIntentId'])
        assert intent.status == 'created'
        assert CheckoutSnapshot.objects.filter(intent=intent).exists()

        response = graphql_client.mutate(MUTATIONS['confirm_payment'], {
            'orderId': 'order_TEST123',
            'paymentId': 'pay_TEST123',
            'signature': checkout_signature('order_TEST123', 'pay_TEST123'),
        })

        confirmation = graphql_client.get_data(response, 'data.confirmPayment')
        assert confirmation['success'] is True
        assert confirmation['message'] == 'Donation recorded'
        assert confirmation['affectedCampaignIds'] == [str(campaign.pk)]
        assert confirmation['donation']['items'] == [{'quantity': 2, 'status': 'pending'}]

        blanket.refresh_from_db()
        campaign.refresh_from_db()
        assert blanket.stock == 8
        assert campaign.total_raised == Decimal('1000.00')

        response = graphql_client.query(QUERIES['my_donations'])

        donations = graphql_client.get_data(response, 'data.myDonations')
        assert len(donations) == 1
        assert donations[0]['id'] == confirmation['donationId']
        assert donations[0]['kind'] == 'product_based'
        assert donations[0]['items'][0]['productName'] == 'Blanket'
        assert Decimal(donations[0]['totalPaid']) == Decimal('1000.00')

    def test_confirm_twice_returns_same_donation(self, graphql_client, donor_user, blanket, mock_razorpay_api):
        graphql_client.authenticate(donor_user)
        graphql_client.mutate(MUTATIONS['initiate_checkout'], _cart_variables(blanket))
        variables = {
            'orderId': 'order_TEST123',
            'paymentId': 'pay_TEST123',
            'signature': checkout_signature('order_TEST123', 'pay_TEST123'),
        }

        first = graphql_client.get_data(graphql_client.mutate(MUTATIONS['confirm_payment'], variables), 'data.confirmPayment')
        second = graphql_client.get_data(graphql_client.mutate(MUTATIONS['confirm_payment'], variables), 'data.confirmPayment')

        assert second['success'] is True
        assert second['message'] == 'Donation already recorded'
        assert second['donationId'] == first['donationId']
        assert Donation.objects.count() == 1
        assert FulfillmentItem.objects.count() == 1

    def test_checkout_requires_authentication(self, graphql_client, blanket):
        response = graphql_client.mutate(MUTATIONS['initiate_checkout'], _cart_variables(blanket))

        checkout = graphql_client.get_data(response, 'data.initiateCheckout')
        assert checkout['success'] is False
        assert checkout['reason'] == 'UNAUTHENTICATED'
        assert ContributionIntent.objects.count() == 0

    def test_checkout_asserted_user_must_match(self, graphql_client, donor_user, operations_user, blanket):
        graphql_client.authenticate(donor_user)
        variables = _cart_variables(blanket)
        variables['userId'] = str(operations_user.pk)

        response = graphql_client.mutate(MUTATIONS['initiate_checkout'], variables)

        assert graphql_client.get_data(response, 'data.initiateCheckout.reason') == 'IDENTITY_MISMATCH'

    def test_checkout_validation_error(self, graphql_client, donor_user, blanket):
        """Test a bad mobile number is reported with its field path."""
        graphql_client.authenticate(donor_user)
        variables = _cart_variables(blanket)
        variables['formData']['mobileNumber'] = '12345'

        response = graphql_client.mutate(MUTATIONS['initiate_checkout'], variables)

        checkout = graphql_client.get_data(response, 'data.initiateCheckout')
        assert checkout['success'] is False
        assert checkout['reason'] == 'VALIDATION_ERROR'
        assert 'form_data.mobile_number' in checkout['message']

    def test_checkout_leaves_stock_alone(self, graphql_client, donor_user, blanket, mock_razorpay_api):
        """Test opening a checkout does not touch stock."""
        graphql_client.authenticate(donor_user)

        graphql_client.mutate(MUTATIONS['initiate_checkout'], _cart_variables(blanket))

        assert CampaignProduct.objects.get(pk=blanket.pk).stock == 10

    def test_checkout_stock_check(self, graphql_client, donor_user, blanket):
        graphql_client.authenticate(donor_user)

        response = graphql_client.mutate(
            MUTATIONS['initiate_checkout'], _cart_variables(blanket, quantity=11, amount='5500.00')
        )

        checkout = graphql_client.get_data(response, 'data.initiateCheckout')
        assert checkout['reason'] == 'INSUFFICIENT_STOCK'
        assert checkout['retryable'] is False

    def test_bad_signature_rejected(self, graphql_client, donor_user, blanket, mock_razorpay_api):
        graphql_client.authenticate(donor_user)
        graphql_client.mutate(MUTATIONS['initiate_checkout'], _cart_variables(blanket))

        response = graphql_client.mutate(MUTATIONS['confirm_payment'], {
            'orderId': 'order_TEST123',
            'paymentId': 'pay_TEST123',
            'signature': 'forged',
        })

        confirmation = graphql_client.get_data(response, 'data.confirmPayment')
        assert confirmation['success'] is False
        assert confirmation['reason'] == 'SIGNATURE_MISMATCH'
        assert Donation.objects.count() == 0

    def test_my_donations_requires_authentication(self, graphql_client):
        response = graphql_client.query(QUERIES['my_donations'])

        graphql_client.assert_has_errors(response)
        assert response['errors'][0]['message'] == 'Authentication required'


@pytest.mark.integration
class TestManualDonations:
    """Integration tests for offline donation entry."""

    def test_finance_records_entries(self, graphql_client, finance_user, campaign):
        graphql_client.authenticate(finance_user)

        response = graphql_client.mutate(MUTATIONS['record_manual_donations'], {
            'campaignCode': 'WINTER',
            'entries': [
                {'mobileNumber': '9811111111', 'amount': '500'},
                {'mobileNumber': 'nope', 'amount': '100'},
            ],
        })

        result = graphql_client.get_data(response, 'data.recordManualDonations')
        assert result['success'] is True
        assert len(result['donationIds']) == 1
        assert result['errors'][0]['index'] == 1
        assert Donation.objects.get(pk=result['donationIds'][0]).entry_type == 'manual'

    def test_operations_cannot_record(self, graphql_client, operations_user, campaign):
        graphql_client.authenticate(operations_user)

        response = graphql_client.mutate(MUTATIONS['record_manual_donations'], {
            'campaignCode': 'WINTER',
            'entries': [{'mobileNumber': '9811111111', 'amount': '500'}],
        })

        graphql_client.assert_has_errors(response)
        assert response['errors'][0]['message'] == 'Requires finance privileges'
        assert Donation.objects.count() == 0


@pytest.mark.integration
class TestDistributionFlow:
    """Integration tests for batches, item progress and stickers."""

    def test_batch_lifecycle(self, graphql_client, operations_user, blanket):
        """Test batch creation, item progress roll-up and sticker output."""
        start = timezone.now() - timedelta(hours=1)
        items = [
            FulfillmentItemFactory(campaign_product=blanket, created_at=start + timedelta(minutes=n))
            for n in range(3)
        ]
        graphql_client.authenticate(operations_user)

        response = graphql_client.mutate(MUTATIONS['create_distribution_batch'], {
            'campaignProductId': str(blanket.pk),
            'name': 'Winter run',
            'plannedDistributionDate': (timezone.localdate() + timedelta(days=2)).isoformat(),
            'quantity': 2,
        })

        created = graphql_client.get_data(response, 'data.createDistributionBatch')
        assert created['success'] is True
        assert created['itemsAssigned'] == 2
        assert created['batch']['status'] == 'planning'
        assert created['progress']['allocatedItems'] == 2
        batch_id = created['batch']['id']

        response = graphql_client.query(QUERIES['unassigned_count'], {'campaignProductId': str(blanket.pk)})
        assert graphql_client.get_data(response, 'data.unassignedCount') == 1

        first_id = str(items[0].pk)
        response = graphql_client.mutate(MUTATIONS['update_fulfillment_status'], {
            'fulfillmentItemId': first_id, 'status': 'prepared', 'batchId': batch_id,
        })
        progress = graphql_client.get_data(response, 'data.updateFulfillmentStatus.progress')
        assert progress['status'] == 'planning'
        assert progress['preparedItems'] == 1

        response = graphql_client.mutate(MUTATIONS['update_fulfillment_status'], {
            'fulfillmentItemId': first_id, 'status': 'distributed', 'batchId': batch_id,
        })
        progress = graphql_client.get_data(response, 'data.updateFulfillmentStatus.progress')
        assert progress['status'] == 'in_progress'
        assert progress['progressPercentage'] == 50

        response = graphql_client.query(QUERIES['stickers'], {'batchId': batch_id, 'getAll': True})
        stickers = graphql_client.get_data(response, 'data.stickers')
        assert stickers['total'] == 2
        assert [s['sequenceNumber'] for s in stickers['stickers']] == [1, 2]
        assert stickers['stickers'][0]['productName'] == 'Blanket'

        response = graphql_client.query(QUERIES['distribution_batch'], {'id': batch_id})
        batch = graphql_client.get_data(response, 'data.distributionBatch')
        assert batch['distributedItems'] == 1
        assert batch['progressPercentage'] == 50

    def test_skipping_a_step_is_refused(self, graphql_client, operations_user, blanket):
        item = FulfillmentItemFactory(campaign_product=blanket)
        graphql_client.authenticate(operations_user)
        graphql_client.mutate(MUTATIONS['create_distribution_batch'], {
            'campaignProductId': str(blanket.pk),
            'name': 'Winter run',
            'plannedDistributionDate': timezone.localdate().isoformat(),
        })

        response = graphql_client.mutate(MUTATIONS['update_fulfillment_status'], {
            'fulfillmentItemId': str(item.pk), 'status': 'distributed',
        })

        result = graphql_client.get_data(response, 'data.updateFulfillmentStatus')
        assert result['success'] is False
        assert result['reason'] == 'INVALID_TRANSITION'

    def test_insufficient_items(self, graphql_client, operations_user, blanket):
        FulfillmentItemFactory(campaign_product=blanket)
        graphql_client.authenticate(operations_user)

        response = graphql_client.mutate(MUTATIONS['create_distribution_batch'], {
            'campaignProductId': str(blanket.pk),
            'name': 'Too big',
            'plannedDistributionDate': timezone.localdate().isoformat(),
            'quantity': 5,
        })

        result = graphql_client.get_data(response, 'data.createDistributionBatch')
        assert result['success'] is False
        assert result['reason'] == 'INSUFFICIENT_UNALLOCATED_ITEMS'

    def test_donor_cannot_manage_batches(self, graphql_client, donor_user, blanket):
        graphql_client.authenticate(donor_user)

        response = graphql_client.query(QUERIES['unassigned_count'], {'campaignProductId': str(blanket.pk)})

        graphql_client.assert_has_errors(response)
        assert response['errors'][0]['message'] == 'Requires operations privileges'


@pytest.mark.integration
class TestReports:
    """Integration tests for report generation."""

    def test_staff_downloads_excel_report(self, graphql_client, finance_user, campaign):
        DonationFactory(campaign=campaign, amount=Decimal('750.00'))
        graphql_client.authenticate(finance_user)

        response = graphql_client.mutate(MUTATIONS['generate_donation_report'], {
            'format': 'excel', 'reportType': 'monthly',
        })

        report = graphql_client.get_data(response, 'data.generateDonationReport')
        assert report['success'] is True
        assert report['filename'].startswith('donation_report_monthly_')
        assert report['filename'].endswith('.xlsx')
        assert base64.b64decode(report['fileData']).startswith(b'PK')

    def test_donor_refused(self, graphql_client, donor_user):
        graphql_client.authenticate(donor_user)

        response = graphql_client.mutate(MUTATIONS['generate_donation_report'], {
            'format': 'pdf', 'reportType': 'daily',
        })

        report = graphql_client.get_data(response, 'data.generateDonationReport')
        assert report['success'] is False
        assert report['fileData'] is None

    def test_invalid_format(self, graphql_client, admin_user):
        graphql_client.authenticate(admin_user)

        response = graphql_client.mutate(MUTATIONS['generate_donation_report'], {
            'format': 'csv', 'reportType': 'daily',
        })

        assert graphql_client.get_data(response, 'data.generateDonationReport.success') is False


@pytest.mark.integration
class TestBearerTokens:

    def test_invalid_token_is_anonymous(self, graphql_client):
        graphql_client.token = 'not-a-jwt'

        response = graphql_client.query(QUERIES['current_user_role'])

        assert graphql_client.get_data(response, 'data.currentUserRole.isAuthenticated') is False


@pytest.mark.integration
class TestOperatorMutations:
    """Integration tests for the remaining operator operations."""

    def test_cancel_batch_releases_items(self, graphql_client, operations_user, blanket):
        FulfillmentItemFactory(campaign_product=blanket)
        graphql_client.authenticate(operations_user)
        created = graphql_client.get_data(graphql_client.mutate(MUTATIONS['create_distribution_batch'], {
            'campaignProductId': str(blanket.pk),
            'name': 'Winter run',
            'plannedDistributionDate': timezone.localdate().isoformat(),
        }), 'data.createDistributionBatch')

        response = graphql_client.mutate('''
            mutation Cancel($batchId: ID!) {
                cancelDistributionBatch(batchId: $batchId) {
                    success
                    progress { status totalItems }
                }
            }
        ''', {'batchId': created['batch']['id']})

        result = graphql_client.get_data(response, 'data.cancelDistributionBatch')
        assert result['success'] is True
        assert result['progress'] == {'status': 'cancelled', 'totalItems': 0}
        summary = graphql_client.get_data(graphql_client.query('''
            query Summary($campaignProductId: ID!) {
                unassignedSummary(campaignProductId: $campaignProductId) {
                    remainingDonationItems
                    remainingQuantity
                }
            }
        ''', {'campaignProductId': str(blanket.pk)}), 'data.unassignedSummary')
        assert summary == {'remainingDonationItems': 1, 'remainingQuantity': 1}

    def test_finance_cancels_payment_request(self, graphql_client, finance_user, donor_user, blanket):
        intent = create_checkout_intent(donor_user, [(blanket, 1)])
        graphql_client.authenticate(finance_user)

        response = graphql_client.mutate('''
            mutation SetStatus($id: ID!, $status: String!) {
                setPaymentStatus(contributionIntentId: $id, status: $status) {
                    success
                    status
                }
            }
        ''', {'id': str(intent.pk), 'status': 'cancelled'})

        assert graphql_client.get_data(response, 'data.setPaymentStatus') == {'success': True, 'status': 'cancelled'}

    def test_batch_manifest_download(self, graphql_client, admin_user, blanket):
        FulfillmentItemFactory(campaign_product=blanket)
        graphql_client.authenticate(admin_user)
        created = graphql_client.get_data(graphql_client.mutate(MUTATIONS['create_distribution_batch'], {
            'campaignProductId': str(blanket.pk),
            'name': 'Winter run',
            'plannedDistributionDate': timezone.localdate().isoformat(),
        }), 'data.createDistributionBatch')

        response = graphql_client.mutate('''
            mutation Manifest($batchId: ID!) {
                generateBatchManifest(batchId: $batchId) {
                    success
                    filename
                    fileData
                }
            }
        ''', {'batchId': created['batch']['id']})

        manifest = graphql_client.get_data(response, 'data.generateBatchManifest')
        assert manifest['success'] is True
        assert manifest['filename'] == f"batch_{created['batch']['id']}_manifest.pdf"
        assert base64.b64decode(manifest['fileData']).startswith(b'%PDF')

    def test_donor_sees_own_items_only(self, graphql_client, donor_user, blanket):
        mine = FulfillmentItemFactory(campaign_product=blanket, donation=DonationFactory(user=donor_user))
        FulfillmentItemFactory(campaign_product=blanket)
        graphql_client.authenticate(donor_user)

        response = graphql_client.query('''
            query { fulfillmentItems { id productName } }
        ''')

        items = graphql_client.get_data(response, 'data.fulfillmentItems')
        assert items == [{'id': str(mine.pk), 'productName': 'Blanket'}]
