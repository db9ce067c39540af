"""
API tests for the Wallets app views.
"""

import shutil
import tempfile
import uuid
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from wallets.models import TransferRequest, TransferStatus
from wallets.tests.helpers import add_commission, add_order, make_admin, make_party

PDF_BYTES = b'%PDF-1.4\n%%EOF\n'


class WalletAPITestCase(TestCase):

    def setUp(self):
        """Set up test fixtures."""
        self.client = APIClient()
        self.admin = make_admin()
        self.client.force_authenticate(user=self.admin)

        self.party = make_party('Gulf Fuel', wallet_number='SA-4532-8976-1234')
        add_order(self.party, '1000.00')
        add_commission(self.party, '50.00')

        self.requests_url = reverse('wallets:requests')

    def create_request(self, amount='950.00'):
        return self.client.post(
            self.requests_url,
            {'party_id': str(self.party.pk), 'amount': amount},
            format='json'
        )

    def transition_url(self, name, request_id):
        return reverse(f'wallets:request-{name}', kwargs={'request_id': request_id})


class AuthenticationTest(WalletAPITestCase):

    def test_unauthenticated_requests_are_rejected(self):
        client = APIClient()
        response = client.get(reverse('wallets:balances'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_non_admin_is_forbidden(self):
        user = User.objects.create_user(username='driver', password='testpass123')
        client = APIClient()
        client.force_authenticate(user=user)

        response = client.post(
            self.requests_url,
            {'party_id': str(self.party.pk), 'amount': '10.00'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(TransferRequest.objects.exists())

    def test_session_login(self):
        client = APIClient()
        self.assertTrue(client.login(username='admin', password='testpass123'))
        response = client.get(reverse('wallets:balances'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class BalanceViewTest(WalletAPITestCase):

    def test_party_balance(self):
        url = reverse('wallets:party-balance', kwargs={'party_id': self.party.pk})
        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['balance']), Decimal('950.00'))
        self.assertEqual(str(response.data['party_id']), str(self.party.pk))

    def test_unknown_party_balance_is_zero(self):
        url = reverse('wallets:party-balance', kwargs={'party_id': uuid.uuid4()})
        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['balance']), Decimal('0.00'))

    def test_balance_change(self):
        url = reverse('wallets:party-balance-change', kwargs={'party_id': self.party.pk})
        response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['current']), Decimal('950.00'))
        self.assertIsNone(response.data['percent_change'])
        self.assertFalse(response.data['has_prior_data'])

    def test_balance_summary(self):
        make_party('Other')
        response = self.client.get(reverse('wallets:balances'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        rows = {row['display_name']: row for row in response.data['parties']}
        self.assertEqual(rows['Gulf Fuel']['balance'], '950.00')
        self.assertEqual(rows['Gulf Fuel']['wallet_number'], 'SA-4532-8976-1234')
        self.assertEqual(rows['Other']['balance'], '0.00')

    def test_store_failure_is_503(self):
        url = reverse('wallets:party-balance', kwargs={'party_id': self.party.pk})
        with patch('wallets.ledger.Order.objects.filter', side_effect=OperationalError('locked')):
            response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertTrue(response.data['retryable'])


class TransferRequestViewTest(WalletAPITestCase):

    def test_create_request(self):
        response = self.create_request()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], TransferStatus.PENDING)
        self.assertEqual(Decimal(response.data['transfer_amount']), Decimal('950.00'))
        self.assertEqual(len(response.data['transfer_number']), 8)
        self.assertEqual(response.data['party_name'], 'Gulf Fuel')

    def test_second_pending_request_is_409(self):
        self.create_request('100.00')
        response = self.create_request('100.00')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], TransferStatus.PENDING)
        self.assertEqual(TransferRequest.objects.count(), 1)

    def test_amount_above_balance_is_400(self):
        response = self.create_request('950.01')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('exceeds available balance', response.data['error'])

    def test_invalid_amounts_are_400(self):
        for amount in ('0', '-5.00', 'abc', '1.005'):
            response = self.create_request(amount)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, amount)
        self.assertFalse(TransferRequest.objects.exists())

    def test_missing_fields_are_400(self):
        response = self.client.post(self.requests_url, {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('party_id', response.data['error'])
        self.assertIn('amount', response.data['error'])

    def test_unknown_party_is_404(self):
        response = self.client.post(
            self.requests_url,
            {'party_id': str(uuid.uuid4()), 'amount': '10.00'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_requests(self):
        self.create_request('100.00')
        response = self.client.get(self.requests_url, {'status': TransferStatus.PENDING})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(self.requests_url, {'status': TransferStatus.TRANSFERRED})
        self.assertEqual(response.data['count'], 0)

    def test_list_rejects_unknown_status(self):
        response = self.client.get(self.requests_url, {'status': 'cancelled'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_includes_audit_trail(self):
        request_id = self.create_request().data['id']
        self.client.post(self.transition_url('approve', request_id))

        response = self.client.get(reverse('wallets:request-detail', kwargs={'request_id': request_id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [event['to_status'] for event in response.data['events']],
            [TransferStatus.PENDING, TransferStatus.APPROVED]
        )
        self.assertEqual(response.data['receipts'], [])

    def test_unknown_request_is_404(self):
        response = self.client.get(reverse('wallets:request-detail', kwargs={'request_id': uuid.uuid4()}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


@patch('wallets.transfers.generate_settlement_advice.delay')
class TransitionViewTest(WalletAPITestCase):

    def setUp(self):
        super().setUp()
        self.request_id = self.create_request().data['id']

    def balance(self):
        url = reverse('wallets:party-balance', kwargs={'party_id': self.party.pk})
        return Decimal(self.client.get(url).data['balance'])

    def test_approve_then_settle(self, mock_task):
        response = self.client.post(self.transition_url('approve', self.request_id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], TransferStatus.APPROVED)
        self.assertEqual(response.data['approved_by'], 'admin')
        self.assertEqual(self.balance(), Decimal('950.00'))

        response = self.client.post(self.transition_url('settle', self.request_id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], TransferStatus.TRANSFERRED)
        self.assertEqual(self.balance(), Decimal('0.00'))

    def test_settle_pending_is_409(self, mock_task):
        response = self.client.post(self.transition_url('settle', self.request_id))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], TransferStatus.PENDING)

    def test_reject_with_reason(self, mock_task):
        response = self.client.post(
            self.transition_url('reject', self.request_id),
            {'reason': 'Bank details missing'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], TransferStatus.REJECTED)
        self.assertEqual(response.data['rejection_reason'], 'Bank details missing')
        self.assertEqual(self.balance(), Decimal('950.00'))

    def test_reject_after_approval_is_409(self, mock_task):
        self.client.post(self.transition_url('approve', self.request_id))
        response = self.client.post(self.transition_url('reject', self.request_id))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], TransferStatus.APPROVED)

    def test_approve_and_settle(self, mock_task):
        response = self.client.post(self.transition_url('approve-and-settle', self.request_id))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], TransferStatus.TRANSFERRED)
        self.assertEqual(response.data['version'], 3)

    def test_retried_settle_is_409(self, mock_task):
        self.client.post(self.transition_url('approve-and-settle', self.request_id))
        response = self.client.post(self.transition_url('settle', self.request_id))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(self.balance(), Decimal('0.00'))

    def test_transition_on_unknown_request_is_404(self, mock_task):
        response = self.client.post(self.transition_url('approve', uuid.uuid4()))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ReceiptUploadViewTest(WalletAPITestCase):

    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        media = override_settings(MEDIA_ROOT=self.media_root)
        media.enable()
        self.addCleanup(media.disable)
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)

        self.request_id = self.create_request().data['id']
        self.url = self.transition_url('receipts', self.request_id)

    def test_upload_pdf(self):
        upload = SimpleUploadedFile('proof.pdf', PDF_BYTES, content_type='application/pdf')
        response = self.client.post(self.url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['receipt_url'].endswith('proof.pdf'))

        detail = self.client.get(reverse('wallets:request-detail', kwargs={'request_id': self.request_id}))
        self.assertEqual(detail.data['receipt_url'], response.data['receipt_url'])
        self.assertEqual(len(detail.data['receipts']), 1)
        self.assertEqual(detail.data['status'], TransferStatus.PENDING)

    def test_upload_wrong_type_is_400(self):
        upload = SimpleUploadedFile('notes.txt', b'not a receipt', content_type='text/plain')
        response = self.client.post(self.url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['retryable'])

    def test_upload_without_file_is_400(self):
        response = self.client.post(self.url, {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(WALLET_RECEIPT_MAX_BYTES=16)
    def test_oversized_upload_is_refused_before_reading(self):
        upload = SimpleUploadedFile('proof.pdf', PDF_BYTES + b'0' * 32, content_type='application/pdf')
        with patch('wallets.views.attach_receipt') as attach:
            response = self.client.post(self.url, {'file': upload}, format='multipart')

        attach.assert_not_called()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['retryable'])
        self.assertIn('limit is 16', response.data['error'])

    def test_storage_failure_is_502(self):
        upload = SimpleUploadedFile('proof.pdf', PDF_BYTES, content_type='application/pdf')
        with patch('wallets.receipts.default_storage.save', side_effect=OSError('disk full')):
            response = self.client.post(self.url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertTrue(response.data['retryable'])


class BackfillViewTest(WalletAPITestCase):

    def test_backfill_collection(self):
        TransferRequest.objects.create(
            party=self.party,
            transfer_amount=Decimal('5.00'),
            status=TransferStatus.REJECTED
        )

        response = self.client.post(reverse('wallets:backfill'), {'collection': 'transfer_requests'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'collection': 'transfer_requests', 'updated': 1})

        response = self.client.post(reverse('wallets:backfill'), {'collection': 'transfer_requests'}, format='json')
        self.assertEqual(response.data['updated'], 0)

    def test_unknown_collection_is_400(self):
        response = self.client.post(reverse('wallets:backfill'), {'collection': 'invoices'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
