"""
Tests for receipt attachment and settlement advices.
"""

import shutil
import tempfile
import uuid
from io import BytesIO
from unittest.mock import patch

from celery.exceptions import Retry
from django.test import TestCase, override_settings
from PIL import Image

from wallets.errors import AttachmentError, NotFoundError, ValidationError
from wallets.models import ReceiptKind, TransferReceipt, TransferRequest, TransferStatus
from wallets.receipts import attach_receipt, sniff_content_type
from wallets.tasks import generate_settlement_advice, render_settlement_advice
from wallets.tests.helpers import add_order, make_admin, make_party
from wallets.transfers import (
    approve_and_settle,
    approve_transfer_request,
    create_transfer_request,
    reject_transfer_request,
)

PDF_BYTES = b'%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< >>\n%%EOF\n'


def image_bytes(image_format='PNG'):
    buffer = BytesIO()
    Image.new('RGB', (8, 8), color=(200, 30, 30)).save(buffer, format=image_format)
    return buffer.getvalue()


class ReceiptTestCase(TestCase):

    def setUp(self):
        """Set up test fixtures."""
        self.media_root = tempfile.mkdtemp()
        media = override_settings(MEDIA_ROOT=self.media_root)
        media.enable()
        self.addCleanup(media.disable)
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)

        self.admin = make_admin()
        self.party = make_party('Gulf Fuel')
        add_order(self.party, '500.00')
        self.request = create_transfer_request(self.party.pk, '200.00', self.admin)


class SniffContentTypeTest(TestCase):

    def test_recognises_images_and_pdf(self):
        self.assertEqual(sniff_content_type(image_bytes('PNG')), 'image/png')
        self.assertEqual(sniff_content_type(image_bytes('JPEG')), 'image/jpeg')
        self.assertEqual(sniff_content_type(PDF_BYTES), 'application/pdf')

    def test_unknown_payloads(self):
        self.assertIsNone(sniff_content_type(b'plain text, not a receipt'))
        self.assertIsNone(sniff_content_type(image_bytes('PNG')[:20]))


class AttachReceiptTest(ReceiptTestCase):

    def test_attach_png(self):
        url = attach_receipt(self.request.pk, image_bytes(), actor=self.admin, filename='proof.png')

        self.assertTrue(url.startswith('/media/transfer-receipts/'))
        self.assertTrue(url.endswith('proof.png'))

        receipt = TransferReceipt.objects.get(request=self.request)
        self.assertEqual(receipt.kind, ReceiptKind.PROOF)
        self.assertEqual(receipt.content_type, 'image/png')
        self.assertEqual(receipt.uploaded_by, self.admin)
        self.assertEqual(receipt.url, url)

        self.request.refresh_from_db()
        self.assertEqual(self.request.receipt_url, url)

    def test_attach_pdf_without_filename(self):
        url = attach_receipt(self.request.pk, PDF_BYTES)

        self.assertTrue(url.endswith('.pdf'))
        self.assertEqual(TransferReceipt.objects.get().content_type, 'application/pdf')

    def test_attach_does_not_change_status_or_balance(self):
        approve_transfer_request(self.request.pk, self.admin)
        attach_receipt(self.request.pk, PDF_BYTES, actor=self.admin)

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, TransferStatus.APPROVED)
        self.assertEqual(self.request.version, 2)

    def test_attach_allowed_on_terminal_requests(self):
        reject_transfer_request(self.request.pk, self.admin)

        url = attach_receipt(self.request.pk, image_bytes('JPEG'), actor=self.admin)

        self.request.refresh_from_db()
        self.assertEqual(self.request.status, TransferStatus.REJECTED)
        self.assertEqual(self.request.receipt_url, url)

    def test_later_proof_replaces_receipt_url(self):
        first = attach_receipt(self.request.pk, PDF_BYTES)
        second = attach_receipt(self.request.pk, image_bytes())

        self.assertNotEqual(first, second)
        self.request.refresh_from_db()
        self.assertEqual(self.request.receipt_url, second)
        self.assertEqual(TransferReceipt.objects.filter(request=self.request).count(), 2)

    def test_upload_at_size_limit_is_accepted(self):
        payload = PDF_BYTES.ljust(5 * 1024 * 1024, b' ')

        attach_receipt(self.request.pk, payload)

        self.assertEqual(TransferReceipt.objects.get().size, 5 * 1024 * 1024)

    def test_oversized_upload_is_rejected(self):
        payload = PDF_BYTES.ljust(5 * 1024 * 1024 + 1, b' ')

        with self.assertRaises(AttachmentError) as ctx:
            attach_receipt(self.request.pk, payload)

        self.assertFalse(ctx.exception.retryable)
        self.assertFalse(TransferReceipt.objects.exists())

    @override_settings(WALLET_RECEIPT_MAX_BYTES=16)
    def test_size_limit_is_configurable(self):
        with self.assertRaises(AttachmentError):
            attach_receipt(self.request.pk, image_bytes())

    def test_unsupported_type_is_rejected(self):
        for payload in (b'just some text', b'PK\x03\x04 zip archive'):
            with self.assertRaises(AttachmentError) as ctx:
                attach_receipt(self.request.pk, payload)
            self.assertFalse(ctx.exception.retryable)

        self.request.refresh_from_db()
        self.assertEqual(self.request.receipt_url, '')

    def test_empty_upload_is_rejected(self):
        with self.assertRaises(AttachmentError):
            attach_receipt(self.request.pk, b'')

    def test_unknown_request(self):
        with self.assertRaises(NotFoundError):
            attach_receipt(uuid.uuid4(), PDF_BYTES)

    def test_malformed_request_id(self):
        with self.assertRaises(ValidationError):
            attach_receipt('not-a-request', PDF_BYTES)

    def test_hostile_filename_is_replaced(self):
        url = attach_receipt(self.request.pk, PDF_BYTES, filename='..')

        self.assertTrue(url.endswith('-receipt.pdf'))

    def test_storage_failure_is_retryable_and_leaves_request_alone(self):
        approve_transfer_request(self.request.pk, self.admin)

        with patch('wallets.receipts.default_storage.save', side_effect=OSError('disk full')):
            with self.assertRaises(AttachmentError) as ctx:
                attach_receipt(self.request.pk, PDF_BYTES, actor=self.admin)

        self.assertTrue(ctx.exception.retryable)
        self.request.refresh_from_db()
        self.assertEqual(self.request.status, TransferStatus.APPROVED)
        self.assertEqual(self.request.receipt_url, '')
        self.assertFalse(TransferReceipt.objects.exists())

        # The upload can simply be retried.
        attach_receipt(self.request.pk, PDF_BYTES, actor=self.admin)
        self.assertEqual(TransferReceipt.objects.count(), 1)


class SettlementAdviceTest(ReceiptTestCase):

    def test_render_settlement_advice(self):
        settled = approve_and_settle(self.request.pk, self.admin)

        pdf = render_settlement_advice(settled)

        self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertEqual(sniff_content_type(pdf), 'application/pdf')

    def test_advice_is_attached_after_settlement(self):
        with patch('wallets.transfers.generate_settlement_advice.delay') as mock_task:
            with self.captureOnCommitCallbacks(execute=True):
                approve_and_settle(self.request.pk, self.admin)
        mock_task.assert_called_once_with(str(self.request.pk))

        url = generate_settlement_advice(str(self.request.pk))

        receipt = TransferReceipt.objects.get(request=self.request)
        self.assertEqual(receipt.kind, ReceiptKind.ADVICE)
        self.assertEqual(receipt.url, url)
        self.assertIsNone(receipt.uploaded_by)
        self.assertIn(self.request.transfer_number, url)

        # Advices are listed but do not replace the proof of transfer.
        self.request.refresh_from_db()
        self.assertEqual(self.request.receipt_url, '')

    def test_no_advice_for_unsettled_request(self):
        self.assertEqual(generate_settlement_advice(str(self.request.pk)), '')
        self.assertFalse(TransferReceipt.objects.exists())

    def test_storage_failure_retries_task(self):
        TransferRequest.objects.filter(pk=self.request.pk).update(
            status=TransferStatus.TRANSFERRED, transferred_at=self.request.created_at
        )

        with patch('wallets.receipts.default_storage.save', side_effect=OSError('bucket unavailable')):
            with patch.object(generate_settlement_advice, 'retry', return_value=Retry()) as mock_retry:
                with self.assertRaises(Retry):
                    generate_settlement_advice(str(self.request.pk))

        mock_retry.assert_called_once()
        self.assertFalse(TransferReceipt.objects.exists())
