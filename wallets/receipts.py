"""
Receipt attachment.

Receipts document a transfer request; they never take part in balance
computation and never change a request's status. A failed upload leaves any
transition that already committed untouched and can simply be retried.
"""

import logging
from io import BytesIO

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone
from django.utils.text import get_valid_filename
from PIL import Image

from .errors import AttachmentError, NotFoundError, translate_store_errors
from .ledger import parse_request_id
from .models import ReceiptKind, TransferReceipt, TransferRequest

logger = logging.getLogger(__name__)

EXTENSIONS = {
    'image/png': '.png',
    'image/jpeg': '.jpg',
    'image/gif': '.gif',
    'image/webp': '.webp',
    'application/pdf': '.pdf',
}


def sniff_content_type(data: bytes):
    """Content type of `data` if it is a PDF or an image Pillow can verify."""
    if data.startswith(b'%PDF-'):
        return 'application/pdf'
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
            image_format = image.format
    except Exception:
        # Pillow raises a range of error types on corrupt input.
        return None
    return Image.MIME.get(image_format)


def _storage_name(request_id, content_type, filename=None):
    stamp = timezone.now().strftime('%Y%m%d%H%M%S%f')
    try:
        name = get_valid_filename(filename) if filename else ''
    except SuspiciousFileOperation:
        name = ''
    if not name:
        name = 'receipt' + EXTENSIONS.get(content_type, '')
    return f"{settings.WALLET_RECEIPT_UPLOAD_DIR}/{request_id}/{stamp}-{name}"


@translate_store_errors
def attach_receipt(request_id, file_bytes, actor=None, filename=None, kind=ReceiptKind.PROOF):
    """
    Store a receipt for a transfer request and return its URL.

    Allowed in any state. Proof uploads also become the request's
    `receipt_url`; generated advices are only listed.

    Raises:
        NotFoundError: no such transfer request
        AttachmentError: empty, oversized or unsupported payload, or the
            blob store failed
    """
    request = TransferRequest.objects.filter(pk=parse_request_id(request_id)).only('pk').first()
    if request is None:
        raise NotFoundError(f'Transfer request {request_id} not found')

    if not file_bytes:
        raise AttachmentError('Receipt is empty')
    size = len(file_bytes)
    if size > settings.WALLET_RECEIPT_MAX_BYTES:
        raise AttachmentError(
            f'Receipt is {size} bytes; the limit is {settings.WALLET_RECEIPT_MAX_BYTES}'
        )

    content_type = sniff_content_type(file_bytes)
    if content_type not in settings.WALLET_RECEIPT_CONTENT_TYPES:
        raise AttachmentError('Receipt must be an image or a PDF')

    try:
        stored_name = default_storage.save(
            _storage_name(request.pk, content_type, filename),
            ContentFile(file_bytes),
        )
        url = default_storage.url(stored_name)
    except Exception as exc:
        logger.exception('Receipt upload failed for transfer request %s', request.pk)
        raise AttachmentError(f'Receipt storage failed: {exc}', retryable=True) from exc

    with transaction.atomic():
        TransferReceipt.objects.create(
            request_id=request.pk,
            kind=kind,
            storage_name=stored_name,
            url=url,
            content_type=content_type,
            size=size,
            uploaded_by=actor,
        )
        if kind == ReceiptKind.PROOF:
            TransferRequest.objects.filter(pk=request.pk).update(receipt_url=url)

    logger.info('Attached %s receipt %s to transfer request %s', kind, stored_name, request.pk)
    return url
