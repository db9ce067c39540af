"""
Celery tasks for the Wallets app.

This module contains background work triggered after a settlement commits.
"""

import logging
from io import BytesIO

from celery import shared_task
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)


def render_settlement_advice(request) -> bytes:
    """Render a one-page PDF describing a settled transfer request."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # Header
    c.setFont("Helvetica-Bold", 22)
    c.drawCentredString(width / 2, height - 1 * inch, "Settlement Advice")

    c.setLineWidth(2)
    c.line(1 * inch, height - 1.3 * inch, width - 1 * inch, height - 1.3 * inch)

    c.setFont("Helvetica", 12)
    y_position = height - 2 * inch
    line_height = 0.4 * inch

    party = request.party
    details = [
        ("Transfer number:", request.transfer_number or str(request.pk)),
        ("Settled at:", request.transferred_at.strftime('%Y-%m-%d %H:%M:%S UTC')),
        ("", ""),
        ("Beneficiary:", party.display_name),
        ("Email:", party.email),
        ("Wallet number:", party.wallet_number or "-"),
        ("", ""),
        ("Amount:", f"{request.transfer_amount:,.2f}"),
    ]

    for label, value in details:
        if label:
            c.setFont("Helvetica-Bold", 12)
            c.drawString(1.5 * inch, y_position, label)
            c.setFont("Helvetica", 12)
            c.drawString(3.5 * inch, y_position, value)
        y_position -= line_height

    c.setFont("Helvetica-Oblique", 10)
    c.drawCentredString(
        width / 2,
        1 * inch,
        "This advice was generated automatically when the transfer was settled."
    )

    c.save()
    return buffer.getvalue()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def generate_settlement_advice(self, request_id: str) -> str:
    """
    Render and attach the settlement advice for a transferred request.

    Storage failures are retried; anything else is left to the caller.

    Returns:
        The URL of the stored advice, or '' if there is nothing to document.
    """
    # Import here to avoid circular imports
    from wallets.errors import AttachmentError
    from wallets.models import ReceiptKind, TransferRequest, TransferStatus
    from wallets.receipts import attach_receipt

    request = (
        TransferRequest.objects
        .select_related('party')
        .filter(pk=request_id, status=TransferStatus.TRANSFERRED)
        .first()
    )
    if request is None:
        logger.warning('No settled transfer request %s; skipping advice', request_id)
        return ''

    pdf = render_settlement_advice(request)
    try:
        return attach_receipt(
            request.pk,
            pdf,
            filename=f"advice-{request.transfer_number or request.pk}.pdf",
            kind=ReceiptKind.ADVICE,
        )
    except AttachmentError as exc:
        if exc.retryable:
            raise self.retry(exc=exc)
        raise
