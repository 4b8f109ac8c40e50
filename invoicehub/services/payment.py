"""Payment recording for invoices (UNPAID -> PARTIALLY_PAID -> PAID)"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
import logging

from invoicehub.errors import DocumentValidationError
from invoicehub.models.document import Document, DocumentPatch, PaymentState

logger = logging.getLogger(__name__)

# Any balance at or below this is treated as settled (absorbs rounding residue)
FULLY_PAID_TOLERANCE = Decimal("0.05")

ZERO = Decimal("0.00")


def record_payment(
    document: Document,
    amount: Union[Decimal, int, float, str],
    now: Optional[datetime] = None,
) -> Optional[DocumentPatch]:
    """
    Compute the patch for a payment of ``amount`` against ``document``.

    Returns None for amounts <= 0. Only the payment fields are touched;
    line items and totals are left alone.

    Raises:
        DocumentValidationError: if the document is a quote
    """
    if document.is_quote:
        raise DocumentValidationError(f"Cannot record a payment against quote {document.number}")

    amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if amount <= 0:
        logger.info(f"Ignoring non-positive payment {amount} for {document.number}")
        return None

    new_paid = min(document.total, document.amount_paid + amount)
    new_balance = document.total - new_paid
    status = PaymentState.PAID if new_balance <= FULLY_PAID_TOLERANCE else PaymentState.PARTIALLY_PAID

    changes = {
        "amount_paid": new_paid,
        "balance_due": ZERO if status == PaymentState.PAID else max(ZERO, new_balance),
        "status": status,
    }
    if status == PaymentState.PAID and not document.is_paid:
        changes["payment_date"] = now or datetime.utcnow()
    patch = DocumentPatch(**changes)

    logger.info(f"Payment of {amount} on {document.number}: paid={new_paid} status={status.value}")
    return patch


def apply_payment(
    document: Document,
    amount: Union[Decimal, int, float, str],
    now: Optional[datetime] = None,
) -> Document:
    """``document`` with the payment applied; unchanged for amounts <= 0"""
    patch = record_payment(document, amount, now=now)
    if patch is None:
        return document
    return patch.apply_to(document)
