"""Human-readable document numbers"""

from datetime import datetime
from typing import Optional
import random

from invoicehub.models.document import Document, DocumentType

INVOICE_PREFIX = "INV"
QUOTE_PREFIX = "QT"


def provisional_number(document_type: DocumentType, now: Optional[datetime] = None) -> str:
    """``INV-`` / ``QT-`` plus the last six digits of the epoch milliseconds"""
    now = now or datetime.now()
    millis = str(int(now.timestamp() * 1000))
    prefix = QUOTE_PREFIX if document_type == DocumentType.QUOTE else INVOICE_PREFIX
    return f"{prefix}-{millis[-6:]}"


def conversion_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """Fresh invoice number minted when a quote becomes an invoice"""
    now = now or datetime.now()
    rng = rng or random
    return f"{INVOICE_PREFIX}-{now.year}-{rng.randint(1000, 9999)}"


def needs_fresh_invoice_number(document: Document) -> bool:
    """An invoice still carrying its quote number was just converted"""
    return document.document_type == DocumentType.INVOICE and document.number[:2] in ("QT", "qt")


def is_quote(document: Document) -> bool:
    return document.is_quote
