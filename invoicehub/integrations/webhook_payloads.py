"""JSON payloads for the email-send automation and the Xero export"""

from datetime import datetime
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Any, Dict, Optional

from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer, User
from invoicehub.models.decimal_wire import decimal_to_number, decimal_to_wire
from invoicehub.models.document import Document, LineItem
from invoicehub.pdf.document_renderer import encode_pdf_base64, pdf_filename
from invoicehub.services.calculator import SQM_UNIT, round_money
from invoicehub.utils.formatting import euro, to_dd_mm_yyyy

WEBHOOK_TYPE = "INVOICE_SEND"
DEFAULT_NOTIFICATION = "Manual Send"
CURRENCY = "EUR"

XERO_ACCOUNT_CODE = "200"
XERO_SOURCE = "Clonmel Glass Invoice Hub"
UNIT_AMOUNT_PRECISION = Decimal("0.0001")


def _iso_utc(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_email_payload(
    document: Document,
    app_settings: AppSettings,
    pdf_bytes: bytes,
    customer: Optional[Customer] = None,
    notification_type: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Envelope posted to the email-send webhook.

    Money is sent as ``€`` display strings, dates as DD-MM-YYYY; the
    customer block merges the document's snapshot with CRM-only fields.
    """
    name = document.customer.name or ""
    name_parts = name.split(" ")

    return {
        "generatedAt": _iso_utc(generated_at or datetime.utcnow()),
        "webhookType": WEBHOOK_TYPE,
        "notificationType": notification_type or DEFAULT_NOTIFICATION,
        "filename": pdf_filename(document),
        "pdfBase64": encode_pdf_base64(pdf_bytes),
        "invoice": {
            "id": document.id,
            "number": document.number,
            "status": document.status.value,
            "dateIssued": to_dd_mm_yyyy(document.issue_date),
            "dueDate": to_dd_mm_yyyy(document.due_date),
            "currency": CURRENCY,
            "notes": document.notes,
            "reminderCount": document.reminder_count or 0,
            "totals": {
                "subtotal": euro(document.subtotal),
                "taxRate": decimal_to_number(document.tax_rate),
                "taxAmount": euro(document.tax_amount),
                "total": euro(document.total),
                "amountPaid": euro(document.amount_paid),
                "balanceDue": euro(document.balance_due),
            },
            "items": [
                {
                    "description": item.description,
                    "quantity": decimal_to_number(item.quantity),
                    "unitPrice": euro(item.unit_price),
                    "total": euro(item.total),
                    "unit": item.unit,
                }
                for item in document.items
            ],
        },
        "customer": {
            "id": document.customer_id,
            "name": name,
            "firstName": name_parts[0] if name else "",
            "lastName": " ".join(name_parts[1:]) if name else "",
            "email": document.customer.email,
            "phone": document.customer.phone,
            "address": document.customer.address,
            "city": customer.address.city if customer else None,
            "postalCode": customer.address.postal_code if customer else None,
            "country": customer.address.country if customer else None,
            "companyName": customer.company if customer else None,
            "tags": customer.tags if customer else None,
            "crmNotes": customer.notes if customer else None,
        },
        "sender": {
            "company": document.company.value,
            "taxId": app_settings.vat_number,
        },
    }


def is_area_priced(item: LineItem) -> bool:
    return item.unit == SQM_UNIT or SQM_UNIT in (item.description or "").lower()


def xero_line_item(item: LineItem, tax_rate: Decimal) -> Dict[str, Any]:
    """
    One Xero line with its own tax amount.

    Fractional square-metre quantities are rounded up to a whole number and
    the unit amount re-derived so the line value is unchanged.
    """
    line_value = item.quantity * item.unit_price
    tax_amount = round_money(line_value * tax_rate / Decimal("100"))

    if is_area_priced(item) and item.quantity > 0 and item.quantity != item.quantity.to_integral_value():
        whole_qty = item.quantity.to_integral_value(rounding=ROUND_CEILING)
        unit_amount = (line_value / whole_qty).quantize(UNIT_AMOUNT_PRECISION, rounding=ROUND_HALF_UP)
        return {
            "Description": (
                f"{item.description} (Qty Adjusted: {decimal_to_wire(item.quantity)} -> {whole_qty})"
            ),
            "Quantity": int(whole_qty),
            "UnitAmount": decimal_to_number(unit_amount),
            "TaxAmount": decimal_to_number(tax_amount),
            "AccountCode": XERO_ACCOUNT_CODE,
        }

    return {
        "Description": item.description,
        "Quantity": decimal_to_number(item.quantity),
        "UnitAmount": decimal_to_number(item.unit_price),
        "TaxAmount": decimal_to_number(tax_amount),
        "AccountCode": XERO_ACCOUNT_CODE,
    }


def build_xero_payload(
    document: Document,
    customer: Optional[Customer],
    app_settings: AppSettings,
    user: Optional[User] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """``ACCREC`` invoice for the Xero webhook; CRM contact data wins over the snapshot"""
    snapshot = document.customer
    address = customer.address if customer else None
    phone = customer.phone if customer else None

    return {
        "Type": "ACCREC",
        "Contact": {
            "Name": (customer.name if customer else None) or snapshot.name or "Unknown Customer",
            "EmailAddress": (customer.email if customer else None) or snapshot.email or "",
            "Phones": [{"PhoneType": "DEFAULT", "PhoneNumber": phone}] if phone else [],
            "Addresses": [
                {
                    "AddressType": "POBOX",
                    "AddressLine1": (address.line1 if address else None) or snapshot.address or "",
                    "AddressLine2": (address.line2 if address else None) or "",
                    "City": (address.city if address else None) or "",
                    "Region": (address.region if address else None) or "",
                    "PostalCode": (address.postal_code if address else None) or "",
                    "Country": (address.country if address else None) or "",
                }
            ],
        },
        "Date": document.issue_date.isoformat(),
        "DueDate": (document.due_date or document.issue_date).isoformat(),
        "Reference": document.number,
        "Status": "AUTHORISED",
        "LineAmountTypes": "Exclusive",
        "LineItems": [xero_line_item(item, document.tax_rate or Decimal("0")) for item in document.items],
        "_metadata": {
            "source": XERO_SOURCE,
            "transferredBy": (user.email if user else None) or "system",
            "timestamp": _iso_utc(timestamp or datetime.utcnow()),
            "company": app_settings.clonmel.name,
        },
    }
