"""Unit tests for the email and Xero webhook payloads"""

import pytest
from datetime import datetime
from decimal import Decimal

from invoicehub.integrations.webhook_payloads import (
    build_email_payload,
    build_xero_payload,
    is_area_priced,
    xero_line_item,
)
from invoicehub.models.document import LineItem


GENERATED = datetime(2024, 4, 10, 8, 30, 15, 123456)


def _area_item(quantity: str, unit_price: str = "30.00") -> LineItem:
    qty, price = Decimal(quantity), Decimal(unit_price)
    return LineItem(
        id="a",
        description="4mm Silver Mirror (1234mm x 567mm)",
        quantity=qty,
        unit_price=price,
        total=(qty * price).quantize(Decimal("0.01")),
        unit="sqm",
    )


@pytest.mark.unit
class TestEmailPayload:
    def test_envelope(self, sample_document, sample_settings, sample_customer):
        payload = build_email_payload(
            sample_document, sample_settings, b"%PDF-1.4", customer=sample_customer, generated_at=GENERATED
        )

        assert payload["generatedAt"] == "2024-04-10T08:30:15.123Z"
        assert payload["webhookType"] == "INVOICE_SEND"
        assert payload["notificationType"] == "Manual Send"
        assert payload["filename"] == "INV-482913.pdf"
        assert payload["pdfBase64"] == "JVBERi0xLjQ="
        assert payload["sender"] == {"company": "clonmel", "taxId": "IE8252470Q"}

    def test_invoice_block_formats(self, sample_document, sample_settings):
        invoice = build_email_payload(sample_document, sample_settings, b"", generated_at=GENERATED)["invoice"]

        assert invoice["dateIssued"] == "01-03-2024"
        assert invoice["dueDate"] == "31-03-2024"
        assert invoice["currency"] == "EUR"
        assert invoice["totals"] == {
            "subtotal": "€100.00",
            "taxRate": 23.0,
            "taxAmount": "€23.00",
            "total": "€123.00",
            "amountPaid": "€0.00",
            "balanceDue": "€123.00",
        }
        assert invoice["items"][0]["unitPrice"] == "€100.00"
        assert invoice["items"][0]["quantity"] == 1.0

    def test_customer_block_merges_crm_fields(self, sample_document, sample_settings, sample_customer):
        customer = build_email_payload(
            sample_document, sample_settings, b"", customer=sample_customer, notification_type="Follow-up / Reminder"
        )["customer"]

        assert customer["firstName"] == "Mary"
        assert customer["lastName"] == "Walsh"
        assert customer["address"] == sample_document.customer.address
        assert customer["city"] == "Clonmel"
        assert customer["companyName"] == "Walsh Interiors"
        assert customer["crmNotes"] == "Prefers email"

    def test_customer_block_without_crm_record(self, sample_document, sample_settings):
        customer = build_email_payload(sample_document, sample_settings, b"")["customer"]

        assert customer["city"] is None
        assert customer["tags"] is None


@pytest.mark.unit
class TestXeroLineItems:
    def test_whole_quantity_passes_through(self, sample_document):
        line = xero_line_item(sample_document.items[0], Decimal("23"))

        assert line == {
            "Description": "6mm Toughened Glass",
            "Quantity": 1.0,
            "UnitAmount": 100.0,
            "TaxAmount": 23.0,
            "AccountCode": "200",
        }

    def test_fractional_sqm_rounded_up_with_same_value(self):
        line = xero_line_item(_area_item("0.5"), Decimal("23"))

        assert line["Quantity"] == 1
        assert line["UnitAmount"] == 15.0
        assert line["TaxAmount"] == 3.45
        assert line["Description"].endswith("(Qty Adjusted: 0.5 -> 1)")

    def test_unit_amount_kept_to_four_places(self):
        # 2.5 * 10.01 = 25.025 over 3 units
        line = xero_line_item(_area_item("2.5", "10.01"), Decimal("0"))

        assert line["Quantity"] == 3
        assert line["UnitAmount"] == 8.3417

    def test_area_detected_from_description(self):
        item = LineItem(id="x", description="Mirror 2.4 SQM", quantity=Decimal("2.4"),
                        unit_price=Decimal("10"), total=Decimal("24.00"))

        assert is_area_priced(item)
        assert xero_line_item(item, Decimal("0"))["Quantity"] == 3

    def test_fractional_piece_quantity_untouched(self):
        item = LineItem(id="x", description="Edging", quantity=Decimal("1.5"), unit="m",
                        unit_price=Decimal("4"), total=Decimal("6.00"))
        assert xero_line_item(item, Decimal("0"))["Quantity"] == 1.5


@pytest.mark.unit
class TestXeroPayload:
    def test_contact_prefers_crm_record(self, sample_document, sample_customer, sample_settings, sample_user):
        payload = build_xero_payload(sample_document, sample_customer, sample_settings,
                                     user=sample_user, timestamp=GENERATED)

        contact = payload["Contact"]
        assert contact["Name"] == "Mary Walsh"
        assert contact["Phones"] == [{"PhoneType": "DEFAULT", "PhoneNumber": "087 123 4567"}]
        assert contact["Addresses"][0]["AddressLine1"] == "12 Main Street"
        assert contact["Addresses"][0]["Region"] == "Tipperary"
        assert payload["Type"] == "ACCREC"
        assert payload["Status"] == "AUTHORISED"
        assert payload["LineAmountTypes"] == "Exclusive"
        assert payload["Date"] == "2024-03-01"
        assert payload["DueDate"] == "2024-03-31"
        assert payload["Reference"] == "INV-482913"
        assert payload["_metadata"]["transferredBy"] == "sean@clonmelglass.ie"
        assert payload["_metadata"]["timestamp"] == "2024-04-10T08:30:15.123Z"

    def test_contact_falls_back_to_snapshot(self, sample_document, sample_settings):
        payload = build_xero_payload(sample_document, None, sample_settings)
        contact = payload["Contact"]

        assert contact["Name"] == "Mary Walsh"
        assert contact["EmailAddress"] == "mary@example.ie"
        assert contact["Phones"] == []
        assert contact["Addresses"][0]["AddressLine1"] == sample_document.customer.address
        assert payload["_metadata"]["transferredBy"] == "system"

    def test_due_date_defaults_to_issue_date(self, sample_document, sample_settings):
        doc = sample_document.model_copy(update={"due_date": None})
        assert build_xero_payload(doc, None, sample_settings)["DueDate"] == "2024-03-01"
