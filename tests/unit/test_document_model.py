"""Unit tests for the document, customer and settings models"""

import pytest
from datetime import date
from decimal import Decimal

from invoicehub.models.app_settings import AppSettings, merge_settings
from invoicehub.models.customer import CustomerAddress
from invoicehub.models.document import (
    CompanyTag,
    CustomerSnapshot,
    Document,
    DocumentPatch,
    DocumentType,
    PaymentState,
    Product,
    QuoteState,
)


@pytest.mark.unit
class TestDocumentModel:
    def test_quote_status_from_payment_space_is_normalized(self):
        doc = Document(id="q", number="QT-1", document_type=DocumentType.QUOTE,
                       status="PAID", issue_date=date(2024, 1, 1))
        assert doc.status == QuoteState.ACCEPTED

        pending = Document(id="q2", number="QT-2", document_type=DocumentType.QUOTE,
                           status="UNPAID", issue_date=date(2024, 1, 1))
        assert pending.status == QuoteState.PENDING

    def test_invoice_status_from_quote_space_is_unpaid(self):
        doc = Document(id="i", number="INV-1", status="ACCEPTED", issue_date=date(2024, 1, 1))
        assert doc.status == PaymentState.UNPAID

    def test_iso_timestamps_collapse_to_dates(self):
        doc = Document(
            id="i",
            number="INV-1",
            issue_date="2024-03-01T10:15:00Z",
            due_date="",
            last_reminder_sent="2024-03-05T08:00:00Z",
        )
        assert doc.issue_date == date(2024, 3, 1)
        assert doc.due_date is None
        assert doc.last_reminder_sent == date(2024, 3, 5)

    def test_null_reminder_count_reads_as_zero(self):
        doc = Document(id="i", number="INV-1", issue_date=date(2024, 1, 1), reminder_count=None)
        assert doc.reminder_count == 0

    def test_title_and_flags(self, sample_document, sample_quote):
        assert sample_document.title == "Invoice"
        assert sample_quote.title == "Quote"
        assert sample_quote.is_quote
        assert not sample_document.is_paid


@pytest.mark.unit
class TestDocumentPatch:
    def test_only_set_fields_are_changes(self):
        patch = DocumentPatch(amount_paid=Decimal("10"), payment_date=None)
        assert patch.changes() == {"amount_paid": Decimal("10"), "payment_date": None}

    def test_reminder_fields_detected(self):
        assert DocumentPatch(reminder_count=1).touches_reminder_fields()
        assert not DocumentPatch(notes="x").touches_reminder_fields()

    def test_apply_to_merges_and_clears(self, sample_document):
        patch = DocumentPatch(notes=None, status=PaymentState.PARTIALLY_PAID)
        updated = patch.apply_to(sample_document)

        assert updated.notes is None
        assert updated.status == PaymentState.PARTIALLY_PAID
        assert updated.items == sample_document.items
        assert sample_document.notes is not None


@pytest.mark.unit
class TestSnapshotAndProducts:
    def test_snapshot_from_customer(self, sample_customer):
        snapshot = CustomerSnapshot.from_customer(sample_customer)

        assert snapshot.name == "Mary Walsh"
        assert snapshot.address == "12 Main Street, Clonmel, E91 X2Y3, Ireland"
        assert snapshot.address_lines() == ["12 Main Street", "Clonmel", "E91 X2Y3", "Ireland"]

    def test_snapshot_is_immutable(self, sample_document):
        with pytest.raises(Exception):
            sample_document.customer.name = "Someone else"

    def test_empty_address_one_line(self):
        assert CustomerAddress(country=None).one_line() == ""

    @pytest.mark.parametrize("category,expected", [
        ("Mirrors", CompanyTag.MIRRORZONE),
        ("Bathroom mirror units", CompanyTag.MIRRORZONE),
        ("Glass", CompanyTag.CLONMEL),
        ("", CompanyTag.CLONMEL),
    ])
    def test_untagged_product_company_from_category(self, category, expected):
        product = Product(id="p", name="P", price=Decimal("1"), category=category)
        assert product.resolved_company() == expected

    def test_explicit_company_wins(self):
        product = Product(id="p", name="P", price=Decimal("1"), category="Mirrors",
                          company=CompanyTag.CLONMEL)
        assert product.resolved_company() == CompanyTag.CLONMEL


@pytest.mark.unit
class TestAppSettings:
    def test_profile_for_company(self):
        app_settings = AppSettings()

        assert app_settings.profile_for(CompanyTag.MIRRORZONE).name == "MirrorZone"
        assert app_settings.profile_for(CompanyTag.CLONMEL).name == "Clonmel Glass & Mirrors Ltd"
        assert app_settings.profile_for(None).name == "Clonmel Glass & Mirrors Ltd"

    def test_merge_keeps_untouched_fields(self):
        current = AppSettings(webhook_url="https://hooks.example.com/email")
        merged = merge_settings(current, {"vat_number": "IE1234567X", "mirrorzone": {"phone": "01 555 0000"}})

        assert merged.webhook_url == "https://hooks.example.com/email"
        assert merged.vat_number == "IE1234567X"
        assert merged.mirrorzone.phone == "01 555 0000"
        assert merged.mirrorzone.iban == current.mirrorzone.iban
