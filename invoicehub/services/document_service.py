"""Document lifecycle: drafts, save, conversion, payments, reminders, delete"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from invoicehub.errors import DocumentNotFoundError, DocumentValidationError
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer, CustomerAddress, User
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
from invoicehub.services.calculator import apply_totals
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.numbering import conversion_number, needs_fresh_invoice_number, provisional_number
from invoicehub.services.payment import FULLY_PAID_TOLERANCE, record_payment

logger = logging.getLogger(__name__)

QUOTE_VALIDITY_DAYS = 30
AUTO_CREATED_TAG = "Auto-Created"


def validate_for_save(document: Document) -> None:
    """
    Reject documents that must never reach the store.

    Raises:
        DocumentValidationError: no customer name or no line items
    """
    if not (document.customer.name or "").strip():
        raise DocumentValidationError("Please fill in customer details and add at least one item.")
    if not document.items:
        raise DocumentValidationError("Please fill in customer details and add at least one item.")


def _settled_status(document: Document):
    """Status consistent with the document's type and amount paid"""
    if document.document_type == DocumentType.QUOTE:
        if isinstance(document.status, PaymentState):
            return QuoteState.ACCEPTED if document.status == PaymentState.PAID else QuoteState.PENDING
        return document.status

    status = document.status if isinstance(document.status, PaymentState) else PaymentState.UNPAID
    if document.amount_paid > 0:
        balance = document.total - document.amount_paid
        status = PaymentState.PAID if balance <= FULLY_PAID_TOLERANCE else PaymentState.PARTIALLY_PAID
    return status


def products_for_company(products: List[Product], company: CompanyTag) -> List[Product]:
    """Catalog entries offered when building a document for ``company``"""
    return [p for p in products if p.resolved_company() == company]


def new_draft(
    document_type: DocumentType,
    company: CompanyTag,
    app_settings: AppSettings,
    user: Optional[User] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Document:
    """Unsaved document with a provisional number and settings defaults"""
    today = today or date.today()
    is_quote = document_type == DocumentType.QUOTE
    return Document(
        id=str(uuid.uuid4()),
        number=provisional_number(document_type, now),
        document_type=document_type,
        company=company,
        tax_rate=app_settings.tax_rate,
        status=QuoteState.PENDING if is_quote else PaymentState.UNPAID,
        issue_date=today,
        due_date=today,
        valid_until=today + timedelta(days=QUOTE_VALIDITY_DAYS) if is_quote else None,
        notes=app_settings.default_notes,
        created_by=user.id if user else "unknown",
    )


def convert_quote_to_invoice(document: Document, now: Optional[datetime] = None) -> Document:
    """
    Turn a quote into an unpaid invoice with a fresh ``INV-`` number.

    The id is kept; the number changes exactly here.
    """
    if document.document_type == DocumentType.INVOICE and not needs_fresh_invoice_number(document):
        raise DocumentValidationError(f"{document.number} is already an invoice")

    converted = document.model_copy(update={
        "document_type": DocumentType.INVOICE,
        "number": conversion_number(now),
        "status": PaymentState.UNPAID,
        "valid_until": None,
    })
    logger.info(f"Converted quote {document.number} to invoice {converted.number}")
    return converted


def prepare_for_save(
    document: Document,
    existing: Optional[Document] = None,
    now: Optional[datetime] = None,
) -> Document:
    """
    Validate and derive everything the store expects.

    ``amount_paid`` and ``payment_date`` always come from the stored record
    (edits never change what was paid); totals and the balance are
    recomputed from the lines.
    """
    validate_for_save(document)

    update: Dict[str, object] = {
        "amount_paid": existing.amount_paid if existing else Decimal("0.00"),
        "payment_date": existing.payment_date if existing else None,
        "due_date": document.due_date or document.issue_date,
    }
    if needs_fresh_invoice_number(document):
        update["number"] = conversion_number(now)
        logger.info(f"Minting invoice number {update['number']} for converted {document.number}")
    if document.document_type == DocumentType.QUOTE:
        update["valid_until"] = document.valid_until or (
            (existing.valid_until if existing else None)
            or document.issue_date + timedelta(days=QUOTE_VALIDITY_DAYS)
        )
    else:
        update["valid_until"] = None

    prepared = apply_totals(document.model_copy(update=update))
    status = _settled_status(prepared)
    balance = Decimal("0.00") if status == PaymentState.PAID else prepared.balance_due
    return prepared.model_copy(update={"status": status, "balance_due": balance})


class DocumentService:
    """
    Document operations against the store, with an in-process view.

    The view mirrors what the last ``load`` returned plus local changes, and
    is what delete rolls back to when the store rejects the delete.
    """

    def __init__(self, db: Optional[AsyncSession] = None):
        self.db = db
        self.documents: Dict[str, Document] = {}

    async def load(self) -> List[Document]:
        documents = await DatabaseService.list_documents(db=self.db)
        self.documents = {d.id: d for d in documents}
        return documents

    async def get(self, document_id: str) -> Document:
        document = await DatabaseService.get_document(document_id, db=self.db)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    async def resolve_customer(
        self,
        document: Document,
        address: Optional[CustomerAddress] = None,
        user: Optional[User] = None,
    ) -> Optional[str]:
        """
        CRM id for the document's customer.

        Matches an existing customer by name or email (case-insensitive) and
        otherwise creates one tagged ``Auto-Created``.
        """
        if document.customer_id:
            return document.customer_id
        name = document.customer.name.strip()
        if not name:
            return None
        email = (document.customer.email or "").lower()

        for customer in await DatabaseService.list_customers(db=self.db):
            if customer.name.lower() == name.lower() or (email and (customer.email or "").lower() == email):
                return customer.id

        created = await DatabaseService.save_customer(
            Customer(
                id=str(uuid.uuid4()),
                name=name,
                email=document.customer.email,
                phone=document.customer.phone,
                address=address or CustomerAddress(line1=document.customer.address),
                notes="Auto-created from Invoice Builder",
                tags=[AUTO_CREATED_TAG],
                created_by=user.id if user else "system",
            ),
            db=self.db,
        )
        logger.info(f"New customer '{name}' added to CRM ({created.id})")
        return created.id

    async def save(
        self,
        document: Document,
        address: Optional[CustomerAddress] = None,
        user: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> Document:
        """Validate, derive totals and persist (create or in-place update)"""
        validate_for_save(document)
        existing = await DatabaseService.get_document(document.id, db=self.db)
        prepared = prepare_for_save(document, existing=existing, now=now)

        if address is not None:
            prepared = prepared.model_copy(update={
                "customer": CustomerSnapshot(
                    name=prepared.customer.name,
                    email=prepared.customer.email,
                    phone=prepared.customer.phone,
                    address=address.one_line() or prepared.customer.address,
                ),
            })
        customer_id = await self.resolve_customer(prepared, address=address, user=user)
        if existing is None and user is not None:
            prepared = prepared.model_copy(update={"created_by": user.id})
        prepared = prepared.model_copy(update={"customer_id": customer_id})

        stored = await DatabaseService.save_document(prepared, db=self.db)
        self.documents[stored.id] = stored
        logger.info(f"{stored.title} {stored.number} saved")
        return stored

    async def _patch(self, document: Document, patch: DocumentPatch) -> Document:
        if not await DatabaseService.update_document(document.id, patch, db=self.db):
            raise DocumentNotFoundError(document.id)
        updated = patch.apply_to(document)
        self.documents[updated.id] = updated
        return updated

    async def record_payment(
        self,
        document_id: str,
        amount: Decimal,
        now: Optional[datetime] = None,
    ) -> Document:
        """Record a payment; non-positive amounts leave the document untouched"""
        document = await self.get(document_id)
        patch = record_payment(document, amount, now=now)
        if patch is None:
            return document
        return await self._patch(document, patch)

    async def set_quote_state(self, document_id: str, state: QuoteState) -> Document:
        document = await self.get(document_id)
        if not document.is_quote:
            raise DocumentValidationError(f"{document.number} is not a quote")
        return await self._patch(document, DocumentPatch(status=state))

    async def convert(self, document_id: str, now: Optional[datetime] = None) -> Document:
        """Convert a stored quote and persist it under its new invoice number"""
        document = await self.get(document_id)
        converted = convert_quote_to_invoice(document, now=now)
        stored = await DatabaseService.save_document(converted, db=self.db)
        self.documents[stored.id] = stored
        return stored

    async def mark_reminder_sent(self, document: Document, today: Optional[date] = None) -> Document:
        """
        Stamp today's reminder and bump the count.

        Raises:
            ReminderColumnMissingError: the store cannot hold reminder fields
        """
        today = today or date.today()
        patch = DocumentPatch(last_reminder_sent=today, reminder_count=document.reminder_count + 1)
        return await self._patch(document, patch)

    async def delete(self, document_id: str) -> None:
        """
        Hard delete with optimistic removal from the in-process view.

        The view is restored and the error re-raised if the store rejects it.
        """
        previous = dict(self.documents)
        self.documents.pop(document_id, None)

        try:
            deleted = await DatabaseService.delete_document(document_id, db=self.db)
        except Exception:
            logger.error(f"Delete failed for {document_id}, rolling back", exc_info=True)
            self.documents = previous
            raise

        if not deleted:
            self.documents = previous
            raise DocumentNotFoundError(document_id)
