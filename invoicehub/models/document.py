"""Invoice/quote document models"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .customer import Customer


class CompanyTag(str, Enum):
    """The two brand identities a document can be issued under"""
    CLONMEL = "clonmel"
    MIRRORZONE = "mirrorzone"


class DocumentType(str, Enum):
    INVOICE = "invoice"
    QUOTE = "quote"


class PaymentState(str, Enum):
    """Invoice payment lifecycle (forward only)"""
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class QuoteState(str, Enum):
    """Quote approval states, unconnected to PaymentState"""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


DocumentStatus = Union[PaymentState, QuoteState]

REMINDER_FIELDS = ("last_reminder_sent", "reminder_count")

# Status values from the other state space, as stored by older records
_QUOTE_STATUS_FROM_PAYMENT = {
    PaymentState.UNPAID: QuoteState.PENDING,
    PaymentState.PARTIALLY_PAID: QuoteState.PENDING,
    PaymentState.PAID: QuoteState.ACCEPTED,
}


def _date_part(value: Any) -> Any:
    # Stored ISO timestamps ("2024-03-01T10:15:00Z") collapse to their date
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T")[0]
    if value == "":
        return None
    return value


class Product(BaseModel):
    """Catalog product"""
    id: str
    name: str
    description: str = ""
    price: Decimal
    unit: str = "pcs"  # sqm, pcs, or free text
    category: str = ""
    company: Optional[CompanyTag] = None

    def resolved_company(self) -> CompanyTag:
        """Company tag, inferred from the category for untagged legacy rows"""
        if self.company:
            return self.company
        if "mirror" in (self.category or "").lower():
            return CompanyTag.MIRRORZONE
        return CompanyTag.CLONMEL


class LineItem(BaseModel):
    """One priced row. ``total`` is stored, never recomputed implicitly."""
    id: str
    product_id: Optional[str] = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal
    unit: Optional[str] = None


class CustomerSnapshot(BaseModel):
    """Customer details frozen onto the document at creation time"""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerSnapshot":
        return cls(
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            address=customer.address.one_line() or None,
        )

    def address_lines(self) -> List[str]:
        return [part.strip() for part in (self.address or "").split(",") if part.strip()]


class Document(BaseModel):
    """Invoice or quote; one schema discriminated by ``document_type``"""
    id: str
    number: str
    document_type: DocumentType = DocumentType.INVOICE
    company: CompanyTag = CompanyTag.CLONMEL

    # Billing record (snapshot) and CRM cross-link (live record id)
    customer: CustomerSnapshot = Field(default_factory=CustomerSnapshot)
    customer_id: Optional[str] = None

    items: List[LineItem] = Field(default_factory=list)

    # Money
    subtotal: Decimal = Decimal("0.00")
    tax_rate: Decimal = Decimal("23")  # percent
    tax_amount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    amount_paid: Decimal = Decimal("0.00")
    balance_due: Decimal = Decimal("0.00")
    status: DocumentStatus = PaymentState.UNPAID

    # Dates
    issue_date: date
    due_date: Optional[date] = None
    valid_until: Optional[date] = None
    payment_date: Optional[datetime] = None

    notes: Optional[str] = None
    created_by: str = "unknown"

    # Reminder tracking
    last_reminder_sent: Optional[date] = None
    reminder_count: int = 0

    @field_validator("issue_date", "due_date", "valid_until", "last_reminder_sent", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> Any:
        return _date_part(value)

    @field_validator("reminder_count", mode="before")
    @classmethod
    def _coerce_reminder_count(cls, value: Any) -> Any:
        return 0 if value is None else value

    @model_validator(mode="after")
    def _normalize_status(self) -> "Document":
        if self.document_type == DocumentType.QUOTE and isinstance(self.status, PaymentState):
            self.status = _QUOTE_STATUS_FROM_PAYMENT[self.status]
        elif self.document_type == DocumentType.INVOICE and isinstance(self.status, QuoteState):
            self.status = PaymentState.UNPAID
        return self

    @property
    def is_quote(self) -> bool:
        """Quote by type, or by a ``QT`` number on records saved without a type"""
        return self.document_type == DocumentType.QUOTE or self.number.upper().startswith("QT")

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentState.PAID

    @property
    def title(self) -> str:
        return "Quote" if self.document_type == DocumentType.QUOTE else "Invoice"


class DocumentPatch(BaseModel):
    """
    Partial update for a stored document.

    Only fields that were explicitly set are merged; an explicit ``None``
    clears the stored value.
    """
    number: Optional[str] = None
    document_type: Optional[DocumentType] = None
    company: Optional[CompanyTag] = None
    customer: Optional[CustomerSnapshot] = None
    customer_id: Optional[str] = None
    items: Optional[List[LineItem]] = None
    subtotal: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = None
    balance_due: Optional[Decimal] = None
    status: Optional[DocumentStatus] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    valid_until: Optional[date] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    last_reminder_sent: Optional[date] = None
    reminder_count: Optional[int] = None

    def changes(self) -> Dict[str, Any]:
        """Explicitly set fields and their values"""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def touches_reminder_fields(self) -> bool:
        return any(name in self.model_fields_set for name in REMINDER_FIELDS)

    def apply_to(self, document: Document) -> Document:
        """Return a copy of ``document`` with this patch merged in"""
        return document.model_copy(update=self.changes())
