"""Utilities for converting between Pydantic and SQLAlchemy models"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy import inspect
import json

from .decimal_wire import decimal_to_wire, wire_to_decimal
from .document import (
    Document as DocumentPydantic,
    DocumentPatch,
    LineItem as LineItemPydantic,
    CustomerSnapshot,
    Product as ProductPydantic,
)
from .customer import Customer as CustomerPydantic, CustomerAddress, User as UserPydantic
from .db_models import (
    Document as DocumentDB,
    Customer as CustomerDB,
    Product as ProductDB,
    User as UserDB,
)


def line_items_to_json(items: List[LineItemPydantic]) -> list:
    """Line items as JSON-safe dicts; decimals travel as strings"""
    return [
        {
            "id": item.id,
            "product_id": item.product_id,
            "description": item.description,
            "quantity": decimal_to_wire(item.quantity),
            "unit_price": decimal_to_wire(item.unit_price),
            "total": decimal_to_wire(item.total),
            "unit": item.unit,
        }
        for item in items
    ]


def json_to_line_items(data: Any) -> List[LineItemPydantic]:
    """Parse stored line items (accepts legacy camelCase keys and float values)"""
    if not data:
        return []
    if isinstance(data, str):
        data = json.loads(data)
    items = []
    for i, raw in enumerate(data):
        items.append(LineItemPydantic(
            id=str(raw.get("id") or i + 1),
            product_id=raw.get("product_id", raw.get("productId")) or None,
            description=raw.get("description", ""),
            quantity=wire_to_decimal(raw.get("quantity")) or Decimal("0"),
            unit_price=wire_to_decimal(raw.get("unit_price", raw.get("unitPrice"))) or Decimal("0"),
            total=wire_to_decimal(raw.get("total")) or Decimal("0"),
            unit=raw.get("unit"),
        ))
    return items


# Pydantic field -> column, where the names differ
_DOCUMENT_COLUMNS = {
    "number": "invoice_number",
    "issue_date": "date_issued",
}


def document_patch_to_columns(patch: DocumentPatch) -> Dict[str, Any]:
    """Column values for the explicitly set fields of a patch"""
    columns: Dict[str, Any] = {}
    for name, value in patch.changes().items():
        if name == "customer":
            columns.update({
                "customer_name": value.name,
                "customer_email": value.email,
                "customer_phone": value.phone,
                "customer_address": value.address,
            })
        elif name == "items":
            columns["items"] = line_items_to_json(value)
        elif name in ("document_type", "company", "status") and value is not None:
            columns[name] = value.value
        else:
            columns[_DOCUMENT_COLUMNS.get(name, name)] = value
    return columns


def pydantic_to_db_document(document: DocumentPydantic) -> DocumentDB:
    """Convert Pydantic Document to SQLAlchemy Document"""
    return DocumentDB(
        id=document.id,
        invoice_number=document.number,
        document_type=document.document_type.value,
        company=document.company.value,
        customer_id=document.customer_id,
        customer_name=document.customer.name,
        customer_email=document.customer.email,
        customer_phone=document.customer.phone,
        customer_address=document.customer.address,
        items=line_items_to_json(document.items),
        subtotal=document.subtotal,
        tax_rate=document.tax_rate,
        tax_amount=document.tax_amount,
        total=document.total,
        amount_paid=document.amount_paid,
        balance_due=document.balance_due,
        status=document.status.value,
        date_issued=document.issue_date,
        due_date=document.due_date,
        valid_until=document.valid_until,
        payment_date=document.payment_date,
        notes=document.notes,
        created_by=document.created_by,
        last_reminder_sent=document.last_reminder_sent,
        reminder_count=document.reminder_count,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )


def db_to_pydantic_document(document_db: DocumentDB) -> DocumentPydantic:
    """
    Convert SQLAlchemy Document to Pydantic Document

    Reminder columns left unloaded (a store without them) read as never reminded.
    """
    unloaded = inspect(document_db).unloaded
    return DocumentPydantic(
        id=document_db.id,
        number=document_db.invoice_number or "",
        document_type=document_db.document_type or "invoice",
        company=document_db.company or "clonmel",
        customer=CustomerSnapshot(
            name=document_db.customer_name or "",
            email=document_db.customer_email,
            phone=document_db.customer_phone,
            address=document_db.customer_address,
        ),
        customer_id=document_db.customer_id,
        items=json_to_line_items(document_db.items),
        subtotal=document_db.subtotal or Decimal("0"),
        tax_rate=document_db.tax_rate or Decimal("0"),
        tax_amount=document_db.tax_amount or Decimal("0"),
        total=document_db.total or Decimal("0"),
        amount_paid=document_db.amount_paid or Decimal("0"),
        balance_due=document_db.balance_due or Decimal("0"),
        status=document_db.status or "UNPAID",
        issue_date=document_db.date_issued,
        due_date=document_db.due_date,
        valid_until=document_db.valid_until,
        payment_date=document_db.payment_date,
        notes=document_db.notes,
        created_by=document_db.created_by or "unknown",
        last_reminder_sent=None if "last_reminder_sent" in unloaded else document_db.last_reminder_sent,
        reminder_count=0 if "reminder_count" in unloaded else (document_db.reminder_count or 0),
    )


def pydantic_to_db_customer(customer: CustomerPydantic) -> CustomerDB:
    return CustomerDB(
        id=customer.id,
        name=customer.name,
        email=customer.email or None,
        phone=customer.phone or None,
        address=customer.address.line1 or None,
        address_line_2=customer.address.line2 or None,
        city=customer.address.city or None,
        region=customer.address.region or None,
        postal_code=customer.address.postal_code or None,
        country=customer.address.country or "Ireland",
        company=customer.company or None,
        tags=list(customer.tags),
        notes=customer.notes or None,
        created_by=customer.created_by or "system",
        created_at=customer.created_at,
        updated_at=customer.updated_at,
    )


def db_to_pydantic_customer(customer_db: CustomerDB) -> CustomerPydantic:
    return CustomerPydantic(
        id=customer_db.id,
        name=customer_db.name,
        email=customer_db.email,
        phone=customer_db.phone,
        address=CustomerAddress(
            line1=customer_db.address,
            line2=customer_db.address_line_2,
            city=customer_db.city,
            region=customer_db.region,
            postal_code=customer_db.postal_code,
            country=customer_db.country,
        ),
        company=customer_db.company,
        tags=customer_db.tags or [],
        notes=customer_db.notes,
        created_at=customer_db.created_at,
        updated_at=customer_db.updated_at,
        created_by=customer_db.created_by or "system",
    )


def pydantic_to_db_product(product: ProductPydantic) -> ProductDB:
    return ProductDB(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        unit=product.unit,
        category=product.category,
        company=product.company.value if product.company else None,
    )


def db_to_pydantic_product(product_db: ProductDB) -> ProductPydantic:
    product = ProductPydantic(
        id=product_db.id,
        name=product_db.name,
        description=product_db.description or "",
        price=product_db.price,
        unit=product_db.unit or "pcs",
        category=product_db.category or "",
        company=product_db.company,
    )
    if product.company is None:
        product.company = product.resolved_company()
    return product


def db_to_pydantic_user(user_db: Optional[UserDB]) -> Optional[UserPydantic]:
    if user_db is None:
        return None
    return UserPydantic(id=user_db.id, name=user_db.name, email=user_db.email, role=user_db.role)
