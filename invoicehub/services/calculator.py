"""Money and tax arithmetic for documents"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union
import logging
import time

from invoicehub.models.decimal_wire import decimal_to_wire
from invoicehub.models.document import Document, LineItem, Product

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
AREA_PRECISION = Decimal("0.000001")
MM2_PER_SQM = Decimal("1000000")
SQM_UNIT = "sqm"

Numeric = Union[Decimal, int, float, str]


def _dec(value: Numeric) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def line_total(quantity: Numeric, unit_price: Numeric) -> Decimal:
    """``quantity * unit_price`` rounded half-up to cents"""
    return round_money(_dec(quantity) * _dec(unit_price))


def area_quantity(width_mm: Numeric, height_mm: Numeric) -> Decimal:
    """
    Square metres for a width x height cut given in millimetres.

    Kept to 6 decimal places; the line total is computed from this value
    and only rounded at the line boundary.
    """
    return (_dec(width_mm) * _dec(height_mm) / MM2_PER_SQM).quantize(
        AREA_PRECISION, rounding=ROUND_HALF_UP
    )


def compute_totals(items: Iterable[LineItem], tax_rate: Numeric) -> DocumentTotals:
    """
    Derive subtotal, tax and total from stored line totals.

    The subtotal is the exact sum of the (already rounded) line totals and is
    never rounded again; only the tax amount is rounded. Negative values are
    carried through unchanged.
    """
    subtotal = sum((item.total for item in items), Decimal("0.00"))
    tax_amount = round_money(subtotal * _dec(tax_rate) / Decimal("100"))
    return DocumentTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )


def build_line_item(
    product: Product,
    quantity: Optional[Numeric] = None,
    width_mm: Optional[Numeric] = None,
    height_mm: Optional[Numeric] = None,
    unit_price: Optional[Numeric] = None,
    description: Optional[str] = None,
    item_id: Optional[str] = None,
) -> LineItem:
    """
    Build a line from a catalog product.

    When both dimensions are given the quantity is the area in square metres
    and the dimensions are appended to the description. ``unit_price``
    overrides the catalog price for this line only.
    """
    price = _dec(unit_price) if unit_price is not None else product.price
    text = description or product.name

    if width_mm is not None and height_mm is not None:
        qty = area_quantity(width_mm, height_mm)
        text += f" ({decimal_to_wire(_dec(width_mm))}mm x {decimal_to_wire(_dec(height_mm))}mm)"
    elif quantity is not None:
        qty = _dec(quantity)
    else:
        qty = Decimal("1")

    return LineItem(
        id=item_id or str(time.time_ns()),
        product_id=product.id,
        description=text,
        quantity=qty,
        unit_price=price,
        total=line_total(qty, price),
        unit=product.unit,
    )


def reprice_line_item(
    item: LineItem,
    quantity: Optional[Numeric] = None,
    unit_price: Optional[Numeric] = None,
    description: Optional[str] = None,
) -> LineItem:
    """Edit a line and re-derive its total"""
    qty = _dec(quantity) if quantity is not None else item.quantity
    price = _dec(unit_price) if unit_price is not None else item.unit_price
    return item.model_copy(update={
        "quantity": qty,
        "unit_price": price,
        "description": description if description is not None else item.description,
        "total": line_total(qty, price),
    })


def apply_totals(document: Document) -> Document:
    """Copy of ``document`` with money fields re-derived from its lines"""
    totals = compute_totals(document.items, document.tax_rate)
    balance = max(Decimal("0.00"), totals.total - document.amount_paid)
    logger.debug(
        f"Totals for {document.number}: subtotal={totals.subtotal} "
        f"tax={totals.tax_amount} total={totals.total}"
    )
    return document.model_copy(update={
        "subtotal": totals.subtotal,
        "tax_amount": totals.tax_amount,
        "total": totals.total,
        "balance_due": balance,
    })
