"""Display formatting shared by the PDF renderer and the webhook payloads"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str, None]


def _to_decimal(value: Number) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_amount(value: Number) -> str:
    """
    Two decimals with comma thousands separators and no currency symbol.

    Examples:
        >>> format_amount(Decimal("1234.5"))
        "1,234.50"
        >>> format_amount(None)
        "0.00"
    """
    amount = _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{amount:,.2f}"


def euro(value: Number) -> str:
    """Plain ``€`` string without thousands separators, as webhook receivers expect"""
    amount = _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"€{amount:.2f}"


def to_ddmmyyyy(value: Optional[Union[date, datetime]]) -> str:
    """DD/MM/YYYY, used on the printed page"""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def to_dd_mm_yyyy(value: Optional[Union[date, datetime]]) -> str:
    """DD-MM-YYYY, used in the email webhook"""
    if value is None:
        return ""
    return value.strftime("%d-%m-%Y")
