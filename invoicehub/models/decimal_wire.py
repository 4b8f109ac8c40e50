"""Decimal wire serialization utilities for contract stability"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


def decimal_to_wire(d: Optional[Decimal]) -> Optional[str]:
    """
    Convert Decimal to wire-safe string representation.

    Args:
        d: Decimal value or None

    Returns:
        String representation without scientific notation, or None

    Examples:
        >>> decimal_to_wire(Decimal("123.45"))
        "123.45"
        >>> decimal_to_wire(Decimal("0.500000"))
        "0.5"
        >>> decimal_to_wire(None)
        None
    """
    if d is None:
        return None

    s = format(d, 'f')
    if '.' in s:
        s = s.rstrip('0').rstrip('.')
    if s in ('', '-0'):
        return '0'
    return s


def wire_to_decimal(x: Any) -> Optional[Decimal]:
    """
    Parse wire value to Decimal safely.

    Args:
        x: Wire value (None, str, int, float, or Decimal)

    Returns:
        Decimal value or None

    Examples:
        >>> wire_to_decimal("123.45")
        Decimal("123.45")
        >>> wire_to_decimal(0.1)
        Decimal("0.1")
        >>> wire_to_decimal("")
        None
    """
    if x is None or x == "":
        return None

    if isinstance(x, Decimal):
        return x

    try:
        # Always go through str so floats keep their shortest repr
        return Decimal(str(x))
    except (InvalidOperation, ValueError, TypeError) as e:
        logger.warning(f"Failed to parse value as Decimal: {x}, error: {e}")
        return None


def decimal_to_number(d: Optional[Decimal]) -> Optional[float]:
    """JSON number for receivers that reject numeric strings (Xero, quantities)"""
    if d is None:
        return None
    return float(d)
