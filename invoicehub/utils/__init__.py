"""Utility modules for common functionality"""

from .formatting import format_amount, euro, to_ddmmyyyy, to_dd_mm_yyyy

__all__ = [
    'format_amount',
    'euro',
    'to_ddmmyyyy',
    'to_dd_mm_yyyy',
]
