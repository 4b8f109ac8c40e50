"""Headline figures for the dashboard"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from invoicehub.models.document import Document

PERIODS = ("all", "thisMonth", "lastMonth", "thisYear", "lastYear", "custom")


@dataclass(frozen=True)
class DashboardSummary:
    total_revenue: Decimal
    invoice_outstanding: Decimal
    quote_outstanding: Decimal
    paid_invoices: int
    overdue_invoices: int


def filter_by_period(
    documents: Iterable[Document],
    period: str = "all",
    today: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Document]:
    """Documents whose issue date falls in the named period"""
    today = today or date.today()
    documents = list(documents)
    first_of_month = today.replace(day=1)

    if period == "thisMonth":
        low, high = first_of_month, today
    elif period == "lastMonth":
        high = first_of_month - timedelta(days=1)
        low = high.replace(day=1)
    elif period == "thisYear":
        low, high = date(today.year, 1, 1), today
    elif period == "lastYear":
        low, high = date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)
    elif period == "custom" and start and end:
        low, high = start, end
    else:
        return documents

    return [d for d in documents if low <= d.issue_date <= high]


def summarize(documents: Iterable[Document], today: Optional[date] = None) -> DashboardSummary:
    today = today or date.today()
    invoices = [d for d in documents if not d.is_quote]
    quotes = [d for d in documents if d.is_quote]
    return DashboardSummary(
        total_revenue=sum((d.amount_paid for d in invoices), Decimal("0.00")),
        invoice_outstanding=sum((d.balance_due for d in invoices), Decimal("0.00")),
        quote_outstanding=sum((d.total for d in quotes), Decimal("0.00")),
        paid_invoices=sum(1 for d in invoices if d.is_paid),
        overdue_invoices=sum(
            1 for d in invoices if not d.is_paid and d.due_date is not None and d.due_date < today
        ),
    )
