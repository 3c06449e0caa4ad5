"""
Period Summary

Profit & loss figures for a date range: totals, a per-category breakdown
and a per-month pivot (income, expenses and profit for each month).

All aggregation happens on the transactions handed in; nothing is
estimated or read from storage here.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from pnl_tracker.core.errors import InvalidRangeError
from pnl_tracker.models.ledger import Category, TransactionDraft, TransactionType

UNCATEGORIZED = "Uncategorized"


class CategoryTotal(BaseModel):
    """Total of one category, with its monthly split."""

    category_id: Optional[str] = None
    name: str
    type: TransactionType
    total: Decimal = Decimal("0")
    transaction_count: int = 0
    by_month: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Totals keyed by YYYY-MM"
    )


class MonthTotal(BaseModel):
    """Income, expenses and profit of one calendar month."""

    month: str = Field(..., description="YYYY-MM")
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    @property
    def profit(self) -> Decimal:
        return self.income - self.expenses


class PeriodSummary(BaseModel):
    """P&L for a date range."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    transaction_count: int = 0
    by_category: list[CategoryTotal] = Field(default_factory=list)
    by_month: list[MonthTotal] = Field(default_factory=list)

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses


def summarize_period(
    transactions: Iterable[TransactionDraft],
    categories: Iterable[Category],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> PeriodSummary:
    """
    Summarise the transactions dated within [date_from, date_to].

    Either bound may be omitted. Transactions whose category is unknown
    are grouped under "Uncategorized" (one group per type).

    Raises:
        InvalidRangeError: date_from is after date_to
    """
    if date_from and date_to and date_from > date_to:
        raise InvalidRangeError(f"Range start {date_from} is after its end {date_to}")

    names = {c.id: c.name for c in categories}
    summary = PeriodSummary(date_from=date_from, date_to=date_to)
    by_category: dict[tuple[Optional[str], TransactionType], CategoryTotal] = {}
    by_month: dict[str, MonthTotal] = {}
    category_months: dict[tuple, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))

    for tx in transactions:
        if date_from and tx.date < date_from:
            continue
        if date_to and tx.date > date_to:
            continue

        summary.transaction_count += 1
        month = tx.date.strftime("%Y-%m")
        month_total = by_month.setdefault(month, MonthTotal(month=month))

        if tx.type == TransactionType.INCOME:
            summary.total_income += tx.amount
            month_total.income += tx.amount
        else:
            summary.total_expenses += tx.amount
            month_total.expenses += tx.amount

        # Determine group key
        category_id = tx.category_id if tx.category_id in names else None
        key = (category_id, tx.type)
        if key not in by_category:
            by_category[key] = CategoryTotal(
                category_id=category_id,
                name=names.get(category_id, UNCATEGORIZED),
                type=tx.type,
            )
        group = by_category[key]
        group.total += tx.amount
        group.transaction_count += 1
        category_months[key][month] += tx.amount

    for key, group in by_category.items():
        group.by_month = dict(sorted(category_months[key].items()))

    # Income groups first, then largest totals
    summary.by_category = sorted(
        by_category.values(),
        key=lambda g: (g.type != TransactionType.INCOME, -g.total, g.name),
    )
    summary.by_month = [by_month[m] for m in sorted(by_month)]
    return summary
