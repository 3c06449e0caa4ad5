"""
CSV Export

Writes the ledger in a spreadsheet-friendly layout. Besides the raw
fields, each row carries its deductibility and a TaxWeight column
(1 for income, minus the deductible share for expenses) so that
SUMPRODUCT(Amount, TaxWeight) gives the taxable profit.
"""

from decimal import Decimal
from typing import Iterable

from pnl_tracker.models.ledger import Category, TransactionDraft, TransactionType, to_cents

EXPORT_HEADER = [
    "Date",
    "Name",
    "Type",
    "Amount",
    "Category",
    "Notes",
    "Deductible",
    "DeductionPercentage",
    "AdjustedAmount",
    "TaxWeight",
]

HUNDRED = Decimal("100")


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _plain(value: Decimal) -> str:
    """Decimal without trailing zeros or exponent: 100.00 -> 100, 12.50 -> 12.5."""
    return format(value.normalize(), "f")


def export_csv(
    transactions: Iterable[TransactionDraft],
    categories: Iterable[Category],
) -> str:
    """
    Render transactions as CSV text, one row per transaction, in the
    order given.

    Text columns (Name, Category, Notes) are always quoted.
    """
    by_id = {c.id: c for c in categories}
    lines = [",".join(EXPORT_HEADER)]

    for tx in transactions:
        category = by_id.get(tx.category_id) if tx.category_id else None
        category_name = category.name if category else "Uncategorized"

        pct = Decimal("0")
        deductible = "false"
        if tx.type == TransactionType.EXPENSE:
            pct = HUNDRED
            if category and category.deductibility_percentage is not None:
                pct = Decimal(category.deductibility_percentage)
            if pct == HUNDRED:
                deductible = "true"
            elif pct > 0:
                deductible = "partial"
            adjusted = tx.amount * pct / HUNDRED
            # Subtraction keeps a 0% weight at "0.00" rather than "-0.00"
            tax_weight = Decimal("0") - pct / HUNDRED
        else:
            adjusted = tx.amount
            tax_weight = Decimal("1")

        lines.append(",".join([
            tx.date.isoformat(),
            _quote(tx.name),
            tx.type.value,
            str(tx.amount),
            _quote(category_name),
            _quote(tx.notes),
            deductible,
            f"{_plain(pct)}%",
            str(to_cents(adjusted)),
            str(to_cents(tax_weight)),
        ]))

    return "\n".join(lines) + "\n"
