"""
Tests for period summaries and CSV export.
"""

import csv
import io
import pytest
from datetime import date
from decimal import Decimal

from pnl_tracker.core import InvalidRangeError
from pnl_tracker.models.ledger import Category, TransactionDraft, TransactionType
from pnl_tracker.reports import EXPORT_HEADER, export_csv, summarize_period


SALES = Category(id="cat-sales", name="Sales", type=TransactionType.INCOME)
MEALS = Category(
    id="cat-meals",
    name="Business Meals",
    type=TransactionType.EXPENSE,
    deductibility_percentage=Decimal("50"),
)
RENT = Category(
    id="cat-rent",
    name="Rent",
    type=TransactionType.EXPENSE,
    deductibility_percentage=Decimal("100"),
)
FINES = Category(
    id="cat-fines",
    name="Fines",
    type=TransactionType.EXPENSE,
    deductibility_percentage=Decimal("0"),
)
CATEGORIES = [SALES, MEALS, RENT, FINES]


def tx(day: date, tx_type: TransactionType, amount: str, category_id=None, name="Entry", notes="") -> TransactionDraft:
    return TransactionDraft(
        date=day,
        name=name,
        type=tx_type,
        amount=Decimal(amount),
        category_id=category_id,
        notes=notes,
    )


@pytest.fixture
def ledger():
    return [
        tx(date(2025, 1, 5), TransactionType.INCOME, "1000", SALES.id),
        tx(date(2025, 1, 10), TransactionType.EXPENSE, "40", MEALS.id),
        tx(date(2025, 1, 31), TransactionType.EXPENSE, "800", RENT.id),
        tx(date(2025, 2, 5), TransactionType.INCOME, "1500", SALES.id),
        tx(date(2025, 2, 28), TransactionType.EXPENSE, "800", RENT.id),
        tx(date(2025, 2, 14), TransactionType.EXPENSE, "25", "cat-deleted"),
        tx(date(2025, 3, 1), TransactionType.INCOME, "300"),
    ]


class TestSummarizePeriod:
    """Tests for the P&L summary."""

    def test_totals(self, ledger):
        summary = summarize_period(ledger, CATEGORIES)

        assert summary.total_income == Decimal("2800.00")
        assert summary.total_expenses == Decimal("1665.00")
        assert summary.net_profit == Decimal("1135.00")
        assert summary.transaction_count == 7

    def test_date_range_inclusive(self, ledger):
        summary = summarize_period(ledger, CATEGORIES, date(2025, 1, 10), date(2025, 2, 5))

        assert summary.transaction_count == 3
        assert summary.total_income == Decimal("1500.00")
        assert summary.total_expenses == Decimal("840.00")

    def test_by_month(self, ledger):
        summary = summarize_period(ledger, CATEGORIES)

        assert [m.month for m in summary.by_month] == ["2025-01", "2025-02", "2025-03"]
        january = summary.by_month[0]
        assert january.income == Decimal("1000.00")
        assert january.expenses == Decimal("840.00")
        assert january.profit == Decimal("160.00")

    def test_by_category_order(self, ledger):
        """Income groups first, then by descending total."""
        summary = summarize_period(ledger, CATEGORIES)

        assert [(g.name, g.type) for g in summary.by_category] == [
            ("Sales", TransactionType.INCOME),
            ("Uncategorized", TransactionType.INCOME),
            ("Rent", TransactionType.EXPENSE),
            ("Business Meals", TransactionType.EXPENSE),
            ("Uncategorized", TransactionType.EXPENSE),
        ]
        rent = summary.by_category[2]
        assert rent.total == Decimal("1600.00")
        assert rent.transaction_count == 2
        assert rent.by_month == {"2025-01": Decimal("800.00"), "2025-02": Decimal("800.00")}

    def test_unknown_category_is_uncategorized(self, ledger):
        summary = summarize_period(ledger, CATEGORIES)

        uncategorized = [g for g in summary.by_category if g.category_id is None]
        assert {g.type for g in uncategorized} == {TransactionType.INCOME, TransactionType.EXPENSE}

    def test_empty(self):
        summary = summarize_period([], CATEGORIES)

        assert summary.transaction_count == 0
        assert summary.net_profit == Decimal("0")
        assert summary.by_category == []

    def test_reversed_range(self, ledger):
        with pytest.raises(InvalidRangeError):
            summarize_period(ledger, CATEGORIES, date(2025, 3, 1), date(2025, 1, 1))


class TestExportCsv:
    """Tests for the CSV export layout."""

    def test_header(self):
        assert export_csv([], CATEGORIES) == ",".join(EXPORT_HEADER) + "\n"

    def test_partial_deduction_row(self):
        text = export_csv(
            [tx(date(2025, 1, 10), TransactionType.EXPENSE, "40", MEALS.id, name="Lunch, client")],
            CATEGORIES,
        )

        assert text.splitlines()[1] == (
            '2025-01-10,"Lunch, client",expense,40.00,"Business Meals","",partial,50%,20.00,-0.50'
        )

    def test_income_row(self):
        text = export_csv(
            [tx(date(2025, 1, 5), TransactionType.INCOME, "1000", SALES.id, notes='Inv "A"')],
            CATEGORIES,
        )

        assert text.splitlines()[1] == (
            '2025-01-05,"Entry",income,1000.00,"Sales","Inv ""A""",false,0%,1000.00,1.00'
        )

    @pytest.mark.parametrize(
        "category_id,deductible,percentage,adjusted,weight",
        [
            (RENT.id, "true", "100%", "800.00", "-1.00"),
            (FINES.id, "false", "0%", "0.00", "0.00"),
            (None, "true", "100%", "800.00", "-1.00"),
            ("cat-deleted", "true", "100%", "800.00", "-1.00"),
        ],
    )
    def test_expense_deductibility(self, category_id, deductible, percentage, adjusted, weight):
        text = export_csv(
            [tx(date(2025, 1, 31), TransactionType.EXPENSE, "800", category_id)],
            CATEGORIES,
        )

        row = next(csv.DictReader(io.StringIO(text)))
        assert row["Deductible"] == deductible
        assert row["DeductionPercentage"] == percentage
        assert row["AdjustedAmount"] == adjusted
        assert row["TaxWeight"] == weight

    def test_sumproduct_gives_taxable_profit(self, ledger):
        """Sum of Amount x TaxWeight equals income minus deductible expenses."""
        text = export_csv(ledger, CATEGORIES)

        total = sum(
            Decimal(row["Amount"]) * Decimal(row["TaxWeight"])
            for row in csv.DictReader(io.StringIO(text))
        )
        # 2800 income - (20 + 1600 + 25) deductible
        assert total == Decimal("1155.00")

    def test_order_preserved(self, ledger):
        text = export_csv(ledger, CATEGORIES)

        dates = [row["Date"] for row in csv.DictReader(io.StringIO(text))]
        assert dates == [t.date.isoformat() for t in ledger]
