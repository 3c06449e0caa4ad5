"""
Tests for the CSV and bank statement importers.
"""

import pytest
from datetime import date
from decimal import Decimal

from pnl_tracker.imports import (
    SEED_CATEGORIES,
    ColumnMapping,
    CsvImporter,
    ImportFileError,
    TypeMode,
    detect_columns,
    match_vendor_to_category,
    parse_bank_date,
    parse_bank_statement_csv,
    parse_import_amount,
    parse_import_date,
    read_csv,
    seed_categories,
    statement_lines_to_drafts,
)
from pnl_tracker.models.ledger import (
    BankStatementLine,
    MatchConfidence,
    TransactionType,
)


@pytest.fixture
def categories():
    return seed_categories("user-1")


def category_id(categories, name: str) -> str:
    return next(c.id for c in categories if c.name == name)


class TestReadCsv:
    """Tests for splitting CSV text into headers and rows."""

    def test_quoted_commas(self):
        headers, rows = read_csv('Date,Description,Amount\n2025-01-02,"Smith, J.",10\n')

        assert headers == ["Date", "Description", "Amount"]
        assert rows == [{"Date": "2025-01-02", "Description": "Smith, J.", "Amount": "10"}]

    def test_blank_lines_and_short_rows(self):
        _, rows = read_csv("Date,Amount,Memo\n\n2025-01-02,10\n   \n")

        assert rows == [{"Date": "2025-01-02", "Amount": "10", "Memo": ""}]

    @pytest.mark.parametrize("text", ["", "Date,Amount\n", "\n\n"])
    def test_header_only_rejected(self, text):
        with pytest.raises(ImportFileError):
            read_csv(text)


class TestParsers:
    """Tests for column detection and the date/amount parsers."""

    def test_detect_columns(self):
        mapping = detect_columns(["Transaction Date", "Memo", "Total", "Status"])

        assert mapping.date == "Transaction Date"
        assert mapping.name == "Memo"
        assert mapping.amount == "Total"
        assert mapping.type is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-03-04", date(2025, 3, 4)),
            ("2025-03-04T10:15:00Z", date(2025, 3, 4)),
            ("3/4/2025", date(2025, 3, 4)),
            ("04-03-2025", date(2025, 3, 4)),
            ("04.03.2025", date(2025, 3, 4)),
        ],
    )
    def test_import_dates(self, value, expected):
        assert parse_import_date(value) == expected

    @pytest.mark.parametrize("value", ["", "yesterday", "2025-02-30", "13/45/2025"])
    def test_bad_import_dates(self, value):
        assert parse_import_date(value) is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("$1,234.50", Decimal("1234.50")),
            ("-45.00", Decimal("45.00")),
            (" 12 ", Decimal("12")),
        ],
    )
    def test_import_amounts(self, value, expected):
        assert parse_import_amount(value) == expected

    @pytest.mark.parametrize("value", ["", "n/a", "NaN", "1e40", "1000000000.00"])
    def test_bad_import_amounts(self, value):
        assert parse_import_amount(value) is None


class TestCsvImporter:
    """Tests for mapping CSV rows to drafts."""

    def test_all_income_with_skips(self):
        text = (
            "Date,Description,Amount\n"
            "2025-01-05,Invoice 1001,\"$1,500.00\"\n"
            "not a date,Invoice 1002,20\n"
            "2025-01-07,Refund,0\n"
            "2025-01-08,,75.5\n"
        )

        result = CsvImporter().parse(text, default_category_id="cat-sales")

        assert result.total_rows == 4
        assert result.skipped_rows == 2
        assert result.imported_count == 2
        first, second = result.transactions
        assert first.amount == Decimal("1500.00")
        assert first.type == TransactionType.INCOME
        assert first.category_id == "cat-sales"
        assert second.name == "Imported transaction"
        assert second.amount == Decimal("75.50")

    def test_sub_cent_amount_skipped(self):
        """Amounts that round to zero are not imported."""
        result = CsvImporter().parse("Date,Amount\n2025-01-05,0.004\n")

        assert result.imported_count == 0
        assert result.skipped_rows == 1

    def test_oversized_amount_skipped(self):
        """An amount too large to hold at cent precision is one skipped row."""
        text = (
            "Date,Description,Amount\n"
            "2025-01-01,ok,10\n"
            "2025-01-02,bad,1e40\n"
            "2025-01-03,bad,99999999999999999999999999999\n"
        )

        result = CsvImporter().parse(text)

        assert result.imported_count == 1
        assert result.skipped_rows == 2
        assert result.transactions[0].amount == Decimal("10.00")

    def test_all_expense(self):
        result = CsvImporter().parse(
            "Date,Name,Amount\n2025-02-01,Paper,12\n",
            type_mode=TypeMode.ALL_EXPENSE,
        )

        assert result.transactions[0].type == TransactionType.EXPENSE

    def test_type_column(self):
        text = (
            "Date,Name,Amount,Kind\n"
            "2025-02-01,Client,100,Credit\n"
            "2025-02-02,Hosting,20,Debit\n"
            "2025-02-03,Domain,15,expense\n"
        )

        result = CsvImporter().parse(
            text,
            columns=ColumnMapping(type="Kind"),
            type_mode=TypeMode.COLUMN,
        )

        assert [t.type for t in result.transactions] == [
            TransactionType.INCOME,
            TransactionType.EXPENSE,
            TransactionType.EXPENSE,
        ]

    def test_type_column_required_for_column_mode(self):
        with pytest.raises(ImportFileError):
            CsvImporter().parse("Date,Amount\n2025-01-01,5\n", type_mode=TypeMode.COLUMN)

    def test_explicit_columns_override_detection(self):
        text = "When,Who,Paid\n2025-04-01,Acme,250\n"

        result = CsvImporter().parse(
            text,
            columns=ColumnMapping(date="When", name="Who", amount="Paid"),
        )

        assert result.transactions[0].name == "Acme"
        assert result.transactions[0].date == date(2025, 4, 1)

    def test_missing_amount_column(self):
        with pytest.raises(ImportFileError):
            CsvImporter().parse("Date,Name\n2025-01-01,Acme\n")

    def test_row_limit(self):
        text = "Date,Amount\n" + "2025-01-01,5\n" * 3

        with pytest.raises(ImportFileError):
            CsvImporter(max_rows=2).parse(text)

    def test_name_sanitised(self):
        result = CsvImporter(max_name_length=5).parse(
            "Date,Name,Amount\n2025-01-01,<b>Consulting</b>,5\n"
        )

        assert result.transactions[0].name == "Consu"


class TestBankStatement:
    """Tests for bank statement parsing and vendor matching."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("4-Oct", date(2024, 10, 4)),
            ("4 Oct", date(2024, 10, 4)),
            ("Oct 4", date(2024, 10, 4)),
            ("oct-4", date(2024, 10, 4)),
            ("10/4", date(2024, 10, 4)),
            ("10-4", date(2024, 10, 4)),
            ("2023-10-04", date(2023, 10, 4)),
            ("10/4/2023", date(2023, 10, 4)),
        ],
    )
    def test_bank_dates(self, value, expected):
        assert parse_bank_date(value, 2024) == expected

    @pytest.mark.parametrize("value", ["31-Feb", "Foo 4", "", "13/40"])
    def test_bad_bank_dates(self, value):
        assert parse_bank_date(value, 2024) is None

    def test_vendor_match(self, categories):
        matched, confidence = match_vendor_to_category("SQ *STARBUCKS #1234", categories)

        assert matched == category_id(categories, "Business Meals")
        assert confidence == MatchConfidence.HIGH

    def test_first_category_in_table_order_wins(self, categories):
        """UBER EATS is a meal even though UBER is also a travel keyword."""
        matched, _ = match_vendor_to_category("UBER EATS ORDER", categories)
        assert matched == category_id(categories, "Business Meals")

        matched, _ = match_vendor_to_category("GOOGLE ADS 555", categories)
        assert matched == category_id(categories, "Software/SaaS")

    def test_no_match(self, categories):
        assert match_vendor_to_category("LOCAL HARDWARE", categories) == (None, MatchConfidence.LOW)

    def test_category_must_exist(self):
        assert match_vendor_to_category("STARBUCKS", []) == (None, MatchConfidence.LOW)

    def test_parse_statement(self, categories):
        text = (
            "Date,Description,Amount\n"
            "4-Oct,STARBUCKS #123,-5.75\n"
            "5-Oct,GITHUB INC,\"$1,200.00\"\n"
            "bad,ANYTHING,1\n"
            "6-Oct,SHORT\n"
            "7-Oct,MYSTERY SHOP,abc\n"
            "8-Oct,CORNER STORE,3\n"
        )

        lines = parse_bank_statement_csv(text, 2024, categories)

        assert [line.date for line in lines] == [
            date(2024, 10, 4),
            date(2024, 10, 5),
            date(2024, 10, 8),
        ]
        assert lines[0].amount == Decimal("5.75")
        assert lines[0].suggested_category_id == category_id(categories, "Business Meals")
        assert lines[1].amount == Decimal("1200.00")
        assert lines[1].suggested_category_id == category_id(categories, "Software/SaaS")
        assert lines[2].suggested_category_id is None
        assert lines[2].confidence == MatchConfidence.LOW
        assert all(line.suggested_type == TransactionType.EXPENSE for line in lines)

    def test_statement_without_header(self, categories):
        lines = parse_bank_statement_csv("Oct 4,HILTON HOTEL,200\n", 2024, categories)

        assert len(lines) == 1
        assert lines[0].suggested_category_id == category_id(categories, "Travel")

    def test_oversized_amount_dropped(self, categories):
        text = (
            "4-Oct,STARBUCKS,5\n"
            "5-Oct,bad,99999999999999999999999999999\n"
            "6-Oct,bad,1e40\n"
        )

        lines = parse_bank_statement_csv(text, 2024, categories)

        assert len(lines) == 1
        assert lines[0].amount == Decimal("5.00")

    def test_lines_to_drafts(self):
        lines = [
            BankStatementLine(date=date(2024, 10, 4), description="<b>CAFE</b>", amount=Decimal("4.50")),
            BankStatementLine(date=date(2024, 10, 5), description="REVERSAL", amount=Decimal("0")),
            BankStatementLine(date=date(2024, 10, 6), description="   ", amount=Decimal("9")),
        ]

        drafts = statement_lines_to_drafts(lines)

        assert len(drafts) == 1
        assert drafts[0].name == "CAFE"
        assert drafts[0].type == TransactionType.EXPENSE


class TestSeedCategories:
    """Tests for the default category set."""

    def test_seed_contents(self):
        seeded = seed_categories("user-1")

        assert len(seeded) == len(SEED_CATEGORIES) == 11
        assert all(c.user_id == "user-1" for c in seeded)
        assert len({c.id for c in seeded}) == 11
        meals = next(c for c in seeded if c.name == "Business Meals")
        assert meals.deductibility_percentage == Decimal("50")

    def test_each_call_new_ids(self):
        first = {c.id for c in seed_categories()}
        second = {c.id for c in seed_categories()}
        assert not first & second
