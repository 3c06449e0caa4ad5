"""
Tests for transaction input validation and the field sanitisers.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from pnl_tracker.models.ledger import Category, TransactionDraft, TransactionType
from pnl_tracker.validation import (
    TransactionValidator,
    limit_items,
    validate_amount,
    validate_category,
    validate_date,
    validate_notes,
    validate_percentage,
    validate_transaction_name,
    validate_uuid,
)


@pytest.fixture
def validator():
    return TransactionValidator(
        max_name_length=200,
        max_notes_length=500,
        max_amount=Decimal("999999999.99"),
    )


def raw_record(**overrides) -> dict:
    record = {
        "date": "2025-03-14",
        "name": "Adobe subscription",
        "type": "expense",
        "amount": "54.99",
        "category_id": "cat-software",
        "notes": "Creative Cloud",
    }
    record.update(overrides)
    return record


class TestSanitisers:
    """Tests for the single-field helpers."""

    def test_name_strips_tags_and_whitespace(self):
        assert validate_transaction_name("  <b>Client</b> lunch ") == "Client lunch"

    def test_name_truncated(self):
        assert validate_transaction_name("x" * 250) == "x" * 200

    @pytest.mark.parametrize("value", [None, "", "   ", "<br>", 42])
    def test_unusable_name(self, value):
        assert validate_transaction_name(value) is None

    def test_notes_default_empty(self):
        assert validate_notes(None) == ""
        assert validate_notes("<i>paid</i> cash") == "paid cash"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("12.345", Decimal("12.35")),
            (12.5, Decimal("12.50")),
            (7, Decimal("7.00")),
            (" 3.10 ", Decimal("3.10")),
            ("999999999.99", Decimal("999999999.99")),
        ],
    )
    def test_valid_amounts(self, value, expected):
        assert validate_amount(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["0", 0, "-5", "1000000000", "abc", None, True, "NaN", "Infinity", ""],
    )
    def test_invalid_amounts(self, value):
        assert validate_amount(value) is None

    def test_float_amount_uses_shortest_repr(self):
        """0.1 + 0.2 style float noise does not leak into the amount."""
        assert validate_amount(0.1) == Decimal("0.10")

    def test_date_parsing(self):
        assert validate_date("2024-02-29") == date(2024, 2, 29)
        assert validate_date(date(2025, 1, 1)) == date(2025, 1, 1)
        assert validate_date(datetime(2025, 1, 1, 13, 5)) == date(2025, 1, 1)

    @pytest.mark.parametrize("value", ["2025-02-30", "2025/01/01", "01-01-2025", "", None, 20250101])
    def test_invalid_dates(self, value):
        assert validate_date(value) is None

    def test_percentage_bounds(self):
        assert validate_percentage("50") == Decimal("50.00")
        assert validate_percentage(0) == Decimal("0.00")
        assert validate_percentage(100) == Decimal("100.00")
        assert validate_percentage("100.5") is None
        assert validate_percentage(-1) is None

    def test_uuid(self):
        value = uuid4()
        assert validate_uuid(value)
        assert validate_uuid(str(value))
        assert validate_uuid(str(value).upper())
        assert not validate_uuid("not-a-uuid")
        assert not validate_uuid(None)

    def test_limit_items(self):
        assert limit_items([1, 2, 3], 2) == [1, 2]
        assert limit_items([1, 2, 3], 0) == []


class TestTransactionValidator:
    """Tests for whole-record validation."""

    def test_valid_record(self, validator):
        result = validator.validate(raw_record())

        assert result.is_valid
        assert not result.has_errors
        assert result.draft.date == date(2025, 3, 14)
        assert result.draft.type == TransactionType.EXPENSE
        assert result.draft.amount == Decimal("54.99")
        assert result.draft.category_id == "cat-software"

    def test_collects_every_error(self, validator):
        """All bad fields are reported, not just the first one."""
        result = validator.validate(
            raw_record(date="14/03/2025", name="", type="refund", amount="-3")
        )

        assert not result.is_valid
        assert result.draft is None
        assert result.error_count == 4
        assert {i.field for i in result.issues} == {"date", "name", "type", "amount"}

    def test_missing_date_issue_type(self, validator):
        result = validator.validate(raw_record(date=None))

        issue = next(i for i in result.issues if i.field == "date")
        assert issue.issue_type == "missing"

    def test_invalid_recurring_id(self, validator):
        result = validator.validate(raw_record(recurring_id="series-1"))

        assert not result.is_valid
        assert result.issues[0].field == "recurring_id"

    def test_valid_recurring_id_kept(self, validator):
        recurring_id = uuid4()
        result = validator.validate(raw_record(recurring_id=str(recurring_id)))

        assert result.draft.recurring_id == recurring_id

    def test_long_notes_warn_but_pass(self, validator):
        result = validator.validate(raw_record(notes="n" * 600))

        assert result.is_valid
        assert len(result.draft.notes) == 500
        assert result.issues[0].severity == "warning"
        assert result.issues[0].issue_type == "truncated"

    def test_empty_category_becomes_none(self, validator):
        result = validator.validate(raw_record(category_id=""))
        assert result.draft.category_id is None

    def test_accepts_draft(self, validator):
        draft = TransactionDraft(
            date=date(2025, 1, 5),
            name="Invoice 12",
            type=TransactionType.INCOME,
            amount=Decimal("1200"),
        )

        result = validator.validate(draft)

        assert result.is_valid
        assert result.draft.amount == Decimal("1200.00")

    def test_custom_max_amount(self):
        validator = TransactionValidator(
            max_name_length=200,
            max_notes_length=500,
            max_amount=Decimal("100"),
        )

        assert validator.validate(raw_record(amount="100")).is_valid
        assert not validator.validate(raw_record(amount="100.01")).is_valid

    def test_sanitize_updates_cleans_text(self, validator):
        updates = validator.sanitize_updates({
            "name": "  <b>Hosting</b> Pro ",
            "notes": "<script>x</script>renewed",
            "amount": "30",
            "category_id": "",
        })

        assert updates == {
            "name": "Hosting Pro",
            "notes": "xrenewed",
            "amount": Decimal("30.00"),
            "category_id": None,
        }

    def test_sanitize_updates_only_touches_given_fields(self, validator):
        assert validator.sanitize_updates({"type": "income"}) == {"type": TransactionType.INCOME}

    @pytest.mark.parametrize(
        "updates",
        [
            {"name": "<i></i>"},
            {"amount": "0"},
            {"amount": "1e40"},
            {"date": "2025-02-30"},
            {"type": "transfer"},
        ],
    )
    def test_sanitize_updates_rejects_unusable_values(self, validator, updates):
        with pytest.raises(ValueError):
            validator.sanitize_updates(updates)


class TestValidateCategory:
    """Tests for category checks before a category is saved."""

    def test_name_cleaned_and_percentage_rounded(self):
        category = Category(
            name=" <b>Meals</b> ",
            type=TransactionType.EXPENSE,
            deductibility_percentage=Decimal("49.999"),
        )

        checked = validate_category(category)

        assert checked.id == category.id
        assert checked.name == "Meals"
        assert checked.deductibility_percentage == Decimal("50.00")

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            Category(name="Fines", type=TransactionType.EXPENSE, deductibility_percentage=Decimal("150"))

        # Skips the 0-100 field check
        unchecked = Category.model_construct(
            id="cat-fines",
            user_id=None,
            name="Fines",
            type=TransactionType.EXPENSE,
            deductibility_percentage=Decimal("150"),
        )
        with pytest.raises(ValueError):
            validate_category(unchecked)

    def test_income_category_percentage(self):
        """Income categories may carry 0 (as the defaults do) but nothing else."""
        sales = Category(name="Sales", type=TransactionType.INCOME, deductibility_percentage=Decimal("0"))
        assert validate_category(sales).deductibility_percentage == Decimal("0.00")

        with pytest.raises(ValueError):
            validate_category(sales.model_copy(update={"deductibility_percentage": Decimal("50")}))

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            validate_category(Category.model_construct(
                id="cat-x", user_id=None, name="<br>", type=TransactionType.EXPENSE,
                deductibility_percentage=None,
            ))
