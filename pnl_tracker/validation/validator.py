"""
Transaction Input Validation

Raw transaction input (form posts, API payloads, import rows) passes
through here before it becomes a TransactionDraft.

DESIGN DECISION: Two kinds of helpers live in this module:

SANITISERS:
- Small functions that clean one field and return None when the value
  cannot be used (HTML tags stripped, lengths capped, amounts rounded)
- Shared with the CSV importers, which skip rows instead of failing

TRANSACTION VALIDATOR:
- Runs the sanitisers over a whole raw record
- Reports every problem as a ValidationIssue instead of stopping at the first
- Only produces a draft when no error-level issue was found

IMPORTANT: Text cleanup (tags, whitespace, length) is applied silently.
Anything that changes the meaning of a value (a bad date, a bad amount,
an unknown type) is reported as an error.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar, Union
from uuid import UUID

from pnl_tracker.config import get_settings
from pnl_tracker.models.ledger import (
    Category,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    to_cents,
)


T = TypeVar("T")

_TAG_RE = re.compile(r"<[^>]*>")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MAX_NAME_LENGTH = 200
MAX_NOTES_LENGTH = 500
MAX_CATEGORY_NAME_LENGTH = 100
MAX_AMOUNT = Decimal("999999999.99")


# =============================================================================
# SANITISERS
# =============================================================================

def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value).strip()


def validate_transaction_name(name: Any, max_length: int = MAX_NAME_LENGTH) -> Optional[str]:
    """Tag-free, trimmed, length-capped name; None if nothing is left."""
    if not name or not isinstance(name, str):
        return None
    cleaned = strip_tags(name)[:max_length].strip()
    return cleaned or None


def validate_notes(notes: Any, max_length: int = MAX_NOTES_LENGTH) -> str:
    """Tag-free, trimmed, length-capped notes; empty string for anything unusable."""
    if not notes or not isinstance(notes, str):
        return ""
    return strip_tags(notes)[:max_length]


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def validate_amount(
    amount: Any,
    min_value: Decimal = Decimal("0"),
    max_value: Decimal = MAX_AMOUNT,
) -> Optional[Decimal]:
    """
    Amount rounded to cents, or None.

    Accepts numbers and numeric strings. The range is exclusive at the
    bottom and inclusive at the top: zero is rejected, the maximum is not.
    """
    parsed = _to_decimal(amount)
    if parsed is None:
        return None
    if parsed <= min_value or parsed > max_value:
        return None
    return to_cents(parsed)


def validate_date(value: Any) -> Optional[date]:
    """A real calendar date in YYYY-MM-DD form, or None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str) or not _DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def validate_percentage(percentage: Any) -> Optional[Decimal]:
    """A percentage in 0-100 rounded to 2 places, or None."""
    parsed = _to_decimal(percentage)
    if parsed is None or parsed < 0 or parsed > 100:
        return None
    return to_cents(parsed)


def validate_category(category: Category) -> Category:
    """
    Category with its name cleaned and its deductibility checked.

    Income categories are never deducted, so they may only carry no
    percentage or 0.

    Raises:
        ValueError: empty name, percentage outside 0-100, or a non-zero
            percentage on an income category
    """
    name = validate_transaction_name(category.name, MAX_CATEGORY_NAME_LENGTH)
    if name is None:
        raise ValueError("Category name is required")

    pct = category.deductibility_percentage
    if pct is not None:
        pct = validate_percentage(pct)
        if pct is None:
            raise ValueError(
                f"Deductibility of {name!r} must be between 0 and 100, "
                f"got {category.deductibility_percentage}"
            )
        if category.type == TransactionType.INCOME and pct != 0:
            raise ValueError(f"Income category {name!r} cannot have a deductibility percentage")

    return Category.model_validate(
        {**category.model_dump(), "name": name, "deductibility_percentage": pct}
    )


def validate_uuid(value: Any) -> bool:
    if isinstance(value, UUID):
        return True
    if not value or not isinstance(value, str):
        return False
    return bool(_UUID_RE.match(value))


def limit_items(items: list[T], max_items: int) -> list[T]:
    """First `max_items` entries; empty for a non-positive limit."""
    if max_items <= 0:
        return []
    return items[:max_items]


# =============================================================================
# TRANSACTION VALIDATOR
# =============================================================================

class TransactionValidator:
    """
    Turns a raw transaction record into a TransactionDraft.

    Limits (name/notes length, maximum amount) come from AppSettings
    unless given explicitly.
    """

    def __init__(
        self,
        max_name_length: Optional[int] = None,
        max_notes_length: Optional[int] = None,
        max_amount: Optional[Decimal] = None,
    ):
        if None in (max_name_length, max_notes_length, max_amount):
            settings = get_settings().app
            max_name_length = max_name_length or settings.max_name_length
            max_notes_length = max_notes_length or settings.max_notes_length
            max_amount = max_amount or settings.max_amount
        self.max_name_length = max_name_length
        self.max_notes_length = max_notes_length
        self.max_amount = max_amount

    def validate(self, raw: Union[Mapping, TransactionDraft]) -> ValidationResult:
        """
        Validate every field and collect the issues.

        Recognised keys: date, name, type, amount, category_id, notes,
        recurring_id. Unknown keys are ignored.
        """
        if isinstance(raw, TransactionDraft):
            raw = raw.model_dump()

        issues: list[ValidationIssue] = []

        tx_date = validate_date(raw.get("date"))
        if tx_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format" if raw.get("date") else "missing",
                message="Date must be a real calendar date in YYYY-MM-DD form",
                severity="error",
            ))

        name = validate_transaction_name(raw.get("name"), self.max_name_length)
        if name is None:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
                severity="error",
            ))

        tx_type = raw.get("type")
        try:
            tx_type = TransactionType(tx_type)
        except ValueError:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message=f"Type must be 'income' or 'expense', got {tx_type!r}",
                severity="error",
            ))
            tx_type = None

        amount = validate_amount(raw.get("amount"), max_value=self.max_amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Amount must be a number greater than 0 and at most {self.max_amount}",
                severity="error",
            ))

        recurring_id = raw.get("recurring_id")
        if recurring_id is not None and not validate_uuid(recurring_id):
            issues.append(ValidationIssue(
                field="recurring_id",
                issue_type="invalid_format",
                message="Recurring id must be a UUID",
                severity="error",
            ))
            recurring_id = None

        notes = validate_notes(raw.get("notes"), self.max_notes_length)
        raw_notes = raw.get("notes")
        if isinstance(raw_notes, str) and len(strip_tags(raw_notes)) > self.max_notes_length:
            issues.append(ValidationIssue(
                field="notes",
                issue_type="truncated",
                message=f"Notes were truncated to {self.max_notes_length} characters",
                severity="warning",
            ))

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(is_valid=False, issues=issues)

        draft = TransactionDraft(
            date=tx_date,
            name=name,
            type=tx_type,
            amount=amount,
            category_id=raw.get("category_id") or None,
            notes=notes,
            recurring_id=recurring_id,
        )
        return ValidationResult(is_valid=True, draft=draft, issues=issues)

    def sanitize_updates(self, updates: Mapping[str, Any]) -> dict[str, Any]:
        """
        Field changes cleaned with the same rules as a new record.

        Only the fields present in `updates` are checked; anything not
        listed here is passed through unchanged.

        Raises:
            ValueError: a changed value is unusable (empty name, bad
                amount, bad date, unknown type)
        """
        cleaned = dict(updates)

        if "name" in cleaned:
            name = validate_transaction_name(cleaned["name"], self.max_name_length)
            if name is None:
                raise ValueError("Name is required")
            cleaned["name"] = name

        if "notes" in cleaned:
            cleaned["notes"] = validate_notes(cleaned["notes"], self.max_notes_length)

        if "amount" in cleaned:
            amount = validate_amount(cleaned["amount"], max_value=self.max_amount)
            if amount is None:
                raise ValueError(
                    f"Amount must be a number greater than 0 and at most {self.max_amount}"
                )
            cleaned["amount"] = amount

        if "date" in cleaned:
            tx_date = validate_date(cleaned["date"])
            if tx_date is None:
                raise ValueError("Date must be a real calendar date in YYYY-MM-DD form")
            cleaned["date"] = tx_date

        if "type" in cleaned:
            cleaned["type"] = TransactionType(cleaned["type"])

        if "category_id" in cleaned:
            cleaned["category_id"] = cleaned["category_id"] or None

        return cleaned
