"""
Bank Statement Import

Parses the three-column (date, description, amount) CSV that most bank
portals export for card statements. Statement dates often omit the year
("4-Oct", "Oct 4", "10/4"), so the statement year is supplied by the
caller.

All rows are treated as expenses. Each description is matched against
VENDOR_CATEGORY_KEYWORDS to suggest an expense category.
"""

import csv
import io
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from pnl_tracker.imports.keywords import VENDOR_CATEGORY_KEYWORDS
from pnl_tracker.models.ledger import (
    BankStatementLine,
    Category,
    MatchConfidence,
    TransactionDraft,
    TransactionType,
    to_cents,
)
from pnl_tracker.validation.validator import MAX_AMOUNT, validate_transaction_name


MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

HEADER_KEYWORDS = ("date", "description", "amount", "transaction")

_DAY_MONTH_RE = re.compile(r"^(\d{1,2})[-\s]([a-z]{3})")
_MONTH_DAY_RE = re.compile(r"^([a-z]{3})[-\s](\d{1,2})")
_SHORT_NUMERIC_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_FULL_NUMERIC_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")


def _make_date(year: int, month: Optional[int], day: int) -> Optional[date]:
    if month is None:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_bank_date(value: str, year: int) -> Optional[date]:
    """
    Statement date in one of: "4-Oct", "4 Oct", "Oct 4", "Oct-4",
    "10/4", "10-4", "2024-10-04", "10/4/2024".

    Formats without a year use `year`. None when nothing matches or the
    day does not exist in that month.
    """
    cleaned = value.strip().lower()

    match = _DAY_MONTH_RE.match(cleaned)
    if match:
        parsed = _make_date(year, MONTHS.get(match.group(2)), int(match.group(1)))
        if parsed:
            return parsed

    match = _MONTH_DAY_RE.match(cleaned)
    if match:
        parsed = _make_date(year, MONTHS.get(match.group(1)), int(match.group(2)))
        if parsed:
            return parsed

    match = _SHORT_NUMERIC_RE.match(cleaned)
    if match:
        return _make_date(year, int(match.group(1)), int(match.group(2)))

    match = _ISO_RE.match(cleaned)
    if match:
        return _make_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _FULL_NUMERIC_RE.match(cleaned)
    if match:
        return _make_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))

    return None


def match_vendor_to_category(
    description: str,
    categories: Iterable[Category],
) -> tuple[Optional[str], MatchConfidence]:
    """
    Suggest a category id for a statement description.

    Only categories whose name appears in the keyword table can match.
    Returns (None, LOW) when no keyword is found.
    """
    upper = description.upper()
    ids_by_name = {c.name: c.id for c in categories}

    for category_name, keywords in VENDOR_CATEGORY_KEYWORDS.items():
        category_id = ids_by_name.get(category_name)
        if not category_id:
            continue
        if any(keyword in upper for keyword in keywords):
            return category_id, MatchConfidence.HIGH

    return None, MatchConfidence.LOW


def _has_header(first_line: str) -> bool:
    lower = first_line.lower()
    return any(keyword in lower for keyword in HEADER_KEYWORDS)


def parse_bank_statement_csv(
    text: str,
    year: int,
    categories: Iterable[Category],
) -> list[BankStatementLine]:
    """
    Parse a statement export into lines with category suggestions.

    Rows with fewer than three columns, an unparseable date, or a
    non-numeric or out-of-range amount are dropped. Amounts are made positive.
    """
    expense_categories = [c for c in categories if c.type == TransactionType.EXPENSE]
    lines = text.splitlines()
    if lines and _has_header(lines[0]):
        lines = lines[1:]

    results = []
    for cols in csv.reader(io.StringIO("\n".join(lines))):
        cols = [col.strip() for col in cols]
        if len(cols) < 3:
            continue
        date_str, description, amount_str = cols[:3]

        parsed_date = parse_bank_date(date_str, year)
        if parsed_date is None:
            continue

        try:
            amount = Decimal(amount_str.replace("$", "").replace(",", "").strip())
        except InvalidOperation:
            continue
        if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
            continue

        category_id, confidence = match_vendor_to_category(description, expense_categories)
        results.append(BankStatementLine(
            date=parsed_date,
            description=description,
            amount=to_cents(abs(amount)),
            suggested_category_id=category_id,
            confidence=confidence,
        ))

    return results


def statement_lines_to_drafts(lines: Iterable[BankStatementLine]) -> list[TransactionDraft]:
    """
    Drafts for the reviewed statement lines.

    Lines with a zero amount or an empty description are left out.
    """
    drafts = []
    for line in lines:
        name = validate_transaction_name(line.description)
        if name is None or line.amount <= 0:
            continue
        drafts.append(TransactionDraft(
            date=line.date,
            name=name,
            type=line.suggested_type,
            amount=line.amount,
            category_id=line.suggested_category_id,
        ))
    return drafts
