"""
Generic CSV Import

Turns an exported spreadsheet (bank, payment processor, marketplace) into
transaction drafts.

Flow:
1. Read the header row and data rows (quoted fields may contain commas)
2. Auto-detect the date, name and amount columns from the header names
   (the caller may override any of them)
3. Map each row to a draft; rows without a usable date or a positive
   amount are skipped and counted, never fatal
"""

import csv
import io
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from pnl_tracker.core.errors import LedgerError
from pnl_tracker.models.ledger import ImportResult, TransactionDraft, TransactionType, to_cents
from pnl_tracker.validation.validator import MAX_AMOUNT, MAX_NAME_LENGTH, validate_transaction_name


DEFAULT_IMPORT_NAME = "Imported transaction"
MAX_IMPORT_ROWS = 10000

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")
_EU_RE = re.compile(r"^(\d{1,2})[-.](\d{1,2})[-.](\d{4})")
_AMOUNT_NOISE_RE = re.compile(r"[$,\s]")


class ImportFileError(LedgerError):
    """The file has no header/data rows, or more rows than allowed."""
    pass


class TypeMode(str, Enum):
    """How the importer decides income vs expense."""
    ALL_INCOME = "all_income"
    ALL_EXPENSE = "all_expense"
    COLUMN = "column"


class ColumnMapping(BaseModel):
    """Header names of the columns used by the importer."""

    date: Optional[str] = None
    name: Optional[str] = None
    amount: Optional[str] = None
    type: Optional[str] = None


def read_csv(text: str) -> tuple[list[str], list[dict[str, str]]]:
    """
    Split CSV text into (headers, rows).

    Blank lines are ignored; missing trailing cells read as "".

    Raises:
        ImportFileError: fewer than a header row plus one data row
    """
    records = [
        [cell.strip() for cell in record]
        for record in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in record)
    ]
    if len(records) < 2:
        raise ImportFileError("File must have a header row and at least one data row")

    headers = records[0]
    rows = [
        {header: (values[idx] if idx < len(values) else "") for idx, header in enumerate(headers)}
        for values in records[1:]
    ]
    return headers, rows


def detect_columns(headers: list[str]) -> ColumnMapping:
    """Guess the date, name and amount columns from header names."""
    lower = [h.lower() for h in headers]

    def first(predicate) -> Optional[str]:
        for header, low in zip(headers, lower):
            if predicate(low):
                return header
        return None

    return ColumnMapping(
        date=first(lambda h: "date" in h or "time" in h or h == "created"),
        name=first(lambda h: any(k in h for k in ("description", "name", "memo", "seller"))),
        amount=first(lambda h: any(k in h for k in ("amount", "total", "sum"))),
    )


def _make_date(year: str, month: str, day: str) -> Optional[date]:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def parse_import_date(value: str) -> Optional[date]:
    """
    Date from ISO (with or without a time part), MM/DD/YYYY, or
    DD-MM-YYYY / DD.MM.YYYY. None if unrecognised or not a real date.
    """
    if not value:
        return None
    value = value.strip()

    match = _ISO_RE.match(value)
    if match:
        return _make_date(match.group(1), match.group(2), match.group(3))

    match = _US_RE.match(value)
    if match:
        return _make_date(match.group(3), match.group(1), match.group(2))

    match = _EU_RE.match(value)
    if match:
        return _make_date(match.group(3), match.group(2), match.group(1))

    return None


def parse_import_amount(value: str, max_amount: Decimal = MAX_AMOUNT) -> Optional[Decimal]:
    """
    Absolute amount with currency symbols, thousands separators and spaces
    removed. None when unparseable, not finite, or above `max_amount`.
    """
    if not value:
        return None
    cleaned = _AMOUNT_NOISE_RE.sub("", value)
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite() or abs(amount) > max_amount:
        return None
    return abs(amount)


def _row_type(row: dict[str, str], type_mode: TypeMode, type_column: Optional[str]) -> TransactionType:
    if type_mode == TypeMode.ALL_EXPENSE:
        return TransactionType.EXPENSE
    if type_mode == TypeMode.COLUMN and type_column:
        value = row.get(type_column, "").lower()
        if "expense" in value or "debit" in value:
            return TransactionType.EXPENSE
    return TransactionType.INCOME


class CsvImporter:
    """
    Maps generic CSV exports to transaction drafts.

    Usage:
        importer = CsvImporter()
        result = importer.parse(text, type_mode=TypeMode.ALL_EXPENSE)
        result.transactions  # list[TransactionDraft]
    """

    def __init__(
        self,
        max_rows: int = MAX_IMPORT_ROWS,
        max_name_length: int = MAX_NAME_LENGTH,
    ):
        self.max_rows = max_rows
        self.max_name_length = max_name_length

    def parse(
        self,
        text: str,
        columns: Optional[ColumnMapping] = None,
        type_mode: TypeMode = TypeMode.ALL_INCOME,
        default_category_id: Optional[str] = None,
    ) -> ImportResult:
        """
        Parse CSV text into drafts.

        Columns not given in `columns` are auto-detected.

        Raises:
            ImportFileError: no header/data, no date or amount column,
                or more importable rows than `max_rows`
        """
        headers, rows = read_csv(text)
        detected = detect_columns(headers)
        if columns is not None:
            detected = detected.model_copy(
                update=columns.model_dump(exclude_none=True)
            )

        if not detected.date or not detected.amount:
            raise ImportFileError(
                f"Could not find a date and an amount column in: {', '.join(headers)}"
            )
        if type_mode == TypeMode.COLUMN and not detected.type:
            raise ImportFileError("Type mode 'column' needs a type column")

        drafts = []
        skipped = 0
        for row in rows:
            tx_date = parse_import_date(row.get(detected.date, ""))
            amount = parse_import_amount(row.get(detected.amount, ""))
            if amount is not None:
                amount = to_cents(amount)
            if tx_date is None or amount is None or amount <= 0:
                skipped += 1
                continue

            raw_name = row.get(detected.name, "") if detected.name else ""
            name = validate_transaction_name(raw_name, self.max_name_length)

            drafts.append(TransactionDraft(
                date=tx_date,
                name=name or DEFAULT_IMPORT_NAME,
                type=_row_type(row, type_mode, detected.type),
                amount=amount,
                category_id=default_category_id,
            ))

        if len(drafts) > self.max_rows:
            raise ImportFileError(
                f"Too many transactions ({len(drafts)}); the limit is {self.max_rows} per import"
            )

        return ImportResult(
            transactions=drafts,
            skipped_rows=skipped,
            total_rows=len(rows),
        )
