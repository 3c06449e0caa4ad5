"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Non-technical owners can view and fix their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a small business ledger)
- No transactions (bulk inserts, series rewrites and series deletes each go
  out as a single API request, which Sheets applies all-or-nothing)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pnl_tracker.config import get_settings
from pnl_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pnl_tracker.models.ledger import Category, Transaction, TransactionType
from pnl_tracker.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "date",
    "name",
    "type",
    "amount",
    "category_id",
    "notes",
    "recurring_id",
]

# Column mappings for Categories sheet
CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "deductibility_percentage",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "user_id",
]

# Raised by the row converters on hand-edited or truncated rows
MALFORMED_ROW_ERRORS = (ValueError, TypeError, ArithmeticError)


def _safe_getter(row: list):
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _contiguous_runs(indexes: list[int]) -> list[tuple[int, int]]:
    """Sorted 1-based row numbers grouped into inclusive (first, last) runs."""
    runs: list[tuple[int, int]] = []
    for idx in sorted(indexes):
        if runs and idx == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], idx)
        else:
            runs.append((idx, idx))
    return runs


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 5000
        )

    def get_categories_sheet(self) -> gspread.Worksheet:
        """Get or create the Categories worksheet."""
        return self._get_or_create_sheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, 200
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


# =============================================================================
# ROW MAPPING
# =============================================================================

def transaction_to_row(transaction: Transaction) -> list:
    """Convert a Transaction to a spreadsheet row."""
    return [
        str(transaction.id),
        transaction.user_id or "",
        transaction.date.isoformat(),
        transaction.name,
        transaction.type.value,
        str(transaction.amount),
        transaction.category_id or "",
        transaction.notes,
        str(transaction.recurring_id) if transaction.recurring_id else "",
    ]


def row_to_transaction(row: list) -> Transaction:
    """Convert a spreadsheet row to a Transaction."""
    safe_get = _safe_getter(row)
    return Transaction(
        id=UUID(safe_get(0)),
        user_id=safe_get(1) or None,
        date=date.fromisoformat(safe_get(2)),
        name=safe_get(3),
        type=TransactionType(safe_get(4)),
        amount=Decimal(safe_get(5, "0")),
        category_id=safe_get(6) or None,
        notes=safe_get(7),
        recurring_id=UUID(safe_get(8)) if safe_get(8) else None,
    )


def category_to_row(category: Category) -> list:
    """Convert a Category to a spreadsheet row."""
    pct = category.deductibility_percentage
    return [
        category.id,
        category.user_id or "",
        category.name,
        category.type.value,
        str(pct) if pct is not None else "",
    ]


def row_to_category(row: list) -> Category:
    """Convert a spreadsheet row to a Category."""
    safe_get = _safe_getter(row)
    return Category(
        id=safe_get(0),
        user_id=safe_get(1) or None,
        name=safe_get(2),
        type=TransactionType(safe_get(3)),
        deductibility_percentage=Decimal(safe_get(4)) if safe_get(4) else None,
    )


def row_to_event(row: list) -> AuditEvent:
    """Convert a spreadsheet row to an AuditEvent."""
    safe_get = _safe_getter(row)
    return AuditEvent(
        event_id=UUID(safe_get(0)),
        timestamp=datetime.fromisoformat(safe_get(1)),
        event_type=AuditEventType(safe_get(2)),
        severity=AuditSeverity(safe_get(3)),
        entity_type=safe_get(4) or None,
        entity_id=safe_get(5) or None,
        correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
        description=safe_get(7),
        details=json.loads(safe_get(8)) if safe_get(8) else {},
        error_message=safe_get(9) or None,
        user_id=safe_get(10) or None,
    )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row; amounts are written as plain decimal strings
    (value_input_option RAW) so Sheets never reformats them.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row_indexes(self, all_rows: list[list], ids: set[str]) -> list[int]:
        """1-based sheet row numbers whose id column is in `ids`."""
        return [
            idx for idx, row in enumerate(all_rows[1:], start=2)
            if row and row[0] in ids
        ]

    def _load_all(self) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        transactions = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(row_to_transaction(row))
            except MALFORMED_ROW_ERRORS:
                continue  # Skip malformed rows
        return transactions

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """Append one transaction."""
        saved = await self.save_transactions([transaction])
        return saved[0]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def save_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        """Append all rows in a single API call."""
        if not transactions:
            return []
        try:
            sheet = self._client.get_transactions_sheet()
            existing = {row[0] for row in sheet.get_all_values()[1:] if row}
            for transaction in transactions:
                if str(transaction.id) in existing:
                    raise DuplicateError(f"Transaction already exists: {transaction.id}")
            sheet.append_rows(
                [transaction_to_row(t) for t in transactions],
                value_input_option="RAW",
            )
            return transactions
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transactions: {e}")

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by its ID."""
        try:
            sheet = self._client.get_transactions_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(transaction_id):
                    return row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """Rewrite the row holding this transaction."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
            indexes = self._find_row_indexes(all_rows, {str(transaction.id)})
            if not indexes:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            idx = indexes[0]
            sheet.update(
                range_name=f"A{idx}",
                values=[transaction_to_row(transaction)],
                value_input_option="RAW",
            )
            return transaction
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def update_series(
        self,
        user_id: Optional[str],
        recurring_id: UUID,
        updates: dict[str, Any],
    ) -> list[Transaction]:
        """
        Rewrite every row of the series with the updated fields.

        All new rows are built first and sent in one batch_update, so an
        invalid value or a failed request leaves the series unchanged.
        """
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
            data = []
            updated = []
            for idx, row in enumerate(all_rows[1:], start=2):
                if not row or not row[0]:
                    continue
                try:
                    transaction = row_to_transaction(row)
                except MALFORMED_ROW_ERRORS:
                    continue
                if transaction.recurring_id != recurring_id or transaction.user_id != user_id:
                    continue
                try:
                    new_transaction = Transaction.model_validate(
                        {**transaction.model_dump(), **updates}
                    )
                except ValueError as e:
                    raise StorageError(f"Invalid series update: {e}") from e
                data.append({
                    "range": f"A{idx}",
                    "values": [transaction_to_row(new_transaction)],
                })
                updated.append(new_transaction)

            if data:
                self._write_rows(sheet, data)
            updated.sort(key=lambda t: t.date)
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update series: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_rows(self, sheet: gspread.Worksheet, data: list[dict]) -> None:
        """Write whole rows in a single values batch update."""
        sheet.batch_update(data, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _delete_rows_by_id(self, ids: set[str]) -> int:
        """
        Delete the rows holding `ids` in a single spreadsheet batch update.

        Rows are looked up again on every attempt, so a retry never
        deletes by stale row numbers. Sheets applies the whole request
        or none of it.
        """
        sheet = self._client.get_transactions_sheet()
        indexes = self._find_row_indexes(sheet.get_all_values(), ids)
        if not indexes:
            return 0
        # Bottom-up so earlier deletions don't shift later row numbers
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet.id,
                        "dimension": "ROWS",
                        "startIndex": start - 1,
                        "endIndex": end,
                    }
                }
            }
            for start, end in reversed(_contiguous_runs(indexes))
        ]
        self._client.get_spreadsheet().batch_update({"requests": requests})
        return len(indexes)

    async def delete_transactions(self, transaction_ids: list[UUID]) -> int:
        """Delete rows by id."""
        if not transaction_ids:
            return 0
        try:
            return self._delete_rows_by_id({str(i) for i in transaction_ids})
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    async def delete_series(self, user_id: Optional[str], recurring_id: UUID) -> int:
        """Delete every row of the series."""
        try:
            ids = [
                t.id for t in self._load_all()
                if t.recurring_id == recurring_id and t.user_id == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to delete series: {e}")
        return await self.delete_transactions(ids)

    async def list_transactions(
        self,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        recurring_id: Optional[UUID] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Transaction]:
        """List transactions with optional filters."""
        try:
            transactions = []
            for transaction in self._load_all():
                # Apply filters
                if user_id is not None and transaction.user_id != user_id:
                    continue
                if date_from and transaction.date < date_from:
                    continue
                if date_to and transaction.date > date_to:
                    continue
                if recurring_id and transaction.recurring_id != recurring_id:
                    continue
                transactions.append(transaction)

            # Sort by date descending (newest first)
            transactions.sort(key=lambda t: (t.date, str(t.id)), reverse=True)

            # Apply pagination
            return transactions[offset:offset + limit]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Google Sheets implementation of category storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def save_categories(self, categories: list[Category]) -> list[Category]:
        """Append categories in a single API call."""
        if not categories:
            return []
        try:
            sheet = self._client.get_categories_sheet()
            existing = {row[0] for row in sheet.get_all_values()[1:] if row}
            for category in categories:
                if category.id in existing:
                    raise DuplicateError(f"Category already exists: {category.id}")
            sheet.append_rows(
                [category_to_row(c) for c in categories],
                value_input_option="RAW",
            )
            return categories
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save categories: {e}")

    async def list_categories(self, user_id: Optional[str] = None) -> list[Category]:
        """All categories of a user, ordered by name."""
        try:
            sheet = self._client.get_categories_sheet()
            categories = []
            for row in sheet.get_all_values()[1:]:
                if not row or not row[0]:
                    continue
                try:
                    category = row_to_category(row)
                except MALFORMED_ROW_ERRORS:
                    continue
                if user_id is not None and category.user_id != user_id:
                    continue
                categories.append(category)
            categories.sort(key=lambda c: c.name.lower())
            return categories
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def update_category(self, category: Category) -> Category:
        """Rewrite the row holding this category."""
        try:
            sheet = self._client.get_categories_sheet()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == category.id:
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[category_to_row(category)],
                        value_input_option="RAW",
                    )
                    return category
            raise NotFoundError(f"Category not found: {category.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: str) -> bool:
        """Delete a category by ID."""
        try:
            sheet = self._client.get_categories_sheet()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == category_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(row_to_event(row))
                except MALFORMED_ROW_ERRORS:
                    continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._load_events()
                if e.correlation_id == correlation_id
            ]
            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._load_events()
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
