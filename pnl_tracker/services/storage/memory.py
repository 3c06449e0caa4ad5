"""
In-Memory Storage Implementation

Dict-backed implementations of the storage interfaces. Used by the test
suite and for running the flows without a Google account. Semantics
(ordering, pagination, NotFoundError/DuplicateError) match the Google
Sheets backend.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from pnl_tracker.models.audit import AuditEvent
from pnl_tracker.models.ledger import Category, Transaction
from pnl_tracker.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions keyed by id."""

    def __init__(self):
        self._rows: dict[UUID, Transaction] = {}

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._rows:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._rows[transaction.id] = transaction.model_copy()
        return transaction

    async def save_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        ids = [t.id for t in transactions]
        if len(set(ids)) != len(ids):
            raise DuplicateError("Duplicate transaction ids in bulk insert")
        existing = [i for i in ids if i in self._rows]
        if existing:
            raise DuplicateError(f"Transaction already exists: {existing[0]}")
        for transaction in transactions:
            self._rows[transaction.id] = transaction.model_copy()
        return transactions

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        row = self._rows.get(transaction_id)
        return row.model_copy() if row else None

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._rows:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._rows[transaction.id] = transaction.model_copy()
        return transaction

    async def update_series(
        self,
        user_id: Optional[str],
        recurring_id: UUID,
        updates: dict[str, Any],
    ) -> list[Transaction]:
        updated = []
        for row in self._rows.values():
            if row.recurring_id != recurring_id or row.user_id != user_id:
                continue
            try:
                updated.append(Transaction.model_validate({**row.model_dump(), **updates}))
            except ValueError as e:
                raise StorageError(f"Invalid series update: {e}") from e
        for new_row in updated:
            self._rows[new_row.id] = new_row
        updated.sort(key=lambda t: t.date)
        return updated

    async def delete_transactions(self, transaction_ids: list[UUID]) -> int:
        removed = 0
        for tx_id in transaction_ids:
            if self._rows.pop(tx_id, None) is not None:
                removed += 1
        return removed

    async def delete_series(self, user_id: Optional[str], recurring_id: UUID) -> int:
        ids = [
            tx_id for tx_id, row in self._rows.items()
            if row.recurring_id == recurring_id and row.user_id == user_id
        ]
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
        rows = []
        for row in self._rows.values():
            if user_id is not None and row.user_id != user_id:
                continue
            if date_from and row.date < date_from:
                continue
            if date_to and row.date > date_to:
                continue
            if recurring_id and row.recurring_id != recurring_id:
                continue
            rows.append(row.model_copy())

        # Newest first; id breaks ties so pages are stable
        rows.sort(key=lambda t: (t.date, str(t.id)), reverse=True)
        return rows[offset:offset + limit]


class InMemoryCategoryStorage(CategoryStorageInterface):
    """Categories keyed by id."""

    def __init__(self):
        self._rows: dict[str, Category] = {}

    async def save_categories(self, categories: list[Category]) -> list[Category]:
        for category in categories:
            if category.id in self._rows:
                raise DuplicateError(f"Category already exists: {category.id}")
        for category in categories:
            self._rows[category.id] = category.model_copy()
        return categories

    async def list_categories(self, user_id: Optional[str] = None) -> list[Category]:
        rows = [
            c.model_copy() for c in self._rows.values()
            if user_id is None or c.user_id == user_id
        ]
        rows.sort(key=lambda c: c.name.lower())
        return rows

    async def update_category(self, category: Category) -> Category:
        if category.id not in self._rows:
            raise NotFoundError(f"Category not found: {category.id}")
        self._rows[category.id] = category.model_copy()
        return category

    async def delete_category(self, category_id: str) -> bool:
        return self._rows.pop(category_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
