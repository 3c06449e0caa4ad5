"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger independent of any hosted backend
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

The interface is intentionally small: create, read-filtered, update,
delete and bulk-insert. Every read and write is scoped to an owner
(`user_id`); authentication itself is delegated to the caller.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional
from uuid import UUID

from pnl_tracker.models.audit import AuditEvent
from pnl_tracker.models.ledger import Category, Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert one transaction.

        Raises:
            DuplicateError: a transaction with this id already exists
            StorageError: if the write fails
        """
        pass

    @abstractmethod
    async def save_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        """Bulk insert. Either all rows are written or StorageError is raised."""
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by id, None if it does not exist."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: if the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def update_series(
        self,
        user_id: Optional[str],
        recurring_id: UUID,
        updates: dict[str, Any],
    ) -> list[Transaction]:
        """Apply the same field updates to every instance of a series."""
        pass

    @abstractmethod
    async def delete_transactions(self, transaction_ids: list[UUID]) -> int:
        """Delete by id. Returns the number of rows removed."""
        pass

    @abstractmethod
    async def delete_series(self, user_id: Optional[str], recurring_id: UUID) -> int:
        """Delete every instance of a series. Returns the number removed."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        recurring_id: Optional[UUID] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        Results are ordered by date, newest first. A page never holds
        more than `limit` rows; callers page with `offset`.
        """
        pass


class CategoryStorageInterface(ABC):
    """Abstract interface for category storage."""

    @abstractmethod
    async def save_categories(self, categories: list[Category]) -> list[Category]:
        """Insert categories (used for single adds and for seeding)."""
        pass

    @abstractmethod
    async def list_categories(self, user_id: Optional[str] = None) -> list[Category]:
        """All categories of a user, ordered by name."""
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        """
        Replace an existing category.

        Raises:
            NotFoundError: if the category doesn't exist
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> bool:
        """Delete a category. Returns False if it did not exist."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one flow, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
