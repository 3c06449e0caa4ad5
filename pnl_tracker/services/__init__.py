"""Services package."""

from pnl_tracker.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStorageInterface",
]
