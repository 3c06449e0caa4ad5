"""
Audit Models for P&L Tracker

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of bulk operations (imports, series changes)
2. Debugging information when things go wrong
3. A way to reconstruct what a series looked like before a change

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Single transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTIONS_IMPORTED = "transactions_imported"

    # Recurring series
    SERIES_CREATED = "series_created"
    SERIES_UPDATED = "series_updated"
    SERIES_RECONCILED = "series_reconciled"
    SERIES_ENDED = "series_ended"
    SERIES_DELETED = "series_deleted"

    # Categories
    CATEGORIES_SEEDED = "categories_seeded"
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Tax
    TAX_ESTIMATED = "tax_estimated"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'series', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    user_id: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "user_id": self.user_id,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, user_id]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            self.user_id or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.series_created(recurring_id, "Rent", 12)
        event = AuditEventBuilder.tax_estimated("smart", "1234.56", 2025)
    """

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        name: str,
        amount: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description=f"Transaction created: {name} - ${amount}",
            details={"name": name, "amount": amount},
            user_id=user_id,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        fields: list[str],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description="Transaction updated",
            details={"fields": fields},
            user_id=user_id,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            correlation_id=correlation_id,
            description="Transaction deleted",
            user_id=user_id,
        )

    @staticmethod
    def transactions_imported(
        source: str,
        imported: int,
        skipped: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Imported {imported} transactions from {source} ({skipped} skipped)",
            details={"source": source, "imported": imported, "skipped": skipped},
            user_id=user_id,
        )

    @staticmethod
    def series_created(
        recurring_id: UUID,
        name: str,
        frequency: str,
        count: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_CREATED,
            entity_type="series",
            entity_id=str(recurring_id),
            correlation_id=correlation_id,
            description=f"Recurring series created: {name} ({frequency}, {count} instances)",
            details={"name": name, "frequency": frequency, "count": count},
            user_id=user_id,
        )

    @staticmethod
    def series_updated(
        recurring_id: UUID,
        fields: list[str],
        updated: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_UPDATED,
            entity_type="series",
            entity_id=str(recurring_id),
            correlation_id=correlation_id,
            description=f"Series updated: {updated} instances",
            details={"fields": fields, "updated": updated},
            user_id=user_id,
        )

    @staticmethod
    def series_reconciled(
        recurring_id: UUID,
        new_end_date: str,
        deleted: int,
        added: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_RECONCILED,
            entity_type="series",
            entity_id=str(recurring_id),
            correlation_id=correlation_id,
            description=f"Series end date set to {new_end_date}: -{deleted} +{added}",
            details={"new_end_date": new_end_date, "deleted": deleted, "added": added},
            user_id=user_id,
        )

    @staticmethod
    def series_ended(
        recurring_id: UUID,
        deleted: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_ENDED,
            entity_type="series",
            entity_id=str(recurring_id),
            correlation_id=correlation_id,
            description=f"Subscription ended, {deleted} future instances removed",
            details={"deleted": deleted},
            user_id=user_id,
        )

    @staticmethod
    def series_deleted(
        recurring_id: UUID,
        deleted: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_DELETED,
            entity_type="series",
            entity_id=str(recurring_id),
            correlation_id=correlation_id,
            description=f"Series deleted ({deleted} instances)",
            details={"deleted": deleted},
            user_id=user_id,
        )

    @staticmethod
    def categories_seeded(
        count: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Seeded {count} default categories",
            details={"count": count},
            user_id=user_id,
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: str,
        name: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        action = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category {action}: {name}",
            details={"name": name},
            user_id=user_id,
        )

    @staticmethod
    def tax_estimated(
        mode: str,
        total_tax: str,
        tax_year: int,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAX_ESTIMATED,
            entity_type="tax",
            correlation_id=correlation_id,
            description=f"Tax estimated ({mode}, {tax_year}): ${total_tax}",
            details={"mode": mode, "total_tax": total_tax, "tax_year": tax_year},
            user_id=user_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
