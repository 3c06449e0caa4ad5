"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of bulk changes (imports, series reconciliation)
2. Debugging capability
3. The owner can see the history of their ledger

The audit logger:
- Is async to fit the storage interface
- Gracefully handles failures (a failed audit write never fails the mutation)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from pnl_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from pnl_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage backend (for persistence and owner visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: UUID,
        name: str,
        amount: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            name=name,
            amount=amount,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        fields: list[str],
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            fields=fields,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transactions_imported(
        self,
        source: str,
        imported: int,
        skipped: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a completed CSV or bank statement import."""
        event = AuditEventBuilder.transactions_imported(
            source=source,
            imported=imported,
            skipped=skipped,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_created(
        self,
        recurring_id: UUID,
        name: str,
        frequency: str,
        count: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.series_created(
            recurring_id=recurring_id,
            name=name,
            frequency=frequency,
            count=count,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_updated(
        self,
        recurring_id: UUID,
        fields: list[str],
        updated: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.series_updated(
            recurring_id=recurring_id,
            fields=fields,
            updated=updated,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_reconciled(
        self,
        recurring_id: UUID,
        new_end_date: str,
        deleted: int,
        added: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log an end-date change and the resulting plan sizes."""
        event = AuditEventBuilder.series_reconciled(
            recurring_id=recurring_id,
            new_end_date=new_end_date,
            deleted=deleted,
            added=added,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_ended(
        self,
        recurring_id: UUID,
        deleted: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.series_ended(
            recurring_id=recurring_id,
            deleted=deleted,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_series_deleted(
        self,
        recurring_id: UUID,
        deleted: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.series_deleted(
            recurring_id=recurring_id,
            deleted=deleted,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_categories_seeded(
        self,
        count: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.categories_seeded(
            count=count,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        category_id: str,
        name: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_changed(
            event_type=event_type,
            category_id=category_id,
            name=name,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_tax_estimated(
        self,
        mode: str,
        total_tax: str,
        tax_year: int,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.tax_estimated(
            mode=mode,
            total_tax=total_tax,
            tax_year=tax_year,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a CSV import).
    Pass it through all subsequent operations.
    """
    return uuid4()
