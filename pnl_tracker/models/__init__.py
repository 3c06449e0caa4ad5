"""
Data Models Package

This package contains all Pydantic models used in the P&L Tracker.
All data flowing through the system must conform to these schemas.
"""

from pnl_tracker.models.ledger import (
    AccuracyLevel,
    BankStatementLine,
    Category,
    EndSeriesPlan,
    FilingStatus,
    Frequency,
    ImportResult,
    MatchConfidence,
    QuarterlyEstimate,
    ReconciliationPlan,
    SeriesStatus,
    SeriesSummary,
    TaxConfig,
    TaxMode,
    TaxResult,
    TaxYearPlan,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    to_cents,
)
from pnl_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccuracyLevel",
    "BankStatementLine",
    "Category",
    "EndSeriesPlan",
    "FilingStatus",
    "Frequency",
    "ImportResult",
    "MatchConfidence",
    "QuarterlyEstimate",
    "ReconciliationPlan",
    "SeriesStatus",
    "SeriesSummary",
    "TaxConfig",
    "TaxMode",
    "TaxResult",
    "TaxYearPlan",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "to_cents",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
