"""Input validation package."""

from pnl_tracker.validation.validator import (
    TransactionValidator,
    limit_items,
    strip_tags,
    validate_amount,
    validate_category,
    validate_date,
    validate_notes,
    validate_percentage,
    validate_transaction_name,
    validate_uuid,
)

__all__ = [
    "TransactionValidator",
    "limit_items",
    "strip_tags",
    "validate_amount",
    "validate_category",
    "validate_date",
    "validate_notes",
    "validate_percentage",
    "validate_transaction_name",
    "validate_uuid",
]
