"""
Tests for P&L Tracker

Test strategy:
1. Unit tests for individual components (models, planners, estimator)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (Sheets is replaced by a fake worksheet)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from pnl_tracker.models.ledger import (
    Category,
    Frequency,
    MatchConfidence,
    ReconciliationPlan,
    TaxConfig,
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


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_draft_creation(self):
        """Test TransactionDraft model creation."""
        draft = TransactionDraft(
            date=date(2025, 1, 15),
            name="Client retainer",
            type=TransactionType.INCOME,
            amount=Decimal("2500"),
        )
        assert draft.name == "Client retainer"
        assert draft.amount == Decimal("2500.00")
        assert draft.notes == ""
        assert draft.recurring_id is None

    def test_draft_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        draft = TransactionDraft(
            date=date(2025, 1, 15),
            name="  Adobe  ",
            type="expense",
            amount="10",
        )
        assert draft.name == "Adobe"

    def test_amount_rounded_half_up(self):
        """Test that amounts are kept to cents."""
        draft = TransactionDraft(
            date=date(2025, 1, 15),
            name="Fee",
            type=TransactionType.EXPENSE,
            amount=Decimal("0.125"),
        )
        assert draft.amount == Decimal("0.13")
        assert to_cents(Decimal("2.675")) == Decimal("2.68")

    def test_draft_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            TransactionDraft(
                date=date(2025, 1, 15),
                name="Test",
                type=TransactionType.EXPENSE,
                amount=Decimal("-100"),
            )

    def test_draft_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            TransactionDraft(
                date=date(2025, 1, 15),
                name="Test",
                type="transfer",
                amount=Decimal("1"),
            )

    def test_draft_rejects_amount_too_large_for_cents(self):
        """Overflow while rounding is a validation error, not a decimal trap."""
        with pytest.raises(ValidationError):
            TransactionDraft(
                date=date(2025, 1, 15),
                name="Test",
                type=TransactionType.EXPENSE,
                amount=Decimal("1e40"),
            )
        with pytest.raises(ValueError):
            to_cents(Decimal("99999999999999999999999999999"))

    def test_none_notes_become_empty(self):
        draft = TransactionDraft(
            date=date(2025, 1, 15),
            name="Test",
            type=TransactionType.EXPENSE,
            amount=Decimal("1"),
            notes=None,
        )
        assert draft.notes == ""

    def test_transaction_from_draft(self):
        """Persisting a draft assigns an id and owner, and keeps every field."""
        recurring_id = uuid4()
        draft = TransactionDraft(
            date=date(2025, 1, 15),
            name="Rent",
            type=TransactionType.EXPENSE,
            amount=Decimal("900"),
            category_id="cat-rent",
            recurring_id=recurring_id,
        )

        first = Transaction.from_draft(draft, "user-1")
        second = Transaction.from_draft(draft, "user-1")

        assert first.id != second.id
        assert first.user_id == "user-1"
        assert first.recurring_id == recurring_id
        assert first.to_draft() == draft

    def test_category_default_id(self):
        category = Category(name="Rent", type=TransactionType.EXPENSE)
        assert category.id
        assert category.deductibility_percentage is None

    def test_tax_config_defaults(self):
        config = TaxConfig()
        assert config.dependents == 2
        assert config.spouse_pretax_deduction_percent == Decimal("10")

    def test_tax_config_bounds(self):
        with pytest.raises(ValidationError):
            TaxConfig(simple_rate=Decimal("120"))
        with pytest.raises(ValidationError):
            TaxConfig(dependents=-1)

    def test_plan_is_empty(self):
        assert ReconciliationPlan().is_empty
        assert not ReconciliationPlan(to_delete=[uuid4()]).is_empty

    def test_frequency_values(self):
        assert [f.value for f in Frequency] == ["weekly", "monthly", "yearly"]

    def test_match_confidence_values(self):
        """Suggestions are either a keyword match or nothing."""
        assert [c.value for c in MatchConfidence] == ["high", "low"]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test transaction created",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SERIES_CREATED,
            description="Series created",
            details={"name": "Rent", "count": 12},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "series_created"
        assert log_dict["details"]["name"] == "Rent"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.TAX_ESTIMATED,
            description="Tax estimated",
            user_id="user-1",
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "tax_estimated"  # event_type
        assert row[8] == ""  # no details
        assert row[10] == "user-1"  # user_id

    def test_audit_event_builder_series_reconciled(self):
        """Test AuditEventBuilder.series_reconciled."""
        correlation_id = uuid4()
        recurring_id = uuid4()

        event = AuditEventBuilder.series_reconciled(
            recurring_id=recurring_id,
            new_end_date="2025-06-01",
            deleted=2,
            added=3,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.SERIES_RECONCILED
        assert event.entity_id == str(recurring_id)
        assert event.correlation_id == correlation_id
        assert event.details == {"new_end_date": "2025-06-01", "deleted": 2, "added": 3}

    def test_audit_event_builder_category_changed(self):
        """Test AuditEventBuilder.category_changed."""
        event = AuditEventBuilder.category_changed(
            event_type=AuditEventType.CATEGORY_DELETED,
            category_id="cat-1",
            name="Travel",
        )

        assert event.entity_type == "category"
        assert event.description == "Category deleted: Travel"

    def test_system_error_severity(self):
        event = AuditEventBuilder.system_error("StorageError", "sheet unavailable")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "sheet unavailable"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="notes",
                    issue_type="truncated",
                    message="Notes truncated",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_validation_issue_severity_pattern(self):
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
