"""
Core Data Models for P&L Tracker

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep money as exact Decimal values (2 decimal places)
3. Be serializable for storage, logging and JSON interchange
4. Support the audit trail

DESIGN DECISION: Dates are calendar dates with no time component.
Series arithmetic and "before/after today" comparisons are all date-only.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CENTS = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """
    Round a money value to 2 decimal places (half-up).

    Raises:
        ValueError: the value is not finite or has too many digits to
            hold at cent precision
    """
    try:
        return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Amount cannot be rounded to cents: {value}") from e


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """Step size of a recurring series."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TaxMode(str, Enum):
    """
    Tax estimation mode.

    SIMPLE applies one flat rate to cash profit.
    SMART models self-employment, federal brackets, state tax and credits.
    """
    SIMPLE = "simple"
    SMART = "smart"


class FilingStatus(str, Enum):
    """Filing statuses supported by the smart estimator."""
    SINGLE = "single"
    MARRIED_JOINT = "married_joint"


class SeriesStatus(str, Enum):
    """Whether a recurring series still has instances today or later."""
    ACTIVE = "active"
    ENDED = "ended"


class MatchConfidence(str, Enum):
    """
    Confidence of an automatic category suggestion.

    HIGH: a vendor keyword matched. LOW: nothing matched.
    """
    HIGH = "high"
    LOW = "low"


class AccuracyLevel(str, Enum):
    """
    How far a tax estimate can be trusted.

    Uncategorised transactions are treated as fully deductible, so every
    one of them may overstate deductions.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# LEDGER MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A transaction without identity.

    Used as the template for a recurring series, as the output of the
    series projector and of the importers, and as the insert payload
    handed to storage.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Payee / description"
    )
    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount in USD"
    )
    category_id: Optional[str] = None
    notes: str = Field(
        default="",
        max_length=500
    )
    recurring_id: Optional[UUID] = Field(
        default=None,
        description="Groups the instances of one recurring series"
    )

    @field_validator('amount')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_cents(v)

    @field_validator('notes', mode='before')
    @classmethod
    def none_notes_to_empty(cls, v):
        return "" if v is None else v


class Transaction(TransactionDraft):
    """
    A persisted ledger entry.

    `id` is assigned once and never changes. `user_id` is the owner
    reference supplied by the authentication provider.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: Optional[str] = None

    @classmethod
    def from_draft(
        cls,
        draft: TransactionDraft,
        user_id: Optional[str] = None,
    ) -> "Transaction":
        return cls(**draft.model_dump(exclude={"id", "user_id"}), user_id=user_id)

    def to_draft(self) -> TransactionDraft:
        return TransactionDraft(**self.model_dump(exclude={"id", "user_id"}))


class Category(BaseModel):
    """
    A user-defined income or expense category.

    Only expense categories carry a deductibility percentage; `None`
    means fully deductible.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    deductibility_percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Share of the amount treated as deductible (0-100)"
    )


class TaxConfig(BaseModel):
    """
    Filing configuration for the tax estimator.

    Spouse figures are only used for MARRIED_JOINT filers.
    """

    mode: TaxMode = TaxMode.SMART
    simple_rate: Decimal = Field(
        default=Decimal("25"),
        ge=0,
        le=100,
        description="Flat rate (percent) used in simple mode"
    )
    filing_status: FilingStatus = FilingStatus.SINGLE
    dependents: int = Field(default=2, ge=0)
    spouse_gross_income: Decimal = Field(default=Decimal("0"), ge=0)
    spouse_federal_withholding: Decimal = Field(default=Decimal("0"), ge=0)
    spouse_pretax_deduction_percent: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        le=100,
        description="Spouse 401k/HSA style pre-tax deductions (percent of gross)"
    )


class TaxResult(BaseModel):
    """
    Output of the tax estimator.

    All money fields are rounded to cents. `total_tax` may be negative,
    which signals an estimated refund.
    """

    tax_year: int
    mode: TaxMode

    # Business figures
    gross_income: Decimal
    total_expenses: Decimal
    deductible_expenses: Decimal
    net_profit: Decimal
    taxable_net_profit: Decimal

    # Household figures
    federal_taxable_income: Decimal
    se_tax: Decimal
    state_tax: Decimal
    federal_tax: Decimal
    credits: Decimal

    total_tax: Decimal
    total_tax_before_withholding: Decimal
    spouse_withholding: Decimal
    spouse_gross_income: Decimal
    spouse_taxable_income: Decimal

    effective_rate: Decimal = Field(
        ...,
        description="Total tax as a percentage of the income base"
    )

    @property
    def is_refund(self) -> bool:
        return self.total_tax < 0


class QuarterlyEstimate(BaseModel):
    """
    One estimated-payment period of a tax year.

    The IRS periods are uneven: Q2 covers two months and Q4 four, and
    the Q4 payment falls due in January of the following year.
    """

    quarter: str = Field(..., pattern="^Q[1-4]$")
    period_start: date
    period_end: date
    due_date: date
    income: Decimal
    expenses: Decimal
    profit: Decimal
    estimated_tax: Decimal = Field(..., ge=0)


class TaxYearPlan(BaseModel):
    """Annual estimate plus the payment schedule and set-aside amounts."""

    annual: TaxResult
    quarters: list[QuarterlyEstimate]
    weekly_cushion: Decimal = Field(..., ge=0, description="Amount to set aside per week")
    monthly_cushion: Decimal = Field(..., ge=0, description="Amount to set aside per month")
    uncategorized_count: int = Field(..., ge=0)
    accuracy: AccuracyLevel


# =============================================================================
# RECURRING SERIES MODELS
# =============================================================================

class ReconciliationPlan(BaseModel):
    """
    Deletion/insertion plan produced when a series end date changes.

    Applying it (atomically, if that matters) is the caller's job.
    """

    recurring_id: Optional[UUID] = None
    to_delete: list[UUID] = Field(default_factory=list)
    to_add: list[TransactionDraft] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_add


class EndSeriesPlan(BaseModel):
    """Deletion plan for "stop subscription": future instances only."""

    recurring_id: Optional[UUID] = None
    to_delete: list[UUID] = Field(default_factory=list)


class SeriesSummary(BaseModel):
    """One row of the subscriptions view."""

    recurring_id: UUID
    name: str
    type: TransactionType
    amount: Decimal
    category_id: Optional[str] = None
    first_date: date
    last_date: date
    next_date: Optional[date] = None
    status: SeriesStatus
    frequency: Frequency
    transaction_count: int = Field(ge=1)
    total_ytd: Decimal


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one raw transaction input."""

    is_valid: bool
    draft: Optional[TransactionDraft] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# IMPORT MODELS
# =============================================================================

class BankStatementLine(BaseModel):
    """A parsed bank statement row with its category suggestion."""

    date: date
    description: str
    amount: Decimal = Field(..., ge=0)
    suggested_category_id: Optional[str] = None
    suggested_type: TransactionType = TransactionType.EXPENSE
    confidence: MatchConfidence = MatchConfidence.LOW


class ImportResult(BaseModel):
    """Outcome of parsing an import file."""

    transactions: list[TransactionDraft] = Field(default_factory=list)
    skipped_rows: int = Field(default=0, ge=0)
    total_rows: int = Field(default=0, ge=0)

    @property
    def imported_count(self) -> int:
        return len(self.transactions)
