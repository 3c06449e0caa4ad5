"""
Versioned Tax Tables

Bracket boundaries, standard deductions and flat rates change every year,
so they live here as data keyed by tax year rather than inside the
estimator's arithmetic.

CRITICAL: These tables are the ONLY source of figures for tax
calculations. To support a new year, add a TaxTable to TAX_TABLES.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from pnl_tracker.core.errors import ConfigurationError
from pnl_tracker.models.ledger import FilingStatus


class TaxBracket(BaseModel):
    """
    One marginal bracket.

    `upper_limit` is inclusive; None marks the open-ended top bracket.
    """

    upper_limit: Optional[Decimal] = Field(default=None, gt=0)
    rate: Decimal = Field(..., ge=0, le=1)


class TaxTable(BaseModel):
    """All figures the smart estimator needs for one tax year."""

    year: int
    standard_deduction: dict[FilingStatus, Decimal]
    brackets: dict[FilingStatus, list[TaxBracket]]

    # Self-employment: share of profit subject to SE tax, combined SS/Medicare rate
    se_taxable_share: Decimal = Decimal("0.9235")
    se_rate: Decimal = Decimal("0.153")
    se_deduction_share: Decimal = Decimal("0.5")

    state_rate: Decimal = Field(
        default=Decimal("0.0307"),
        description="Flat state income tax rate (Pennsylvania)"
    )
    per_child_credit: Decimal = Decimal("2000")

    @model_validator(mode='after')
    def validate_brackets(self) -> 'TaxTable':
        """Brackets must ascend strictly and end with an open-ended bracket."""
        for status, brackets in self.brackets.items():
            if not brackets:
                raise ValueError(f"No brackets defined for {status.value}")
            limits = [b.upper_limit for b in brackets[:-1]]
            if any(limit is None for limit in limits):
                raise ValueError(f"Only the last {status.value} bracket may be open-ended")
            if any(a >= b for a, b in zip(limits, limits[1:])):
                raise ValueError(f"{status.value} bracket limits must ascend strictly")
            if brackets[-1].upper_limit is not None:
                raise ValueError(f"Last {status.value} bracket must be open-ended")
        return self

    def brackets_for(self, status: FilingStatus) -> list[TaxBracket]:
        try:
            return self.brackets[status]
        except KeyError:
            raise ConfigurationError(
                f"Tax table {self.year} has no brackets for {status.value}"
            ) from None

    def standard_deduction_for(self, status: FilingStatus) -> Decimal:
        try:
            return self.standard_deduction[status]
        except KeyError:
            raise ConfigurationError(
                f"Tax table {self.year} has no standard deduction for {status.value}"
            ) from None


def _brackets(*pairs: tuple[Optional[str], str]) -> list[TaxBracket]:
    return [
        TaxBracket(
            upper_limit=Decimal(limit) if limit is not None else None,
            rate=Decimal(rate),
        )
        for limit, rate in pairs
    ]


# =============================================================================
# 2025 (projected figures)
# =============================================================================

TAX_TABLE_2025 = TaxTable(
    year=2025,
    standard_deduction={
        FilingStatus.SINGLE: Decimal("14600"),
        FilingStatus.MARRIED_JOINT: Decimal("29200"),
    },
    brackets={
        FilingStatus.SINGLE: _brackets(
            ("11925", "0.10"),
            ("48475", "0.12"),
            ("103350", "0.22"),
            ("197300", "0.24"),
            ("250525", "0.32"),
            ("626350", "0.35"),
            (None, "0.37"),
        ),
        FilingStatus.MARRIED_JOINT: _brackets(
            ("23850", "0.10"),
            ("96950", "0.12"),
            ("206700", "0.22"),
            ("394600", "0.24"),
            ("501050", "0.32"),
            ("751600", "0.35"),
            (None, "0.37"),
        ),
    },
)


TAX_TABLES: dict[int, TaxTable] = {
    TAX_TABLE_2025.year: TAX_TABLE_2025,
}


def get_tax_table(year: int) -> TaxTable:
    """
    Table for `year`, falling back to the newest table not after it.

    Raises:
        ConfigurationError: no table exists for that year or any earlier one
    """
    candidates = [y for y in TAX_TABLES if y <= year]
    if not candidates:
        raise ConfigurationError(
            f"No tax table available for {year} "
            f"(known years: {', '.join(str(y) for y in sorted(TAX_TABLES))})"
        )
    return TAX_TABLES[max(candidates)]
