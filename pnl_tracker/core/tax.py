"""
Tax Estimation

Computes an estimated liability (or refund) from a set of transactions,
the category deductibility table and a filing configuration.

Two modes:
- SIMPLE: one flat rate on cash profit.
- SMART: US self-employment approximation. SE tax on the business
  profit, half of it deducted above the line, standard deduction,
  progressive federal brackets on household income, flat state tax on
  the business profit, a per-dependent credit, and spouse withholding.

All arithmetic is done in Decimal; results are rounded to cents once,
at the end.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from pnl_tracker.core.errors import ConfigurationError, coerce_choice
from pnl_tracker.core.tax_tables import TAX_TABLES, TaxBracket, TaxTable, get_tax_table
from pnl_tracker.models.ledger import (
    AccuracyLevel,
    Category,
    FilingStatus,
    QuarterlyEstimate,
    TaxConfig,
    TaxMode,
    TaxResult,
    TaxYearPlan,
    TransactionDraft,
    TransactionType,
    to_cents,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WEEKS_PER_YEAR = Decimal("52")
MONTHS_PER_YEAR = Decimal("12")

# IRS estimated-payment periods of a tax year:
# (quarter, first month, last month, due month, due in the following year)
ESTIMATED_TAX_PERIODS = [
    ("Q1", 1, 3, 4, False),
    ("Q2", 4, 5, 6, False),
    ("Q3", 6, 8, 9, False),
    ("Q4", 9, 12, 1, True),
]
ESTIMATED_TAX_DUE_DAY = 15

# From this many uncategorised transactions on, accuracy is LOW
LOW_ACCURACY_THRESHOLD = 5


def bracket_tax(income: Decimal, brackets: list[TaxBracket]) -> Decimal:
    """
    Progressive tax on `income`.

    Each bracket taxes the part of the income that falls within
    (previous limit, upper limit] at its own rate.
    """
    tax = ZERO
    previous = ZERO
    for bracket in brackets:
        if income <= previous:
            break
        if bracket.upper_limit is None:
            tax += (income - previous) * bracket.rate
            break
        tax += (min(income, bracket.upper_limit) - previous) * bracket.rate
        previous = bracket.upper_limit
    return tax

def _coerce_config(config: Union[TaxConfig, Mapping]) -> TaxConfig:
    if isinstance(config, Mapping):
        try:
            return TaxConfig.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tax configuration: {e}") from e
    # Instances built with model_construct skip validation
    return config.model_copy(update={
        "mode": coerce_choice(TaxMode, config.mode, "tax mode"),
        "filing_status": coerce_choice(FilingStatus, config.filing_status, "filing status"),
    })

def _deductibility_table(categories: Iterable[Category]) -> dict[str, Decimal]:
    table = {}
    for category in categories:
        pct = category.deductibility_percentage
        if pct is None:
            continue
        pct = Decimal(pct)
        if not pct.is_finite() or pct < 0 or pct > HUNDRED:
            raise ConfigurationError(
                f"Category {category.name!r} has deductibility {pct}, expected 0-100"
            )
        table[category.id] = pct
    return table

class TaxEstimator:
    """
    Estimates tax for one ledger and filing configuration.

    The estimator is bound to a TaxTable (a tax year); it is otherwise
    stateless.
    """

    def __init__(self, table: Optional[TaxTable] = None, tax_year: Optional[int] = None):
        if table is None:
            table = get_tax_table(tax_year or max(TAX_TABLES))
        self.table = table

    def estimate(
        self,
        transactions: Iterable[TransactionDraft],
        categories: Iterable[Category],
        config: Union[TaxConfig, Mapping],
    ) -> TaxResult:
        """
        Compute the tax estimate.

        Raises:
            ConfigurationError: unknown mode or filing status, or a
                category deductibility outside 0-100
        """
        config = _coerce_config(config)
        deductibility = _deductibility_table(categories)

        gross_income = ZERO
        total_expenses = ZERO
        deductible_expenses = ZERO

        for tx in transactions:
            if tx.type == TransactionType.INCOME:
                gross_income += tx.amount
            else:
                total_expenses += tx.amount
                # Uncategorized or unknown category: fully deductible
                pct = deductibility.get(tx.category_id, HUNDRED)
                deductible_expenses += tx.amount * pct / HUNDRED

        net_profit = gross_income - total_expenses
        taxable_net_profit = max(ZERO, gross_income - deductible_expenses)

        if config.mode == TaxMode.SIMPLE:
            return self._simple(config, gross_income, total_expenses, net_profit)

        return self._smart(
            config,
            gross_income,
            total_expenses,
            deductible_expenses,
            net_profit,
            taxable_net_profit,
        )

    def _simple(
        self,
        config: TaxConfig,
        gross_income: Decimal,
        total_expenses: Decimal,
        net_profit: Decimal,
    ) -> TaxResult:
        total_tax = max(ZERO, net_profit * Decimal(config.simple_rate) / HUNDRED)
        effective_rate = total_tax / net_profit * HUNDRED if net_profit > 0 else ZERO

        return TaxResult(
            tax_year=self.table.year,
            mode=TaxMode.SIMPLE,
            gross_income=to_cents(gross_income),
            total_expenses=to_cents(total_expenses),
            # Simple mode ignores deductibility
            deductible_expenses=to_cents(total_expenses),
            net_profit=to_cents(net_profit),
            taxable_net_profit=to_cents(net_profit),
            federal_taxable_income=to_cents(net_profit),
            se_tax=ZERO,
            state_tax=ZERO,
            federal_tax=to_cents(total_tax),
            credits=ZERO,
            total_tax=to_cents(total_tax),
            total_tax_before_withholding=to_cents(total_tax),
            spouse_withholding=ZERO,
            spouse_gross_income=ZERO,
            spouse_taxable_income=ZERO,
            effective_rate=to_cents(effective_rate),
        )

    def _smart(
        self,
        config: TaxConfig,
        gross_income: Decimal,
        total_expenses: Decimal,
        deductible_expenses: Decimal,
        net_profit: Decimal,
        taxable_net_profit: Decimal,
    ) -> TaxResult:
        table = self.table
        status = config.filing_status
        joint = status == FilingStatus.MARRIED_JOINT

        if joint:
            spouse_gross = Decimal(config.spouse_gross_income)
            spouse_pretax = spouse_gross * Decimal(config.spouse_pretax_deduction_percent) / HUNDRED
            spouse_taxable = max(ZERO, spouse_gross - spouse_pretax)
            spouse_withholding = Decimal(config.spouse_federal_withholding)
        else:
            spouse_gross = spouse_taxable = spouse_withholding = ZERO

        se_tax = taxable_net_profit * table.se_taxable_share * table.se_rate
        se_tax_deduction = se_tax * table.se_deduction_share
        standard_deduction = table.standard_deduction_for(status)

        federal_taxable_income = max(
            ZERO,
            taxable_net_profit + spouse_taxable - se_tax_deduction - standard_deduction,
        )
        federal_tax = bracket_tax(federal_taxable_income, table.brackets_for(status))

        # State tax applies to the business profit only
        state_tax = taxable_net_profit * table.state_rate

        credits = config.dependents * table.per_child_credit
        federal_tax_after_credits = max(ZERO, federal_tax - credits)

        total_before_withholding = se_tax + federal_tax_after_credits + state_tax
        total_tax = total_before_withholding - spouse_withholding

        income_base = taxable_net_profit + spouse_gross
        effective_rate = total_tax / income_base * HUNDRED if income_base > 0 else ZERO

        return TaxResult(
            tax_year=table.year,
            mode=TaxMode.SMART,
            gross_income=to_cents(gross_income),
            total_expenses=to_cents(total_expenses),
            deductible_expenses=to_cents(deductible_expenses),
            net_profit=to_cents(net_profit),
            taxable_net_profit=to_cents(taxable_net_profit),
            federal_taxable_income=to_cents(federal_taxable_income),
            se_tax=to_cents(se_tax),
            state_tax=to_cents(state_tax),
            federal_tax=to_cents(federal_tax),
            credits=to_cents(credits),
            total_tax=to_cents(total_tax),
            total_tax_before_withholding=to_cents(total_before_withholding),
            spouse_withholding=to_cents(spouse_withholding),
            spouse_gross_income=to_cents(spouse_gross),
            spouse_taxable_income=to_cents(spouse_taxable),
            effective_rate=to_cents(effective_rate),
        )

    def quarterly_estimates(
        self,
        transactions: Iterable[TransactionDraft],
        categories: Iterable[Category],
        config: Union[TaxConfig, Mapping],
        year: Optional[int] = None,
        annual: Optional[TaxResult] = None,
    ) -> list[QuarterlyEstimate]:
        """
        Estimated payment for each IRS period of `year`.

        SMART: the period's taxable profit at the annual effective rate.
        SIMPLE: the flat-rate tax of the period on its own.
        Every payment is zero when the annual result is a refund.

        `annual` is the full-year estimate; it is computed from the
        transactions dated in `year` when not given.
        """
        config = _coerce_config(config)
        categories = list(categories)
        year = year or self.table.year
        in_year = [t for t in transactions if t.date.year == year]
        if annual is None:
            annual = self.estimate(in_year, categories, config)

        quarters = []
        for quarter, first_month, last_month, due_month, next_year in ESTIMATED_TAX_PERIODS:
            start = date(year, first_month, 1)
            end = date(year, last_month, 1) + relativedelta(day=31)
            period = self.estimate(
                [t for t in in_year if start <= t.date <= end], categories, config
            )

            if annual.is_refund:
                payment = ZERO
            elif config.mode == TaxMode.SIMPLE:
                payment = period.total_tax
            elif period.taxable_net_profit > 0:
                payment = to_cents(period.taxable_net_profit * annual.effective_rate / HUNDRED)
            else:
                payment = ZERO

            quarters.append(QuarterlyEstimate(
                quarter=quarter,
                period_start=start,
                period_end=end,
                due_date=date(year + 1 if next_year else year, due_month, ESTIMATED_TAX_DUE_DAY),
                income=period.gross_income,
                expenses=period.total_expenses,
                profit=period.net_profit,
                estimated_tax=payment,
            ))
        return quarters

    def plan_year(
        self,
        transactions: Iterable[TransactionDraft],
        categories: Iterable[Category],
        config: Union[TaxConfig, Mapping],
        year: Optional[int] = None,
    ) -> TaxYearPlan:
        """
        Annual estimate, quarterly payments, set-aside cushions and an
        accuracy rating for one calendar year.

        Transactions outside `year` are ignored.
        """
        config = _coerce_config(config)
        categories = list(categories)
        year = year or self.table.year
        in_year = [t for t in transactions if t.date.year == year]

        annual = self.estimate(in_year, categories, config)
        quarters = self.quarterly_estimates(in_year, categories, config, year, annual=annual)
        weekly, monthly = tax_cushions(annual.total_tax)
        uncategorized = sum(1 for t in in_year if not t.category_id)

        return TaxYearPlan(
            annual=annual,
            quarters=quarters,
            weekly_cushion=weekly,
            monthly_cushion=monthly,
            uncategorized_count=uncategorized,
            accuracy=accuracy_level(uncategorized),
        )


def tax_cushions(total_tax: Decimal) -> tuple[Decimal, Decimal]:
    """(weekly, monthly) amounts to set aside for `total_tax`; zero for a refund."""
    owed = max(ZERO, Decimal(total_tax))
    return to_cents(owed / WEEKS_PER_YEAR), to_cents(owed / MONTHS_PER_YEAR)


def accuracy_level(uncategorized_count: int) -> AccuracyLevel:
    if uncategorized_count == 0:
        return AccuracyLevel.HIGH
    if uncategorized_count < LOW_ACCURACY_THRESHOLD:
        return AccuracyLevel.MEDIUM
    return AccuracyLevel.LOW


def estimate(
    transactions: Iterable[TransactionDraft],
    categories: Iterable[Category],
    config: Union[TaxConfig, Mapping],
    *,
    table: Optional[TaxTable] = None,
) -> TaxResult:
    """Module-level shortcut for TaxEstimator(table).estimate."""
    return TaxEstimator(table).estimate(transactions, categories, config)


def plan_tax_year(
    transactions: Iterable[TransactionDraft],
    categories: Iterable[Category],
    config: Union[TaxConfig, Mapping],
    year: int,
    *,
    table: Optional[TaxTable] = None,
) -> TaxYearPlan:
    """Module-level shortcut for TaxEstimator.plan_year with the table for `year`."""
    return TaxEstimator(table, tax_year=year).plan_year(transactions, categories, config, year)
