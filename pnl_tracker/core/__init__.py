"""
Pure computation core: recurring series planning and tax estimation.

Nothing in this package performs I/O or reads configuration.
"""

from pnl_tracker.core.errors import (
    ConfigurationError,
    InvalidRangeError,
    LedgerError,
)
from pnl_tracker.core.recurring import (
    RecurringSeriesProjector,
    end_series_today,
    project,
    reconcile_end_date,
    step_date,
)
from pnl_tracker.core.tax import (
    TaxEstimator,
    accuracy_level,
    bracket_tax,
    estimate,
    plan_tax_year,
    tax_cushions,
)
from pnl_tracker.core.tax_tables import (
    TAX_TABLES,
    TaxBracket,
    TaxTable,
    get_tax_table,
)

__all__ = [
    # Errors
    "ConfigurationError",
    "InvalidRangeError",
    "LedgerError",
    # Recurring series
    "RecurringSeriesProjector",
    "end_series_today",
    "project",
    "reconcile_end_date",
    "step_date",
    # Tax
    "TAX_TABLES",
    "TaxBracket",
    "TaxEstimator",
    "TaxTable",
    "accuracy_level",
    "bracket_tax",
    "estimate",
    "get_tax_table",
    "plan_tax_year",
    "tax_cushions",
]
