"""Reporting package: period summaries and CSV export."""

from pnl_tracker.reports.export import EXPORT_HEADER, export_csv
from pnl_tracker.reports.summary import (
    CategoryTotal,
    MonthTotal,
    PeriodSummary,
    summarize_period,
)

__all__ = [
    "CategoryTotal",
    "EXPORT_HEADER",
    "MonthTotal",
    "PeriodSummary",
    "export_csv",
    "summarize_period",
]
