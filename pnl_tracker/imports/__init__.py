"""Transaction import package: generic CSV, bank statements, default categories."""

from pnl_tracker.imports.bank_statement import (
    match_vendor_to_category,
    parse_bank_date,
    parse_bank_statement_csv,
    statement_lines_to_drafts,
)
from pnl_tracker.imports.csv_import import (
    ColumnMapping,
    CsvImporter,
    ImportFileError,
    TypeMode,
    detect_columns,
    parse_import_amount,
    parse_import_date,
    read_csv,
)
from pnl_tracker.imports.keywords import (
    SEED_CATEGORIES,
    VENDOR_CATEGORY_KEYWORDS,
    seed_categories,
)

__all__ = [
    # Generic CSV
    "ColumnMapping",
    "CsvImporter",
    "ImportFileError",
    "TypeMode",
    "detect_columns",
    "parse_import_amount",
    "parse_import_date",
    "read_csv",
    # Bank statements
    "match_vendor_to_category",
    "parse_bank_date",
    "parse_bank_statement_csv",
    "statement_lines_to_drafts",
    # Defaults
    "SEED_CATEGORIES",
    "VENDOR_CATEGORY_KEYWORDS",
    "seed_categories",
]
