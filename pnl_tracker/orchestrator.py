"""
Main Orchestrator for P&L Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (validate → save, CSV and bank statement imports)
2. Recurring series (project → bulk insert, end-date changes, stop subscription)
3. Categories (default set seeded for new users)
4. Tax estimates (load the year's ledger → estimate, quarterly payment plan)
5. Reports (period summary, CSV export)

DESIGN DECISION: The orchestrator is the only place where the pure core
meets storage:
- The core plans (instances to insert, ids to delete, tax figures)
- The flows apply those plans through the storage interfaces
- Every mutation is audited

Configuration is read here and handed to the core as explicit values.
"""

from datetime import date
from typing import Any, Mapping, NamedTuple, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from pnl_tracker.audit import AuditLogger, create_correlation_id
from pnl_tracker.config import get_settings
from pnl_tracker.core import RecurringSeriesProjector, TaxEstimator
from pnl_tracker.imports import (
    ColumnMapping,
    CsvImporter,
    TypeMode,
    parse_bank_statement_csv,
    seed_categories,
    statement_lines_to_drafts,
)
from pnl_tracker.models.audit import AuditEventType
from pnl_tracker.models.ledger import (
    BankStatementLine,
    Category,
    EndSeriesPlan,
    Frequency,
    ImportResult,
    ReconciliationPlan,
    SeriesSummary,
    TaxConfig,
    TaxResult,
    TaxYearPlan,
    Transaction,
    TransactionDraft,
    ValidationResult,
)
from pnl_tracker.reports import PeriodSummary, export_csv, summarize_period
from pnl_tracker.services.storage import (
    CategoryStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from pnl_tracker.validation import TransactionValidator, validate_category


# Fields that may be changed on every instance of a series at once
SERIES_EDITABLE_FIELDS = frozenset({"name", "type", "amount", "category_id", "notes"})

# Fields that may be changed on a single transaction
TRANSACTION_EDITABLE_FIELDS = SERIES_EDITABLE_FIELDS | {"date"}

logger = structlog.get_logger(__name__)


async def load_all_transactions(
    storage: TransactionStorageInterface,
    user_id: Optional[str],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    recurring_id: Optional[UUID] = None,
    page_size: Optional[int] = None,
) -> list[Transaction]:
    """
    Read every matching transaction, one storage page at a time.

    Storage never returns more than `page_size` rows per call, so a large
    ledger is fetched in several pages.
    """
    page_size = page_size or get_settings().app.page_size
    transactions: list[Transaction] = []
    offset = 0
    while True:
        page = await storage.list_transactions(
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            recurring_id=recurring_id,
            limit=page_size,
            offset=offset,
        )
        transactions.extend(page)
        if len(page) < page_size:
            return transactions
        offset += page_size


def _check_fields(updates: Mapping[str, Any], allowed: frozenset) -> None:
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise ValueError(
            f"Fields cannot be updated: {', '.join(unknown)} "
            f"(allowed: {', '.join(sorted(allowed))})"
        )


class TransactionFlow:
    """
    Orchestrates single-transaction changes and imports.

    Flow for a manual entry:
    1. Validate → sanitise raw input into a draft (or report issues)
    2. Save → persist with a fresh id
    3. Audit
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        importer: Optional[CsvImporter] = None,
    ):
        settings = get_settings().app
        self._storage = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or TransactionValidator()
        self._importer = importer or CsvImporter(
            max_rows=settings.max_import_rows,
            max_name_length=settings.max_name_length,
        )

    async def add_transaction(
        self,
        raw: Union[Mapping[str, Any], TransactionDraft],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Transaction], ValidationResult]:
        """
        Validate and save one transaction.

        Returns:
            (saved_transaction, validation_result)

        The transaction is None when validation found errors; nothing is
        saved in that case.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(raw)
        if not result.is_valid:
            return None, result

        transaction = Transaction.from_draft(result.draft, user_id)
        await self._storage.save_transaction(transaction)

        await self._audit_logger.log_transaction_created(
            transaction_id=transaction.id,
            name=transaction.name,
            amount=str(transaction.amount),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return transaction, result

    async def update_transaction(
        self,
        transaction_id: UUID,
        updates: Mapping[str, Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Change fields of a single transaction.

        Editing one instance of a series leaves the rest of the series
        untouched.

        Raises:
            NotFoundError: no such transaction for this user
            ValueError: an update names a field that cannot be changed, or
                a changed value is unusable
        """
        correlation_id = correlation_id or create_correlation_id()
        _check_fields(updates, TRANSACTION_EDITABLE_FIELDS)
        updates = self._validator.sanitize_updates(updates)

        existing = await self._get_owned(transaction_id, user_id)
        updated = Transaction.model_validate({**existing.model_dump(), **updates})
        await self._storage.update_transaction(updated)

        await self._audit_logger.log_transaction_updated(
            transaction_id=transaction_id,
            fields=sorted(updates),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return updated

    async def delete_transaction(
        self,
        transaction_id: UUID,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a single transaction (one instance only, for series).

        Raises:
            NotFoundError: no such transaction for this user
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._get_owned(transaction_id, user_id)

        removed = await self._storage.delete_transactions([transaction_id])

        await self._audit_logger.log_transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return removed > 0

    async def list_transactions(
        self,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """Every transaction in the range, newest first."""
        return await load_all_transactions(self._storage, user_id, date_from, date_to)

    async def import_csv(
        self,
        text: str,
        user_id: Optional[str] = None,
        type_mode: TypeMode = TypeMode.ALL_INCOME,
        columns: Optional[ColumnMapping] = None,
        default_category_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ImportResult, list[Transaction]]:
        """
        Parse a generic CSV export and bulk-insert the valid rows.

        Raises:
            ImportFileError: unreadable file or too many rows
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._importer.parse(
            text,
            columns=columns,
            type_mode=type_mode,
            default_category_id=default_category_id,
        )
        saved = await self._save_drafts(result.transactions, user_id, correlation_id)

        await self._audit_logger.log_transactions_imported(
            source="csv",
            imported=len(saved),
            skipped=result.skipped_rows,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return result, saved

    def preview_bank_statement(
        self,
        text: str,
        year: int,
        categories: list[Category],
    ) -> list[BankStatementLine]:
        """
        Parse a statement for review. Nothing is saved.

        The owner may change suggested categories before calling
        import_bank_statement with the reviewed lines.
        """
        return parse_bank_statement_csv(text, year, categories)

    async def import_bank_statement(
        self,
        lines: list[BankStatementLine],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """Bulk-insert reviewed bank statement lines as expenses."""
        correlation_id = correlation_id or create_correlation_id()

        drafts = statement_lines_to_drafts(lines)
        saved = await self._save_drafts(drafts, user_id, correlation_id)

        await self._audit_logger.log_transactions_imported(
            source="bank_statement",
            imported=len(saved),
            skipped=len(lines) - len(drafts),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return saved

    async def _save_drafts(
        self,
        drafts: list[TransactionDraft],
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> list[Transaction]:
        transactions = [Transaction.from_draft(d, user_id) for d in drafts]
        if not transactions:
            return []
        try:
            return await self._storage.save_transactions(transactions)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="bulk_insert_failed",
                error_message=str(e),
                details={"count": len(transactions)},
                correlation_id=correlation_id,
            )
            raise

    async def _get_owned(self, transaction_id: UUID, user_id: Optional[str]) -> Transaction:
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction


class RecurringSeriesFlow:
    """
    Orchestrates recurring series.

    The projector plans; this flow applies the plan. Deletions are applied
    before insertions so a failed insert never leaves duplicate dates.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        projector: Optional[RecurringSeriesProjector] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        settings = get_settings().app
        self._storage = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or TransactionValidator()
        self._projector = projector or RecurringSeriesProjector(
            horizon_years=settings.recurring_horizon_years,
            default_interval_days=settings.default_interval_days,
            min_interval_days=settings.min_interval_days,
        )

    @property
    def projector(self) -> RecurringSeriesProjector:
        return self._projector

    async def create_series(
        self,
        base: TransactionDraft,
        frequency: Union[Frequency, str],
        end_date: date,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Project a new series and insert every instance in one bulk write.

        Raises:
            ConfigurationError: unknown frequency
            InvalidRangeError: end date in the past or beyond the horizon
        """
        correlation_id = correlation_id or create_correlation_id()

        drafts = self._projector.project(base, frequency, end_date, today=today)
        if not drafts:
            return []

        transactions = [Transaction.from_draft(d, user_id) for d in drafts]
        await self._storage.save_transactions(transactions)

        await self._audit_logger.log_series_created(
            recurring_id=transactions[0].recurring_id,
            name=base.name,
            frequency=Frequency(frequency).value,
            count=len(transactions),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return transactions

    async def get_series(
        self,
        recurring_id: UUID,
        user_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        All instances of a series, oldest first.

        Raises:
            NotFoundError: the series has no instances for this user
        """
        series = await load_all_transactions(
            self._storage, user_id, recurring_id=recurring_id
        )
        if not series:
            raise NotFoundError(f"Recurring series not found: {recurring_id}")
        series.sort(key=lambda t: t.date)
        return series

    async def update_series(
        self,
        recurring_id: UUID,
        updates: Mapping[str, Any],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Apply the same field changes to every instance of a series.

        Dates cannot be changed this way; use change_end_date.

        Raises:
            NotFoundError: the series has no instances for this user
            ValueError: an update names a field that cannot be changed, or
                a changed value is unusable
        """
        correlation_id = correlation_id or create_correlation_id()
        _check_fields(updates, SERIES_EDITABLE_FIELDS)
        updates = self._validator.sanitize_updates(updates)

        await self.get_series(recurring_id, user_id)
        updated = await self._storage.update_series(user_id, recurring_id, dict(updates))

        await self._audit_logger.log_series_updated(
            recurring_id=recurring_id,
            fields=sorted(updates),
            updated=len(updated),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return updated

    async def change_end_date(
        self,
        recurring_id: UUID,
        new_end_date: date,
        user_id: Optional[str] = None,
        frequency: Union[Frequency, str, None] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReconciliationPlan:
        """
        Move a series to a new end date.

        Instances after the new end date are deleted; missing instances up
        to it are inserted.

        Raises:
            NotFoundError: the series has no instances for this user
            InvalidRangeError: new end date beyond the horizon
        """
        correlation_id = correlation_id or create_correlation_id()

        series = await self.get_series(recurring_id, user_id)
        plan = self._projector.reconcile_end_date(
            series, new_end_date, frequency=frequency, today=today
        )
        await self._apply_plan(plan, user_id, correlation_id)

        await self._audit_logger.log_series_reconciled(
            recurring_id=recurring_id,
            new_end_date=new_end_date.isoformat(),
            deleted=len(plan.to_delete),
            added=len(plan.to_add),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return plan

    async def end_subscription(
        self,
        recurring_id: UUID,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> EndSeriesPlan:
        """
        Stop a subscription: delete every instance after today.

        Raises:
            NotFoundError: the series has no instances for this user
        """
        correlation_id = correlation_id or create_correlation_id()

        series = await self.get_series(recurring_id, user_id)
        plan = self._projector.end_series_today(series, today)
        if plan.to_delete:
            await self._storage.delete_transactions(plan.to_delete)

        await self._audit_logger.log_series_ended(
            recurring_id=recurring_id,
            deleted=len(plan.to_delete),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return plan

    async def delete_series(
        self,
        recurring_id: UUID,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Delete every instance, past and future. Returns the number removed."""
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._storage.delete_series(user_id, recurring_id)

        await self._audit_logger.log_series_deleted(
            recurring_id=recurring_id,
            deleted=deleted,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return deleted

    async def list_series(
        self,
        user_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[SeriesSummary]:
        """Subscriptions view: one summary per series, active first."""
        transactions = await load_all_transactions(self._storage, user_id)
        return self._projector.summarize_all(transactions, today)

    async def _apply_plan(
        self,
        plan: ReconciliationPlan,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        try:
            if plan.to_delete:
                await self._storage.delete_transactions(plan.to_delete)
            if plan.to_add:
                await self._storage.save_transactions(
                    [Transaction.from_draft(d, user_id) for d in plan.to_add]
                )
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="series_reconcile_failed",
                error_message=str(e),
                details={
                    "recurring_id": str(plan.recurring_id),
                    "to_delete": len(plan.to_delete),
                    "to_add": len(plan.to_add),
                },
                correlation_id=correlation_id,
            )
            raise


class CategoryFlow:
    """Orchestrates category management."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = category_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def get_categories(
        self,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Category]:
        """
        The user's categories. A user without any gets the default set,
        which is saved on first access.
        """
        categories = await self._storage.list_categories(user_id)
        if categories:
            return categories

        correlation_id = correlation_id or create_correlation_id()
        defaults = seed_categories(user_id)
        await self._storage.save_categories(defaults)

        await self._audit_logger.log_categories_seeded(
            count=len(defaults),
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return await self._storage.list_categories(user_id)

    async def add_category(
        self,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Save a new category.

        Raises:
            ValueError: empty name, deductibility outside 0-100, or a
                deductibility on an income category
        """
        correlation_id = correlation_id or create_correlation_id()
        category = validate_category(category)
        await self._storage.save_categories([category])
        await self._audit_logger.log_category_changed(
            event_type=AuditEventType.CATEGORY_CREATED,
            category_id=category.id,
            name=category.name,
            user_id=category.user_id,
            correlation_id=correlation_id,
        )
        return category

    async def update_category(
        self,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        correlation_id = correlation_id or create_correlation_id()
        category = validate_category(category)
        await self._storage.update_category(category)
        await self._audit_logger.log_category_changed(
            event_type=AuditEventType.CATEGORY_UPDATED,
            category_id=category.id,
            name=category.name,
            user_id=category.user_id,
            correlation_id=correlation_id,
        )
        return category

    async def delete_category(
        self,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a category. Transactions that used it become uncategorised
        (and therefore fully deductible when they are expenses).
        """
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._storage.delete_category(category.id)
        if deleted:
            await self._audit_logger.log_category_changed(
                event_type=AuditEventType.CATEGORY_DELETED,
                category_id=category.id,
                name=category.name,
                user_id=category.user_id,
                correlation_id=correlation_id,
            )
        return deleted


class TaxFlow:
    """
    Orchestrates tax estimation.

    Loads the whole tax year of transactions (page by page) and the user's
    categories, then runs the estimator bound to that year's table.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transaction_storage
        self._categories = category_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def estimate(
        self,
        config: Union[TaxConfig, Mapping[str, Any]],
        user_id: Optional[str] = None,
        year: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TaxResult:
        """
        Estimate the tax for one calendar year (default: TAX_YEAR setting).

        Raises:
            ConfigurationError: invalid config or category deductibility,
                or no tax table for the year
        """
        correlation_id = correlation_id or create_correlation_id()
        year = year or get_settings().tax.tax_year

        estimator = TaxEstimator(tax_year=year)
        transactions = await load_all_transactions(
            self._transactions,
            user_id,
            date_from=date(year, 1, 1),
            date_to=date(year, 12, 31),
        )
        categories = await self._categories.list_categories(user_id)

        result = estimator.estimate(transactions, categories, config)

        await self._audit_logger.log_tax_estimated(
            mode=result.mode.value,
            total_tax=str(result.total_tax),
            tax_year=year,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return result

    async def plan(
        self,
        config: Union[TaxConfig, Mapping[str, Any]],
        user_id: Optional[str] = None,
        year: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TaxYearPlan:
        """
        Annual estimate plus quarterly estimated payments, weekly and
        monthly set-aside cushions, and an accuracy rating for one
        calendar year (default: TAX_YEAR setting).

        Raises:
            ConfigurationError: invalid config or category deductibility,
                or no tax table for the year
        """
        correlation_id = correlation_id or create_correlation_id()
        year = year or get_settings().tax.tax_year

        estimator = TaxEstimator(tax_year=year)
        transactions = await load_all_transactions(
            self._transactions,
            user_id,
            date_from=date(year, 1, 1),
            date_to=date(year, 12, 31),
        )
        categories = await self._categories.list_categories(user_id)

        plan = estimator.plan_year(transactions, categories, config, year)

        await self._audit_logger.log_tax_estimated(
            mode=plan.annual.mode.value,
            total_tax=str(plan.annual.total_tax),
            tax_year=year,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        logger.info(
            "tax_year_planned",
            tax_year=year,
            accuracy=plan.accuracy.value,
            uncategorized=plan.uncategorized_count,
        )
        return plan


class ReportFlow:
    """Read-only reports over the stored ledger."""

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        category_storage: CategoryStorageInterface,
    ):
        self._transactions = transaction_storage
        self._categories = category_storage

    async def summarize(
        self,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> PeriodSummary:
        transactions = await load_all_transactions(
            self._transactions, user_id, date_from, date_to
        )
        categories = await self._categories.list_categories(user_id)
        return summarize_period(transactions, categories, date_from, date_to)

    async def export(
        self,
        user_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> str:
        """CSV text of the range, newest first."""
        transactions = await load_all_transactions(
            self._transactions, user_id, date_from, date_to
        )
        categories = await self._categories.list_categories(user_id)
        return export_csv(transactions, categories)


class AppComponents(NamedTuple):
    transactions: TransactionFlow
    series: RecurringSeriesFlow
    categories: CategoryFlow
    tax: TaxFlow
    reports: ReportFlow
    sheets_client: Optional[GoogleSheetsClient]


def create_app_components(
    use_sheets: bool = False,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_sheets: Whether to use Google Sheets storage.
                    When False (or when Sheets is not configured) the
                    in-memory backends are used.
    """
    sheets_client = None

    if use_sheets:
        try:
            sheets_client = GoogleSheetsClient()
        except ValidationError as e:
            # Sheets not configured - continue with in-memory storage
            logger.warning("sheets_not_configured", error=str(e))

    if sheets_client is not None:
        transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
        category_storage = GoogleSheetsCategoryStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        transaction_storage = InMemoryTransactionStorage()
        category_storage = InMemoryCategoryStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    return AppComponents(
        transactions=TransactionFlow(transaction_storage, audit_logger),
        series=RecurringSeriesFlow(transaction_storage, audit_logger),
        categories=CategoryFlow(category_storage, audit_logger),
        tax=TaxFlow(transaction_storage, category_storage, audit_logger),
        reports=ReportFlow(transaction_storage, category_storage),
        sheets_client=sheets_client,
    )
