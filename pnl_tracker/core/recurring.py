"""
Recurring Series Projection

Generates and reconciles the dated instances of a repeating transaction.

DESIGN DECISION: Every function here is a pure planner.
Nothing is written to storage; callers receive the instances to insert
and the ids to delete, and apply them however their storage allows.

Month-end rule: instance n of a monthly (or yearly) series is the series
start moved by n calendar months (years), clamped to the last day of the
target month. A series started on Jan 31 runs Jan 31, Feb 28, Mar 31,
Apr 30, ... and never drifts onto the 28th.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta

from pnl_tracker.core.errors import (
    ConfigurationError,
    InvalidRangeError,
    coerce_choice,
)
from pnl_tracker.models.ledger import (
    EndSeriesPlan,
    Frequency,
    ReconciliationPlan,
    SeriesStatus,
    SeriesSummary,
    Transaction,
    TransactionDraft,
    TransactionType,
    to_cents,
)


DEFAULT_HORIZON_YEARS = 10
DEFAULT_INTERVAL_DAYS = 30
MIN_INTERVAL_DAYS = 7

# Fields copied from the last instance when a series is extended
_EXTENSION_FIELDS = ("name", "type", "amount", "category_id", "notes")


def step_date(start: date, steps: int, frequency: Frequency) -> date:
    """Date of instance `steps` of a series starting on `start`."""
    if frequency == Frequency.WEEKLY:
        return start + timedelta(weeks=steps)
    if frequency == Frequency.MONTHLY:
        return start + relativedelta(months=steps)
    if frequency == Frequency.YEARLY:
        return start + relativedelta(years=steps)
    raise ConfigurationError(f"Unrecognized frequency: {frequency!r}")


def _as_date(value: Union[date, datetime]) -> date:
    # datetime is a date subclass; drop the time of day
    if isinstance(value, datetime):
        return value.date()
    return value


def _next_calendar_date(previous: date, frequency: Frequency, anchor_day: int, anchor_month: int) -> date:
    """
    Next instance after `previous` on a calendar cadence.

    The anchor day (and month, for yearly series) is re-applied on every
    step, so a clamped instance (Feb 28) does not pull later ones back.
    """
    if frequency == Frequency.MONTHLY:
        return previous + relativedelta(months=1, day=anchor_day)
    return previous + relativedelta(years=1, month=anchor_month, day=anchor_day)


def _anchor(valid: Sequence[Transaction], frequency: Frequency) -> tuple[int, int]:
    """Preferred (day, month) of a calendar series, recovered from its instances."""
    if frequency == Frequency.YEARLY:
        month = valid[-1].date.month
        day = max(t.date.day for t in valid if t.date.month == month)
        return day, month
    return max(t.date.day for t in valid), valid[-1].date.month


def _detect_calendar_cadence(valid: Sequence[Transaction]) -> Optional[Frequency]:
    """
    Return MONTHLY/YEARLY when the last two instances are exactly one
    calendar step apart, otherwise None (fixed day interval applies).
    """
    if len(valid) < 2:
        return None
    previous, last = valid[-2].date, valid[-1].date
    for frequency in (Frequency.MONTHLY, Frequency.YEARLY):
        day, month = _anchor(valid, frequency)
        if _next_calendar_date(previous, frequency, day, month) == last:
            return frequency
    return None


def _series_recurring_id(series: Sequence[Transaction]) -> Optional[UUID]:
    ids = {t.recurring_id for t in series if t.recurring_id is not None}
    if len(ids) > 1:
        raise ConfigurationError(
            f"Series contains instances from {len(ids)} different recurring ids"
        )
    return ids.pop() if ids else None


class RecurringSeriesProjector:
    """
    Projects, reconciles and summarizes recurring transaction series.

    The projector holds only configuration (horizon and interval rules);
    it has no other state and is safe to share.
    """

    def __init__(
        self,
        horizon_years: int = DEFAULT_HORIZON_YEARS,
        default_interval_days: int = DEFAULT_INTERVAL_DAYS,
        min_interval_days: int = MIN_INTERVAL_DAYS,
    ):
        self.horizon_years = horizon_years
        self.default_interval_days = default_interval_days
        self.min_interval_days = min_interval_days

    def check_end_date(self, end_date: date, today: Optional[date] = None) -> None:
        """
        Reject an end date in the past or beyond the future horizon.

        Raises:
            InvalidRangeError
        """
        today = _as_date(today or date.today())
        if end_date < today:
            raise InvalidRangeError(
                f"End date {end_date.isoformat()} is before today ({today.isoformat()})"
            )
        self._check_horizon(end_date, today)

    def _check_horizon(self, end_date: date, today: date) -> None:
        horizon = today + relativedelta(years=self.horizon_years)
        if end_date > horizon:
            raise InvalidRangeError(
                f"End date {end_date.isoformat()} is more than "
                f"{self.horizon_years} years away (limit {horizon.isoformat()})"
            )

    def project(
        self,
        base: TransactionDraft,
        frequency: Union[Frequency, str],
        end_date: date,
        *,
        today: Optional[date] = None,
    ) -> list[TransactionDraft]:
        """
        Generate every instance of a new series from `base.date` to `end_date`.

        All instances share a freshly generated recurring_id and copy
        every other field of `base`. Returns an empty list when the
        series would start after `end_date`.

        Raises:
            ConfigurationError: unknown frequency
            InvalidRangeError: end date in the past or beyond the horizon
        """
        frequency = coerce_choice(Frequency, frequency, "frequency")
        self.check_end_date(end_date, today)

        start = base.date
        if start > end_date:
            return []

        recurring_id = uuid4()
        template = base.model_dump(exclude={"id", "user_id", "date", "recurring_id"})

        instances = []
        steps = 0
        current = start
        while current <= end_date:
            instances.append(
                TransactionDraft(**template, date=current, recurring_id=recurring_id)
            )
            steps += 1
            current = step_date(start, steps, frequency)

        return instances

    def infer_interval_days(self, valid: Sequence[Transaction]) -> int:
        """Day gap between the last two instances, clamped to the minimum."""
        if len(valid) < 2:
            return self.default_interval_days
        interval = (valid[-1].date - valid[-2].date).days
        return max(interval, self.min_interval_days)

    def reconcile_end_date(
        self,
        series: Iterable[Transaction],
        new_end_date: date,
        *,
        frequency: Union[Frequency, str, None] = None,
        today: Optional[date] = None,
    ) -> ReconciliationPlan:
        """
        Plan the deletions and insertions that move a series to a new end date.

        Instances after the new end date are deleted. The remaining series
        is then extended up to the new end date, copying the last kept
        instance. When `frequency` is given, or the kept instances are
        exactly one calendar month/year apart, extension follows the
        calendar; otherwise it uses the inferred day interval.

        Calling this again after the plan is applied yields an empty plan.
        Shortening and then re-extending a series is not guaranteed to
        reproduce the original dates.

        Raises:
            ConfigurationError: instances from more than one series,
                or an unknown frequency
            InvalidRangeError: new end date beyond the horizon
        """
        if frequency is not None:
            frequency = coerce_choice(Frequency, frequency, "frequency")
        self._check_horizon(new_end_date, _as_date(today or date.today()))

        ordered = sorted(series, key=lambda t: t.date)
        recurring_id = _series_recurring_id(ordered)

        to_delete = [t.id for t in ordered if t.date > new_end_date]
        valid = [t for t in ordered if t.date <= new_end_date]

        plan = ReconciliationPlan(recurring_id=recurring_id, to_delete=to_delete)
        if not valid:
            return plan

        last = valid[-1]
        template = {field: getattr(last, field) for field in _EXTENSION_FIELDS}

        # Extension dates are all strictly after the last kept instance
        for current in self._extension_dates(valid, new_end_date, frequency):
            plan.to_add.append(
                TransactionDraft(**template, date=current, recurring_id=recurring_id)
            )

        return plan

    def _extension_dates(
        self,
        valid: Sequence[Transaction],
        end_date: date,
        frequency: Optional[Frequency],
    ) -> list[date]:
        last = valid[-1].date
        cadence = frequency or _detect_calendar_cadence(valid)

        dates = []
        if cadence in (Frequency.MONTHLY, Frequency.YEARLY):
            day, month = _anchor(valid, cadence)
            current = _next_calendar_date(last, cadence, day, month)
            while current <= end_date:
                dates.append(current)
                current = _next_calendar_date(current, cadence, day, month)
            return dates

        if cadence == Frequency.WEEKLY:
            interval = 7
        else:
            interval = self.infer_interval_days(valid)

        current = last + timedelta(days=interval)
        while current <= end_date:
            dates.append(current)
            current += timedelta(days=interval)
        return dates

    def end_series_today(
        self,
        series: Iterable[Transaction],
        today: Union[date, datetime, None] = None,
    ) -> EndSeriesPlan:
        """
        Plan "stop subscription": delete every instance strictly after today.

        Instances on or before today are kept. Time of day is ignored.
        """
        today = _as_date(today or date.today())
        instances = list(series)
        return EndSeriesPlan(
            recurring_id=_series_recurring_id(instances),
            to_delete=[t.id for t in instances if t.date > today],
        )

    @staticmethod
    def infer_frequency(series: Sequence[Transaction]) -> Frequency:
        """Guess the frequency of a series from the gap between its first two instances."""
        if len(series) < 2:
            return Frequency.MONTHLY
        gap = abs((series[1].date - series[0].date).days)
        if gap >= 360:
            return Frequency.YEARLY
        if gap <= 7:
            return Frequency.WEEKLY
        return Frequency.MONTHLY

    def summarize_series(
        self,
        series: Iterable[Transaction],
        today: Union[date, datetime, None] = None,
    ) -> SeriesSummary:
        """Build the subscriptions-view summary of one series."""
        today = _as_date(today or date.today())
        ordered = sorted(series, key=lambda t: t.date)
        if not ordered:
            raise ConfigurationError("Cannot summarize an empty series")

        recurring_id = _series_recurring_id(ordered)
        if recurring_id is None:
            raise ConfigurationError("Series instances carry no recurring_id")

        first, last = ordered[0], ordered[-1]
        next_tx = next((t for t in ordered if t.date >= today), None)
        total_ytd = sum(
            (t.amount for t in ordered if t.date.year == today.year and t.date <= today),
            Decimal("0"),
        )

        return SeriesSummary(
            recurring_id=recurring_id,
            name=first.name,
            type=first.type,
            amount=first.amount,
            category_id=first.category_id,
            first_date=first.date,
            last_date=last.date,
            next_date=next_tx.date if next_tx else None,
            status=SeriesStatus.ACTIVE if last.date >= today else SeriesStatus.ENDED,
            frequency=self.infer_frequency(ordered),
            transaction_count=len(ordered),
            total_ytd=to_cents(total_ytd),
        )

    def summarize_all(
        self,
        transactions: Iterable[Transaction],
        today: Union[date, datetime, None] = None,
    ) -> list[SeriesSummary]:
        """
        Summaries for every series in a ledger.

        Active series come first, ordered by next payment date.
        """
        groups: dict[UUID, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            if tx.recurring_id is not None:
                groups[tx.recurring_id].append(tx)

        summaries = [self.summarize_series(txs, today) for txs in groups.values()]
        summaries.sort(
            key=lambda s: (
                s.status != SeriesStatus.ACTIVE,
                s.next_date is None,
                s.next_date or date.max,
            )
        )
        return summaries

    @staticmethod
    def monthly_cost(summaries: Iterable[SeriesSummary]) -> Decimal:
        """Estimated monthly spend of all active expense series."""
        total = Decimal("0")
        for summary in summaries:
            if summary.status != SeriesStatus.ACTIVE or summary.type != TransactionType.EXPENSE:
                continue
            if summary.frequency == Frequency.WEEKLY:
                total += summary.amount * 4
            elif summary.frequency == Frequency.YEARLY:
                total += summary.amount / 12
            else:
                total += summary.amount
        return to_cents(total)


_default_projector = RecurringSeriesProjector()


def project(
    base: TransactionDraft,
    frequency: Union[Frequency, str],
    end_date: date,
    *,
    today: Optional[date] = None,
) -> list[TransactionDraft]:
    """Module-level shortcut for RecurringSeriesProjector().project."""
    return _default_projector.project(base, frequency, end_date, today=today)


def reconcile_end_date(
    series: Iterable[Transaction],
    new_end_date: date,
    *,
    frequency: Union[Frequency, str, None] = None,
    today: Optional[date] = None,
) -> ReconciliationPlan:
    """Module-level shortcut for RecurringSeriesProjector().reconcile_end_date."""
    return _default_projector.reconcile_end_date(
        series, new_end_date, frequency=frequency, today=today
    )


def end_series_today(
    series: Iterable[Transaction],
    today: Union[date, datetime, None] = None,
) -> EndSeriesPlan:
    """Module-level shortcut for RecurringSeriesProjector().end_series_today."""
    return _default_projector.end_series_today(series, today)
