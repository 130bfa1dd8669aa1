"""Rolling forecast: actual months stitched to projected months.

The timeline runs without gaps from the earliest month with data to the
end of the forecast horizon.  Months up to and including the current
month are ``actual`` entries whose balance is recomputed from the full
transaction history; later months are ``forecast`` entries that carry the
balance forward from the last actual balance.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .aggregation import (
    TransactionsLike,
    aggregate_by_month_category,
    cumulative_balance,
    monthly_totals,
    total_balance,
    transactions_frame,
)
from .config import PLANNED_ITEMS_CATEGORY
from .models import (
    BudgetDocument,
    CategoryAggregate,
    ForecastSummary,
    ForecastTotals,
    RollingForecast,
    RollingForecastEntry,
)
from .months import current_month, forecast_months, month_range, normalize_horizon
from .planned_items import parse_planned_items, planned_totals
from .sanitize import sanitize_aggregate, sanitize_balance

logger = logging.getLogger(__name__)

ACTUAL = 'actual'
FORECAST = 'forecast'

BUDGET_SAVED = 'saved'
BUDGET_GENERATED = 'generated'
BUDGET_NONE = 'none'


def _timeline(actual_months: Iterable[str], horizon_months: Iterable[str], this_month: str) -> List[str]:
    months = set(actual_months) | set(horizon_months) | {this_month}
    return month_range(min(months), max(months))


def _sum_cells(cells: Dict[str, CategoryAggregate]) -> CategoryAggregate:
    total = CategoryAggregate()
    for cell in cells.values():
        total = total + cell
    return total


def _forecast_cells(
    month: str,
    stored_cells: Optional[Dict[str, Any]],
    planned: CategoryAggregate,
    fold_planned: bool,
) -> Dict[str, CategoryAggregate]:
    cells: Dict[str, CategoryAggregate] = {}
    if stored_cells is None:
        # No budget for this month: planned items only.
        fold_planned = True
    else:
        for category, raw in stored_cells.items():
            cells[category], _ = sanitize_aggregate(raw, month=month, category=category)
    if fold_planned and PLANNED_ITEMS_CATEGORY not in cells and not planned.is_zero:
        cells[PLANNED_ITEMS_CATEGORY] = planned
    return cells


def summarize_entries(entries: List[RollingForecastEntry]) -> ForecastSummary:
    actual = ForecastTotals()
    forecast = ForecastTotals()
    for entry in entries:
        bucket = actual if entry.kind == ACTUAL else forecast
        bucket.months += 1
        bucket.income += entry.income
        bucket.expenses += entry.expenses
    total = ForecastTotals(
        months=actual.months + forecast.months,
        income=actual.income + forecast.income,
        expenses=actual.expenses + forecast.expenses,
    )
    return ForecastSummary(actual=actual, forecast=forecast, total=total)


def build_rolling_forecast(
    transactions: TransactionsLike,
    budget: Optional[BudgetDocument],
    planned_income: Optional[Iterable[Any]],
    planned_expenses: Optional[Iterable[Any]],
    *,
    horizon: Optional[str] = None,
    today: Optional[date] = None,
    budget_source: str = BUDGET_SAVED,
) -> RollingForecast:
    """Build the stitched actual + forecast timeline.

    Args:
        transactions: full transaction history.
        budget: budget to read forecast months from, or ``None``.
        planned_income: planned income records or ``PlannedItem`` objects.
        planned_expenses: planned expense records or ``PlannedItem`` objects.
        horizon: horizon used when ``budget`` has no forecast months.
        today: reference date; defaults to the wall clock.
        budget_source: ``"saved"`` for a loaded budget whose Planned Items
            are already refreshed, ``"generated"`` for a transient budget
            that still needs them folded in, ``"none"`` without a budget.
    """
    today = today or date.today()
    horizon = normalize_horizon(horizon)
    this_month = current_month(today)

    frame = transactions_frame(transactions)
    actuals = aggregate_by_month_category(frame)
    actual_totals = monthly_totals(actuals)
    income_items = parse_planned_items(planned_income)
    expense_items = parse_planned_items(planned_expenses)

    if budget is not None and budget.forecast_months:
        horizon_months = list(budget.forecast_months)
    else:
        horizon_months = forecast_months(horizon, today)
    budget_table = budget.budget if budget is not None else {}
    fold_planned = budget_source != BUDGET_SAVED

    running_balance = 0.0
    last_actual_balance = cumulative_balance(frame, this_month)
    forecast_started = False

    entries: List[RollingForecastEntry] = []
    for month in _timeline(actuals, horizon_months, this_month):
        if month <= this_month:
            # Gap months carry whatever was booked before them.
            running_balance = cumulative_balance(frame, month)
            if month in actuals:
                cell = actual_totals[month]
                entries.append(RollingForecastEntry(
                    month=month,
                    kind=ACTUAL,
                    income=cell.income,
                    expenses=cell.expenses,
                    net=cell.net,
                    balance=running_balance,
                    by_category=dict(actuals[month]),
                ))
            else:
                entries.append(RollingForecastEntry(
                    month=month, kind=ACTUAL, income=0.0, expenses=0.0, net=0.0, balance=running_balance,
                ))
            last_actual_balance = running_balance
            continue

        if not forecast_started:
            running_balance = last_actual_balance
            forecast_started = True
            logger.info("First forecast month %s starts from last actual balance %s", month, last_actual_balance)

        planned = planned_totals(month, income_items, expense_items)
        cells = _forecast_cells(month, budget_table.get(month), planned, fold_planned)
        totals = _sum_cells(cells)
        running_balance, _ = sanitize_balance(
            running_balance + totals.net,
            fallback=last_actual_balance + totals.net,
            month=month,
        )
        entries.append(RollingForecastEntry(
            month=month,
            kind=FORECAST,
            income=totals.income,
            expenses=totals.expenses,
            net=totals.net,
            balance=running_balance,
            by_category=cells,
        ))

    return RollingForecast(
        entries=entries,
        summary=summarize_entries(entries),
        current_balance=total_balance(frame),
        current_month=this_month,
        horizon=horizon,
        budget_source=budget_source,
    )
