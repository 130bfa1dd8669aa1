"""Budget generation, loading, rolling forecast and variance entry points.

These functions are pure with respect to their inputs: callers fetch
transactions, planned items and the stored budget for one account and
pass them in.  Missing budgets and short histories come back as explicit
result objects (``NotFound``, ``NoBudget``, ``InsufficientHistory``)
rather than exceptions, so a caller can show a "generate your first
budget" or "add more history" prompt instead of a generic error.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from .aggregation import TransactionsLike, aggregate_by_month_category, transactions_frame
from .config import MIN_HISTORY_MONTHS
from .growth import compute_growth_rates
from .models import (
    BudgetDocument,
    CategoryAggregate,
    GrowthRate,
    InsufficientHistory,
    MonthlyCategoryTable,
    NoBudget,
    NotFound,
    RollingForecast,
    VarianceReport,
)
from .months import forecast_months, normalize_horizon
from .planned_items import merge_planned_items
from .projection import project_budget, project_category
from .rolling_forecast import BUDGET_GENERATED, BUDGET_NONE, BUDGET_SAVED, build_rolling_forecast
from .sanitize import sanitize_aggregate
from .variance import analyze_variance

logger = logging.getLogger(__name__)

StoredBudget = Union[BudgetDocument, Mapping[str, Any], None]
PlannedRecords = Optional[Iterable[Any]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def coerce_budget(stored: StoredBudget) -> Optional[BudgetDocument]:
    """Accept a ``BudgetDocument``, a stored record, or ``None``."""
    if stored is None:
        return None
    if isinstance(stored, BudgetDocument):
        return stored
    if isinstance(stored, Mapping):
        return BudgetDocument.from_record(stored)
    raise TypeError(f"Unsupported stored budget type: {type(stored).__name__}")


def _project_from_history(
    history: MonthlyCategoryTable,
    horizon: str,
    today: date,
    *,
    include_current: bool,
) -> Union[BudgetDocument, InsufficientHistory]:
    months = sorted(history)
    if len(months) < MIN_HISTORY_MONTHS:
        return InsufficientHistory(months_available=len(months))
    rates = compute_growth_rates(history, months)
    horizon_months = forecast_months(horizon, today, include_current=include_current)
    budget = project_budget(rates, horizon_months, months_ahead_offset=0 if include_current else 1)
    return BudgetDocument(
        horizon=horizon,
        forecast_months=horizon_months,
        category_growth_rates=rates,
        budget=budget,
        historical_months=months,
        generated_at=_now_iso(),
    )


def generate_budget(
    transactions: TransactionsLike,
    planned_income: PlannedRecords = None,
    planned_expenses: PlannedRecords = None,
    horizon: Optional[str] = None,
    today: Optional[date] = None,
) -> Union[BudgetDocument, InsufficientHistory]:
    """Project a budget for the horizon starting next month.

    Returns ``InsufficientHistory`` when fewer than two distinct months of
    transactions exist.  The result is not persisted here.
    """
    horizon = normalize_horizon(horizon)
    today = today or date.today()
    history = aggregate_by_month_category(transactions)
    result = _project_from_history(history, horizon, today, include_current=False)
    if isinstance(result, InsufficientHistory):
        logger.info("Budget generation skipped: only %d month(s) of history", result.months_available)
        return result
    result.budget = merge_planned_items(result.budget, result.forecast_months, planned_income, planned_expenses)
    logger.info(
        "Generated %s budget for %d months from %d months of history",
        horizon, len(result.forecast_months), len(result.historical_months),
    )
    return result


def load_budget(
    stored: StoredBudget,
    planned_income: PlannedRecords = None,
    planned_expenses: PlannedRecords = None,
) -> Union[BudgetDocument, NotFound]:
    """Return the stored budget with its Planned Items recomputed."""
    document = coerce_budget(stored)
    if document is None:
        return NotFound()
    refreshed = merge_planned_items(document.budget, document.forecast_months, planned_income, planned_expenses)
    return dataclasses.replace(
        document,
        budget=refreshed,
        generated_at=document.generated_at or document.updated_at or document.created_at,
    )


def update_growth_rate(
    document: Union[BudgetDocument, Mapping[str, Any]],
    category: str,
    income_rate: Optional[float] = None,
    expense_rate: Optional[float] = None,
) -> BudgetDocument:
    """Change one category's growth rates and re-project it.

    Rates left as ``None`` keep their current value.  The category is
    recomputed over every forecast month from its last value, starting one
    month ahead as in :func:`generate_budget`; other categories and manual
    cell edits elsewhere are left alone.  A category without a stored rate
    starts from a zero last value.
    """
    document = coerce_budget(document)
    if document is None:
        raise ValueError("A budget is required to edit growth rates")
    current = document.category_growth_rates.get(category, GrowthRate())
    rate = GrowthRate(
        income_rate_percent=current.income_rate_percent if income_rate is None else float(income_rate),
        expense_rate_percent=current.expense_rate_percent if expense_rate is None else float(expense_rate),
        last_value=current.last_value,
    )
    rates = dict(document.category_growth_rates)
    rates[category] = rate

    budget = {month: dict(cells) for month, cells in document.budget.items()}
    for index, month in enumerate(document.forecast_months):
        budget.setdefault(month, {})[category] = project_category(rate, index + 1)
    logger.info(
        "Updated growth rates for %s: income %s%%, expenses %s%%",
        category, rate.income_rate_percent, rate.expense_rate_percent,
    )
    return dataclasses.replace(document, category_growth_rates=rates, budget=budget)


def set_budget_cell(
    document: Union[BudgetDocument, Mapping[str, Any]],
    month: str,
    category: str,
    income: Optional[float] = None,
    expenses: Optional[float] = None,
) -> BudgetDocument:
    """Override a single (month, category) cell of a budget.

    Values left as ``None`` keep the stored amount; new values go through
    the same bounds as stored data.

    Raises:
        ValueError: if ``month`` is not one of the budget's forecast months.
    """
    document = coerce_budget(document)
    if document is None:
        raise ValueError("A budget is required to edit cells")
    if month not in document.forecast_months:
        raise ValueError(f"{month!r} is not a forecast month of this budget")
    current = document.budget.get(month, {}).get(category, CategoryAggregate())
    cell, _ = sanitize_aggregate(
        {
            'income': current.income if income is None else income,
            'expenses': current.expenses if expenses is None else expenses,
        },
        month=month,
        category=category,
    )
    budget = {key: dict(cells) for key, cells in document.budget.items()}
    budget.setdefault(month, {})[category] = cell
    return dataclasses.replace(document, budget=budget)


def compute_rolling_forecast(
    transactions: TransactionsLike,
    stored: StoredBudget,
    planned_income: PlannedRecords = None,
    planned_expenses: PlannedRecords = None,
    horizon: Optional[str] = None,
    today: Optional[date] = None,
) -> RollingForecast:
    """Stitch actuals and forecast into one timeline; never fails.

    A stored budget is reused when its horizon matches the request.
    Otherwise a transient budget including the current month is projected
    from history (and not persisted).  Without enough history the forecast
    months carry planned items only.
    """
    horizon = normalize_horizon(horizon)
    today = today or date.today()
    frame = transactions_frame(transactions)
    document = coerce_budget(stored)

    budget: Optional[BudgetDocument] = None
    source = BUDGET_NONE
    if document is not None and document.horizon == horizon:
        budget = load_budget(document, planned_income, planned_expenses)
        source = BUDGET_SAVED
    else:
        if document is not None:
            logger.info("Stored budget horizon %s does not match %s; projecting a transient budget", document.horizon, horizon)
        transient = _project_from_history(aggregate_by_month_category(frame), horizon, today, include_current=True)
        if isinstance(transient, BudgetDocument):
            budget = transient
            source = BUDGET_GENERATED

    forecast = build_rolling_forecast(
        frame,
        budget,
        planned_income,
        planned_expenses,
        horizon=horizon,
        today=today,
        budget_source=source,
    )
    forecast.generated_at = _now_iso()
    return forecast


def compute_variance(
    stored: StoredBudget,
    planned_income: PlannedRecords,
    planned_expenses: PlannedRecords,
    transactions: TransactionsLike,
    today: Optional[date] = None,
) -> Union[VarianceReport, NoBudget]:
    """Plan-vs-actual variance for every month of the stored budget."""
    document = coerce_budget(stored)
    if document is None:
        return NoBudget()
    budget = load_budget(document, planned_income, planned_expenses)
    actuals = aggregate_by_month_category(transactions)
    return analyze_variance(budget, actuals, today=today)
