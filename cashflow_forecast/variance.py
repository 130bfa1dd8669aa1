"""Plan-versus-actual variance for a saved budget."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from .models import (
    BudgetDocument,
    CategoryAggregate,
    MonthlyCategoryTable,
    MonthVariance,
    VarianceFigures,
    VarianceLine,
    VarianceReport,
)
from .months import current_month
from .sanitize import sanitize_aggregate


def _percent(variance: float, plan: float) -> float:
    # Zero plan reports 0 rather than an undefined percentage.
    return (variance / plan * 100) if plan != 0 else 0.0


def variance_figures(plan: CategoryAggregate, actual: CategoryAggregate) -> VarianceLine:
    """Variance is ``actual - plan`` for income, expenses and net independently."""
    variance = VarianceFigures(
        income=actual.income - plan.income,
        expenses=actual.expenses - plan.expenses,
        net=actual.net - plan.net,
    )
    return VarianceLine(
        plan=VarianceFigures(plan.income, plan.expenses, plan.net),
        actual=VarianceFigures(actual.income, actual.expenses, actual.net),
        variance=variance,
        variance_percent=VarianceFigures(
            income=_percent(variance.income, plan.income),
            expenses=_percent(variance.expenses, plan.expenses),
            net=_percent(variance.net, plan.net),
        ),
    )


def _total(cells: Dict[str, CategoryAggregate]) -> CategoryAggregate:
    total = CategoryAggregate()
    for cell in cells.values():
        total = total + cell
    return total


def analyze_variance(
    budget: BudgetDocument,
    actuals: MonthlyCategoryTable,
    *,
    today: Optional[date] = None,
) -> VarianceReport:
    """Compare every forecast month of ``budget`` against ``actuals``.

    Months up to and including the current month are labelled ``actual``,
    later months ``forecast``.  Per-category lines cover every category in
    either the plan or the actuals for that month.
    """
    this_month = current_month(today)
    months: List[MonthVariance] = []
    for month in budget.forecast_months:
        plan_cells = {
            category: sanitize_aggregate(cell, month=month, category=category)[0]
            for category, cell in budget.budget.get(month, {}).items()
        }
        actual_cells = actuals.get(month, {})

        categories = list(plan_cells) + [cat for cat in actual_cells if cat not in plan_cells]
        by_category = {
            category: variance_figures(
                plan_cells.get(category, CategoryAggregate()),
                actual_cells.get(category, CategoryAggregate()),
            )
            for category in categories
        }
        months.append(MonthVariance(
            month=month,
            kind='actual' if month <= this_month else 'forecast',
            totals=variance_figures(_total(plan_cells), _total(actual_cells)),
            by_category=by_category,
        ))

    return VarianceReport(
        horizon=budget.horizon,
        forecast_months=list(budget.forecast_months),
        months=months,
        budget_created_at=budget.created_at,
        budget_updated_at=budget.updated_at,
    )
