"""Folding manually planned income and expenses into forecast months.

Planned entries are collected into a synthetic ``Planned Items`` category.
Refreshing is idempotent: the cell is replaced outright each time, and
removed when nothing applies, so edited or deleted planned items never
leave stale amounts behind in older budgets.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Sequence

import pandas as pd

from .config import PLANNED_ITEMS_CATEGORY, RECURRENCE_MONTHLY, RECURRENCE_ONE_OFF
from .models import CategoryAggregate, MonthlyCategoryTable, PlannedItem
from .months import parse_month

logger = logging.getLogger(__name__)


def parse_planned_items(records: Iterable[Any] | None) -> List[PlannedItem]:
    return [PlannedItem.from_record(record) for record in records or []]


def item_applies(item: PlannedItem, month: str) -> bool:
    """Whether ``item`` contributes to the forecast month ``month``.

    Monthly items apply from their expected month onward; one-off items
    apply only in their expected month.
    """
    if not item.is_valid:
        return False
    target = parse_month(month)
    expected = pd.Timestamp(item.expected_date).to_period('M')
    if item.recurrence == RECURRENCE_MONTHLY:
        return target >= expected
    if item.recurrence == RECURRENCE_ONE_OFF:
        return target == expected
    return False


def _sum_applicable(items: Sequence[PlannedItem], month: str, label: str) -> float:
    total = 0.0
    for item in items:
        if item_applies(item, month):
            logger.debug("Adding %s planned %s for %s: %s = %s", item.recurrence, label, month, item.description, item.amount)
            total += item.amount
    return total


def planned_totals(
    month: str,
    planned_income: Iterable[Any] | None,
    planned_expenses: Iterable[Any] | None,
) -> CategoryAggregate:
    """Sum of planned income and planned expenses that apply to ``month``."""
    return CategoryAggregate(
        income=_sum_applicable(parse_planned_items(planned_income), month, 'income'),
        expenses=_sum_applicable(parse_planned_items(planned_expenses), month, 'expense'),
    )


def merge_planned_items(
    table: MonthlyCategoryTable,
    forecast_months: Sequence[str],
    planned_income: Iterable[Any] | None,
    planned_expenses: Iterable[Any] | None,
) -> MonthlyCategoryTable:
    """Return a copy of ``table`` with refreshed ``Planned Items`` cells.

    Every forecast month gets an entry (created empty if missing).  The
    input table is not modified.
    """
    income_items = parse_planned_items(planned_income)
    expense_items = parse_planned_items(planned_expenses)

    merged: MonthlyCategoryTable = {month: dict(cells) for month, cells in table.items()}
    for month in forecast_months:
        cells = merged.setdefault(month, {})
        totals = CategoryAggregate(
            income=_sum_applicable(income_items, month, 'income'),
            expenses=_sum_applicable(expense_items, month, 'expense'),
        )
        if totals.income > 0 or totals.expenses > 0:
            cells[PLANNED_ITEMS_CATEGORY] = totals
            logger.debug("Planned Items for %s: income=%s, expenses=%s", month, totals.income, totals.expenses)
        else:
            cells.pop(PLANNED_ITEMS_CATEGORY, None)
    return merged
