"""Per-category growth rates derived from monthly history."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from .aggregation import observed_categories
from .config import MIN_HISTORY_MONTHS
from .models import CategoryAggregate, GrowthRate, MonthlyCategoryTable

logger = logging.getLogger(__name__)


def average_growth_rate(values: Sequence[float]) -> float:
    """Arithmetic mean of month-over-month percentage changes.

    A transition from a positive value records ``(curr - prev) / prev * 100``.
    A transition from zero to a positive value records ``0`` so that new
    categories project flat instead of exploding; ``0 -> 0`` records nothing.
    """
    series = np.asarray(values, dtype=float)
    if series.size < 2:
        return 0.0
    prev, curr = series[:-1], series[1:]
    from_positive = prev > 0
    from_zero = (prev == 0) & (curr > 0)
    safe_prev = np.where(from_positive, prev, 1.0)
    rates = np.where(from_positive, (curr - safe_prev) / safe_prev * 100.0, 0.0)
    samples = rates[from_positive | from_zero]
    if samples.size == 0:
        return 0.0
    return float(samples.mean())


def compute_growth_rates(
    table: MonthlyCategoryTable,
    months: Optional[Sequence[str]] = None,
    categories: Optional[Iterable[str]] = None,
) -> Dict[str, GrowthRate]:
    """Compute a growth rate for every category seen in ``table``.

    Args:
        table: month -> category -> aggregate history.
        months: ordered month keys to use; defaults to the sorted table keys.
        categories: categories to model; defaults to all observed ones.

    Returns:
        category -> GrowthRate, where ``last_value`` is the aggregate of the
        final month (zero if the category is absent that month).

    Raises:
        ValueError: if fewer than two months are available.
    """
    months = list(months) if months is not None else sorted(table)
    if len(months) < MIN_HISTORY_MONTHS:
        raise ValueError(
            f"Growth rates need at least {MIN_HISTORY_MONTHS} months of history, got {len(months)}"
        )
    categories = sorted(categories) if categories is not None else observed_categories(table)

    rates: Dict[str, GrowthRate] = {}
    for category in categories:
        history = [table.get(month, {}).get(category, CategoryAggregate()) for month in months]
        rates[category] = GrowthRate(
            income_rate_percent=average_growth_rate([cell.income for cell in history]),
            expense_rate_percent=average_growth_rate([cell.expenses for cell in history]),
            last_value=history[-1],
        )
    logger.debug("Computed growth rates for %d categories over %d months", len(rates), len(months))
    return rates
