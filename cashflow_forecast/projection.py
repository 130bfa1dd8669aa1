"""Compound growth projection of category totals over a forecast horizon."""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from .models import CategoryAggregate, GrowthRate, MonthlyCategoryTable

logger = logging.getLogger(__name__)


def _compound(base: float, rate_percent: float, months_ahead: int) -> float:
    projected = base * (1 + rate_percent / 100) ** months_ahead
    # Large negative rates can flip the sign for odd exponents.
    return max(0.0, float(projected))


def project_category(rate: GrowthRate, months_ahead: int) -> CategoryAggregate:
    """Project one category ``months_ahead`` months past its last value."""
    return CategoryAggregate(
        income=_compound(rate.last_value.income, rate.income_rate_percent, months_ahead),
        expenses=_compound(rate.last_value.expenses, rate.expense_rate_percent, months_ahead),
    )


def project_budget(
    growth_rates: Dict[str, GrowthRate],
    forecast_months: Sequence[str],
    *,
    months_ahead_offset: int,
) -> MonthlyCategoryTable:
    """Project every category into every forecast month.

    The month at index ``i`` is compounded ``i + months_ahead_offset`` times.
    Budget generation starts the horizon next month and uses an offset of
    ``1``; the rolling forecast includes the current month as index 0 and
    uses ``0``.
    """
    budget: MonthlyCategoryTable = {}
    for index, month in enumerate(forecast_months):
        months_ahead = index + months_ahead_offset
        budget[month] = {
            category: project_category(rate, months_ahead)
            for category, rate in sorted(growth_rates.items())
        }
    logger.debug(
        "Projected %d categories over %d months (offset %d)",
        len(growth_rates), len(forecast_months), months_ahead_offset,
    )
    return budget
