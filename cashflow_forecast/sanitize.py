"""Bounds checks for stored and projected figures.

Forecast display has to degrade gracefully, so out-of-range values are
clamped or reset and logged instead of raising.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Tuple

from .config import LARGE_VALUE_WARNING, MAX_BALANCE, MAX_CATEGORY_MONTH_VALUE
from .models import CategoryAggregate

logger = logging.getLogger(__name__)


def sanitize_amount(value: Any) -> float:
    """Finite float or ``0.0``."""
    if isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def _bounded(value: Any) -> Tuple[float, bool]:
    """Clamp into ``[0, MAX_CATEGORY_MONTH_VALUE]``; flag values above the cap."""
    amount = sanitize_amount(value)
    if amount > MAX_CATEGORY_MONTH_VALUE:
        return MAX_CATEGORY_MONTH_VALUE, True
    return max(0.0, amount), False


def sanitize_aggregate(
    value: Any,
    *,
    month: Optional[str] = None,
    category: Optional[str] = None,
) -> Tuple[CategoryAggregate, bool]:
    """Return a bounded aggregate and whether any field had to be capped."""
    if isinstance(value, CategoryAggregate):
        raw_income, raw_expenses = value.income, value.expenses
    elif isinstance(value, Mapping):
        raw_income, raw_expenses = value.get("income"), value.get("expenses")
    else:
        logger.warning("Invalid category data for %s in %s: %r", category, month, value)
        return CategoryAggregate(), False

    income, income_capped = _bounded(raw_income)
    expenses, expenses_capped = _bounded(raw_expenses)
    clamped = income_capped or expenses_capped
    if clamped:
        logger.error(
            "Capped large values for %s in %s: original income=%r, expenses=%r, capped to %s/%s",
            category, month, raw_income, raw_expenses, income, expenses,
        )
    elif income > LARGE_VALUE_WARNING or expenses > LARGE_VALUE_WARNING:
        logger.warning(
            "Large values for %s in %s: income=%s, expenses=%s", category, month, income, expenses,
        )
    return CategoryAggregate(income, expenses), clamped


def sanitize_balance(balance: float, *, fallback: float, month: Optional[str] = None) -> Tuple[float, bool]:
    """Replace a running balance beyond ``MAX_BALANCE`` with ``fallback``."""
    if math.isfinite(balance) and abs(balance) <= MAX_BALANCE:
        return balance, False
    logger.error("Suspicious balance for %s: %s; resetting to %s", month, balance, fallback)
    return fallback, True
