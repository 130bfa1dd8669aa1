"""Month key helpers built on ``pandas.Period``.

Month keys are ``YYYY-MM`` strings.  They sort lexicographically in
chronological order, but all arithmetic (adding months, filling gaps,
horizon windows) goes through monthly periods.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, List, Optional

import pandas as pd

from .config import (
    DEFAULT_HORIZON,
    HORIZON_SIX_MONTHS,
    HORIZON_YEAR_END,
    HORIZONS,
    SIX_MONTH_WINDOW,
)

logger = logging.getLogger(__name__)

_MONTH_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}$")


def parse_month(key: str) -> pd.Period:
    """Convert a ``YYYY-MM`` key into a monthly period."""
    if not isinstance(key, str) or not _MONTH_KEY_PATTERN.match(key):
        raise ValueError(f"Invalid month key {key!r}; expected YYYY-MM")
    month = int(key[5:7])
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month key {key!r}; month must be 01-12")
    return pd.Period(key, freq="M")


def month_key(value: Any) -> str:
    """Month key for a period, date, timestamp or date-like string."""
    if isinstance(value, pd.Period):
        return str(value.asfreq("M"))
    if isinstance(value, str) and _MONTH_KEY_PATTERN.match(value):
        return str(parse_month(value))
    return str(pd.Timestamp(value).to_period("M"))


def current_month(today: Optional[date] = None) -> str:
    return month_key(today or date.today())


def add_months(key: str, count: int) -> str:
    return str(parse_month(key) + count)


def month_range(start: str, end: str) -> List[str]:
    """Every month key from ``start`` to ``end`` inclusive (empty if reversed)."""
    first, last = parse_month(start), parse_month(end)
    if first > last:
        return []
    return [str(period) for period in pd.period_range(start=first, end=last, freq="M")]


def normalize_horizon(value: Optional[str]) -> str:
    if value is None or value == "":
        value = DEFAULT_HORIZON
    if value not in HORIZONS:
        logger.warning("Unknown horizon %r, falling back to %s", value, HORIZON_SIX_MONTHS)
        return HORIZON_SIX_MONTHS
    return value


def forecast_months(horizon: str, today: Optional[date] = None, include_current: bool = False) -> List[str]:
    """Month keys covered by a forecast horizon.

    ``6months`` is six consecutive months and ``yearend`` runs through
    December of the current year.  Both start next month, or in the
    current month when ``include_current`` is set.
    """
    now = pd.Timestamp(today or date.today()).to_period("M")
    first = 0 if include_current else 1
    if normalize_horizon(horizon) == HORIZON_YEAR_END:
        last = 12 - now.month
    else:
        last = first + SIX_MONTH_WINDOW - 1
    return [str(now + offset) for offset in range(first, last + 1)]
