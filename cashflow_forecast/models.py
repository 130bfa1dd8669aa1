"""Record types shared by the forecasting engine.

Everything here is a plain dataclass.  Aggregates are closed numeric
records (``income``/``expenses``) instead of loosely-typed dicts, and every
result type can be flattened back to JSON-friendly data with ``to_dict``.
The ``from_record`` constructors are tolerant: they accept both the
snake_case keys used by the storage layer and the camelCase keys of the
persisted budget format.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .config import (
    RECURRENCE_MONTHLY,
    RECURRENCE_ONE_OFF,
    UNCATEGORIZED,
)
from .months import parse_month

logger = logging.getLogger(__name__)


def _first(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _to_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pd.isna(result):
        return 0.0
    return result


def parse_date(value: Any) -> Optional[date]:
    if value is None or value is pd.NaT or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def normalize_category(value: Any) -> str:
    """Trimmed category name, defaulting to ``Uncategorized``."""
    if not isinstance(value, str):
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return UNCATEGORIZED
        value = str(value)
    cleaned = value.strip()
    return cleaned or UNCATEGORIZED


@dataclass
class Transaction:
    amount: float
    category: Optional[str]
    booked_at: Optional[date]

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Transaction":
        return cls(
            amount=_to_float(_first(record, "amount", "Amount", default=0.0)),
            category=_first(record, "category", "Category"),
            booked_at=parse_date(_first(record, "booked_at", "bookedAt", "Transaction Date")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "category": self.category,
            "booked_at": self.booked_at.isoformat() if self.booked_at else None,
        }


@dataclass(frozen=True)
class CategoryAggregate:
    """Income and expense totals for one (month, category) cell.

    Both fields are non-negative; ``net`` is derived.
    """

    income: float = 0.0
    expenses: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expenses

    @property
    def is_zero(self) -> bool:
        return self.income == 0 and self.expenses == 0

    def __add__(self, other: "CategoryAggregate") -> "CategoryAggregate":
        return CategoryAggregate(self.income + other.income, self.expenses + other.expenses)

    @classmethod
    def from_record(cls, record: Any) -> "CategoryAggregate":
        if isinstance(record, CategoryAggregate):
            return record
        if not isinstance(record, Mapping):
            return cls()
        return cls(
            income=_to_float(record.get("income", 0.0)),
            expenses=_to_float(record.get("expenses", 0.0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"income": self.income, "expenses": self.expenses}


# month -> category -> aggregate
MonthlyCategoryTable = Dict[str, Dict[str, CategoryAggregate]]


def table_to_dict(table: MonthlyCategoryTable) -> Dict[str, Dict[str, Dict[str, float]]]:
    return {
        month: {category: cell.to_dict() for category, cell in categories.items()}
        for month, categories in table.items()
    }


def table_from_dict(data: Any) -> MonthlyCategoryTable:
    """Rebuild a table from stored JSON, skipping entries that are not mappings.

    Values are read as-is; bounds are enforced later by :mod:`sanitize`.
    """
    table: MonthlyCategoryTable = {}
    if not isinstance(data, Mapping):
        return table
    for month, categories in data.items():
        if not isinstance(categories, Mapping):
            continue
        table[str(month)] = {
            str(category): CategoryAggregate.from_record(cell)
            for category, cell in categories.items()
        }
    return table


@dataclass(frozen=True)
class GrowthRate:
    """Average month-over-month change for one category, in percent."""

    income_rate_percent: float = 0.0
    expense_rate_percent: float = 0.0
    last_value: CategoryAggregate = field(default_factory=CategoryAggregate)

    @classmethod
    def from_record(cls, record: Any) -> "GrowthRate":
        if isinstance(record, GrowthRate):
            return record
        if not isinstance(record, Mapping):
            return cls()
        return cls(
            income_rate_percent=_to_float(_first(record, "incomeRate", "income_rate_percent", default=0.0)),
            expense_rate_percent=_to_float(_first(record, "expenseRate", "expense_rate_percent", default=0.0)),
            last_value=CategoryAggregate.from_record(_first(record, "lastValue", "last_value", default={})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "incomeRate": self.income_rate_percent,
            "expenseRate": self.expense_rate_percent,
            "lastValue": self.last_value.to_dict(),
        }


@dataclass
class PlannedItem:
    """A manually declared future income or expense entry.

    ``amount`` of ``0.0``, ``expected_date`` of ``None`` or a recurrence
    other than ``one-off``/``monthly`` marks an item that could not be
    parsed; such items contribute nothing.
    """

    description: str
    amount: float
    expected_date: Optional[date]
    recurrence: str = RECURRENCE_ONE_OFF
    item_id: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.expected_date is not None and self.amount > 0

    @property
    def recurrence_known(self) -> bool:
        return self.recurrence in (RECURRENCE_ONE_OFF, RECURRENCE_MONTHLY)

    @classmethod
    def from_record(cls, record: Any) -> "PlannedItem":
        if isinstance(record, PlannedItem):
            return record
        if not isinstance(record, Mapping):
            logger.warning("Ignoring planned item that is not a mapping: %r", record)
            return cls(description="", amount=0.0, expected_date=None)
        raw_amount = record.get("amount")
        amount = _to_float(raw_amount)
        if amount < 0:
            amount = 0.0
        raw_date = _first(record, "expected_date", "expectedDate")
        expected = parse_date(raw_date)
        if expected is None or amount == 0.0:
            logger.warning(
                "Planned item %r has unusable amount=%r or date=%r; it will contribute zero",
                record.get("description"), raw_amount, raw_date,
            )
        recurrence = record.get("recurrence") or RECURRENCE_ONE_OFF
        if recurrence not in (RECURRENCE_ONE_OFF, RECURRENCE_MONTHLY):
            logger.warning(
                "Planned item %r has unknown recurrence %r; it will contribute zero",
                record.get("description"), recurrence,
            )
        return cls(
            description=str(record.get("description") or ""),
            amount=amount,
            expected_date=expected,
            recurrence=recurrence,
            item_id=_first(record, "id", "item_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.item_id,
            "description": self.description,
            "amount": self.amount,
            "expected_date": self.expected_date.isoformat() if self.expected_date else None,
            "recurrence": self.recurrence,
        }


def _valid_month_keys(values: List[Any], label: str) -> List[str]:
    """Keep well-formed ``YYYY-MM`` keys, logging and dropping the rest."""
    keys = []
    for value in values:
        try:
            parse_month(value)
        except ValueError:
            logger.warning("Dropping malformed %s month key %r from stored budget", label, value)
            continue
        keys.append(value)
    return keys


@dataclass
class BudgetDocument:
    horizon: str
    forecast_months: List[str]
    category_growth_rates: Dict[str, GrowthRate]
    budget: MonthlyCategoryTable
    historical_months: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    generated_at: Optional[str] = None

    ok = True

    def to_record(self) -> Dict[str, Any]:
        """Persisted storage shape."""
        return {
            "horizon": self.horizon,
            "forecast_months": list(self.forecast_months),
            "category_growth_rates": {
                category: rate.to_dict() for category, rate in self.category_growth_rates.items()
            },
            "budget_data": table_to_dict(self.budget),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BudgetDocument":
        forecast_months = _first(record, "forecast_months", "forecastMonths", default=[])
        if not isinstance(forecast_months, list):
            forecast_months = []
        historical_months = _first(record, "historical_months", "historicalMonths", default=[])
        if not isinstance(historical_months, list):
            historical_months = []
        rates = _first(record, "category_growth_rates", "categoryGrowthRates", default={})
        if not isinstance(rates, Mapping):
            rates = {}
        return cls(
            horizon=str(record.get("horizon") or ""),
            forecast_months=_valid_month_keys(forecast_months, "forecast"),
            category_growth_rates={str(cat): GrowthRate.from_record(rate) for cat, rate in rates.items()},
            budget=table_from_dict(_first(record, "budget_data", "budget", default={})),
            historical_months=_valid_month_keys(historical_months, "historical"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
            generated_at=_first(record, "generated_at", "generatedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_record()
        data["historical_months"] = list(self.historical_months)
        data["generated_at"] = self.generated_at
        return data


@dataclass
class RollingForecastEntry:
    month: str
    kind: str  # "actual" or "forecast"
    income: float
    expenses: float
    net: float
    balance: float
    by_category: Dict[str, CategoryAggregate] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "type": self.kind,
            "income": self.income,
            "expenses": self.expenses,
            "net": self.net,
            "balance": self.balance,
            "byCategory": {cat: cell.to_dict() for cat, cell in self.by_category.items()},
        }


@dataclass
class ForecastTotals:
    months: int = 0
    income: float = 0.0
    expenses: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expenses

    def to_dict(self) -> Dict[str, Any]:
        return {"months": self.months, "income": self.income, "expenses": self.expenses, "net": self.net}


@dataclass
class ForecastSummary:
    actual: ForecastTotals
    forecast: ForecastTotals
    total: ForecastTotals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actual": self.actual.to_dict(),
            "forecast": self.forecast.to_dict(),
            "total": self.total.to_dict(),
        }


@dataclass
class RollingForecast:
    entries: List[RollingForecastEntry]
    summary: ForecastSummary
    current_balance: float
    current_month: str
    horizon: str
    budget_source: str  # "saved", "generated" or "none"
    generated_at: Optional[str] = None

    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentBalance": self.current_balance,
            "currentMonth": self.current_month,
            "horizon": self.horizon,
            "budgetSource": self.budget_source,
            "rollingForecast": [entry.to_dict() for entry in self.entries],
            "summary": self.summary.to_dict(),
            "generatedAt": self.generated_at,
        }


@dataclass(frozen=True)
class VarianceFigures:
    income: float = 0.0
    expenses: float = 0.0
    net: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"income": self.income, "expenses": self.expenses, "net": self.net}


@dataclass(frozen=True)
class VarianceLine:
    plan: VarianceFigures
    actual: VarianceFigures
    variance: VarianceFigures
    variance_percent: VarianceFigures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "actual": self.actual.to_dict(),
            "variance": self.variance.to_dict(),
            "variancePercent": self.variance_percent.to_dict(),
        }


@dataclass
class MonthVariance:
    month: str
    kind: str
    totals: VarianceLine
    by_category: Dict[str, VarianceLine] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {"month": self.month, "type": self.kind}
        data.update(self.totals.to_dict())
        data["byCategory"] = {cat: line.to_dict() for cat, line in self.by_category.items()}
        return data


@dataclass
class VarianceReport:
    horizon: str
    forecast_months: List[str]
    months: List[MonthVariance]
    budget_created_at: Optional[str] = None
    budget_updated_at: Optional[str] = None

    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasBudget": True,
            "horizon": self.horizon,
            "forecastMonths": list(self.forecast_months),
            "variance": [month.to_dict() for month in self.months],
            "budgetCreatedAt": self.budget_created_at,
            "budgetUpdatedAt": self.budget_updated_at,
        }


# Negative (non-exceptional) results


@dataclass(frozen=True)
class InsufficientHistory:
    months_available: int
    message: str = "Need at least 2 months of historical data to generate budget"

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "monthsAvailable": self.months_available, "error": self.message}


@dataclass(frozen=True)
class NotFound:
    message: str = "No budget found"

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "budget": None, "message": self.message}


@dataclass(frozen=True)
class NoBudget:
    message: str = "No saved budget found. Please generate a budget first."

    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {"hasBudget": False, "message": self.message, "variance": []}
