"""Account-scoped façade over the engine and the account store.

``ForecastService`` fetches the records for one account, hands them to
the pure engine functions and persists budgets when asked.  The clock is
injectable so month boundaries can be pinned in tests.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, Optional, Union

from . import engine
from .aggregation import summarize_transactions
from .models import BudgetDocument, InsufficientHistory, NoBudget, NotFound, RollingForecast, VarianceReport
from .storage import AccountStore

logger = logging.getLogger(__name__)


class ForecastService:
    def __init__(self, store: Optional[AccountStore] = None, clock: Optional[Callable[[], date]] = None):
        self.store = store if store is not None else AccountStore()
        self.clock = clock or date.today

    def today(self) -> date:
        return self.clock()

    def _planned(self, account_id: str):
        return (
            self.store.planned_items(account_id, 'income'),
            self.store.planned_items(account_id, 'expenses'),
        )

    def generate_budget(
        self,
        account_id: str,
        horizon: Optional[str] = None,
        save: bool = False,
    ) -> Union[BudgetDocument, InsufficientHistory]:
        """Generate a budget from the account's history, optionally saving it."""
        planned_income, planned_expenses = self._planned(account_id)
        result = engine.generate_budget(
            self.store.transactions(account_id),
            planned_income,
            planned_expenses,
            horizon=horizon,
            today=self.today(),
        )
        if save and isinstance(result, BudgetDocument):
            record = self.store.save_budget(account_id, result)
            result.created_at = record['created_at']
            result.updated_at = record['updated_at']
        return result

    def save_budget(self, account_id: str, document: Union[BudgetDocument, Dict[str, Any]]) -> Dict[str, Any]:
        return self.store.save_budget(account_id, document)

    def load_budget(self, account_id: str) -> Union[BudgetDocument, NotFound]:
        planned_income, planned_expenses = self._planned(account_id)
        return engine.load_budget(self.store.load_budget(account_id), planned_income, planned_expenses)

    def _save_edit(self, account_id: str, document: BudgetDocument) -> BudgetDocument:
        record = self.store.save_budget(account_id, document)
        document.created_at = record['created_at']
        document.updated_at = record['updated_at']
        return document

    def update_growth_rate(
        self,
        account_id: str,
        category: str,
        income_rate: Optional[float] = None,
        expense_rate: Optional[float] = None,
    ) -> Union[BudgetDocument, NotFound]:
        """Edit a category's growth rates in the saved budget and persist it."""
        stored = self.store.load_budget(account_id)
        if stored is None:
            return NotFound()
        edited = engine.update_growth_rate(stored, category, income_rate, expense_rate)
        return self._save_edit(account_id, edited)

    def set_budget_cell(
        self,
        account_id: str,
        month: str,
        category: str,
        income: Optional[float] = None,
        expenses: Optional[float] = None,
    ) -> Union[BudgetDocument, NotFound]:
        """Override one saved budget cell and persist it."""
        stored = self.store.load_budget(account_id)
        if stored is None:
            return NotFound()
        edited = engine.set_budget_cell(stored, month, category, income, expenses)
        return self._save_edit(account_id, edited)

    def delete_budget(self, account_id: str) -> bool:
        return self.store.delete_budget(account_id)

    def rolling_forecast(self, account_id: str, horizon: Optional[str] = None) -> RollingForecast:
        planned_income, planned_expenses = self._planned(account_id)
        return engine.compute_rolling_forecast(
            self.store.transactions(account_id),
            self.store.load_budget(account_id),
            planned_income,
            planned_expenses,
            horizon=horizon,
            today=self.today(),
        )

    def variance(self, account_id: str) -> Union[VarianceReport, NoBudget]:
        planned_income, planned_expenses = self._planned(account_id)
        return engine.compute_variance(
            self.store.load_budget(account_id),
            planned_income,
            planned_expenses,
            self.store.transactions(account_id),
            today=self.today(),
        )

    def summary(self, account_id: str, period: str = 'all') -> Dict[str, Any]:
        return summarize_transactions(self.store.transactions(account_id), period=period, today=self.today())
