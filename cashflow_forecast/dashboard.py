"""Streamlit app for the cash-flow forecast.

The sidebar selects an account and a horizon.  The main area shows the
rolling forecast, the saved budget with plan-vs-actual variance, the
planned income and expense items, and a historical summary.

To run the dashboard from the command line::

    streamlit run cashflow_forecast/dashboard.py
"""

from __future__ import annotations

import os
import sys
from typing import Dict

import pandas as pd
import streamlit as st

# Support both ``streamlit run cashflow_forecast/dashboard.py`` and
# package execution via ``python -m cashflow_forecast.dashboard``.
if __package__:
    from . import visualization as viz
    from .config import HORIZONS, configure_logging
    from .formatting import escape_dollar_for_markdown, format_currency
    from .models import BudgetDocument, RollingForecast, VarianceReport
    from .service import ForecastService
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from cashflow_forecast import visualization as viz  # type: ignore
    from cashflow_forecast.config import HORIZONS, configure_logging  # type: ignore
    from cashflow_forecast.formatting import escape_dollar_for_markdown, format_currency  # type: ignore
    from cashflow_forecast.models import BudgetDocument, RollingForecast, VarianceReport  # type: ignore
    from cashflow_forecast.service import ForecastService  # type: ignore


def forecast_metrics(forecast: RollingForecast) -> Dict[str, str]:
    """Headline figures for the metric row, already formatted."""
    forecast_entries = [entry for entry in forecast.entries if entry.kind == "forecast"]
    ending = forecast_entries[-1].balance if forecast_entries else forecast.current_balance
    return {
        "Current balance": format_currency(forecast.current_balance),
        "Projected balance": format_currency(ending),
        "Forecast net": format_currency(forecast.summary.forecast.net),
    }


def planned_items_frame(items) -> pd.DataFrame:
    columns = ["Description", "Amount", "Expected Date", "Recurrence"]
    rows = [
        {
            "Description": item.get("description"),
            "Amount": item.get("amount"),
            "Expected Date": item.get("expected_date"),
            "Recurrence": item.get("recurrence"),
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=columns)


def render_planned_items(service: ForecastService, account_id: str) -> None:
    st.subheader("Planned items")
    for kind in ("income", "expenses"):
        items = service.store.planned_items(account_id, kind)
        st.markdown(f"**Planned {kind}**")
        if items:
            st.dataframe(planned_items_frame(items), hide_index=True)
            labels = {item["id"]: f"{item['description']} ({item['expected_date']})" for item in items}
            to_delete = st.selectbox(
                f"Remove planned {kind}", options=["None"] + list(labels), format_func=lambda key: labels.get(key, key),
                key=f"delete_{kind}",
            )
            if to_delete != "None" and st.button(f"Delete selected {kind} item", key=f"delete_btn_{kind}"):
                service.store.delete_planned_item(account_id, kind, to_delete)
                st.rerun()
        else:
            st.caption(f"No planned {kind} yet.")

    with st.form("add_planned_item", clear_on_submit=True):
        kind = st.radio("Type", options=["income", "expenses"], horizontal=True)
        description = st.text_input("Description")
        amount = st.number_input("Amount", min_value=0.0, step=10.0)
        expected = st.date_input("Expected date")
        recurrence = st.selectbox("Recurrence", options=["one-off", "monthly"])
        if st.form_submit_button("Add planned item"):
            try:
                service.store.add_planned_item(account_id, kind, description, amount, expected, recurrence)
            except ValueError as exc:
                st.error(str(exc))
            else:
                st.success("Planned item added.")
                st.rerun()


def growth_rates_frame(document: BudgetDocument) -> pd.DataFrame:
    """One editable row per category with its income and expense growth rates."""
    rows = [
        {
            "Category": category,
            "Income Rate %": rate.income_rate_percent,
            "Expense Rate %": rate.expense_rate_percent,
        }
        for category, rate in sorted(document.category_growth_rates.items())
    ]
    return pd.DataFrame(rows, columns=["Category", "Income Rate %", "Expense Rate %"])


def changed_growth_rates(original: pd.DataFrame, edited: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """Categories whose rates differ between two ``growth_rates_frame`` tables."""
    changes: Dict[str, Dict[str, float]] = {}
    before = original.set_index("Category")
    for _, row in edited.iterrows():
        category = row["Category"]
        if category not in before.index:
            continue
        old = before.loc[category]
        if row["Income Rate %"] != old["Income Rate %"] or row["Expense Rate %"] != old["Expense Rate %"]:
            changes[category] = {
                "income_rate": float(row["Income Rate %"]),
                "expense_rate": float(row["Expense Rate %"]),
            }
    return changes


def render_budget_editor(service: ForecastService, account_id: str, document: BudgetDocument) -> None:
    with st.expander("Edit budget"):
        st.caption("Changing a growth rate re-projects that category over every budget month.")
        original = growth_rates_frame(document)
        edited = st.data_editor(original, hide_index=True, disabled=["Category"], key="growth_rates")
        changes = changed_growth_rates(original, edited)
        if changes and st.button("Apply growth rates"):
            for category, rates in changes.items():
                service.update_growth_rate(account_id, category, **rates)
            st.rerun()

        with st.form("override_cell"):
            month = st.selectbox("Month", options=document.forecast_months)
            categories = sorted({cat for cells in document.budget.values() for cat in cells})
            category = st.selectbox("Category", options=categories)
            income = st.number_input("Income", min_value=0.0, step=10.0)
            expenses = st.number_input("Expenses", min_value=0.0, step=10.0)
            if st.form_submit_button("Override cell"):
                try:
                    service.set_budget_cell(account_id, month, category, income=income, expenses=expenses)
                except ValueError as exc:
                    st.error(str(exc))
                else:
                    st.rerun()


def render_budget(service: ForecastService, account_id: str, horizon: str) -> None:
    st.subheader("Budget")
    col1, col2, col3 = st.columns(3)
    if col1.button("Generate budget"):
        result = service.generate_budget(account_id, horizon=horizon, save=True)
        if isinstance(result, BudgetDocument):
            st.success(f"Saved a {horizon} budget covering {len(result.forecast_months)} months.")
        else:
            st.warning(f"{result.message} ({result.months_available} month(s) available).")
    if col2.button("Delete budget"):
        if service.delete_budget(account_id):
            st.info("Budget deleted.")

    loaded = service.load_budget(account_id)
    if not isinstance(loaded, BudgetDocument):
        st.info("No saved budget yet. Generate one to track plan vs actual.")
        return
    col3.caption(f"Horizon {loaded.horizon}, updated {loaded.updated_at or 'n/a'}")

    render_budget_editor(service, account_id, loaded)

    report = service.variance(account_id)
    if isinstance(report, VarianceReport):
        st.plotly_chart(viz.create_variance_chart(report), use_container_width=True)
        st.dataframe(viz.variance_frame(report), hide_index=True)


def render_summary(service: ForecastService, account_id: str) -> None:
    st.subheader("History")
    period = st.selectbox("Period", options=["all", "year", "quarter"], index=0)
    summary = service.summary(account_id, period=period)
    totals = summary["totals"]
    st.markdown(
        escape_dollar_for_markdown(
            f"{summary['count']} transactions: income {format_currency(totals['income'])}, "
            f"expenses {format_currency(totals['expenses'])}, net {format_currency(totals['net'])}"
        )
    )
    st.dataframe(summary["monthly"], hide_index=True)
    st.dataframe(summary["by_category"])


def main() -> None:
    """Entry point for the Streamlit app."""
    configure_logging()
    st.set_page_config(page_title="Cash-flow Forecast", layout="wide", initial_sidebar_state="expanded")
    st.title("Cash-flow Forecast")

    st.sidebar.header("Configuration")
    account_id = st.sidebar.text_input("Account", value="default")
    horizon = st.sidebar.selectbox("Horizon", options=list(HORIZONS), index=0)
    if not account_id.strip():
        st.info("Enter an account id to begin.")
        st.stop()

    service = ForecastService()
    forecast = service.rolling_forecast(account_id, horizon=horizon)

    metrics = forecast_metrics(forecast)
    for column, (label, value) in zip(st.columns(len(metrics)), metrics.items()):
        column.metric(label, value)
    if forecast.budget_source == "none":
        st.info("Not enough history to project; forecast months show planned items only.")
    st.plotly_chart(viz.create_rolling_forecast_chart(forecast), use_container_width=True)
    st.dataframe(viz.rolling_forecast_frame(forecast), hide_index=True)

    render_budget(service, account_id, horizon)
    render_planned_items(service, account_id)
    render_summary(service, account_id)


if __name__ == "__main__":  # pragma: no cover
    main()
