"""Plotly visualisation helpers for forecasts and variance reports.

Each chart function accepts a result object from :mod:`engine` and
returns a ``plotly.graph_objects.Figure`` that Streamlit can render via
``st.plotly_chart``.  The ``*_frame`` helpers flatten results into tidy
DataFrames, which the dashboard also shows as tables.
"""

from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from .models import RollingForecast, VarianceReport

INCOME_COLOR = "#2ca02c"
EXPENSE_COLOR = "#d62728"
FORECAST_OPACITY = 0.45


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def rolling_forecast_frame(forecast: RollingForecast) -> pd.DataFrame:
    """One row per timeline month with ``Month``, ``Type``, ``Income``, ``Expenses``, ``Net`` and ``Balance``."""
    rows = [
        {
            "Month": entry.month,
            "Type": entry.kind,
            "Income": entry.income,
            "Expenses": entry.expenses,
            "Net": entry.net,
            "Balance": entry.balance,
        }
        for entry in forecast.entries
    ]
    return pd.DataFrame(rows, columns=["Month", "Type", "Income", "Expenses", "Net", "Balance"])


def variance_frame(report: VarianceReport) -> pd.DataFrame:
    """Monthly plan, actual and variance totals as a flat table."""
    rows = []
    for month in report.months:
        totals = month.totals
        rows.append({
            "Month": month.month,
            "Type": month.kind,
            "Planned Net": totals.plan.net,
            "Actual Net": totals.actual.net,
            "Variance": totals.variance.net,
            "Variance %": totals.variance_percent.net,
        })
    return pd.DataFrame(
        rows, columns=["Month", "Type", "Planned Net", "Actual Net", "Variance", "Variance %"]
    )


def create_rolling_forecast_chart(forecast: RollingForecast, title: str | None = None) -> go.Figure:
    """Income and expense bars per month with the running balance as a line.

    Forecast months are drawn with faded bars so the actual/forecast
    boundary stays visible.

    Parameters
    ----------
    forecast : RollingForecast
        Result of :func:`engine.compute_rolling_forecast`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Combined bar and line chart.
    """
    df = rolling_forecast_frame(forecast)
    if df.empty:
        return _empty_figure()
    opacity = [1.0 if kind == "actual" else FORECAST_OPACITY for kind in df["Type"]]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["Month"], y=df["Income"], name="Income", marker_color=INCOME_COLOR, marker_opacity=opacity))
    fig.add_trace(go.Bar(x=df["Month"], y=-df["Expenses"], name="Expenses", marker_color=EXPENSE_COLOR, marker_opacity=opacity))
    fig.add_trace(go.Scatter(x=df["Month"], y=df["Balance"], mode="lines+markers", name="Balance"))
    fig.update_layout(
        barmode="relative",
        title=title or f"Rolling forecast ({forecast.horizon})",
        xaxis_title="Month",
        yaxis_title="Amount",
    )
    return fig


def create_variance_chart(report: VarianceReport, title: str | None = None) -> go.Figure:
    """Grouped bars of planned vs actual net per budget month."""
    df = variance_frame(report)
    if df.empty:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["Month"], y=df["Planned Net"], name="Planned"))
    fig.add_trace(go.Bar(x=df["Month"], y=df["Actual Net"], name="Actual"))
    fig.update_layout(
        barmode="group",
        title=title or "Budget vs actual",
        xaxis_title="Month",
        yaxis_title="Net",
    )
    return fig
