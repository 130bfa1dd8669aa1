from datetime import date

import plotly.graph_objects as go
import pytest

from cashflow_forecast import engine, visualization as viz
from cashflow_forecast.dashboard import changed_growth_rates, forecast_metrics, growth_rates_frame, planned_items_frame
from cashflow_forecast.formatting import escape_dollar_for_markdown, format_currency, format_percent
from cashflow_forecast.models import RollingForecast, VarianceReport
from cashflow_forecast.rolling_forecast import summarize_entries

MARCH = date(2024, 3, 15)


def _build_rows():
    return [
        {'amount': 1000.0, 'category': 'Salary', 'booked_at': '2024-01-05'},
        {'amount': 1100.0, 'category': 'Salary', 'booked_at': '2024-02-05'},
        {'amount': -200.0, 'category': 'Rent', 'booked_at': '2024-01-01'},
        {'amount': -200.0, 'category': 'Rent', 'booked_at': '2024-02-01'},
    ]


def _empty_forecast():
    return RollingForecast(
        entries=[],
        summary=summarize_entries([]),
        current_balance=0.0,
        current_month='2024-03',
        horizon='6months',
        budget_source='none',
    )


def test_rolling_forecast_frame_and_chart():
    forecast = engine.compute_rolling_forecast(_build_rows(), None, today=MARCH)
    df = viz.rolling_forecast_frame(forecast)

    assert list(df.columns) == ['Month', 'Type', 'Income', 'Expenses', 'Net', 'Balance']
    assert len(df) == len(forecast.entries)
    assert set(df['Type']) == {'actual', 'forecast'}

    fig = viz.create_rolling_forecast_chart(forecast)
    assert isinstance(fig, go.Figure)
    assert [trace.name for trace in fig.data] == ['Income', 'Expenses', 'Balance']
    assert fig.data[2].y[-1] == forecast.entries[-1].balance


def test_variance_frame_and_chart():
    saved = engine.generate_budget(_build_rows(), today=MARCH).to_record()
    report = engine.compute_variance(saved, [], [], _build_rows(), today=MARCH)
    df = viz.variance_frame(report)

    assert list(df['Month']) == saved['forecast_months']
    assert (df['Actual Net'] == 0).all()
    fig = viz.create_variance_chart(report)
    assert fig.layout.barmode == 'group'


def test_empty_results_render_placeholder():
    fig = viz.create_rolling_forecast_chart(_empty_forecast())
    assert fig.layout.title.text == 'No data to display'

    report = VarianceReport(horizon='6months', forecast_months=[], months=[])
    assert viz.create_variance_chart(report).layout.title.text == 'No data to display'


def test_formatting_helpers():
    assert format_currency(1234.56) == '$1,234.56'
    assert format_currency(-1234.5) == '-$1,234.50'
    assert format_currency(1234.56, include_sign=False) == '1,234.56'
    assert format_percent(12.345) == '+12.3%'
    assert format_percent(-3) == '-3.0%'
    assert escape_dollar_for_markdown('$5') == '\\$5'


def test_dashboard_metrics():
    forecast = engine.compute_rolling_forecast(_build_rows(), None, today=MARCH)
    metrics = forecast_metrics(forecast)
    assert metrics['Current balance'] == '$1,700.00'
    assert set(metrics) == {'Current balance', 'Projected balance', 'Forecast net'}

    empty = forecast_metrics(_empty_forecast())
    assert empty['Projected balance'] == '$0.00'


def test_planned_items_frame_columns():
    df = planned_items_frame([
        {'id': 'x', 'description': 'Bonus', 'amount': 100.0, 'expected_date': '2024-05-01', 'recurrence': 'one-off'},
    ])
    assert list(df.columns) == ['Description', 'Amount', 'Expected Date', 'Recurrence']
    assert df.iloc[0]['Description'] == 'Bonus'


def test_growth_rates_frame_reports_only_edited_rows():
    budget = engine.generate_budget(_build_rows(), today=MARCH)
    original = growth_rates_frame(budget)

    assert list(original.columns) == ['Category', 'Income Rate %', 'Expense Rate %']
    assert list(original['Category']) == ['Rent', 'Salary']
    assert original.loc[1, 'Income Rate %'] == pytest.approx(10.0)
    assert changed_growth_rates(original, original.copy()) == {}

    edited = original.copy()
    edited.loc[0, 'Expense Rate %'] = 5.0
    changes = changed_growth_rates(original, edited)
    assert list(changes) == ['Rent']
    assert changes['Rent'] == {'income_rate': 0.0, 'expense_rate': 5.0}
