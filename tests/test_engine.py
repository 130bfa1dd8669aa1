"""End-to-end tests for cashflow_forecast.engine."""

from __future__ import annotations

from datetime import date

import pytest

from cashflow_forecast import engine
from cashflow_forecast.models import BudgetDocument, InsufficientHistory, NoBudget, NotFound
from cashflow_forecast.months import month_range

MARCH = date(2024, 3, 15)


def _build_rows():
    return [
        {'amount': 1000.0, 'category': 'Salary', 'booked_at': '2024-01-05'},
        {'amount': 1100.0, 'category': 'Salary', 'booked_at': '2024-02-05'},
        {'amount': -200.0, 'category': 'Rent', 'booked_at': '2024-01-01'},
        {'amount': -200.0, 'category': 'Rent', 'booked_at': '2024-02-01'},
    ]


def test_generate_budget_projects_from_history():
    budget = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH)

    assert isinstance(budget, BudgetDocument)
    assert budget.ok
    assert budget.forecast_months == ['2024-04', '2024-05', '2024-06', '2024-07', '2024-08', '2024-09']
    assert budget.historical_months == ['2024-01', '2024-02']
    assert budget.category_growth_rates['Salary'].income_rate_percent == pytest.approx(10.0)
    assert budget.category_growth_rates['Rent'].expense_rate_percent == 0.0
    assert budget.budget['2024-04']['Salary'].income == pytest.approx(1210.0)
    assert budget.budget['2024-04']['Rent'].expenses == pytest.approx(200.0)
    assert budget.generated_at is not None


def test_generate_budget_without_history():
    result = engine.generate_budget([], today=MARCH)
    assert isinstance(result, InsufficientHistory)
    assert not result.ok
    assert result.months_available == 0


def test_generate_budget_with_single_month():
    result = engine.generate_budget(_build_rows()[:1], today=MARCH)
    assert isinstance(result, InsufficientHistory)
    assert result.months_available == 1


def test_generate_budget_folds_in_planned_items():
    history = [
        {'amount': 900.0, 'category': 'Salary', 'booked_at': '2023-10-05'},
        {'amount': 900.0, 'category': 'Salary', 'booked_at': '2023-11-05'},
    ]
    expense = [{'description': 'Car service', 'amount': 500, 'expected_date': '2024-05-02', 'recurrence': 'one-off'}]
    budget = engine.generate_budget(history, [], expense, horizon='6months', today=date(2023, 12, 10))

    assert budget.forecast_months[0] == '2024-01'
    assert budget.forecast_months[-1] == '2024-06'
    assert budget.budget['2024-05']['Planned Items'].expenses == pytest.approx(500.0)
    for month in budget.forecast_months:
        if month != '2024-05':
            assert 'Planned Items' not in budget.budget[month]


def test_load_budget_refreshes_planned_items():
    budget = engine.generate_budget(_build_rows(), today=MARCH)
    stored = budget.to_record()

    assert isinstance(engine.load_budget(None), NotFound)

    income = [{'description': 'Tax refund', 'amount': 400, 'expected_date': '2024-06-10'}]
    loaded = engine.load_budget(stored, income, [])
    assert loaded.budget['2024-06']['Planned Items'].income == pytest.approx(400.0)

    reloaded = engine.load_budget(loaded, [], [])
    assert 'Planned Items' not in reloaded.budget['2024-06']
    assert reloaded.budget['2024-06']['Salary'].income == pytest.approx(loaded.budget['2024-06']['Salary'].income)


def test_coerce_budget_rejects_unknown_types():
    with pytest.raises(TypeError):
        engine.coerce_budget(42)


def test_stored_record_round_trip_keeps_camel_case_rates():
    budget = engine.generate_budget(_build_rows(), today=MARCH)
    record = budget.to_record()

    assert set(record['category_growth_rates']['Salary']) == {'incomeRate', 'expenseRate', 'lastValue'}
    assert set(record) >= {'horizon', 'forecast_months', 'category_growth_rates', 'budget_data'}
    restored = BudgetDocument.from_record(record)
    assert restored.budget == budget.budget
    assert restored.category_growth_rates == budget.category_growth_rates


def test_rolling_forecast_with_transient_budget():
    forecast = engine.compute_rolling_forecast(_build_rows(), None, horizon='6months', today=MARCH)

    assert forecast.ok
    assert forecast.budget_source == 'generated'
    assert forecast.generated_at is not None
    months = [entry.month for entry in forecast.entries]
    assert months == ['2024-01', '2024-02', '2024-03', '2024-04', '2024-05', '2024-06', '2024-07', '2024-08']
    kinds = [entry.kind for entry in forecast.entries]
    assert kinds == ['actual'] * 3 + ['forecast'] * 5

    jan, feb, mar, apr = forecast.entries[:4]
    assert jan.balance == pytest.approx(800.0)
    assert feb.balance == pytest.approx(1700.0)
    # No March transactions yet: zero entry carrying the balance
    assert (mar.income, mar.expenses, mar.net) == (0.0, 0.0, 0.0)
    assert mar.balance == pytest.approx(1700.0)
    # Transient budget includes March as index 0, so April is one month ahead
    assert apr.income == pytest.approx(1210.0)
    assert apr.expenses == pytest.approx(200.0)
    assert apr.balance == pytest.approx(2710.0)


def test_rolling_forecast_balance_continuity():
    forecast = engine.compute_rolling_forecast(_build_rows(), None, today=MARCH)
    entries = forecast.entries
    for previous, current in zip(entries, entries[1:]):
        if current.kind == 'forecast':
            assert current.balance == pytest.approx(previous.balance + current.net)
    last_actual = [entry for entry in entries if entry.kind == 'actual'][-1]
    first_forecast = [entry for entry in entries if entry.kind == 'forecast'][0]
    assert first_forecast.balance - first_forecast.net == pytest.approx(last_actual.balance)


def test_rolling_forecast_summary_totals():
    forecast = engine.compute_rolling_forecast(_build_rows(), None, today=MARCH)
    summary = forecast.summary
    assert summary.actual.months == 3
    assert summary.forecast.months == 5
    assert summary.actual.income == pytest.approx(2100.0)
    assert summary.total.months == 8
    assert summary.total.net == pytest.approx(summary.actual.net + summary.forecast.net)
    assert forecast.current_balance == pytest.approx(1700.0)


def test_rolling_forecast_uses_saved_budget_with_matching_horizon():
    saved = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH).to_record()
    expense = [{'description': 'Car service', 'amount': 500, 'expected_date': '2024-05-02'}]
    forecast = engine.compute_rolling_forecast(_build_rows(), saved, [], expense, horizon='6months', today=MARCH)

    assert forecast.budget_source == 'saved'
    assert forecast.entries[-1].month == '2024-09'
    may = next(entry for entry in forecast.entries if entry.month == '2024-05')
    assert may.by_category['Planned Items'].expenses == pytest.approx(500.0)
    april = next(entry for entry in forecast.entries if entry.month == '2024-04')
    assert 'Planned Items' not in april.by_category


def test_rolling_forecast_ignores_saved_budget_with_other_horizon():
    saved = engine.generate_budget(_build_rows(), horizon='yearend', today=MARCH).to_record()
    forecast = engine.compute_rolling_forecast(_build_rows(), saved, horizon='6months', today=MARCH)
    assert forecast.budget_source == 'generated'
    assert forecast.entries[-1].month == '2024-08'


def test_rolling_forecast_without_history_uses_planned_items_only():
    expense = [{'description': 'Car service', 'amount': 500, 'expected_date': '2024-05-02'}]
    forecast = engine.compute_rolling_forecast([], None, [], expense, horizon='6months', today=MARCH)

    assert forecast.budget_source == 'none'
    assert [entry.month for entry in forecast.entries][0] == '2024-03'
    assert forecast.entries[-1].month == '2024-09'
    by_month = {entry.month: entry for entry in forecast.entries}
    assert by_month['2024-04'].net == 0.0
    assert by_month['2024-05'].expenses == pytest.approx(500.0)
    assert by_month['2024-09'].balance == pytest.approx(-500.0)


def test_rolling_forecast_clamps_corrupt_saved_values():
    saved = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH).to_record()
    saved['budget_data']['2024-04']['Salary'] = {'income': 5e9, 'expenses': 0}
    forecast = engine.compute_rolling_forecast(_build_rows(), saved, horizon='6months', today=MARCH)
    april = next(entry for entry in forecast.entries if entry.month == '2024-04')
    assert april.by_category['Salary'].income == 1e9


def test_variance_against_saved_budget():
    saved = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH).to_record()
    rows = _build_rows() + [
        {'amount': 1300.0, 'category': 'Salary', 'booked_at': '2024-04-05'},
        {'amount': -250.0, 'category': 'Rent', 'booked_at': '2024-04-01'},
        {'amount': -60.0, 'category': 'Dining', 'booked_at': '2024-04-12'},
    ]
    report = engine.compute_variance(saved, [], [], rows, today=date(2024, 5, 10))

    assert report.ok
    assert report.forecast_months == saved['forecast_months']
    april = report.months[0]
    assert april.month == '2024-04'
    assert april.kind == 'actual'
    salary = april.by_category['Salary']
    assert salary.variance.income == pytest.approx(90.0)
    assert salary.variance_percent.income == pytest.approx(90.0 / 1210.0 * 100)
    assert april.by_category['Rent'].variance.expenses == pytest.approx(50.0)
    # Unplanned categories still appear, with a zero plan
    assert april.by_category['Dining'].plan.expenses == 0.0
    assert april.by_category['Dining'].variance_percent.expenses == 0.0
    assert april.totals.variance.net == pytest.approx(april.totals.actual.net - april.totals.plan.net)

    june = next(month for month in report.months if month.month == '2024-06')
    assert june.kind == 'forecast'
    assert june.totals.actual.net == 0.0
    assert june.totals.variance.net == pytest.approx(-june.totals.plan.net)


def test_variance_without_budget():
    result = engine.compute_variance(None, [], [], _build_rows(), today=MARCH)
    assert isinstance(result, NoBudget)
    assert result.to_dict()['hasBudget'] is False


def test_malformed_stored_month_keys_are_dropped():
    saved = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH).to_record()
    saved['forecast_months'][2] = '2024-6'
    income = [{'description': 'Tax refund', 'amount': 400, 'expected_date': '2024-05-10'}]

    loaded = engine.load_budget(saved, income, [])
    assert '2024-6' not in loaded.forecast_months
    assert len(loaded.forecast_months) == 5
    assert loaded.budget['2024-05']['Planned Items'].income == pytest.approx(400.0)

    forecast = engine.compute_rolling_forecast(_build_rows(), saved, income, [], horizon='6months', today=MARCH)
    months = [entry.month for entry in forecast.entries]
    assert months == month_range('2024-01', '2024-09')


def test_string_historical_months_are_ignored():
    document = BudgetDocument.from_record({
        'horizon': '6months',
        'forecast_months': ['2024-04'],
        'historical_months': '2024-01',
        'budget_data': {},
    })
    assert document.historical_months == []


def test_unknown_recurrence_contributes_nothing():
    income = [{'description': 'Tips', 'amount': 50, 'expected_date': '2024-05-01', 'recurrence': 'weekly'}]
    budget = engine.generate_budget(_build_rows(), income, [], horizon='6months', today=MARCH)
    assert all('Planned Items' not in budget.budget[month] for month in budget.forecast_months)


def test_update_growth_rate_reprojects_one_category():
    budget = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH)
    edited = engine.update_growth_rate(budget, 'Salary', income_rate=20.0)

    assert edited.category_growth_rates['Salary'].income_rate_percent == 20.0
    assert edited.category_growth_rates['Salary'].expense_rate_percent == 0.0
    assert edited.budget['2024-04']['Salary'].income == pytest.approx(1320.0)
    assert edited.budget['2024-05']['Salary'].income == pytest.approx(1584.0)
    assert edited.budget['2024-04']['Rent'] == budget.budget['2024-04']['Rent']
    # The input document is left untouched
    assert budget.budget['2024-04']['Salary'].income == pytest.approx(1210.0)


def test_update_growth_rate_floors_and_adds_categories():
    saved = engine.generate_budget(_build_rows(), today=MARCH).to_record()
    edited = engine.update_growth_rate(saved, 'Rent', expense_rate=-150.0)
    assert edited.budget['2024-04']['Rent'].expenses == 0.0

    added = engine.update_growth_rate(saved, 'Gifts', income_rate=5.0)
    assert added.category_growth_rates['Gifts'].last_value.is_zero
    assert all(added.budget[month]['Gifts'].is_zero for month in added.forecast_months)


def test_set_budget_cell_overrides_single_value():
    budget = engine.generate_budget(_build_rows(), today=MARCH)
    edited = engine.set_budget_cell(budget, '2024-05', 'Rent', expenses=350.0)

    assert edited.budget['2024-05']['Rent'].expenses == 350.0
    assert edited.budget['2024-05']['Rent'].income == 0.0
    assert edited.budget['2024-06']['Rent'].expenses == pytest.approx(200.0)

    clamped = engine.set_budget_cell(budget, '2024-05', 'Dining', income=-10.0, expenses=80.0)
    assert clamped.budget['2024-05']['Dining'].income == 0.0
    assert clamped.budget['2024-05']['Dining'].expenses == 80.0

    with pytest.raises(ValueError):
        engine.set_budget_cell(budget, '2023-01', 'Rent', expenses=1.0)


def test_rolling_forecast_fills_gaps_between_actual_months():
    rows = _build_rows() + [{'amount': -300.0, 'category': 'Rent', 'booked_at': '2024-05-01'}]
    forecast = engine.compute_rolling_forecast(rows, None, today=date(2024, 6, 10))

    actual = [(entry.month, entry.net, entry.balance) for entry in forecast.entries if entry.kind == 'actual']
    assert actual == [
        ('2024-01', pytest.approx(800.0), pytest.approx(800.0)),
        ('2024-02', pytest.approx(900.0), pytest.approx(1700.0)),
        ('2024-03', 0.0, pytest.approx(1700.0)),
        ('2024-04', 0.0, pytest.approx(1700.0)),
        ('2024-05', pytest.approx(-300.0), pytest.approx(1400.0)),
        ('2024-06', 0.0, pytest.approx(1400.0)),
    ]
    months = [entry.month for entry in forecast.entries]
    assert months == month_range(months[0], months[-1])


def test_runaway_balance_resets_to_last_actual_plus_net(caplog):
    big = {f'C{index:03d}': {'income': 1e9, 'expenses': 0} for index in range(600)}
    saved = {
        'horizon': '6months',
        'forecast_months': ['2024-04', '2024-05'],
        'category_growth_rates': {},
        'budget_data': {'2024-04': dict(big), '2024-05': dict(big)},
    }
    with caplog.at_level('ERROR', logger='cashflow_forecast.sanitize'):
        forecast = engine.compute_rolling_forecast(_build_rows(), saved, horizon='6months', today=MARCH)

    by_month = {entry.month: entry for entry in forecast.entries}
    assert by_month['2024-04'].balance == pytest.approx(1700.0 + 6e11)
    assert by_month['2024-05'].balance == pytest.approx(1700.0 + 6e11)
    assert any('Suspicious balance' in record.getMessage() for record in caplog.records)


def test_saved_budget_partly_in_the_past():
    saved = engine.generate_budget(_build_rows(), horizon='6months', today=MARCH).to_record()
    forecast = engine.compute_rolling_forecast(_build_rows(), saved, horizon='6months', today=date(2024, 6, 10))

    assert forecast.budget_source == 'saved'
    kinds = {entry.month: entry.kind for entry in forecast.entries}
    assert [kinds[month] for month in ['2024-04', '2024-05', '2024-06']] == ['actual'] * 3
    assert [kinds[month] for month in ['2024-07', '2024-08', '2024-09']] == ['forecast'] * 3

    by_month = {entry.month: entry for entry in forecast.entries}
    assert by_month['2024-05'].net == 0.0
    assert by_month['2024-06'].balance == pytest.approx(1700.0)
    july = by_month['2024-07']
    assert july.by_category['Salary'].income == pytest.approx(saved['budget_data']['2024-07']['Salary']['income'])
    assert july.balance == pytest.approx(1700.0 + july.net)


def test_stale_months_before_history_start_at_zero():
    saved = {
        'horizon': '6months',
        'forecast_months': ['2023-10', '2023-11'],
        'category_growth_rates': {},
        'budget_data': {},
    }
    forecast = engine.compute_rolling_forecast(_build_rows(), saved, horizon='6months', today=MARCH)

    by_month = {entry.month: entry for entry in forecast.entries}
    assert forecast.entries[0].month == '2023-10'
    assert by_month['2023-10'].balance == 0.0
    assert by_month['2023-12'].balance == 0.0
    assert by_month['2024-01'].balance == pytest.approx(800.0)
    assert by_month['2024-03'].balance == pytest.approx(1700.0)
