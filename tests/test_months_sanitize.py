from datetime import date

import pytest

from cashflow_forecast import months
from cashflow_forecast.models import CategoryAggregate
from cashflow_forecast.sanitize import sanitize_aggregate, sanitize_amount, sanitize_balance


def test_parse_month_validates_keys():
    assert str(months.parse_month('2024-03')) == '2024-03'
    for bad in ['2024-13', '2024-00', '2024/03', '24-03', '']:
        with pytest.raises(ValueError):
            months.parse_month(bad)


def test_month_arithmetic_crosses_year_boundary():
    assert months.add_months('2024-11', 3) == '2025-02'
    assert months.month_range('2024-11', '2025-02') == ['2024-11', '2024-12', '2025-01', '2025-02']
    assert months.month_range('2025-02', '2024-11') == []
    assert months.current_month(date(2024, 3, 31)) == '2024-03'


def test_six_month_horizon():
    assert months.forecast_months('6months', date(2024, 3, 15)) == [
        '2024-04', '2024-05', '2024-06', '2024-07', '2024-08', '2024-09',
    ]
    including = months.forecast_months('6months', date(2024, 3, 15), include_current=True)
    assert including[0] == '2024-03'
    assert len(including) == 6


def test_yearend_horizon():
    assert months.forecast_months('yearend', date(2024, 10, 1)) == ['2024-11', '2024-12']
    assert months.forecast_months('yearend', date(2024, 12, 5)) == []
    assert months.forecast_months('yearend', date(2024, 12, 5), include_current=True) == ['2024-12']


def test_unknown_horizon_falls_back_to_six_months():
    assert months.normalize_horizon('fortnight') == '6months'
    assert months.normalize_horizon(None) == '6months'


def test_sanitize_amount_rejects_non_finite():
    assert sanitize_amount('12.5') == 12.5
    assert sanitize_amount(float('nan')) == 0.0
    assert sanitize_amount(float('inf')) == 0.0
    assert sanitize_amount(None) == 0.0


def test_sanitize_aggregate_clamps_to_bounds():
    value, clamped = sanitize_aggregate({'income': 5e9, 'expenses': -3}, month='2024-04', category='Salary')
    assert clamped
    assert value == CategoryAggregate(income=1e9, expenses=0.0)

    value, clamped = sanitize_aggregate(CategoryAggregate(income=10.0, expenses=4.0))
    assert not clamped
    assert value == CategoryAggregate(income=10.0, expenses=4.0)


def test_sanitize_aggregate_logs_clamp_at_error_level(caplog):
    with caplog.at_level('ERROR', logger='cashflow_forecast.sanitize'):
        sanitize_aggregate({'income': 2e9, 'expenses': 0}, month='2024-05', category='Bonus')
    assert any(record.levelname == 'ERROR' for record in caplog.records)


def test_sanitize_aggregate_handles_garbage():
    value, clamped = sanitize_aggregate('oops', month='2024-05', category='Misc')
    assert value == CategoryAggregate()
    assert not clamped


def test_sanitize_balance_resets_suspicious_values():
    assert sanitize_balance(1500.0, fallback=0.0) == (1500.0, False)
    assert sanitize_balance(2e12, fallback=100.0, month='2024-06') == (100.0, True)
    assert sanitize_balance(-2e12, fallback=-5.0) == (-5.0, True)
