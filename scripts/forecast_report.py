#!/usr/bin/env python3
"""Print the rolling forecast and budget variance for one account."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cashflow_forecast import visualization as viz
from cashflow_forecast.config import configure_logging
from cashflow_forecast.formatting import format_currency
from cashflow_forecast.service import ForecastService
from cashflow_forecast.storage import AccountStore


def main(account_id: str, horizon: str | None = None, data_dir: str | None = None, as_json: bool = False) -> None:
    service = ForecastService(AccountStore(data_dir))
    forecast = service.rolling_forecast(account_id, horizon=horizon)
    report = service.variance(account_id)

    if as_json:
        print(json.dumps({'forecast': forecast.to_dict(), 'variance': report.to_dict()}, indent=2))
        return

    print(f"Account: {account_id}  horizon: {forecast.horizon}  budget: {forecast.budget_source}")
    print(f"Current balance: {format_currency(forecast.current_balance)}")
    print("\nRolling forecast:")
    print(viz.rolling_forecast_frame(forecast).to_string(index=False))

    if not report.ok:
        print(f"\n{report.message}")
        return
    print("\nBudget vs actual:")
    print(viz.variance_frame(report).to_string(index=False))


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show the rolling cash-flow forecast for an account.')
    parser.add_argument('account', help='Account id')
    parser.add_argument('--horizon', choices=['6months', 'yearend'], default=None, help='Forecast horizon')
    parser.add_argument('--data-dir', default=None, help='Directory holding account files')
    parser.add_argument('--json', action='store_true', help='Emit JSON instead of tables')
    parser.add_argument('--log-level', default=None, help='Logging level (default from CASHFLOW_LOG_LEVEL)')
    args = parser.parse_args()
    configure_logging(args.log_level)
    main(args.account, horizon=args.horizon, data_dir=args.data_dir, as_json=args.json)
